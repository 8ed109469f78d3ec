"""VAPI voice-call adapter."""

from .driver import VapiVoiceGateway, VoiceCallError
from .webhook import normalize_call_payload, verify_webhook_secret

__all__ = [
    "VapiVoiceGateway",
    "VoiceCallError",
    "normalize_call_payload",
    "verify_webhook_secret",
]
