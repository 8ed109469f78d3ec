"""VAPI outbound call driver with simulation support."""

import uuid
from typing import Any

import httpx

from wakeme.core.logging import get_logger
from wakeme.core.services import VoiceCallError, VoiceGateway
from wakeme.core.ui_strings import get_tts_string
from wakeme.domain.confirmation import CONFIRMATION_PHRASES
from wakeme.schemas import PromptTier

logger = get_logger(__name__)

SILENCE_TIMEOUT_SEC = 30
MAX_DURATION_SEC = 180
SERVER_MESSAGES = ["end-of-call-report", "status-update"]


def build_assistant(
    prompt_tier: PromptTier,
    callback_url: str,
    metadata: dict[str, Any],
    voice_id: str,
    server_secret: str | None = None,
) -> dict[str, Any]:
    """Transient assistant definition for one wake-up call."""
    destination = metadata.get("destination") or "your destination"
    attempt_no = metadata.get("attempt", 1)
    tier = PromptTier(prompt_tier).value

    assistant: dict[str, Any] = {
        "firstMessage": get_tts_string(
            f"first_message_{tier}", destination=destination, attempt_no=attempt_no
        ),
        "model": {
            "provider": "openai",
            "model": "gpt-4o-mini",
            "messages": [
                {
                    "role": "system",
                    "content": get_tts_string(
                        "system_prompt",
                        urgency=get_tts_string(f"urgency_{tier}"),
                        destination=destination,
                        mode=metadata.get("mode", "bus"),
                        attempt_no=attempt_no,
                        max_attempts=metadata.get("max_attempts", 5),
                    ),
                }
            ],
        },
        "voice": {"provider": "azure", "voiceId": voice_id},
        "endCallMessage": get_tts_string("end_call_message"),
        "endCallPhrases": [p for p in CONFIRMATION_PHRASES if " " in p],
        "silenceTimeoutSeconds": SILENCE_TIMEOUT_SEC,
        "maxDurationSeconds": MAX_DURATION_SEC,
        "transcriber": {"provider": "deepgram", "model": "nova-2", "language": "en-IN"},
        "serverUrl": callback_url,
        "serverMessages": SERVER_MESSAGES,
    }
    if server_secret:
        assistant["serverUrlSecret"] = server_secret
    return assistant


class VapiVoiceGateway(VoiceGateway):
    """Places wake-up calls through VAPI, or simulates them when disabled."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None,
        api_base: str = "https://api.vapi.ai",
        phone_number_id: str | None = None,
        voice_id: str = "en-IN-NeerjaNeural",
        server_secret: str | None = None,
        calls_enabled: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self._http = http_client
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.phone_number_id = phone_number_id
        self.voice_id = voice_id
        self.server_secret = server_secret
        self.calls_enabled = calls_enabled
        self.timeout = timeout

    @property
    def simulated(self) -> bool:
        return not self.calls_enabled or not self.api_key

    async def place_call(
        self,
        phone: str,
        prompt_tier: PromptTier,
        callback_url: str,
        metadata: dict[str, Any],
    ) -> str:
        if self.simulated:
            call_id = f"sim-{uuid.uuid4().hex}"
            logger.info(
                "DRY-RUN vapi: would dial",
                to_e164=phone,
                prompt_tier=PromptTier(prompt_tier).value,
                external_call_id=call_id,
                mode="simulated",
            )
            return call_id

        payload: dict[str, Any] = {
            "customer": {"number": phone},
            "assistant": build_assistant(
                prompt_tier, callback_url, metadata, self.voice_id, self.server_secret
            ),
            "metadata": metadata,
        }
        if self.phone_number_id:
            payload["phoneNumberId"] = self.phone_number_id

        try:
            response = await self._http.post(
                f"{self.api_base}/call",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=payload,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise VoiceCallError(f"VAPI transport error: {e}") from e

        if not response.is_success:
            logger.error(
                "VAPI call rejected",
                status_code=response.status_code,
                response_text=response.text[:500],
                mode="real",
            )
            raise VoiceCallError(
                f"VAPI returned {response.status_code}", status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise VoiceCallError(
                "VAPI returned a non-JSON body", status_code=response.status_code
            ) from e

        call_id = body.get("id") if isinstance(body, dict) else None
        if not call_id:
            raise VoiceCallError("VAPI response missing call id", status_code=response.status_code)

        logger.info("VAPI call created", external_call_id=call_id, mode="real")
        return str(call_id)
