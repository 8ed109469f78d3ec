"""VAPI webhook verification and payload normalization."""

import hmac
from typing import Any

from wakeme.core.logging import get_logger
from wakeme.schemas import CallResult, CallStatus

logger = get_logger(__name__)

_ENDED_STATUSES = {"ended", "completed", "finished"}


def verify_webhook_secret(
    received: str | None,
    expected: str | None,
    headers: dict[str, str],
    test_mode: bool = False,
) -> bool:
    """Check the X-Vapi-Secret header, accepting X-Simulated: 1 in test mode."""
    if test_mode and headers.get("x-simulated") == "1":
        logger.info("Accepting simulated voice webhook", mode="test")
        return True

    if not expected or received is None:
        return False

    return hmac.compare_digest(received, expected)


def _as_int(value: Any) -> int | None:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def _normalize_server_message(message: dict[str, Any]) -> CallResult | None:
    message_type = message.get("type")
    call = message.get("call") or {}
    call_id = call.get("id")
    if not call_id:
        logger.warning("Voice server message without call id", message_type=message_type)
        return None

    if message_type == "end-of-call-report":
        transcript = message.get("transcript")
        if transcript is None:
            transcript = (message.get("artifact") or {}).get("transcript")
        duration = message.get("durationSeconds")
        if duration is None:
            duration = call.get("duration")
        return CallResult(
            external_call_id=str(call_id),
            status=CallStatus.ENDED,
            transcript=transcript,
            duration_seconds=_as_int(duration),
            metadata=call.get("metadata") or {},
        )

    # "ended" status updates precede the report and carry no transcript
    if message_type == "status-update" and message.get("status") == CallStatus.IN_PROGRESS.value:
        return CallResult(
            external_call_id=str(call_id),
            status=CallStatus.IN_PROGRESS,
            metadata=call.get("metadata") or {},
        )

    return None


def _normalize_flat(body: dict[str, Any]) -> CallResult | None:
    status = str(body.get("status") or "ended").lower()
    if status not in _ENDED_STATUSES:
        return None
    return CallResult(
        external_call_id=str(body["id"]),
        status=CallStatus.ENDED,
        transcript=body.get("transcript"),
        duration_seconds=_as_int(body.get("duration")),
        metadata=body.get("metadata") or {},
    )


def normalize_call_payload(body: dict[str, Any]) -> CallResult | None:
    """Turn a VAPI webhook body into a CallResult.

    Accepts server messages (wrapped in "message" or bare) and the flat
    call-complete body. Returns None for messages the call loop ignores.
    """
    message = body.get("message")
    if isinstance(message, dict) and message.get("type"):
        return _normalize_server_message(message)
    if body.get("type"):
        return _normalize_server_message(body)
    if body.get("id"):
        return _normalize_flat(body)

    logger.warning("Unrecognized voice webhook body", keys=sorted(body.keys()))
    return None
