"""Voice vendor webhook router."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from wakeme.core.logging import get_logger
from wakeme.core.metrics import inbound_events_total
from wakeme.integrations.vapi import normalize_call_payload, verify_webhook_secret
from wakeme.runtime import WakeRuntime, get_runtime

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["voice"])


@router.post("/voice")
async def voice_webhook(
    request: Request,
    runtime: WakeRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    """Receive call status and end-of-call reports."""
    settings = runtime.settings
    headers = {k.lower(): v for k, v in request.headers.items()}
    if not verify_webhook_secret(
        headers.get("x-vapi-secret"),
        settings.vapi_webhook_secret,
        headers,
        test_mode=settings.vapi_webhook_test_mode,
    ):
        logger.warning("Rejected voice webhook with invalid secret")
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    try:
        body = await request.json()
    except ValueError as e:
        logger.error("Failed to parse voice webhook body", error=str(e))
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e

    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid payload format")

    result = normalize_call_payload(body)
    if result is None:
        inbound_events_total.labels(provider="vapi", type="ignored").inc()
        return {"ok": True, "ignored": True}

    inbound_events_total.labels(provider="vapi", type=result.status.value).inc()
    outcome = await runtime.orchestrator.on_call_result(result)
    logger.info(
        "Voice webhook processed",
        external_call_id=result.external_call_id,
        outcome=outcome.value,
    )
    return {"ok": True, "outcome": outcome.value}
