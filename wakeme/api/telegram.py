"""Telegram webhook router."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from wakeme.core.logging import get_logger
from wakeme.integrations.telegram.parsing import compute_provider_event_id, extract_chat_id
from wakeme.integrations.telegram.security import verify_telegram_secret
from wakeme.runtime import WakeRuntime, get_runtime

logger = get_logger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])


@router.post("/webhook")
async def telegram_webhook(
    request: Request,
    runtime: WakeRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    """Handle Telegram webhook."""
    expected = runtime.settings.telegram_webhook_secret

    # Validate webhook secret
    secret_token = request.headers.get("X-Telegram-Bot-Api-Secret-Token")
    if not expected:
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    if not verify_telegram_secret(secret_token, expected):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    # Parse request body
    try:
        body = await request.json()
    except ValueError as e:
        logger.error("Failed to parse webhook body", error=str(e))
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e

    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid update format")

    provider_event_id = compute_provider_event_id(body)
    log = logger.bind(provider_event_id=provider_event_id, chat_id=extract_chat_id(body))
    log.info("Processing Telegram webhook")

    try:
        handled = await runtime.telegram.handle_update(body)
    except Exception:
        # Telegram redelivers on non-2xx, so failures are logged and acknowledged
        log.exception("Failed to process Telegram event")
        return {"ok": True}

    log.info("Telegram event processed", handled=handled)
    return {"ok": True}
