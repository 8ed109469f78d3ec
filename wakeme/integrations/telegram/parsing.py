"""Telegram update parsing utilities."""

import re
from typing import Any

PNR_RE = re.compile(r"^\d{10}$")


def compute_provider_event_id(update_json: dict[str, Any]) -> str:
    """Stable id of an update, used to log and drop redeliveries."""
    update_id = update_json.get("update_id")
    if update_id is not None:
        return str(update_id)

    callback_id = update_json.get("callback_query", {}).get("id")
    if callback_id is not None:
        return str(callback_id)

    return "unknown"


def extract_message(update_json: dict[str, Any]) -> tuple[dict[str, Any] | None, bool]:
    """Return the message carried by an update and whether it was an edit."""
    message = update_json.get("message")
    if message is not None:
        return message, False

    edited = update_json.get("edited_message")
    if edited is not None:
        return edited, True

    return None, False


def extract_chat_id(update_json: dict[str, Any]) -> int | None:
    """Extract chat ID from Telegram update."""
    message, _ = extract_message(update_json)
    if message is None:
        message = update_json.get("callback_query", {}).get("message")
    if message is None:
        return None

    chat_id = message.get("chat", {}).get("id")
    return int(chat_id) if chat_id is not None else None


def is_pnr(text: str) -> bool:
    """A PNR is exactly ten digits."""
    return bool(PNR_RE.match(text.strip()))


def normalize_phone(raw: str, default_country_code: str = "+91") -> str | None:
    """Normalize a phone number to E.164.

    Bare ten-digit numbers get the default country code; numbers written
    with a 00 prefix or without the plus sign are accepted. Returns None
    when the result is not a plausible E.164 number.
    """
    if not raw:
        return None

    digits = re.sub(r"[^\d+]", "", raw.strip())
    if digits.startswith("00"):
        digits = "+" + digits[2:]

    if digits.startswith("+"):
        normalized = "+" + digits[1:].replace("+", "")
    elif len(digits) == 10:
        normalized = default_country_code + digits
    elif digits.startswith("0") and len(digits) == 11:
        normalized = default_country_code + digits[1:]
    else:
        normalized = "+" + digits

    if not re.fullmatch(r"\+[1-9]\d{7,14}", normalized):
        return None
    return normalized
