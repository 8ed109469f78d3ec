"""Telegram security utilities."""

import hmac


def verify_telegram_secret(received: str | None, expected: str | None) -> bool:
    """Verify the X-Telegram-Bot-Api-Secret-Token header in constant time."""
    if not expected or received is None:
        return False

    return hmac.compare_digest(received, expected)
