"""Telegram bot adapter."""

from .client import TelegramAPIError, TelegramClient
from .handlers import TelegramUpdateHandler
from .notifier import TelegramNotifier

__all__ = [
    "TelegramAPIError",
    "TelegramClient",
    "TelegramNotifier",
    "TelegramUpdateHandler",
]
