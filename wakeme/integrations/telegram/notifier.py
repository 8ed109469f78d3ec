"""Telegram-backed notification sink."""

from wakeme.core.logging import get_logger
from wakeme.core.metrics import notifications_failed_total, notifications_sent_total
from wakeme.core.services import NotificationSink
from wakeme.integrations.telegram.client import TelegramAPIError, TelegramClient
from wakeme.storage.interfaces import TripStoreIface

logger = get_logger(__name__)


class TelegramNotifier(NotificationSink):
    """Sends plain-text notices to the user's chat; never raises.

    Without a client (no bot token configured) messages are only logged.
    """

    def __init__(self, store: TripStoreIface, client: TelegramClient | None):
        self._store = store
        self._client = client

    async def notify(self, user_id: int, text: str) -> bool:
        chat_id = user_id
        try:
            user = await self._store.get_user(user_id)
        except Exception:
            # Private chat ids equal the user id
            logger.exception("Chat lookup failed", user_id=user_id)
        else:
            if user is not None and user.chat_id:
                chat_id = user.chat_id

        if self._client is None:
            logger.info("DRY-RUN telegram: would send", user_id=user_id, text=text)
            return True

        try:
            await self._client.send_message(chat_id, text)
        except TelegramAPIError as e:
            notifications_failed_total.labels(channel="telegram").inc()
            logger.warning(
                "Telegram notification failed",
                user_id=user_id,
                status_code=e.status_code,
                error=e.message,
            )
            return False

        notifications_sent_total.labels(channel="telegram").inc()
        logger.debug("Telegram notification sent", user_id=user_id)
        return True
