"""Telegram Bot API client."""

from typing import Any

import httpx

from wakeme.core.logging import get_logger

logger = get_logger(__name__)


class TelegramAPIError(Exception):
    """Telegram API error."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Telegram API error {status_code}: {message}")


class TelegramClient:
    """Lightweight Telegram Bot API client over a shared httpx client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        bot_token: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 30.0,
    ) -> None:
        self._http = http_client
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def _build_url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.bot_token}/{method}"

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.post(
                self._build_url(method), json=payload, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            raise TelegramAPIError(0, f"{method} transport error: {e}") from e

        if not response.is_success:
            raise TelegramAPIError(response.status_code, f"{method} failed: {response.text}")

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise TelegramAPIError(response.status_code, f"{method} returned invalid JSON") from e
        return data

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a message to a chat."""
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self._call("sendMessage", payload)

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: str | None = None,
        show_alert: bool = False,
    ) -> dict[str, Any]:
        """Answer a callback query."""
        payload: dict[str, Any] = {
            "callback_query_id": callback_query_id,
            "show_alert": show_alert,
        }
        if text:
            payload["text"] = text
        return await self._call("answerCallbackQuery", payload)
