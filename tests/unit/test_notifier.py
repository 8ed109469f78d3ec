"""Unit tests for the Telegram notification sink."""

import httpx
import pytest
import respx

from tests.conftest import TRAVELER_ID
from wakeme.integrations.telegram import TelegramClient, TelegramNotifier

SEND_URL = "https://api.telegram.org/bot123:ABC/sendMessage"


@pytest.mark.unit
class TestTelegramNotifier:
    async def test_dry_run_without_client(self, store):
        notifier = TelegramNotifier(store, None)
        assert await notifier.notify(TRAVELER_ID, "Wake up") is True

    async def test_sends_to_stored_chat(self, store):
        await store.upsert_user(TRAVELER_ID, chat_id=4242)
        async with httpx.AsyncClient() as http:
            notifier = TelegramNotifier(store, TelegramClient(http, "123:ABC"))
            with respx.mock() as mock:
                route = mock.post(SEND_URL).mock(
                    return_value=httpx.Response(200, json={"ok": True, "result": {}})
                )
                assert await notifier.notify(TRAVELER_ID, "Wake up") is True

        sent = route.calls.last.request
        assert b'"chat_id":4242' in sent.content.replace(b" ", b"")

    async def test_falls_back_to_user_id(self, store):
        async with httpx.AsyncClient() as http:
            notifier = TelegramNotifier(store, TelegramClient(http, "123:ABC"))
            with respx.mock() as mock:
                route = mock.post(SEND_URL).mock(
                    return_value=httpx.Response(200, json={"ok": True, "result": {}})
                )
                await notifier.notify(TRAVELER_ID, "Wake up")

        body = route.calls.last.request.content.replace(b" ", b"")
        assert f'"chat_id":{TRAVELER_ID}'.encode() in body

    async def test_api_failure_returns_false(self, store):
        async with httpx.AsyncClient() as http:
            notifier = TelegramNotifier(store, TelegramClient(http, "123:ABC"))
            with respx.mock() as mock:
                mock.post(SEND_URL).mock(
                    return_value=httpx.Response(403, json={"ok": False, "description": "blocked"})
                )
                assert await notifier.notify(TRAVELER_ID, "Wake up") is False
