"""Contract test configuration."""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from wakeme.factory import create_app


@pytest_asyncio.fixture
async def contract_client(settings, runtime):
    """HTTP client against the app with the fake-backed runtime installed."""
    app = create_app(settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def end_of_call_report(call_id: str, transcript: str | None) -> dict:
    return {
        "message": {
            "type": "end-of-call-report",
            "call": {"id": call_id},
            "artifact": {"transcript": transcript},
            "durationSeconds": 35,
        }
    }


def text_update(text: str, update_id: int = 1, user_id: int = 1111) -> dict:
    return {
        "update_id": update_id,
        "message": {
            "message_id": update_id,
            "date": 1760835600,
            "chat": {"id": user_id, "type": "private"},
            "from": {"id": user_id, "is_bot": False, "first_name": "Asha"},
            "text": text,
        },
    }
