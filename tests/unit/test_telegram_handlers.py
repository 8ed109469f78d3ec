"""Unit tests for Telegram update handling."""

import itertools
import json

import httpx
import pytest
import respx

from tests.conftest import TRAVELER_ID
from wakeme.core.ui_strings import get_telegram_string
from wakeme.integrations.geocoding import Geocoder
from wakeme.integrations.railway import RailwayClient
from wakeme.integrations.telegram import TelegramClient, TelegramUpdateHandler
from wakeme.integrations.telegram.ui import CALLBACK_CONFIRM_TRAIN
from wakeme.schemas import TripMode, TripStatus

BOT_API = "https://api.telegram.org/bot123:ABC"
RAIL_API = "https://rail.test"

_update_ids = itertools.count(1)


def message_update(text: str | None = None, user_id: int = TRAVELER_ID, **fields) -> dict:
    message = {
        "message_id": next(_update_ids),
        "from": {"id": user_id, "first_name": "Asha", "language_code": "en"},
        "chat": {"id": user_id, "type": "private"},
        **fields,
    }
    if text is not None:
        message["text"] = text
    return {"update_id": next(_update_ids), "message": message}


def location_update(lat: float, lng: float, edited: bool = False) -> dict:
    update = message_update(location={"latitude": lat, "longitude": lng})
    if edited:
        update["edited_message"] = update.pop("message")
    return update


def contact_update(phone: str, owner_id: int = TRAVELER_ID) -> dict:
    return message_update(contact={"phone_number": phone, "user_id": owner_id})


@pytest.fixture
def bot_api():
    with respx.mock(assert_all_called=False) as mock:
        mock.post(f"{BOT_API}/sendMessage").mock(
            return_value=httpx.Response(200, json={"ok": True, "result": {}})
        )
        mock.post(f"{BOT_API}/answerCallbackQuery").mock(
            return_value=httpx.Response(200, json={"ok": True, "result": True})
        )
        yield mock


@pytest.fixture
async def handler(store, state_machine, bot_api):
    async with httpx.AsyncClient() as http:
        yield TelegramUpdateHandler(
            store,
            state_machine,
            TelegramClient(http, "123:ABC"),
            Geocoder(http),
            RailwayClient(http, RAIL_API),
        )


def sent(bot_api) -> list[dict]:
    """Payloads of every sendMessage call so far."""
    return [
        json.loads(call.request.content)
        for call in bot_api.calls
        if call.request.url.path.endswith("/sendMessage")
    ]


def last_text(bot_api) -> str:
    return sent(bot_api)[-1]["text"]


@pytest.mark.unit
class TestCommands:
    async def test_start_registers_user(self, store, handler, bot_api):
        assert await handler.handle_update(message_update("/start"))

        user = await store.get_user(TRAVELER_ID)
        assert user.display_name == "Asha"
        assert user.chat_id == TRAVELER_ID
        payload = sent(bot_api)[-1]
        assert payload["text"] == get_telegram_string("welcome_message", name="Asha")
        assert "keyboard" in payload["reply_markup"]

    async def test_status_without_trip(self, handler, bot_api):
        await handler.handle_update(message_update("/status"))
        assert last_text(bot_api) == get_telegram_string("no_active_trip")

    async def test_awake_without_alert(self, handler, bot_api):
        await handler.handle_update(message_update("/awake"))
        assert last_text(bot_api) == get_telegram_string("no_active_alert")

    async def test_awake_completes_alerting_trip(self, store, handler, bot_api, alerting_trip):
        await handler.handle_update(message_update("awake"))

        trip = await store.get_trip(alerting_trip.id)
        assert trip.status == TripStatus.COMPLETED
        assert trip.confirmed
        assert last_text(bot_api) == get_telegram_string("awake_confirmed_manual")

    async def test_cancel(self, store, handler, bot_api, active_bus_trip):
        await handler.handle_update(message_update("/cancel"))

        assert (await store.get_trip(active_bus_trip.id)).status == TripStatus.CANCELLED
        assert last_text(bot_api) == get_telegram_string("trip_cancelled")

    async def test_unknown_text(self, handler, bot_api):
        await handler.handle_update(message_update("what is this"))
        assert last_text(bot_api) == get_telegram_string("unknown_input")

    async def test_unsupported_update_is_ignored(self, handler, bot_api):
        assert not await handler.handle_update({"update_id": 1, "channel_post": {}})
        assert sent(bot_api) == []


@pytest.mark.unit
class TestBusSetup:
    async def test_bus_setup_with_phone_on_file(self, store, handler, bot_api, traveler):
        await handler.handle_update(message_update(get_telegram_string("bus_button")))
        trip = await store.get_active_trip(TRAVELER_ID)
        assert trip.mode == TripMode.BUS
        assert trip.status == TripStatus.AWAITING_ORIGIN

        await handler.handle_update(location_update(13.42, 77.59))
        assert last_text(bot_api) == get_telegram_string("origin_captured")

        await handler.handle_update(message_update("Bangalore"))
        trip = await store.get_trip(trip.id)
        assert trip.status == TripStatus.ACTIVE
        assert trip.destination_lat == pytest.approx(12.9716)
        assert "Bangalore" in last_text(bot_api)

        await handler.handle_update(location_update(13.1, 77.59, edited=True))
        trip = await store.get_trip(trip.id)
        assert trip.current_lat == 13.1
        assert trip.position_updated_at is not None

    async def test_unknown_destination_keeps_waiting(self, store, handler, bot_api, traveler):
        await handler.handle_update(message_update(get_telegram_string("bus_button")))
        await handler.handle_update(location_update(13.42, 77.59))

        await handler.handle_update(message_update("Atlantis"))

        trip = await store.get_active_trip(TRAVELER_ID)
        assert trip.status == TripStatus.AWAITING_DESTINATION
        assert last_text(bot_api) == get_telegram_string(
            "destination_not_found", destination="Atlantis"
        )

    async def test_location_without_trip(self, handler, bot_api):
        await handler.handle_update(location_update(13.0, 77.5))
        assert last_text(bot_api) == get_telegram_string("start_first")

    async def test_phone_requested_then_shared(self, store, handler, bot_api):
        await handler.handle_update(message_update(get_telegram_string("bus_button")))
        await handler.handle_update(location_update(13.42, 77.59))
        await handler.handle_update(message_update("Mumbai"))

        trip = await store.get_active_trip(TRAVELER_ID)
        assert trip.status == TripStatus.AWAITING_PHONE
        assert sent(bot_api)[-1]["reply_markup"]["keyboard"][0][0]["request_contact"]

        await handler.handle_update(contact_update("98765 43210"))

        assert await store.get_phone(TRAVELER_ID) == "+919876543210"
        assert (await store.get_trip(trip.id)).status == TripStatus.ACTIVE

    async def test_foreign_contact_is_rejected(self, store, handler, bot_api):
        await handler.handle_update(contact_update("+919876543210", owner_id=999))

        assert await store.get_phone(TRAVELER_ID) is None
        assert last_text(bot_api) == get_telegram_string("phone_not_own")

    async def test_invalid_phone_is_rejected(self, store, handler, bot_api):
        await handler.handle_update(contact_update("12345"))

        assert await store.get_phone(TRAVELER_ID) is None
        assert last_text(bot_api) == get_telegram_string("phone_invalid")


@pytest.mark.unit
class TestTrainSetup:
    PNR_BODY = {
        "success": True,
        "data": {
            "pnr": "4512345678",
            "train": {"number": "12628", "name": "Karnataka Express"},
            "journey": {
                "dateOfJourney": "19-10-2026",
                "from": {"name": "NDLS"},
                "to": {"name": "SBC"},
            },
        },
    }

    async def test_pnr_then_confirm(self, store, handler, bot_api, traveler):
        bot_api.get(f"{RAIL_API}/pnr/4512345678").mock(
            return_value=httpx.Response(200, json=self.PNR_BODY)
        )

        await handler.handle_update(message_update("4512345678"))

        trip = await store.get_active_trip(TRAVELER_ID)
        assert trip.mode == TripMode.TRAIN
        assert trip.status == TripStatus.AWAITING_CONFIRMATION
        assert trip.destination_name == "SBC"
        buttons = sent(bot_api)[-1]["reply_markup"]["inline_keyboard"][0]
        assert buttons[0]["callback_data"] == CALLBACK_CONFIRM_TRAIN

        callback = {
            "update_id": 99,
            "callback_query": {
                "id": "cbq-1",
                "from": {"id": TRAVELER_ID},
                "message": {"chat": {"id": TRAVELER_ID}},
                "data": CALLBACK_CONFIRM_TRAIN,
            },
        }
        assert await handler.handle_update(callback)

        assert (await store.get_trip(trip.id)).status == TripStatus.ACTIVE
        assert any(
            call.request.url.path.endswith("/answerCallbackQuery") for call in bot_api.calls
        )

    async def test_pnr_lookup_failure(self, store, handler, bot_api, traveler):
        bot_api.get(f"{RAIL_API}/pnr/4512345678").mock(return_value=httpx.Response(404))

        await handler.handle_update(message_update("4512345678"))

        assert await store.get_active_trip(TRAVELER_ID) is None
        assert last_text(bot_api) == get_telegram_string("ticket_not_found", pnr="4512345678")
