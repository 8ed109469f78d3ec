"""Telegram update handling: commands, buttons, locations, contacts and PNRs."""

from datetime import UTC, datetime
from typing import Any

from wakeme.core.logging import get_logger
from wakeme.core.metrics import inbound_events_total, wake_confirmations_total
from wakeme.core.ui_strings import get_telegram_string
from wakeme.domain.trips import OUTCOME_CONFIRMED_USER, TripStateMachine
from wakeme.integrations.geocoding import Geocoder, GeocodingError
from wakeme.integrations.railway import RailwayAPIError, RailwayClient
from wakeme.integrations.telegram.client import TelegramAPIError, TelegramClient
from wakeme.integrations.telegram.parsing import extract_message, is_pnr, normalize_phone
from wakeme.integrations.telegram.ui import (
    CALLBACK_CANCEL_TRAIN,
    CALLBACK_CONFIRM_TRAIN,
    confirm_train_keyboard,
    format_ticket,
    format_trip_active,
    format_trip_status,
    main_keyboard,
    share_contact_keyboard,
)
from wakeme.schemas import TripMode, TripStatus
from wakeme.storage.interfaces import TripStoreIface
from wakeme.storage.models import Trip

logger = get_logger(__name__)

# Statuses in which a bus trip accepts live-location updates.
TRACKED_STATUSES = (TripStatus.AWAITING_PHONE, TripStatus.ACTIVE, TripStatus.ALERTING)


class TelegramUpdateHandler:
    """Routes raw Telegram updates to the trip state machine."""

    def __init__(
        self,
        store: TripStoreIface,
        state_machine: TripStateMachine,
        client: TelegramClient | None,
        geocoder: Geocoder,
        railway: RailwayClient,
        default_country_code: str = "+91",
        bus_speed_kmh: float = 40.0,
    ) -> None:
        self._store = store
        self._trips = state_machine
        self._client = client
        self._geocoder = geocoder
        self._railway = railway
        self._default_country_code = default_country_code
        self._bus_speed_kmh = bus_speed_kmh

    async def handle_update(self, update: dict[str, Any]) -> bool:
        """Process one update. Returns False for update types we ignore."""
        if "callback_query" in update:
            inbound_events_total.labels(provider="telegram", type="callback_query").inc()
            await self._handle_callback_query(update["callback_query"])
            return True

        message, edited = extract_message(update)
        if message is None or not message.get("from"):
            logger.info("Unhandled update type", update_type=sorted(update.keys()))
            return False

        inbound_events_total.labels(
            provider="telegram", type="edited_message" if edited else "message"
        ).inc()
        if edited:
            if "location" in message:
                await self._handle_live_location(message)
            return True

        await self._handle_message(message)
        return True

    # Messages

    async def _handle_message(self, message: dict[str, Any]) -> None:
        sender = message["from"]
        user_id = int(sender["id"])
        chat_id = int(message.get("chat", {}).get("id", user_id))

        await self._store.upsert_user(
            user_id,
            chat_id=chat_id,
            display_name=sender.get("first_name"),
            username=sender.get("username"),
            language=sender.get("language_code"),
        )

        if "contact" in message:
            await self._handle_contact(chat_id, user_id, message["contact"])
            return
        if "location" in message:
            await self._handle_location(chat_id, user_id, message)
            return

        text = (message.get("text") or "").strip()
        logger.info(
            "Received message",
            user_id=user_id,
            text=text[:50] + "..." if len(text) > 50 else text,
        )

        command = text.split()[0].split("@")[0] if text.startswith("/") else None
        if command == "/start":
            await self._reply(
                chat_id,
                get_telegram_string("welcome_message", name=sender.get("first_name") or "traveler"),
                reply_markup=main_keyboard(),
            )
        elif command == "/help":
            await self._reply(chat_id, get_telegram_string("help_message"), parse_mode="Markdown")
        elif command == "/status":
            await self._handle_status(chat_id, user_id)
        elif command == "/cancel":
            await self._handle_cancel(chat_id, user_id)
        elif command == "/awake" or text.lower() == "awake":
            await self._handle_awake(chat_id, user_id)
        elif text == get_telegram_string("bus_button"):
            await self._trips.start_bus_trip(user_id)
            await self._reply(chat_id, get_telegram_string("bus_setup"), parse_mode="Markdown")
        elif text == get_telegram_string("train_button"):
            await self._reply(chat_id, get_telegram_string("train_setup"), parse_mode="Markdown")
        elif is_pnr(text):
            await self._handle_pnr(chat_id, user_id, text)
        else:
            await self._handle_free_text(chat_id, user_id, text)

    async def _handle_status(self, chat_id: int, user_id: int) -> None:
        trip = await self._store.get_active_trip(user_id)
        if trip is None:
            await self._reply(
                chat_id, get_telegram_string("no_active_trip"), reply_markup=main_keyboard()
            )
            return
        await self._reply(
            chat_id, format_trip_status(trip, self._bus_speed_kmh), parse_mode="Markdown"
        )

    async def _handle_cancel(self, chat_id: int, user_id: int) -> None:
        trip = await self._store.get_active_trip(user_id)
        if trip is not None:
            await self._trips.cancel(trip.id)
        await self._reply(
            chat_id, get_telegram_string("trip_cancelled"), reply_markup=main_keyboard()
        )

    async def _handle_awake(self, chat_id: int, user_id: int) -> None:
        trip = await self._store.get_active_trip(user_id)
        if trip is not None and await self._trips.confirm_awake(trip.id, OUTCOME_CONFIRMED_USER):
            wake_confirmations_total.labels(source="user").inc()
            await self._reply(chat_id, get_telegram_string("awake_confirmed_manual"))
        else:
            await self._reply(chat_id, get_telegram_string("no_active_alert"))

    async def _handle_pnr(self, chat_id: int, user_id: int, pnr: str) -> None:
        try:
            ticket = await self._railway.fetch_ticket(pnr)
        except RailwayAPIError as e:
            logger.warning("PNR lookup failed", user_id=user_id, pnr=pnr, error=str(e))
            await self._reply(chat_id, get_telegram_string("ticket_not_found", pnr=pnr))
            return

        await self._trips.start_train_trip(user_id, ticket)
        await self._reply(
            chat_id,
            format_ticket(ticket),
            parse_mode="Markdown",
            reply_markup=confirm_train_keyboard(),
        )

    async def _handle_free_text(self, chat_id: int, user_id: int, text: str) -> None:
        trip = await self._store.get_active_trip(user_id)
        if trip is None or trip.status != TripStatus.AWAITING_DESTINATION or not text:
            await self._reply(
                chat_id, get_telegram_string("unknown_input"), reply_markup=main_keyboard()
            )
            return

        try:
            point = await self._geocoder.geocode(text)
        except GeocodingError as e:
            logger.warning("Geocoding failed", trip_id=trip.id, error=str(e))
            point = None

        if point is None:
            await self._reply(
                chat_id, get_telegram_string("destination_not_found", destination=text)
            )
            return

        status = await self._trips.capture_destination(trip.id, text, point.lat, point.lng)
        await self._after_setup_step(chat_id, user_id, trip.id, status)

    async def _handle_location(self, chat_id: int, user_id: int, message: dict[str, Any]) -> None:
        location = message["location"]
        lat, lng = float(location["latitude"]), float(location["longitude"])

        trip = await self._store.get_active_trip(user_id)
        if trip is None or trip.mode != TripMode.BUS:
            await self._reply(chat_id, get_telegram_string("start_first"))
            return

        if trip.status == TripStatus.AWAITING_ORIGIN:
            if await self._trips.capture_origin(trip.id, lat, lng):
                await self._reply(chat_id, get_telegram_string("origin_captured"))
        elif trip.status == TripStatus.AWAITING_DESTINATION:
            status = await self._trips.capture_destination(
                trip.id, get_telegram_string("default_destination_name"), lat, lng
            )
            await self._after_setup_step(chat_id, user_id, trip.id, status)
        elif trip.status in TRACKED_STATUSES:
            await self._record_position(trip, lat, lng)

    async def _handle_live_location(self, message: dict[str, Any]) -> None:
        user_id = int(message["from"]["id"])
        location = message["location"]
        trip = await self._store.get_active_trip(user_id)
        if trip is None or trip.mode != TripMode.BUS or trip.status not in TRACKED_STATUSES:
            return
        await self._record_position(
            trip, float(location["latitude"]), float(location["longitude"])
        )

    async def _record_position(self, trip: Trip, lat: float, lng: float) -> None:
        await self._store.update_trip(
            trip.id,
            current_lat=lat,
            current_lng=lng,
            position_updated_at=datetime.now(UTC),
        )
        logger.debug("Bus position updated", trip_id=trip.id)

    async def _handle_contact(self, chat_id: int, user_id: int, contact: dict[str, Any]) -> None:
        if contact.get("user_id") != user_id:
            logger.info("Rejected foreign contact", user_id=user_id)
            await self._reply(
                chat_id,
                get_telegram_string("phone_not_own"),
                reply_markup=share_contact_keyboard(),
            )
            return

        phone = normalize_phone(contact.get("phone_number", ""), self._default_country_code)
        if phone is None:
            await self._reply(
                chat_id,
                get_telegram_string("phone_invalid"),
                reply_markup=share_contact_keyboard(),
            )
            return

        trip = await self._trips.capture_phone(user_id, phone)
        if trip is not None:
            await self._reply(
                chat_id,
                format_trip_active(trip, phone),
                parse_mode="Markdown",
                reply_markup=main_keyboard(),
            )
        else:
            await self._reply(
                chat_id, get_telegram_string("phone_saved"), reply_markup=main_keyboard()
            )

    async def _after_setup_step(
        self, chat_id: int, user_id: int, trip_id: int, status: TripStatus | None
    ) -> None:
        if status is TripStatus.ACTIVE:
            trip = await self._store.get_trip(trip_id)
            phone = await self._store.get_phone(user_id)
            if trip is not None:
                await self._reply(
                    chat_id,
                    format_trip_active(trip, phone or ""),
                    parse_mode="Markdown",
                    reply_markup=main_keyboard(),
                )
        elif status is TripStatus.AWAITING_PHONE:
            await self._reply(
                chat_id,
                get_telegram_string("phone_required"),
                parse_mode="Markdown",
                reply_markup=share_contact_keyboard(),
            )

    # Callback queries

    async def _handle_callback_query(self, callback_query: dict[str, Any]) -> None:
        data = callback_query.get("data")
        user_id = int(callback_query["from"]["id"])
        message = callback_query.get("message") or {}
        chat_id = int(message.get("chat", {}).get("id", user_id))

        trip = await self._store.get_active_trip(user_id)
        if data == CALLBACK_CONFIRM_TRAIN and trip is not None:
            status = await self._trips.confirm_ticket(trip.id)
            await self._after_setup_step(chat_id, user_id, trip.id, status)
        elif data == CALLBACK_CANCEL_TRAIN and trip is not None:
            await self._trips.cancel(trip.id)
            await self._reply(chat_id, get_telegram_string("train_trip_cancelled"))
        else:
            logger.info("Ignored callback query", data=data, user_id=user_id)

        if self._client is not None and callback_query.get("id"):
            try:
                await self._client.answer_callback_query(str(callback_query["id"]))
            except TelegramAPIError as e:
                logger.warning("Failed to answer callback query", error=e.message)

    async def _reply(
        self,
        chat_id: int,
        text: str,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> None:
        if self._client is None:
            logger.info("DRY-RUN telegram: would reply", chat_id=chat_id, text=text)
            return
        try:
            await self._client.send_message(
                chat_id, text, parse_mode=parse_mode, reply_markup=reply_markup
            )
        except TelegramAPIError as e:
            logger.warning(
                "Telegram reply failed",
                chat_id=chat_id,
                status_code=e.status_code,
                error=e.message,
            )
