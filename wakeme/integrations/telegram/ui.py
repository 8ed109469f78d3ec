"""Telegram keyboards and formatted messages."""

from datetime import UTC, datetime
from typing import Any

from wakeme.core.ui_strings import get_telegram_string
from wakeme.domain.proximity import eta_minutes, haversine_km
from wakeme.schemas import GeoPoint, TrainTicket, TripMode, TripStatus
from wakeme.storage.models import Trip

CALLBACK_CONFIRM_TRAIN = "confirm_train"
CALLBACK_CANCEL_TRAIN = "cancel_train"


def main_keyboard() -> dict[str, Any]:
    """Reply keyboard with the two travel modes."""
    return {
        "keyboard": [
            [
                {"text": get_telegram_string("bus_button")},
                {"text": get_telegram_string("train_button")},
            ]
        ],
        "resize_keyboard": True,
    }


def share_contact_keyboard() -> dict[str, Any]:
    """One-tap keyboard that shares the user's own contact."""
    return {
        "keyboard": [
            [{"text": get_telegram_string("share_contact_button"), "request_contact": True}]
        ],
        "resize_keyboard": True,
        "one_time_keyboard": True,
    }


def confirm_train_keyboard() -> dict[str, Any]:
    """Inline yes/no under the ticket summary."""
    return {
        "inline_keyboard": [
            [
                {
                    "text": get_telegram_string("confirm_train_button"),
                    "callback_data": CALLBACK_CONFIRM_TRAIN,
                },
                {
                    "text": get_telegram_string("cancel_train_button"),
                    "callback_data": CALLBACK_CANCEL_TRAIN,
                },
            ]
        ]
    }


def format_ticket(ticket: TrainTicket) -> str:
    return get_telegram_string(
        "ticket_found",
        train_name=ticket.train_name or "Train",
        train_number=ticket.train_number,
        origin=ticket.boarding_station,
        destination=ticket.destination_station,
        journey_date=ticket.journey_date,
        departure_time=ticket.departure_time or "-",
        arrival_time=ticket.arrival_time or "-",
    )


def format_trip_active(trip: Trip, phone: str) -> str:
    is_bus = trip.mode == TripMode.BUS
    return get_telegram_string(
        "trip_active",
        mode_icon="🚌" if is_bus else "🚆",
        mode_label="Bus" if is_bus else "Train",
        destination=trip.destination_name or get_telegram_string("default_destination_name"),
        phone=phone,
    )


def format_trip_status(trip: Trip, speed_kmh: float, now: datetime | None = None) -> str:
    """Human summary for /status."""
    now = now or datetime.now(UTC)
    destination = trip.destination_name or get_telegram_string("default_destination_name")

    if trip.mode == TripMode.TRAIN:
        if trip.current_station is None or trip.stations_remaining is None:
            text = get_telegram_string(
                "status_train_pending",
                train_name=trip.train_name or "Train",
                train_number=trip.train_number,
                origin=trip.origin_station,
                destination=destination,
            )
        else:
            text = get_telegram_string(
                "status_train",
                train_name=trip.train_name or "Train",
                train_number=trip.train_number,
                origin=trip.origin_station,
                destination=destination,
                current_station=trip.current_station,
                stations_remaining=trip.stations_remaining,
                distance_km=trip.distance_remaining_km or 0.0,
            )
    elif None in (trip.current_lat, trip.current_lng, trip.destination_lat, trip.destination_lng):
        text = get_telegram_string("status_bus_pending", destination=destination)
    else:
        distance = haversine_km(
            GeoPoint(lat=trip.current_lat, lng=trip.current_lng),
            GeoPoint(lat=trip.destination_lat, lng=trip.destination_lng),
        )
        updated = trip.position_updated_at or trip.updated_at or now
        minutes_ago = max(0, int((now - updated).total_seconds() // 60))
        text = get_telegram_string(
            "status_bus",
            destination=destination,
            distance_km=distance,
            eta_minutes=eta_minutes(distance, speed_kmh),
            minutes_ago=minutes_ago,
        )

    if trip.status not in (TripStatus.ACTIVE, TripStatus.ALERTING):
        text += "\n\n" + get_telegram_string("trip_status_line", status=trip.status)
    return text
