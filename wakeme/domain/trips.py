"""Trip lifecycle state machine."""

from collections.abc import Iterable

from wakeme.core.logging import get_logger
from wakeme.core.metrics import trips_started_total
from wakeme.schemas import TERMINAL_STATUSES, TrainTicket, TripMode, TripStatus
from wakeme.storage.interfaces import TripStoreIface
from wakeme.storage.models import Trip

logger = get_logger(__name__)

S = TripStatus

TRANSITIONS: dict[TripStatus, frozenset[TripStatus]] = {
    S.CREATED: frozenset({S.AWAITING_ORIGIN, S.AWAITING_CONFIRMATION, S.CANCELLED}),
    S.AWAITING_ORIGIN: frozenset({S.AWAITING_DESTINATION, S.CANCELLED}),
    S.AWAITING_DESTINATION: frozenset({S.AWAITING_PHONE, S.ACTIVE, S.CANCELLED}),
    S.AWAITING_CONFIRMATION: frozenset({S.AWAITING_PHONE, S.ACTIVE, S.CANCELLED}),
    S.AWAITING_PHONE: frozenset({S.ACTIVE, S.CANCELLED}),
    S.ACTIVE: frozenset({S.ALERTING, S.COMPLETED, S.CANCELLED}),
    S.ALERTING: frozenset({S.COMPLETED, S.MISSED, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.MISSED: frozenset(),
    S.CANCELLED: frozenset(),
}

NON_TERMINAL = frozenset(s for s in TripStatus if s not in TERMINAL_STATUSES)

OUTCOME_CONFIRMED_CALL = "confirmed_by_call"
OUTCOME_CONFIRMED_USER = "confirmed_by_user"
OUTCOME_MISSED = "missed_all_calls"
OUTCOME_CANCELLED = "cancelled"


def can_transition(current: TripStatus | str, target: TripStatus | str) -> bool:
    """Check whether target is reachable from current in one step."""
    return TripStatus(target) in TRANSITIONS[TripStatus(current)]


def predecessors(target: TripStatus) -> frozenset[TripStatus]:
    """States from which target can be entered."""
    return frozenset(s for s, nxt in TRANSITIONS.items() if target in nxt)


class TripStateMachine:
    """Applies lifecycle transitions through conditional store writes.

    Invalid transitions are no-ops that return False; they never raise.
    """

    def __init__(self, store: TripStoreIface):
        self._store = store

    async def transition(
        self, trip_id: int, target: TripStatus, outcome: str | None = None
    ) -> bool:
        """Move a trip to target from any legal predecessor."""
        target = TripStatus(target)
        if target is S.COMPLETED:
            return await self.confirm_awake(trip_id, OUTCOME_CONFIRMED_USER)
        return await self._move(trip_id, target, predecessors(target), outcome)

    async def start_bus_trip(self, user_id: int) -> Trip:
        """Open a bus trip waiting for its origin location."""
        await self._close_open_trip(user_id)
        trip = await self._store.create_trip(user_id, TripMode.BUS, S.CREATED)
        await self._move(trip.id, S.AWAITING_ORIGIN, {S.CREATED})
        trips_started_total.labels(mode=TripMode.BUS.value).inc()
        return await self._reload(trip)

    async def capture_origin(self, trip_id: int, lat: float, lng: float) -> bool:
        """Store the starting location and ask for the destination."""
        if not await self._move(trip_id, S.AWAITING_DESTINATION, {S.AWAITING_ORIGIN}):
            return False
        await self._store.update_trip(
            trip_id,
            origin_lat=lat,
            origin_lng=lng,
            current_lat=lat,
            current_lng=lng,
        )
        return True

    async def capture_destination(
        self,
        trip_id: int,
        name: str,
        lat: float | None = None,
        lng: float | None = None,
    ) -> TripStatus | None:
        """Store the destination, then activate or wait for a phone number.

        Returns the new status, or None if the trip was not awaiting a
        destination.
        """
        trip = await self._store.get_trip(trip_id)
        if trip is None or trip.status != S.AWAITING_DESTINATION:
            return None

        await self._store.update_trip(
            trip_id, destination_name=name, destination_lat=lat, destination_lng=lng
        )
        return await self._activate_or_wait_for_phone(trip, {S.AWAITING_DESTINATION})

    async def start_train_trip(self, user_id: int, ticket: TrainTicket) -> Trip:
        """Open a train trip from a resolved ticket, pending user confirmation."""
        await self._close_open_trip(user_id)
        trip = await self._store.create_trip(
            user_id,
            TripMode.TRAIN,
            S.CREATED,
            pnr=ticket.pnr,
            train_number=ticket.train_number,
            train_name=ticket.train_name,
            journey_date=ticket.journey_date,
            origin_station=ticket.boarding_station,
            destination_name=ticket.destination_station,
            departure_time=ticket.departure_time,
            arrival_time=ticket.arrival_time,
        )
        await self._move(trip.id, S.AWAITING_CONFIRMATION, {S.CREATED})
        trips_started_total.labels(mode=TripMode.TRAIN.value).inc()
        return await self._reload(trip)

    async def confirm_ticket(self, trip_id: int) -> TripStatus | None:
        """User accepted the ticket details."""
        trip = await self._store.get_trip(trip_id)
        if trip is None or trip.status != S.AWAITING_CONFIRMATION:
            return None
        return await self._activate_or_wait_for_phone(trip, {S.AWAITING_CONFIRMATION})

    async def capture_phone(self, user_id: int, phone: str) -> Trip | None:
        """Store the user's phone and activate a trip that was waiting for it.

        Returns the activated trip, if any.
        """
        await self._store.set_phone(user_id, phone)

        trip = await self._store.get_active_trip(user_id)
        if trip is None or trip.status != S.AWAITING_PHONE:
            return None
        if not await self._move(trip.id, S.ACTIVE, {S.AWAITING_PHONE}):
            return None
        return await self._reload(trip)

    async def enter_alerting(self, trip_id: int) -> bool:
        """Move an active trip whose alert marker is already set to alerting."""
        trip = await self._store.get_trip(trip_id)
        if trip is None or trip.alert_marked_at is None:
            logger.warning("Refusing to alert without marker", trip_id=trip_id)
            return False
        return await self._move(trip_id, S.ALERTING, {S.ACTIVE})

    async def confirm_awake(self, trip_id: int, outcome: str = OUTCOME_CONFIRMED_USER) -> bool:
        """Complete an active or alerting trip with the traveler confirmed awake."""
        changed = await self._store.mark_confirmed(trip_id, outcome)
        if changed:
            logger.info("Trip completed", trip_id=trip_id, outcome=outcome)
        return changed

    async def cancel(self, trip_id: int) -> bool:
        """Cancel any non-terminal trip."""
        return await self._move(trip_id, S.CANCELLED, NON_TERMINAL, OUTCOME_CANCELLED)

    async def mark_missed(self, trip_id: int) -> bool:
        """Close an alerting trip whose call budget ran out."""
        return await self._move(trip_id, S.MISSED, {S.ALERTING}, OUTCOME_MISSED)

    async def _move(
        self,
        trip_id: int,
        target: TripStatus,
        expected: Iterable[TripStatus],
        outcome: str | None = None,
    ) -> bool:
        expected = frozenset(expected) & predecessors(target)
        if not expected:
            return False

        if target is S.ACTIVE and not await self._trip_owner_has_phone(trip_id):
            logger.info("Trip not activated, phone missing", trip_id=trip_id)
            return False

        changed = await self._store.update_status(trip_id, target, expected, outcome=outcome)
        if changed:
            logger.info("Trip status changed", trip_id=trip_id, status=target.value)
        else:
            logger.debug("Trip transition skipped", trip_id=trip_id, target=target.value)
        return changed

    async def _activate_or_wait_for_phone(
        self, trip: Trip, expected: set[TripStatus]
    ) -> TripStatus | None:
        if await self._move(trip.id, S.ACTIVE, expected):
            return S.ACTIVE
        if await self._move(trip.id, S.AWAITING_PHONE, expected):
            return S.AWAITING_PHONE
        return None

    async def _trip_owner_has_phone(self, trip_id: int) -> bool:
        trip = await self._store.get_trip(trip_id)
        if trip is None:
            return False
        phone = await self._store.get_phone(trip.user_id)
        return bool(phone and phone.strip())

    async def _close_open_trip(self, user_id: int) -> None:
        existing = await self._store.get_active_trip(user_id)
        if existing is not None:
            logger.info("Replacing open trip", trip_id=existing.id, user_id=user_id)
            await self.cancel(existing.id)

    async def _reload(self, trip: Trip) -> Trip:
        fresh = await self._store.get_trip(trip.id)
        return fresh if fresh is not None else trip
