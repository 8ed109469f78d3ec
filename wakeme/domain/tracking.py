"""Periodic tracking cycles that turn live progress into alerts."""

from datetime import UTC, datetime

from wakeme.core.logging import get_logger
from wakeme.core.metrics import alerts_triggered_total, tracking_errors_total
from wakeme.core.services import GeoScheduleProvider, NotificationSink
from wakeme.core.ui_strings import get_telegram_string
from wakeme.domain.proximity import (
    AlertThresholds,
    ProximityResult,
    evaluate_bus,
    evaluate_train,
)
from wakeme.domain.trips import TripStateMachine
from wakeme.domain.wake_calls import WakeCallOrchestrator
from wakeme.schemas import AlertZone, GeoPoint, TripMode, TripStatus
from wakeme.storage.interfaces import TripStoreIface
from wakeme.storage.models import Trip

logger = get_logger(__name__)

ZONE_RANK = {
    AlertZone.NONE: 0,
    AlertZone.INFO: 1,
    AlertZone.WARNING: 2,
    AlertZone.CRITICAL: 3,
}


class TripTracker:
    """Evaluates every trip awaiting an alert, one trip at a time."""

    def __init__(
        self,
        store: TripStoreIface,
        provider: GeoScheduleProvider,
        state_machine: TripStateMachine,
        orchestrator: WakeCallOrchestrator,
        notifier: NotificationSink,
        thresholds: AlertThresholds,
    ):
        self._store = store
        self._provider = provider
        self._state_machine = state_machine
        self._orchestrator = orchestrator
        self._notifier = notifier
        self._thresholds = thresholds

    async def run_bus_cycle(self) -> int:
        """Evaluate all active bus trips. Returns the number of alerts raised."""
        return await self._run_cycle(TripMode.BUS)

    async def run_train_cycle(self) -> int:
        """Evaluate all active train trips. Returns the number of alerts raised."""
        return await self._run_cycle(TripMode.TRAIN)

    async def _run_cycle(self, mode: TripMode) -> int:
        trips = await self._store.get_trips_pending_alert_evaluation(mode)
        logger.info("Tracking cycle started", mode=mode.value, trips=len(trips))

        alerts = 0
        for trip in trips:
            try:
                if mode is TripMode.BUS:
                    triggered = await self._evaluate_bus_trip(trip)
                else:
                    triggered = await self._evaluate_train_trip(trip)
            except Exception:
                tracking_errors_total.labels(mode=mode.value).inc()
                logger.exception("Trip evaluation failed", trip_id=trip.id, mode=mode.value)
                continue
            alerts += int(triggered)

        resumed = await self._resume_stalled_trips(mode)
        logger.info("Tracking cycle finished", mode=mode.value, alerts=alerts, resumed=resumed)
        return alerts

    async def _resume_stalled_trips(self, mode: TripMode) -> int:
        """Pick up alerted trips whose wake-up calls stopped.

        A trip that holds the alert marker but is still active never made it
        into alerting, so it is moved there first.
        """
        resumed = 0
        for trip in await self._store.get_alerted_trips(mode):
            try:
                if trip.status == TripStatus.ACTIVE:
                    if not await self._state_machine.enter_alerting(trip.id):
                        continue
                    logger.warning("Alerted trip left in active, resuming", trip_id=trip.id)
                    trip = await self._store.get_trip(trip.id) or trip
                if await self._orchestrator.resume_stalled(trip) is not None:
                    resumed += 1
            except Exception:
                tracking_errors_total.labels(mode=mode.value).inc()
                logger.exception("Stalled trip recovery failed", trip_id=trip.id, mode=mode.value)
        return resumed

    async def _evaluate_bus_trip(self, trip: Trip) -> bool:
        position = await self._provider.get_bus_position(trip.id)
        destination = None
        if trip.destination_lat is not None and trip.destination_lng is not None:
            destination = GeoPoint(lat=trip.destination_lat, lng=trip.destination_lng)

        result = evaluate_bus(
            position, destination, trip.alert_marked_at is not None, self._thresholds
        )
        if not result.evaluable:
            logger.debug("Bus trip not evaluable", trip_id=trip.id, reason=result.reason)
            return False

        logger.debug(
            "Bus trip evaluated",
            trip_id=trip.id,
            distance_km=round(result.distance_km or 0.0, 2),
            zone=result.zone.value,
        )
        if result.should_alert:
            return await self._trigger_alert(trip, result)

        await self._notify_zone(trip, result)
        return False

    async def _evaluate_train_trip(self, trip: Trip) -> bool:
        if not (trip.train_number and trip.journey_date and trip.destination_name):
            logger.warning("Train trip missing ticket data", trip_id=trip.id)
            return False

        progress = await self._provider.get_train_progress(
            trip.train_number, trip.journey_date, trip.destination_name
        )
        if progress is not None:
            await self._store.update_trip(
                trip.id,
                current_station=progress.current_station,
                next_station=progress.next_station,
                stations_remaining=progress.stations_remaining,
                distance_remaining_km=progress.distance_remaining_km,
                delay_minutes=progress.delay_minutes,
                progress_updated_at=progress.recorded_at or datetime.now(UTC),
            )

        result = evaluate_train(progress, trip.alert_marked_at is not None, self._thresholds)
        if not result.evaluable:
            logger.debug("Train trip not evaluable", trip_id=trip.id, reason=result.reason)
            return False
        if result.should_alert:
            return await self._trigger_alert(trip, result)
        return False

    async def _notify_zone(self, trip: Trip, result: ProximityResult) -> None:
        """Send an info or warning notice once per zone, nearer zones only."""
        if result.zone not in (AlertZone.INFO, AlertZone.WARNING):
            return
        last = AlertZone(trip.last_zone_notified or AlertZone.NONE.value)
        if ZONE_RANK[result.zone] <= ZONE_RANK[last]:
            return

        key = "zone_warning" if result.zone is AlertZone.WARNING else "zone_info"
        await self._notifier.notify(
            trip.user_id,
            get_telegram_string(
                key,
                distance_km=result.distance_km,
                destination=trip.destination_name or "your destination",
                eta_minutes=result.eta_minutes,
            ),
        )
        await self._store.update_trip(trip.id, last_zone_notified=result.zone.value)

    async def _trigger_alert(self, trip: Trip, result: ProximityResult) -> bool:
        if not await self._store.try_set_alert_marker(trip.id):
            logger.info("Alert marker already set", trip_id=trip.id)
            return False
        alerts_triggered_total.labels(mode=trip.mode).inc()

        if not await self._state_machine.enter_alerting(trip.id):
            logger.warning("Trip left active before alerting", trip_id=trip.id)
            return False

        logger.info(
            "Trip entered alert zone",
            trip_id=trip.id,
            mode=trip.mode,
            distance_km=result.distance_km,
            stations_remaining=result.stations_remaining,
        )

        destination = trip.destination_name or "your destination"
        if trip.mode == TripMode.TRAIN:
            text = get_telegram_string(
                "alert_train",
                stations_remaining=result.stations_remaining,
                distance_km=result.distance_km,
                destination=destination,
            )
        else:
            text = get_telegram_string(
                "alert_bus", distance_km=result.distance_km, destination=destination
            )
        await self._notifier.notify(trip.user_id, text)

        fresh = await self._store.get_trip(trip.id)
        await self._orchestrator.on_alert(fresh or trip)
        return True
