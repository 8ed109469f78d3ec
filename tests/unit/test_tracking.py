"""Unit tests for the tracking cycles, including the full bus wake-up flow."""

import pytest

from tests.conftest import DESTINATION, FAR_POINT, TRAVELER_ID, fail_once
from wakeme.core.ui_strings import get_telegram_string
from wakeme.domain.wake_calls import ResultOutcome
from wakeme.schemas import (
    AlertZone,
    BusPosition,
    CallResult,
    TrainProgress,
    TripMode,
    TripStatus,
)


def at(lat: float, lng: float = DESTINATION[1]) -> BusPosition:
    return BusPosition(lat=lat, lng=lng)


@pytest.mark.unit
class TestBusCycle:
    async def test_far_bus_does_nothing(
        self, provider, gateway, notifier, tracker, active_bus_trip
    ):
        provider.bus_positions[active_bus_trip.id] = at(*FAR_POINT)

        assert await tracker.run_bus_cycle() == 0
        assert gateway.calls == []
        assert notifier.sent == []

    async def test_zone_notices_sent_once_and_only_nearer(
        self, store, provider, notifier, tracker, active_bus_trip
    ):
        provider.bus_positions[active_bus_trip.id] = at(13.15)  # ~20 km, info
        await tracker.run_bus_cycle()
        await tracker.run_bus_cycle()
        assert len(notifier.sent) == 1

        provider.bus_positions[active_bus_trip.id] = at(13.08)  # ~12 km, warning
        await tracker.run_bus_cycle()
        provider.bus_positions[active_bus_trip.id] = at(13.15)  # back out to info
        await tracker.run_bus_cycle()

        assert len(notifier.sent) == 2
        trip = await store.get_trip(active_bus_trip.id)
        assert trip.last_zone_notified == AlertZone.WARNING.value

    async def test_bus_without_position_is_skipped(self, gateway, tracker, active_bus_trip):
        assert await tracker.run_bus_cycle() == 0
        assert gateway.calls == []

    async def test_alert_is_raised_once(
        self, store, provider, gateway, notifier, tracker, active_bus_trip
    ):
        provider.bus_positions[active_bus_trip.id] = at(13.03)

        assert await tracker.run_bus_cycle() == 1
        assert await tracker.run_bus_cycle() == 0

        trip = await store.get_trip(active_bus_trip.id)
        assert trip.status == TripStatus.ALERTING
        assert trip.alert_marked_at is not None
        assert len(gateway.calls) == 1

    async def test_one_failing_trip_does_not_stop_the_cycle(
        self, store, provider, gateway, tracker, active_bus_trip
    ):
        other = await store.create_trip(
            TRAVELER_ID + 1,
            TripMode.BUS,
            TripStatus.ACTIVE,
            destination_name="Hebbal",
            destination_lat=DESTINATION[0],
            destination_lng=DESTINATION[1],
        )
        await store.upsert_user(TRAVELER_ID + 1)
        await store.set_phone(TRAVELER_ID + 1, "+919811111111")
        provider.raise_for.add(active_bus_trip.id)
        provider.bus_positions[other.id] = at(13.0)

        assert await tracker.run_bus_cycle() == 1
        assert gateway.calls[0].metadata["trip_id"] == other.id
        assert (await store.get_trip(active_bus_trip.id)).status == TripStatus.ACTIVE

    async def test_interrupted_first_call_is_still_placed(
        self,
        store,
        provider,
        gateway,
        retry_scheduler,
        orchestrator,
        tracker,
        monkeypatch,
        active_bus_trip,
    ):
        fail_once(monkeypatch, store, "get_phone", ConnectionError("database went away"))
        provider.bus_positions[active_bus_trip.id] = at(12.99)  # ~2 km

        for _ in range(3):
            await tracker.run_bus_cycle()

        assert gateway.calls == []
        [job] = retry_scheduler.pop_all()
        await orchestrator.run_retry(job.trip_id, job.attempt_no)

        assert len(gateway.calls) == 1
        trip = await store.get_trip(active_bus_trip.id)
        assert trip.status == TripStatus.ALERTING
        assert await store.count_call_attempts(active_bus_trip.id) == 1

    async def test_alerting_trip_without_calls_is_resumed(self, gateway, tracker, alerting_trip):
        assert await tracker.run_bus_cycle() == 0

        [call] = gateway.calls
        assert call.metadata["trip_id"] == alerting_trip.id
        assert call.metadata["attempt"] == 1

    async def test_marked_trip_left_active_is_resumed(
        self, store, gateway, tracker, active_bus_trip
    ):
        assert await store.try_set_alert_marker(active_bus_trip.id)

        await tracker.run_bus_cycle()

        trip = await store.get_trip(active_bus_trip.id)
        assert trip.status == TripStatus.ALERTING
        assert len(gateway.calls) == 1

    async def test_train_cycle_leaves_bus_trips_alone(self, gateway, tracker, alerting_trip):
        await tracker.run_train_cycle()
        assert gateway.calls == []

    async def test_full_bus_wake_up_flow(
        self, store, provider, gateway, notifier, orchestrator, tracker, active_bus_trip
    ):
        provider.bus_positions[active_bus_trip.id] = at(*FAR_POINT)
        await tracker.run_bus_cycle()
        assert gateway.calls == []

        provider.bus_positions[active_bus_trip.id] = at(13.03)
        await tracker.run_bus_cycle()

        [call] = gateway.calls
        assert call.metadata["destination"] == "Majestic"
        assert notifier.texts()[-1] == get_telegram_string("calling_now")

        outcome = await orchestrator.on_call_result(
            CallResult(
                external_call_id=call.external_call_id,
                transcript="AI: You are close to Majestic.\nUser: I'm awake",
            )
        )

        assert outcome is ResultOutcome.CONFIRMED
        trip = await store.get_trip(active_bus_trip.id)
        assert trip.status == TripStatus.COMPLETED
        assert trip.confirmed


@pytest.mark.unit
class TestTrainCycle:
    async def _train_trip(self, store, state_machine):
        trip = await store.create_trip(
            TRAVELER_ID,
            TripMode.TRAIN,
            TripStatus.ACTIVE,
            train_number="12628",
            journey_date="19-10-2026",
            destination_name="SBC",
        )
        return trip

    async def test_train_progress_is_stored(
        self, store, provider, state_machine, gateway, tracker, traveler
    ):
        trip = await self._train_trip(store, state_machine)
        provider.train_progress["12628"] = TrainProgress(
            current_station="TK",
            next_station="DMM",
            stations_remaining=6,
            distance_remaining_km=210.0,
            delay_minutes=12,
        )

        assert await tracker.run_train_cycle() == 0

        stored = await store.get_trip(trip.id)
        assert stored.current_station == "TK"
        assert stored.stations_remaining == 6
        assert stored.delay_minutes == 12
        assert stored.progress_updated_at is not None
        assert gateway.calls == []

    async def test_two_stations_left_triggers_alert(
        self, store, provider, state_machine, gateway, notifier, tracker, traveler
    ):
        trip = await self._train_trip(store, state_machine)
        provider.train_progress["12628"] = TrainProgress(
            current_station="YNK", stations_remaining=2, distance_remaining_km=65.0
        )

        assert await tracker.run_train_cycle() == 1

        assert (await store.get_trip(trip.id)).status == TripStatus.ALERTING
        assert notifier.texts()[0] == get_telegram_string(
            "alert_train", stations_remaining=2, distance_km=65.0, destination="SBC"
        )
        assert len(gateway.calls) == 1

    async def test_unavailable_progress_is_skipped(
        self, store, state_machine, tracker, traveler
    ):
        trip = await self._train_trip(store, state_machine)
        assert await tracker.run_train_cycle() == 0
        assert (await store.get_trip(trip.id)).status == TripStatus.ACTIVE
