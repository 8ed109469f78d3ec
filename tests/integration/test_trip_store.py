"""Integration tests for the PostgreSQL trip store."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from tests.conftest import DESTINATION, TRAVELER_ID, TRAVELER_PHONE
from tests.fakes.services import FakeNotificationSink, FakeRetryScheduler, FakeVoiceGateway
from wakeme.domain.trips import OUTCOME_CONFIRMED_USER, TripStateMachine
from wakeme.domain.wake_calls import CallPolicy, ResultOutcome, WakeCallOrchestrator
from wakeme.schemas import CallResult, CallStatus, PromptTier, TripMode, TripStatus


async def make_active_trip(store):
    await store.upsert_user(TRAVELER_ID, chat_id=TRAVELER_ID, display_name="Asha")
    await store.set_phone(TRAVELER_ID, TRAVELER_PHONE)
    return await store.create_trip(
        TRAVELER_ID,
        TripMode.BUS,
        TripStatus.ACTIVE,
        destination_name="Majestic",
        destination_lat=DESTINATION[0],
        destination_lng=DESTINATION[1],
    )


@pytest.mark.integration
class TestUsers:
    async def test_upsert_creates_then_updates(self, pg_store):
        created = await pg_store.upsert_user(TRAVELER_ID, chat_id=1, display_name="Asha")
        assert created.language == "en"

        updated = await pg_store.upsert_user(TRAVELER_ID, username="asha_k")
        assert updated.chat_id == 1
        assert updated.username == "asha_k"

    async def test_phone_round_trip(self, pg_store):
        await pg_store.upsert_user(TRAVELER_ID)
        assert await pg_store.get_phone(TRAVELER_ID) is None
        await pg_store.set_phone(TRAVELER_ID, TRAVELER_PHONE)
        assert await pg_store.get_phone(TRAVELER_ID) == TRAVELER_PHONE


@pytest.mark.integration
class TestConditionalWrites:
    async def test_alert_marker_is_set_once_under_concurrency(self, pg_store):
        trip = await make_active_trip(pg_store)

        results = await asyncio.gather(
            *(pg_store.try_set_alert_marker(trip.id) for _ in range(5))
        )

        assert results.count(True) == 1
        pending = await pg_store.get_trips_pending_alert_evaluation(TripMode.BUS)
        assert trip.id not in [t.id for t in pending]

    async def test_update_status_checks_expected(self, pg_store):
        trip = await make_active_trip(pg_store)

        assert not await pg_store.update_status(trip.id, TripStatus.MISSED, [TripStatus.ALERTING])
        assert await pg_store.update_status(trip.id, TripStatus.ALERTING, [TripStatus.ACTIVE])
        assert (await pg_store.get_trip(trip.id)).status == TripStatus.ALERTING

    async def test_mark_confirmed_once(self, pg_store):
        trip = await make_active_trip(pg_store)

        assert await pg_store.mark_confirmed(trip.id, OUTCOME_CONFIRMED_USER)
        assert not await pg_store.mark_confirmed(trip.id, OUTCOME_CONFIRMED_USER)
        stored = await pg_store.get_trip(trip.id)
        assert stored.confirmed is True
        assert stored.status == TripStatus.COMPLETED
        assert await pg_store.get_active_trip(TRAVELER_ID) is None

    async def test_update_trip_rejects_guarded_columns(self, pg_store):
        trip = await make_active_trip(pg_store)
        with pytest.raises(ValueError):
            await pg_store.update_trip(trip.id, status=TripStatus.COMPLETED.value)


@pytest.mark.integration
class TestCallAttempts:
    async def test_external_call_id_is_unique(self, pg_store):
        trip = await make_active_trip(pg_store)
        await pg_store.record_call_attempt(
            trip.id, 1, "call-1", CallStatus.INITIATED, PromptTier.CALM
        )
        with pytest.raises(IntegrityError):
            await pg_store.record_call_attempt(
                trip.id, 2, "call-1", CallStatus.INITIATED, PromptTier.FIRM
            )

    async def test_result_applied_once(self, pg_store):
        trip = await make_active_trip(pg_store)
        await pg_store.record_call_attempt(
            trip.id, 1, "call-1", CallStatus.INITIATED, PromptTier.CALM
        )

        assert await pg_store.update_call_result("call-1", CallStatus.ENDED, "yes", 30)
        assert not await pg_store.update_call_result("call-1", CallStatus.ENDED, "yes", 30)
        attempt = await pg_store.get_call_attempt("call-1")
        assert attempt.ended_at is not None

    async def test_failed_placements_do_not_count(self, pg_store):
        trip = await make_active_trip(pg_store)
        attempt = await pg_store.record_call_attempt(
            trip.id, 1, None, CallStatus.PENDING, PromptTier.CALM
        )
        await pg_store.mark_call_attempt_failed(attempt.id, "vendor unavailable")

        assert await pg_store.count_call_attempts(trip.id) == 0
        assert await pg_store.count_failed_placements(trip.id, 1) == 1
        assert await pg_store.latest_attempt_no(trip.id) == 1

    async def test_stale_pending_placement_does_not_count(self, pg_store):
        trip = await make_active_trip(pg_store)
        await pg_store.record_call_attempt(trip.id, 1, None, CallStatus.PENDING, PromptTier.CALM)
        later = datetime.now(UTC) + timedelta(minutes=1)

        assert await pg_store.count_call_attempts(trip.id) == 1
        assert await pg_store.count_call_attempts(trip.id, stale_pending_before=later) == 0

    async def test_latest_attempt_prefers_the_newest_row(self, pg_store):
        trip = await make_active_trip(pg_store)
        assert await pg_store.get_latest_call_attempt(trip.id) is None

        failed = await pg_store.record_call_attempt(
            trip.id, 1, None, CallStatus.PENDING, PromptTier.CALM
        )
        await pg_store.mark_call_attempt_failed(failed.id, "vendor unavailable")
        retried = await pg_store.record_call_attempt(
            trip.id, 1, "call-1", CallStatus.INITIATED, PromptTier.CALM
        )

        latest = await pg_store.get_latest_call_attempt(trip.id)
        assert latest.id == retried.id
        assert latest.created_at.tzinfo is not None

    async def test_alerted_trips(self, pg_store):
        marked = await make_active_trip(pg_store)
        alerting = await pg_store.create_trip(TRAVELER_ID, TripMode.BUS, TripStatus.ALERTING)
        confirmed = await pg_store.create_trip(TRAVELER_ID, TripMode.BUS, TripStatus.ALERTING)
        await pg_store.create_trip(TRAVELER_ID, TripMode.BUS, TripStatus.ACTIVE)
        await pg_store.create_trip(TRAVELER_ID, TripMode.TRAIN, TripStatus.ALERTING)
        await pg_store.try_set_alert_marker(marked.id)
        await pg_store.mark_confirmed(confirmed.id, OUTCOME_CONFIRMED_USER)

        found = await pg_store.get_alerted_trips(TripMode.BUS)

        assert [t.id for t in found] == [marked.id, alerting.id]


@pytest.mark.integration
async def test_wake_call_loop_against_postgres(pg_store):
    trip = await make_active_trip(pg_store)
    gateway = FakeVoiceGateway()
    notifier = FakeNotificationSink()
    retries = FakeRetryScheduler()
    state_machine = TripStateMachine(pg_store)
    orchestrator = WakeCallOrchestrator(
        pg_store,
        gateway,
        notifier,
        retries,
        state_machine,
        CallPolicy(max_attempts=5, retry_delay_sec=120, placement_failure_limit=5,
                   callback_url="https://wakeme.test/webhooks/voice"),
    )

    assert await pg_store.try_set_alert_marker(trip.id)
    assert await state_machine.enter_alerting(trip.id)
    attempt = await orchestrator.on_alert(await pg_store.get_trip(trip.id))

    outcome = await orchestrator.on_call_result(
        CallResult(
            external_call_id=attempt.external_call_id,
            status=CallStatus.ENDED,
            transcript="User: I'm awake",
        )
    )

    assert outcome is ResultOutcome.CONFIRMED
    stored = await pg_store.get_trip(trip.id)
    assert stored.status == TripStatus.COMPLETED
    assert retries.jobs == {}
