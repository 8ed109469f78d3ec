"""Test configuration and shared fixtures for WakeMe Travel tests."""

import os

import httpx
import pytest

from tests.fakes.repositories import InMemoryTripStore
from tests.fakes.services import (
    FakeGeoScheduleProvider,
    FakeNotificationSink,
    FakeRetryScheduler,
    FakeVoiceGateway,
)
from wakeme.core.settings import Settings, get_settings
from wakeme.domain.proximity import AlertThresholds
from wakeme.domain.tracking import TripTracker
from wakeme.domain.trips import TripStateMachine
from wakeme.domain.wake_calls import CallPolicy, WakeCallOrchestrator
from wakeme.runtime import WakeRuntime, assemble_runtime, set_runtime
from wakeme.schemas import TripMode, TripStatus
from wakeme.storage.models import Trip

os.environ.setdefault("APP_ENV", "test")

TRAVELER_ID = 1111
TRAVELER_PHONE = "+919876543210"

# Bangalore city centre and a point roughly 50 km north of it
DESTINATION = (12.9716, 77.5946)
FAR_POINT = (13.4216, 77.5946)


def reset_settings_cache() -> None:
    """Clear cached settings so env changes take effect."""
    get_settings.cache_clear()


def fail_once(monkeypatch, target, name: str, error: Exception) -> None:
    """Make the coroutine method target.name raise error on its first call only."""
    original = getattr(target, name)

    async def flaky(*args, **kwargs):
        monkeypatch.setattr(target, name, original)
        raise error

    monkeypatch.setattr(target, name, flaky)


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="test",
        public_base_url="https://wakeme.test",
        telegram_webhook_secret="secret123",
        vapi_webhook_secret="vapi-secret",
    )


@pytest.fixture
def store() -> InMemoryTripStore:
    return InMemoryTripStore()


@pytest.fixture
def notifier() -> FakeNotificationSink:
    return FakeNotificationSink()


@pytest.fixture
def gateway() -> FakeVoiceGateway:
    return FakeVoiceGateway()


@pytest.fixture
def provider() -> FakeGeoScheduleProvider:
    return FakeGeoScheduleProvider()


@pytest.fixture
def retry_scheduler() -> FakeRetryScheduler:
    return FakeRetryScheduler()


@pytest.fixture
def state_machine(store) -> TripStateMachine:
    return TripStateMachine(store)


@pytest.fixture
def policy() -> CallPolicy:
    return CallPolicy(
        max_attempts=5,
        retry_delay_sec=120,
        placement_failure_limit=3,
        callback_url="https://wakeme.test/webhooks/voice",
    )


@pytest.fixture
def orchestrator(
    store, gateway, notifier, retry_scheduler, state_machine, policy
) -> WakeCallOrchestrator:
    return WakeCallOrchestrator(store, gateway, notifier, retry_scheduler, state_machine, policy)


@pytest.fixture
def tracker(store, provider, state_machine, orchestrator, notifier) -> TripTracker:
    return TripTracker(
        store, provider, state_machine, orchestrator, notifier, AlertThresholds()
    )


@pytest.fixture
async def traveler(store):
    """A registered traveler with a phone number on file."""
    user = await store.upsert_user(TRAVELER_ID, chat_id=TRAVELER_ID, display_name="Asha")
    await store.set_phone(TRAVELER_ID, TRAVELER_PHONE)
    return user


@pytest.fixture
async def active_bus_trip(store, traveler) -> Trip:
    """An active bus trip heading to DESTINATION."""
    return await store.create_trip(
        TRAVELER_ID,
        TripMode.BUS,
        TripStatus.ACTIVE,
        destination_name="Majestic",
        destination_lat=DESTINATION[0],
        destination_lng=DESTINATION[1],
    )


@pytest.fixture
async def alerting_trip(store, active_bus_trip) -> Trip:
    """A bus trip whose alert marker is set and which is now alerting."""
    assert await store.try_set_alert_marker(active_bus_trip.id)
    assert await store.update_status(
        active_bus_trip.id, TripStatus.ALERTING, [TripStatus.ACTIVE]
    )
    return active_bus_trip


@pytest.fixture
def runtime(settings, store, notifier, gateway, provider, retry_scheduler) -> WakeRuntime:
    """Process runtime wired to the in-memory fakes and installed globally."""
    runtime = assemble_runtime(
        settings,
        store,
        retry_scheduler,
        httpx.AsyncClient(),
        notifier=notifier,
        gateway=gateway,
        provider=provider,
    )
    set_runtime(runtime)
    yield runtime
    set_runtime(None)
