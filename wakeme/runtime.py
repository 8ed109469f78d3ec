"""Process-wide container for clients, pools and domain services.

Built once at startup and handed to routes and scheduler jobs; the domain
layer itself only ever sees the collaborators it is constructed with.
"""

from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from wakeme.core.logging import get_logger
from wakeme.core.services import GeoScheduleProvider, NotificationSink, RetryScheduler, VoiceGateway
from wakeme.core.settings import Settings
from wakeme.domain.proximity import AlertThresholds
from wakeme.domain.tracking import TripTracker
from wakeme.domain.trips import TripStateMachine
from wakeme.domain.wake_calls import CallPolicy, WakeCallOrchestrator
from wakeme.integrations.geocoding import Geocoder
from wakeme.integrations.positions import LivePositionProvider
from wakeme.integrations.railway import RailwayClient
from wakeme.integrations.telegram import TelegramClient, TelegramNotifier, TelegramUpdateHandler
from wakeme.integrations.vapi import VapiVoiceGateway
from wakeme.storage.interfaces import TripStoreIface
from wakeme.storage.repository import SqlAlchemyTripStore
from wakeme.storage.session import get_sessionmaker

logger = get_logger(__name__)


@dataclass
class WakeRuntime:
    """Everything a request handler or job needs."""

    settings: Settings
    store: TripStoreIface
    notifier: NotificationSink
    gateway: VoiceGateway
    provider: GeoScheduleProvider
    state_machine: TripStateMachine
    orchestrator: WakeCallOrchestrator
    tracker: TripTracker
    telegram: TelegramUpdateHandler
    http_client: httpx.AsyncClient | None = None
    engine: AsyncEngine | None = None

    async def aclose(self) -> None:
        """Release pooled connections."""
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def assemble_runtime(
    settings: Settings,
    store: TripStoreIface,
    retry_scheduler: RetryScheduler,
    http_client: httpx.AsyncClient,
    notifier: NotificationSink | None = None,
    gateway: VoiceGateway | None = None,
    provider: GeoScheduleProvider | None = None,
    engine: AsyncEngine | None = None,
) -> WakeRuntime:
    """Wire domain services around the given collaborators.

    Collaborators left as None get their production implementation.
    """
    telegram_client = None
    if settings.telegram_bot_token:
        telegram_client = TelegramClient(
            http_client,
            settings.telegram_bot_token,
            api_base=settings.telegram_api_base,
            timeout=settings.provider_timeout_sec,
        )

    railway = RailwayClient(
        http_client,
        settings.railway_api_base,
        api_key=settings.railway_api_key,
        timeout=settings.provider_timeout_sec,
    )
    geocoder = Geocoder(
        http_client, api_key=settings.google_maps_api_key, timeout=settings.provider_timeout_sec
    )

    if notifier is None:
        notifier = TelegramNotifier(store, telegram_client)
    if gateway is None:
        gateway = VapiVoiceGateway(
            http_client,
            api_key=settings.vapi_api_key,
            api_base=settings.vapi_api_base,
            phone_number_id=settings.vapi_phone_number_id,
            voice_id=settings.vapi_voice_id,
            server_secret=settings.vapi_webhook_secret,
            calls_enabled=settings.calls_enabled,
            timeout=settings.provider_timeout_sec,
        )
    if provider is None:
        provider = LivePositionProvider(store, railway)

    state_machine = TripStateMachine(store)
    orchestrator = WakeCallOrchestrator(
        store,
        gateway,
        notifier,
        retry_scheduler,
        state_machine,
        CallPolicy.from_settings(settings),
    )
    tracker = TripTracker(
        store,
        provider,
        state_machine,
        orchestrator,
        notifier,
        AlertThresholds.from_settings(settings),
    )
    telegram = TelegramUpdateHandler(
        store,
        state_machine,
        telegram_client,
        geocoder,
        railway,
        default_country_code=settings.default_country_code,
        bus_speed_kmh=settings.bus_average_speed_kmh,
    )

    return WakeRuntime(
        settings=settings,
        store=store,
        notifier=notifier,
        gateway=gateway,
        provider=provider,
        state_machine=state_machine,
        orchestrator=orchestrator,
        tracker=tracker,
        telegram=telegram,
        http_client=http_client,
        engine=engine,
    )


def build_runtime(settings: Settings, retry_scheduler: RetryScheduler) -> WakeRuntime:
    """Production runtime backed by PostgreSQL."""
    if not settings.app_database_url:
        raise RuntimeError("APP_DATABASE_URL not set")

    engine = create_async_engine(settings.app_database_url, future=True, pool_pre_ping=True)
    store = SqlAlchemyTripStore(get_sessionmaker(engine))
    http_client = httpx.AsyncClient(timeout=settings.provider_timeout_sec)

    logger.info(
        "Runtime built",
        calls_enabled=settings.calls_enabled,
        telegram_configured=bool(settings.telegram_bot_token),
    )
    return assemble_runtime(settings, store, retry_scheduler, http_client, engine=engine)


# Runtime for the current process, set by the app lifespan or the scheduler runner
_runtime: WakeRuntime | None = None


def get_runtime() -> WakeRuntime:
    """Get the process runtime."""
    if _runtime is None:
        raise RuntimeError("Runtime not initialized. Call set_runtime() first.")
    return _runtime


def set_runtime(runtime: WakeRuntime | None) -> None:
    """Install (or clear) the process runtime."""
    global _runtime
    _runtime = runtime
