"""Application factory for creating FastAPI instances."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from wakeme import __version__
from wakeme.api import health, metrics, telegram, voice
from wakeme.core.logging import get_logger, install_middlewares, setup_logging
from wakeme.core.settings import Settings, get_settings
from wakeme.runtime import build_runtime, get_runtime, set_runtime
from wakeme.scheduler.setup import ApschedulerRetryScheduler, shutdown_scheduler, start_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    logger.info("Starting WakeMe Travel", app_env=settings.app_env, version=__version__)

    # Tests install their own runtime before the app starts
    owns_runtime = False
    try:
        get_runtime()
    except RuntimeError:
        if settings.app_database_url:
            set_runtime(build_runtime(settings, ApschedulerRetryScheduler()))
            owns_runtime = True
        else:
            logger.warning("APP_DATABASE_URL not set, running without a runtime")

    if owns_runtime:
        await start_scheduler(settings)

    yield

    logger.info("Shutting down WakeMe Travel")
    await shutdown_scheduler()
    if owns_runtime:
        runtime = get_runtime()
        set_runtime(None)
        await runtime.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory with settings injection.

    Args:
        settings: Optional settings instance. If None, creates from environment.

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="WakeMe Travel",
        version=__version__,
        description="Wake-up calls for sleeping bus and train travelers",
        lifespan=lifespan,
    )

    # Store settings in app state for the lifespan
    app.state.settings = settings

    install_middlewares(app)

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(telegram.router)
    app.include_router(voice.router)

    return app
