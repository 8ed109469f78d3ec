"""Database session management."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from wakeme.core.settings import get_settings


def create_async_engine_from_env() -> AsyncEngine:
    """Create async database engine from environment."""
    settings = get_settings()
    if not settings.app_database_url:
        raise RuntimeError("APP_DATABASE_URL not set")
    return create_async_engine(settings.app_database_url, future=True, pool_pre_ping=True)


def create_sync_engine_from_env() -> Engine:
    """Create sync database engine from environment."""
    settings = get_settings()
    if not settings.app_database_url_sync:
        raise RuntimeError("APP_DATABASE_URL_SYNC not set")
    return create_engine(settings.app_database_url_sync, future=True)


def get_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session maker."""
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)

