"""Integration test configuration with Testcontainers."""

import os
from collections.abc import Generator

import pytest
import pytest_asyncio
from sqlalchemy import text

from tests.conftest import reset_settings_cache

try:
    from testcontainers.postgres import PostgresContainer
    _HAS_TESTCONTAINERS = True
except ImportError:
    _HAS_TESTCONTAINERS = False


@pytest.fixture(scope="session")
def pg_container() -> Generator[dict, None, None]:
    """Start a Postgres container and migrate it to head."""
    if not _HAS_TESTCONTAINERS:
        pytest.skip("Testcontainers not installed")

    pg = PostgresContainer("postgres:16", username="wakeme", password="wakeme", dbname="wakeme_test")
    try:
        pg.start()
    except Exception as e:
        pytest.skip(f"Postgres container startup failed: {e}")

    try:
        base_url = pg.get_connection_url()
        url_sync = base_url.replace("postgresql+psycopg2://", "postgresql+psycopg://")
        url_async = base_url.replace("postgresql+psycopg2://", "postgresql+asyncpg://")

        os.environ["APP_DATABASE_URL_SYNC"] = url_sync
        os.environ["APP_DATABASE_URL"] = url_async
        os.environ["ALEMBIC_DATABASE_URL"] = url_sync

        from alembic import command
        from alembic.config import Config

        command.upgrade(Config("alembic.ini"), "head")

        yield {"url_sync": url_sync, "url_async": url_async}
    finally:
        for key in ("APP_DATABASE_URL_SYNC", "APP_DATABASE_URL", "ALEMBIC_DATABASE_URL"):
            os.environ.pop(key, None)
        pg.stop()


@pytest.fixture
def db_clean(pg_container):
    """Truncate all tables before each test."""
    from wakeme.storage.session import create_sync_engine_from_env

    reset_settings_cache()
    engine = create_sync_engine_from_env()
    with engine.connect() as conn:
        conn.execute(text("TRUNCATE TABLE call_attempts, trips, users RESTART IDENTITY CASCADE"))
        conn.commit()
    engine.dispose()


@pytest_asyncio.fixture
async def pg_store(db_clean):
    """SqlAlchemyTripStore against the container database."""
    from wakeme.storage.repository import SqlAlchemyTripStore
    from wakeme.storage.session import create_async_engine_from_env, get_sessionmaker

    engine = create_async_engine_from_env()
    yield SqlAlchemyTripStore(get_sessionmaker(engine))
    await engine.dispose()
