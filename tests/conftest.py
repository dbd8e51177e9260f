"""Test fixtures for the link shortener."""

import os
import tempfile
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

# Settings are read at import time, so the environment comes first
_TEST_DIR = tempfile.mkdtemp(prefix="shorty-tests-")
os.environ.update({
    "ENVIRONMENT": "testing",
    "DEBUG": "false",
    "DATABASE_URL": f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'app.db')}",
    "BASE_URL": "https://sho.rt",
    "RATE_LIMIT_ENABLED": "false",
    "SCHEDULER_ENABLED": "false",
    "SCHEDULER_JOBSTORE_URL": f"sqlite:///{os.path.join(_TEST_DIR, 'jobs.sqlite')}",
    "ACCESS_LOG_ENABLED": "false",
    "GEO_LOOKUP_ENABLED": "false",
    "LOG_DIR": os.path.join(_TEST_DIR, "logs"),
    "LOG_JSON": "false",
})

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shorty.api.dependencies import get_clock, get_geo_locator, get_session_scope
from shorty.core.tasks import drain_background_tasks
from shorty.db.base import create_db_and_tables, get_engine
from shorty.db.session import get_db
from shorty.main import app as main_app
from shorty.repositories import (
    AccessLogRepository,
    DailyStatsRepository,
    LinkRepository,
    LinkSettingsRepository,
    SystemConfigRepository,
)
from shorty.services.geo import GeoLocator
from shorty.services.system_config import SystemConfigService
from tests.utils import FrozenClock


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Engine over a fresh SQLite file per test."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'shorty.db'}")
    await create_db_and_tables(bind=engine)
    yield engine
    await drain_background_tasks()
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def session_scope(session_factory):
    """Committed-on-exit sessions, as used by background work."""

    @asynccontextmanager
    async def scope():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return scope


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def link_repository():
    return LinkRepository()


@pytest.fixture
def access_log_repository():
    return AccessLogRepository()


@pytest.fixture
def daily_stats_repository():
    return DailyStatsRepository()


@pytest.fixture
def settings_repository():
    return LinkSettingsRepository()


@pytest.fixture
def config_repository():
    return SystemConfigRepository()


@pytest_asyncio.fixture
async def seeded_config(session_scope):
    """System config rows as inserted on startup."""
    async with session_scope() as session:
        await SystemConfigService(SystemConfigRepository()).seed_defaults(session)


@pytest.fixture
def test_app(session_factory, session_scope, clock, seeded_config):
    """FastAPI app with the database, clock and geo lookup overridden."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    main_app.dependency_overrides[get_db] = _override_get_db
    main_app.dependency_overrides[get_session_scope] = lambda: session_scope
    main_app.dependency_overrides[get_clock] = lambda: clock
    main_app.dependency_overrides[get_geo_locator] = lambda: GeoLocator(enabled=False)
    yield main_app
    main_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

