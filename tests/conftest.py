"""
Shared test fixtures for meterlink tests.

Every test runs with all meterlink environment variables removed, the
working directory set to tmp_path (so no .env file is loaded) and the
cached settings cleared. Store and aggregator tests run against a real
SQLite database file in tmp_path via aiosqlite.

CHANGELOG:
- 2026-10-17: TestClient fixture backed by a temporary SQLite database
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from meterlink.config import get_settings
from meterlink.db.session import create_engine, create_session_factory, init_schema

# All Settings environment variable names, used for cleanup.
_ALL_ENV_VARS = (
    "DATABASE_URL",
    "REDIS_URL",
    "CACHE_TTL_S",
    "UI_TIMEZONE",
    "UI_DAYS",
    "UPLINK_LIST_LIMIT",
    "RECENT_EVENTS",
    "AUTO_CREATE_SCHEMA",
    "LOG_LEVEL",
    "MAX_REQUEST_BYTES",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Isolate each test from the process environment and cached settings."""
    for var in _ALL_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def database_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite database file for this test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'meterlink-test.db'}"


@pytest_asyncio.fixture()
async def engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine with the current schema created."""
    test_engine = create_engine(database_url)
    await init_schema(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture()
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """An AsyncSession bound to the temporary database."""
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session


@pytest.fixture()
def mock_redis() -> AsyncMock:
    """Create a mock async Redis client.

    Returns:
        AsyncMock: A mock that behaves like a redis.asyncio.Redis client.
    """
    redis_client = AsyncMock()
    redis_client.get = AsyncMock(return_value=None)
    redis_client.set = AsyncMock()
    redis_client.delete = AsyncMock()
    redis_client.aclose = AsyncMock()
    return redis_client


@pytest.fixture()
def client(
    monkeypatch: pytest.MonkeyPatch, database_url: str
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient against a temporary SQLite database.

    Uses a context manager so the lifespan (engine, schema, events log)
    runs; the module-level engine is disposed on shutdown. The lifespan
    installs JSON logging on the root logger, so root handlers are
    restored afterwards.
    """
    monkeypatch.setenv("DATABASE_URL", database_url)
    get_settings.cache_clear()

    from meterlink.api.main import app

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
