"""
Async database engine, session factory and schema bootstrap.

Uses SQLAlchemy 2.x async engine with aiosqlite (default, single file) or
asyncpg (PostgreSQL). Provides module-level engine and session factory
singletons, plus an async generator for FastAPI dependency injection.

``init_schema`` creates missing tables and adds missing nullable columns to
existing ones, so a database written by an older release keeps working:
old rows simply read the new columns as NULL. Alembic revisions under
``meterlink/db/migrations`` record the same history for managed databases.

CHANGELOG:
- 2026-10-16: Additive column bootstrap in init_schema
- 2026-10-14: Initial creation
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import Connection, inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from meterlink.config import get_settings
from meterlink.db.models import Base

logger = logging.getLogger(__name__)

# Module-level singletons, initialized lazily via init_engine().
async_engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: Optional URL; defaults to ``Settings.database_url``.

    Returns:
        AsyncEngine: Configured async engine.
    """
    return create_async_engine(database_url or get_settings().database_url, echo=False)


def create_session_factory(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Args:
        engine: Optional async engine. If not provided, creates one from config.

    Returns:
        async_sessionmaker: Factory for creating AsyncSession instances.
    """
    if engine is None:
        engine = create_engine()
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def init_engine(database_url: str | None = None) -> AsyncEngine:
    """Initialize the module-level async engine and session factory.

    Call this at application startup (e.g., in a FastAPI lifespan event).
    Safe to call multiple times; subsequent calls are no-ops.

    Returns:
        AsyncEngine: The module-level engine.
    """
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is None:
        async_engine = create_engine(database_url)
        async_session_factory = create_session_factory(async_engine)
    return async_engine


async def dispose_engine() -> None:
    """Dispose the module-level engine and forget the singletons."""
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is not None:
        await async_engine.dispose()
    async_engine = None
    async_session_factory = None


def _add_missing_columns(connection: Connection) -> list[str]:
    """Add model columns that an existing table lacks.

    Only nullable columns are added; a missing NOT NULL column cannot be
    back-filled and is reported instead.
    """
    inspector = inspect(connection)
    existing_tables = set(inspector.get_table_names())
    added: list[str] = []

    for table in Base.metadata.sorted_tables:
        if table.name not in existing_tables:
            continue
        present = {col["name"] for col in inspector.get_columns(table.name)}
        for column in table.columns:
            if column.name in present:
                continue
            if not column.nullable:
                logger.warning(
                    "Column %s.%s is missing and NOT NULL; run migrations",
                    table.name,
                    column.name,
                )
                continue
            column_type = column.type.compile(dialect=connection.dialect)
            connection.execute(
                text(f"ALTER TABLE {table.name} ADD COLUMN {column.name} {column_type}")
            )
            added.append(f"{table.name}.{column.name}")

    return added


async def init_schema(engine: AsyncEngine | None = None) -> list[str]:
    """Create missing tables and add missing nullable columns.

    Args:
        engine: Optional engine; defaults to the module-level engine.

    Returns:
        list[str]: ``table.column`` names that were added.
    """
    if engine is None:
        engine = init_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        added = await conn.run_sync(_add_missing_columns)
    if added:
        logger.info("Schema upgraded in place, added columns: %s", ", ".join(added))
    return added


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for FastAPI dependency injection.

    Initializes the engine on first call if not already done.
    The session is automatically closed after the request completes.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    init_engine()
    assert async_session_factory is not None, "Session factory not initialized"
    async with async_session_factory() as session:
        yield session
