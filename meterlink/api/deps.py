"""
FastAPI dependency injection providers.

Provides database sessions, settings and the recent-events log for use
with FastAPI's Depends() mechanism.

CHANGELOG:
- 2026-10-17: Expose the recent-events log and settings as dependencies
- 2026-10-14: Initial creation
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from meterlink.config import Settings, get_settings
from meterlink.db.session import get_async_session
from meterlink.services.events import EventLog


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session.

    Thin wrapper around get_async_session so tests can override a single
    dependency.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async for session in get_async_session():
        yield session


def get_events(request: Request) -> EventLog:
    """Return the recent-events log created at startup."""
    return request.app.state.events


def required_dev_eui(dev_eui: str | None) -> str:
    """Normalise a ``devEui`` parameter, rejecting missing or blank values.

    Raises:
        HTTPException: 400 if the value is missing.
    """
    value = (dev_eui or "").strip().lower()
    if not value:
        raise HTTPException(status_code=400, detail="devEui is required")
    return value


DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Events = Annotated[EventLog, Depends(get_events)]
