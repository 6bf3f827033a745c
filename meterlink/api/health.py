"""
Liveness and diagnostics endpoints.

``GET /healthz`` answers ``ok`` for container health checks.
``GET /debug/last`` returns the recent-events buffer, oldest first.

CHANGELOG:
- 2026-10-17: Add /debug/last
- 2026-10-14: Initial creation

TODO:
- None
"""

from typing import Any

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from meterlink.api.deps import Events

router = APIRouter(tags=["health"])


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> str:
    """Return ``ok`` while the process is serving requests."""
    return "ok"


@router.get("/debug/last")
async def debug_last(events: Events) -> dict[str, Any]:
    """Return recent ingest outcomes for operator diagnosis."""
    return {"lastEvents": events.snapshot()}
