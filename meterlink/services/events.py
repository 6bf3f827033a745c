"""
Bounded in-memory log of recent ingest outcomes.

Kept for operator diagnosis (``GET /debug/last``) only; nothing reads it
for data integrity. Capacity is fixed at construction and the oldest entry
is dropped when full.

CHANGELOG:
- 2026-10-15: Initial creation
"""

from __future__ import annotations

from collections import deque
from datetime import UTC, datetime
from typing import Any


class EventLog:
    """Fixed-capacity FIFO of event dicts, newest last.

    Args:
        capacity: Maximum number of retained events.
    """

    def __init__(self, capacity: int = 50) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._events: deque[dict[str, Any]] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._events.maxlen or 0

    def push(self, event_type: str, **fields: Any) -> dict[str, Any]:
        """Append an event stamped with the current UTC time."""
        event = {"ts": datetime.now(tz=UTC).isoformat(), "type": event_type, **fields}
        self._events.append(event)
        return event

    def snapshot(self) -> list[dict[str, Any]]:
        """Return a copy of the retained events, oldest first."""
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
