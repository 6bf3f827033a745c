"""
Unit tests for the bounded recent-events log.

CHANGELOG:
- 2026-10-15: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest

from meterlink.services.events import EventLog


class TestEventLog:
    """Fixed-capacity FIFO semantics."""

    def test_push_stamps_type_and_time(self) -> None:
        log = EventLog()
        event = log.push("up", devEui="0004a30b001c0530", meterValue=12.5)

        assert event["type"] == "up"
        assert event["devEui"] == "0004a30b001c0530"
        assert event["ts"].endswith("+00:00")
        assert log.snapshot() == [event]

    def test_drops_oldest_when_full(self) -> None:
        log = EventLog(capacity=3)
        for n in range(5):
            log.push("up", n=n)

        assert len(log) == 3
        assert [e["n"] for e in log.snapshot()] == [2, 3, 4]

    def test_snapshot_is_a_copy(self) -> None:
        log = EventLog()
        log.push("up")
        log.snapshot().clear()
        assert len(log) == 1

    def test_default_capacity(self) -> None:
        assert EventLog().capacity == 50

    @pytest.mark.parametrize("capacity", [0, -5])
    def test_invalid_capacity(self, capacity: int) -> None:
        with pytest.raises(ValueError):
            EventLog(capacity=capacity)
