"""
Tests for application wiring and structured logging.

CHANGELOG:
- 2026-10-17: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import sys

from fastapi.testclient import TestClient

from meterlink.api.main import JsonFormatter, app
from meterlink.services.events import EventLog


class TestJsonFormatter:
    """Log records are rendered as one JSON object per line."""

    def _record(self, msg: str, *args: object, exc_info: object = None) -> logging.LogRecord:
        return logging.LogRecord("meterlink.test", logging.WARNING, __file__, 1, msg, args, exc_info)

    def test_fields(self) -> None:
        line = JsonFormatter().format(self._record("Stored %d uplink(s)", 3))
        entry = json.loads(line)

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "meterlink.test"
        assert entry["msg"] == "Stored 3 uplink(s)"
        assert entry["ts"].endswith("+00:00")
        assert "exception" not in entry

    def test_exception(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record("failed", exc_info=sys.exc_info())

        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestLifespan:
    """Startup creates the schema and the events log."""

    def test_state_and_routes(self, client: TestClient) -> None:
        assert isinstance(app.state.events, EventLog)
        assert app.state.events.capacity == 50

        paths = {route.path for route in app.routes}
        assert {
            "/webhooks/chirpstack",
            "/webhooks/ttn",
            "/webhooks/lorawan",
            "/api/devices",
            "/api/device-summaries",
            "/api/readings",
            "/api/uplinks",
            "/api/last-reading",
            "/api/last-uplink",
            "/api/consumption/daily",
            "/api/tx-count",
            "/api/devices/{dev_eui}",
            "/api/data-point",
            "/api/data-range",
            "/healthz",
            "/debug/last",
        } <= paths

    def test_schema_created_on_startup(self, client: TestClient) -> None:
        assert client.get("/api/devices").json() == {"devices": []}
