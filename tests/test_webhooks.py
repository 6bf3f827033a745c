"""
Integration tests for the webhook endpoints.

Tests verify:
- ChirpStack, TTN and generic deliveries are stored and acknowledged.
- Deliveries without a device identity are acknowledged but not stored.
- Out-of-range integers are stored as absent values.
- Invalid JSON, deeply nested JSON and oversized bodies are acknowledged
  but not stored.
- Storage failures are acknowledged with 200 and recorded on /debug/last.

CHANGELOG:
- 2026-10-18: Out-of-range integers and deeply nested bodies
- 2026-10-17: Oversized body and storage failure cases
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from meterlink.config import get_settings
from tests.payloads import chirpstack_uplink, ttn_uplink


def _last_events(client: TestClient) -> list[dict]:
    return client.get("/debug/last").json()["lastEvents"]


class TestAcknowledgedAndStored:
    """Valid deliveries are stored; every path answers 200 ok."""

    def test_chirpstack(self, client: TestClient) -> None:
        response = client.post("/webhooks/chirpstack?event=up", json=chirpstack_uplink())

        assert response.status_code == 200
        assert response.text == "ok"
        readings = client.get("/api/readings", params={"devEui": "0004a30b001c0530"}).json()
        assert [r["meter_value"] for r in readings["readings"]] == [1234.5]

    def test_ttn(self, client: TestClient) -> None:
        response = client.post("/webhooks/ttn", json=ttn_uplink())

        assert response.status_code == 200
        last = client.get("/api/last-uplink", params={"devEui": "70b3d57ed0051234"}).json()["last"]
        assert last["provider"] == "ttn"
        assert last["meter_value"] == 12345.67
        assert last["deduplication_id"] == "42"
        assert last["payload_json"]["end_device_ids"]["device_id"] == "garage-meter"

    def test_generic(self, client: TestClient) -> None:
        body = {"devEui": "0004A30B001C0530", "meterValue": "12,5", "time": "2026-10-14T10:00:00Z"}
        response = client.post("/webhooks/lorawan", json=body)

        assert response.status_code == 200
        last = client.get("/api/last-reading", params={"devEui": "0004a30b001c0530"}).json()["last"]
        assert last["meter_value"] == 12.5
        assert last["meter_value_raw"] == "12,5"

    def test_out_of_range_integers(self, client: TestClient) -> None:
        body = {
            "devEui": "0004a30b001c0530",
            "time": "2026-10-14T10:00:00Z",
            "meterValue": 10,
            "battery_mv": 1e30,
            "rssi": 1e30,
        }
        response = client.post("/webhooks/lorawan", json=body)

        assert response.status_code == 200
        last = client.get("/api/last-uplink", params={"devEui": "0004a30b001c0530"}).json()["last"]
        assert (last["battery_mv"], last["rssi"], last["meter_value"]) == (None, None, 10.0)

    def test_redelivery_is_idempotent(self, client: TestClient) -> None:
        for _ in range(3):
            assert client.post("/webhooks/chirpstack", json=chirpstack_uplink()).status_code == 200

        uplinks = client.get("/api/uplinks", params={"devEui": "0004a30b001c0530"}).json()["uplinks"]
        assert len(uplinks) == 1
        assert [e["type"] for e in _last_events(client)] == ["up", "up", "up"]


class TestAcknowledgedNotStored:
    """Undeliverable documents are still acknowledged."""

    def test_missing_device_identity(self, client: TestClient) -> None:
        response = client.post("/webhooks/lorawan", json={"meterValue": 42})

        assert response.status_code == 200
        assert response.text == "ok"
        assert client.get("/api/devices").json() == {"devices": []}
        assert _last_events(client)[-1]["type"] == "up-missing"

    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post(
            "/webhooks/chirpstack",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 200
        assert client.get("/api/devices").json() == {"devices": []}
        assert _last_events(client)[-1]["type"] == "up-invalid"

    def test_deeply_nested_json(self, client: TestClient) -> None:
        body = b"[" * 100_000 + b"]" * 100_000
        response = client.post(
            "/webhooks/chirpstack", content=body, headers={"content-type": "application/json"}
        )

        assert response.status_code == 200
        assert response.text == "ok"
        assert _last_events(client)[-1]["type"] == "up-invalid"

    def test_non_object_json(self, client: TestClient) -> None:
        response = client.post("/webhooks/lorawan", json=[1, 2, 3])

        assert response.status_code == 200
        assert _last_events(client)[-1]["type"] == "up-missing"

    def test_oversized_body(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_REQUEST_BYTES", "64")
        get_settings.cache_clear()

        body = json.dumps(chirpstack_uplink()).encode()
        assert len(body) > 64
        response = client.post(
            "/webhooks/chirpstack", content=body, headers={"content-type": "application/json"}
        )

        assert response.status_code == 200
        assert client.get("/api/devices").json() == {"devices": []}
        assert _last_events(client)[-1]["type"] == "up-oversized"

    def test_storage_failure(self, client: TestClient) -> None:
        failure = OperationalError("INSERT INTO uplinks", {}, Exception("database is locked"))
        with patch(
            "meterlink.services.ingestion.record_uplink",
            new=AsyncMock(side_effect=failure),
        ):
            response = client.post("/webhooks/chirpstack", json=chirpstack_uplink())

        assert response.status_code == 200
        assert response.text == "ok"
        assert _last_events(client)[-1]["type"] == "up-error"
        assert client.get("/api/devices").json() == {"devices": []}
