"""
Tests for store reads and deletes against a real SQLite database.

Tests verify:
- Devices are listed from both tables with their latest known name.
- Range filters are inclusive on both ends.
- Uplink listings return the most recent N rows oldest first.
- Latest uplink ties on ``at`` are broken by insertion order.
- count_uplinks with a device filter matches the unfiltered count.
- Point/range/device deletion respects scope and inclusivity.

CHANGELOG:
- 2026-10-16: Deletion scope tests
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from meterlink.models import NormalizedUplink
from meterlink.services.ingestion import ingest_uplink
from meterlink.services.queries import (
    DeleteScope,
    count_uplinks,
    delete_at,
    delete_device,
    delete_range,
    latest_reading,
    latest_uplink,
    list_devices,
    list_readings,
    list_uplinks,
    uplink_stats,
)

DEV_A = "0004a30b001c0530"
DEV_B = "70b3d57ed0051234"


async def _store(
    db: AsyncSession,
    dev_eui: str,
    at: str,
    meter_value: float | None = 100.0,
    dedup: str | None = None,
    name: str | None = None,
) -> None:
    await ingest_uplink(
        db,
        NormalizedUplink(
            dev_eui=dev_eui,
            timestamp=at,
            deduplication_id=dedup,
            meter_value=meter_value,
            device_name=name,
        ),
    )


async def _seed_hours(db: AsyncSession, dev_eui: str, hours: range) -> None:
    for hour in hours:
        await _store(db, dev_eui, f"2026-10-14T{hour:02d}:00:00Z", meter_value=100.0 + hour)


class TestListDevices:
    """Devices come from either table."""

    @pytest.mark.asyncio
    async def test_lists_each_device_once(self, db: AsyncSession) -> None:
        await _store(db, DEV_B, "2026-10-14T01:00:00Z", name="garage")
        await _store(db, DEV_A, "2026-10-14T01:00:00Z", meter_value=None)
        await _store(db, DEV_A, "2026-10-14T02:00:00Z", name="basement")

        devices = await list_devices(db)
        assert devices == [
            {"dev_eui": DEV_A, "device_name": "basement"},
            {"dev_eui": DEV_B, "device_name": "garage"},
        ]

    @pytest.mark.asyncio
    async def test_empty(self, db: AsyncSession) -> None:
        assert await list_devices(db) == []


class TestRanges:
    """from/to bounds are inclusive and optional."""

    @pytest.mark.asyncio
    async def test_readings_inclusive_bounds(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 6))

        readings = await list_readings(db, DEV_A, "2026-10-14T01:00:00Z", "2026-10-14T03:00:00Z")
        assert [r.at for r in readings] == [
            "2026-10-14T01:00:00Z",
            "2026-10-14T02:00:00Z",
            "2026-10-14T03:00:00Z",
        ]

    @pytest.mark.asyncio
    async def test_readings_open_bounds(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 4))
        assert len(await list_readings(db, DEV_A)) == 4
        assert len(await list_readings(db, DEV_A, from_="2026-10-14T02:00:00Z")) == 2
        assert len(await list_readings(db, DEV_A, to="2026-10-14T00:00:00Z")) == 1

    @pytest.mark.asyncio
    async def test_readings_are_per_device(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 3))
        await _seed_hours(db, DEV_B, range(0, 2))
        assert len(await list_readings(db, DEV_B)) == 2


class TestListUplinks:
    """Uplink listings return the newest rows in ascending order."""

    @pytest.mark.asyncio
    async def test_limit_keeps_most_recent(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 10))

        rows = await list_uplinks(db, DEV_A, limit=3)
        assert [r.at for r in rows] == [
            "2026-10-14T07:00:00Z",
            "2026-10-14T08:00:00Z",
            "2026-10-14T09:00:00Z",
        ]

    @pytest.mark.asyncio
    async def test_limit_floored_at_one(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 3))
        rows = await list_uplinks(db, DEV_A, limit=0)
        assert [r.at for r in rows] == ["2026-10-14T02:00:00Z"]

    @pytest.mark.asyncio
    async def test_range_and_limit(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 10))
        rows = await list_uplinks(db, DEV_A, "2026-10-14T02:00:00Z", "2026-10-14T05:00:00Z", limit=500)
        assert len(rows) == 4


class TestLatest:
    """Latest reading/uplink lookups."""

    @pytest.mark.asyncio
    async def test_latest_reading(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 5))
        reading = await latest_reading(db, DEV_A)
        assert reading is not None
        assert reading.meter_value == 104.0

    @pytest.mark.asyncio
    async def test_latest_uplink_ties_broken_by_insertion(self, db: AsyncSession) -> None:
        at = "2026-10-14T10:00:00Z"
        await _store(db, DEV_A, at, dedup="first")
        await _store(db, DEV_A, at, dedup="second")

        uplink = await latest_uplink(db, DEV_A)
        assert uplink is not None
        assert uplink.deduplication_id == "second"

    @pytest.mark.asyncio
    async def test_unknown_device(self, db: AsyncSession) -> None:
        assert await latest_reading(db, DEV_A) is None
        assert await latest_uplink(db, DEV_A) is None


class TestCounts:
    """Uplink counts and statistics."""

    @pytest.mark.asyncio
    async def test_filtered_count_matches_unfiltered_restriction(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 6))
        await _seed_hours(db, DEV_B, range(2, 5))
        start, end = "2026-10-14T01:00:00Z", "2026-10-14T03:00:00Z"

        assert await count_uplinks(db, DEV_A, start, end) == 3
        assert await count_uplinks(db, DEV_B, start, end) == 2
        assert await count_uplinks(db, None, start, end) == 5

    @pytest.mark.asyncio
    async def test_uplink_stats(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(3, 7))
        stats = await uplink_stats(db, DEV_A)
        assert stats.count == 4
        assert stats.first_at == "2026-10-14T03:00:00Z"
        assert stats.last_at == "2026-10-14T06:00:00Z"

    @pytest.mark.asyncio
    async def test_uplink_stats_unknown_device(self, db: AsyncSession) -> None:
        stats = await uplink_stats(db, DEV_A)
        assert (stats.count, stats.first_at, stats.last_at) == (0, None, None)


class TestDeletes:
    """Deletion is inclusive, per device and scope-respecting."""

    @pytest.mark.asyncio
    async def test_delete_range_inclusive_both(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 6))
        await _seed_hours(db, DEV_B, range(0, 6))

        result = await delete_range(db, DEV_A, "2026-10-14T01:00:00Z", "2026-10-14T03:00:00Z")

        assert (result.readings_deleted, result.uplinks_deleted) == (3, 3)
        remaining = [r.at[11:13] for r in await list_readings(db, DEV_A)]
        assert remaining == ["00", "04", "05"]
        assert len(await list_readings(db, DEV_B)) == 6

    @pytest.mark.asyncio
    async def test_delete_range_readings_only(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 4))

        result = await delete_range(
            db, DEV_A, "2026-10-14T00:00:00Z", "2026-10-14T03:00:00Z", DeleteScope.READINGS
        )

        assert (result.readings_deleted, result.uplinks_deleted) == (4, 0)
        assert await list_readings(db, DEV_A) == []
        assert len(await list_uplinks(db, DEV_A)) == 4

    @pytest.mark.asyncio
    async def test_delete_at_uplinks_only(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 3))

        result = await delete_at(db, DEV_A, "2026-10-14T01:00:00Z", DeleteScope.UPLINKS)

        assert (result.readings_deleted, result.uplinks_deleted) == (0, 1)
        assert len(await list_readings(db, DEV_A)) == 3
        assert [u.at for u in await list_uplinks(db, DEV_A)] == [
            "2026-10-14T00:00:00Z",
            "2026-10-14T02:00:00Z",
        ]

    @pytest.mark.asyncio
    async def test_delete_at_no_match(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 2))
        result = await delete_at(db, DEV_A, "2026-10-14T01:30:00Z")
        assert (result.readings_deleted, result.uplinks_deleted) == (0, 0)

    @pytest.mark.asyncio
    async def test_delete_device(self, db: AsyncSession) -> None:
        await _seed_hours(db, DEV_A, range(0, 3))
        await _seed_hours(db, DEV_B, range(0, 2))

        result = await delete_device(db, DEV_A)

        assert (result.readings_deleted, result.uplinks_deleted) == (3, 3)
        assert [d["dev_eui"] for d in await list_devices(db)] == [DEV_B]

    @pytest.mark.parametrize(
        ("scope", "readings", "uplinks"),
        [(DeleteScope.READINGS, True, False), (DeleteScope.UPLINKS, False, True), (DeleteScope.BOTH, True, True)],
    )
    def test_scope_flags(self, scope: DeleteScope, readings: bool, uplinks: bool) -> None:
        assert (scope.readings, scope.uplinks) == (readings, uplinks)
