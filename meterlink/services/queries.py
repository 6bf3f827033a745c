"""
Read and delete operations over the uplink log and reading series.

All time filters are closed intervals on the stored ISO-8601 text
(``from <= at <= to``); either bound may be omitted where noted. Uplinks
sharing a timestamp are ordered by their surrogate ``id``.

CHANGELOG:
- 2026-10-16: Point and range deletion with readings/uplinks/both scope
- 2026-10-14: Initial creation

TODO:
- None
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import ColumnElement, delete, func, select, union_all
from sqlalchemy.ext.asyncio import AsyncSession

from meterlink.db.models import Reading, Uplink

logger = logging.getLogger(__name__)

DEFAULT_UPLINK_LIMIT = 500


class DeleteScope(str, Enum):
    """Which table(s) a deletion applies to."""

    READINGS = "readings"
    UPLINKS = "uplinks"
    BOTH = "both"

    @property
    def readings(self) -> bool:
        return self in (DeleteScope.READINGS, DeleteScope.BOTH)

    @property
    def uplinks(self) -> bool:
        return self in (DeleteScope.UPLINKS, DeleteScope.BOTH)


@dataclass(frozen=True)
class DeleteResult:
    """Row counts removed by a delete operation."""

    readings_deleted: int = 0
    uplinks_deleted: int = 0


@dataclass(frozen=True)
class UplinkStats:
    """Count and time span of a device's uplinks."""

    count: int
    first_at: str | None
    last_at: str | None


def _time_bounds(column: Any, from_: str | None, to: str | None) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if from_:
        clauses.append(column >= from_)
    if to:
        clauses.append(column <= to)
    return clauses


async def list_devices(db: AsyncSession) -> list[dict[str, Any]]:
    """List every device seen in either table, ordered by dev_eui.

    Returns:
        list[dict]: ``{"dev_eui", "device_name"}`` per device; the name is
        the greatest non-null name recorded for it.
    """
    seen = union_all(
        select(Reading.dev_eui, Reading.device_name),
        select(Uplink.dev_eui, Uplink.device_name),
    ).subquery()
    stmt = (
        select(seen.c.dev_eui, func.max(seen.c.device_name).label("device_name"))
        .group_by(seen.c.dev_eui)
        .order_by(seen.c.dev_eui.asc())
    )
    result = await db.execute(stmt)
    return [dict(row) for row in result.mappings().all()]


async def list_readings(
    db: AsyncSession,
    dev_eui: str,
    from_: str | None = None,
    to: str | None = None,
) -> list[Reading]:
    """Return a device's readings within ``[from_, to]``, oldest first."""
    stmt = (
        select(Reading)
        .where(Reading.dev_eui == dev_eui, *_time_bounds(Reading.at, from_, to))
        .order_by(Reading.at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_uplinks(
    db: AsyncSession,
    dev_eui: str,
    from_: str | None = None,
    to: str | None = None,
    limit: int = DEFAULT_UPLINK_LIMIT,
) -> list[Uplink]:
    """Return the most recent *limit* uplinks within ``[from_, to]``.

    The newest rows are selected, then returned oldest first. *limit* is
    floored at 1.
    """
    stmt = (
        select(Uplink)
        .where(Uplink.dev_eui == dev_eui, *_time_bounds(Uplink.at, from_, to))
        .order_by(Uplink.at.desc(), Uplink.id.desc())
        .limit(max(1, limit))
    )
    result = await db.execute(stmt)
    rows = list(result.scalars().all())
    rows.reverse()
    return rows


async def latest_reading(db: AsyncSession, dev_eui: str) -> Reading | None:
    """Return the device's reading with the greatest timestamp."""
    stmt = (
        select(Reading)
        .where(Reading.dev_eui == dev_eui)
        .order_by(Reading.at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def latest_uplink(db: AsyncSession, dev_eui: str) -> Uplink | None:
    """Return the device's latest uplink (ties broken by insertion order)."""
    stmt = (
        select(Uplink)
        .where(Uplink.dev_eui == dev_eui)
        .order_by(Uplink.at.desc(), Uplink.id.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def count_uplinks(
    db: AsyncSession,
    dev_eui: str | None,
    from_: str,
    to: str,
) -> int:
    """Count uplinks with ``from_ <= at <= to``, optionally for one device."""
    stmt = select(func.count()).select_from(Uplink).where(Uplink.at >= from_, Uplink.at <= to)
    if dev_eui:
        stmt = stmt.where(Uplink.dev_eui == dev_eui)
    result = await db.execute(stmt)
    return int(result.scalar_one() or 0)


async def uplink_stats(db: AsyncSession, dev_eui: str) -> UplinkStats:
    """Return count, earliest and latest ``at`` of a device's uplinks."""
    stmt = select(
        func.count().label("count"),
        func.min(Uplink.at).label("first_at"),
        func.max(Uplink.at).label("last_at"),
    ).where(Uplink.dev_eui == dev_eui)
    row = (await db.execute(stmt)).mappings().one()
    return UplinkStats(count=int(row["count"] or 0), first_at=row["first_at"], last_at=row["last_at"])


async def _delete(
    db: AsyncSession,
    dev_eui: str,
    scope: DeleteScope,
    reading_clauses: list[ColumnElement[bool]],
    uplink_clauses: list[ColumnElement[bool]],
) -> DeleteResult:
    readings_deleted = uplinks_deleted = 0
    if scope.readings:
        result = await db.execute(
            delete(Reading).where(Reading.dev_eui == dev_eui, *reading_clauses)
        )
        readings_deleted = result.rowcount or 0
    if scope.uplinks:
        result = await db.execute(
            delete(Uplink).where(Uplink.dev_eui == dev_eui, *uplink_clauses)
        )
        uplinks_deleted = result.rowcount or 0
    await db.commit()

    logger.info(
        "Deleted %d reading(s) and %d uplink(s) for device %s (scope=%s)",
        readings_deleted,
        uplinks_deleted,
        dev_eui,
        scope.value,
    )
    return DeleteResult(readings_deleted=readings_deleted, uplinks_deleted=uplinks_deleted)


async def delete_device(db: AsyncSession, dev_eui: str) -> DeleteResult:
    """Remove every reading and uplink of a device."""
    return await _delete(db, dev_eui, DeleteScope.BOTH, [], [])


async def delete_at(
    db: AsyncSession,
    dev_eui: str,
    at: str,
    scope: DeleteScope = DeleteScope.BOTH,
) -> DeleteResult:
    """Remove the rows of a device stored at exactly *at*."""
    return await _delete(db, dev_eui, scope, [Reading.at == at], [Uplink.at == at])


async def delete_range(
    db: AsyncSession,
    dev_eui: str,
    from_: str,
    to: str,
    scope: DeleteScope = DeleteScope.BOTH,
) -> DeleteResult:
    """Remove the rows of a device with ``from_ <= at <= to``."""
    return await _delete(
        db,
        dev_eui,
        scope,
        [Reading.at >= from_, Reading.at <= to],
        [Uplink.at >= from_, Uplink.at <= to],
    )
