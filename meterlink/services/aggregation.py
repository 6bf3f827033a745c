"""
Aggregation service for daily consumption series and device summaries.

Meters report a monotonically growing counter, so consumption for a local
calendar day is the last reading of the day minus the first. Days are
computed in Python from the reading series rather than in SQL because the
bucket boundary depends on the caller's timezone.

CHANGELOG:
- 2026-10-16: Device summaries with mean inter-arrival interval
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from meterlink.services.queries import (
    count_uplinks,
    latest_reading,
    latest_uplink,
    list_devices,
    list_readings,
    uplink_stats,
)
from meterlink.timeutil import parse_iso_timestamp, resolve_timezone

logger = logging.getLogger(__name__)

__all__ = ["DailyPoint", "DeviceSummary", "count_uplinks", "daily_consumption", "device_summaries"]


@dataclass(frozen=True)
class DailyPoint:
    """Consumption for one local calendar date.

    Attributes:
        date: Local date as ``YYYY-MM-DD``.
        consumption: Last minus first meter value of the day, or ``None``
            when the day has a single reading.
        closing: Last meter value of the day.
    """

    date: str
    consumption: float | None
    closing: float | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DeviceSummary:
    """Per-device rollup for overview screens."""

    dev_eui: str
    device_name: str | None
    last_seen: str | None
    first_seen: str | None
    battery_mv: int | None
    rssi: int | None
    snr: float | None
    total_uplinks: int
    avg_interval_seconds: int | None
    meter_value: float | None
    meter_value_raw: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


async def daily_consumption(
    db: AsyncSession,
    dev_eui: str,
    days: int,
    tz: str,
    end: datetime | str | None = None,
) -> list[DailyPoint]:
    """Bucket a device's readings into local days and compute consumption.

    The window is ``[end - days * 24h, end]`` in absolute time. Readings are
    processed in timestamp order; dates without readings are omitted.

    Args:
        db: Async database session.
        dev_eui: Device to aggregate.
        days: Window length in days.
        tz: IANA zone name or fixed UTC offset (see ``resolve_timezone``).
        end: Window end as datetime or ISO-8601 text; defaults to now.

    Returns:
        list[DailyPoint]: One point per local date, ascending.

    Raises:
        ValueError: If *tz* or *end* cannot be interpreted.
    """
    zone = resolve_timezone(tz)
    end_at = _window_end(end)
    start_at = end_at - timedelta(days=days)

    buckets: dict[str, list[float]] = {}
    for reading in await list_readings(db, dev_eui):
        moment = parse_iso_timestamp(reading.at)
        if moment is None:
            logger.warning("Skipping reading with unparseable timestamp %r for %s", reading.at, dev_eui)
            continue
        if moment < start_at or moment > end_at:
            continue
        date = moment.astimezone(zone).date().isoformat()
        buckets.setdefault(date, []).append(reading.meter_value)

    series: list[DailyPoint] = []
    for date in sorted(buckets):
        values = buckets[date]
        consumption = values[-1] - values[0] if len(values) > 1 else None
        series.append(DailyPoint(date=date, consumption=consumption, closing=values[-1]))

    logger.debug(
        "Daily consumption dev_eui=%s days=%d tz=%s points=%d",
        dev_eui,
        days,
        tz,
        len(series),
    )
    return series


def _window_end(end: datetime | str | None) -> datetime:
    if end is None:
        return datetime.now(tz=UTC)
    if isinstance(end, datetime):
        return end.replace(tzinfo=UTC) if end.tzinfo is None else end.astimezone(UTC)
    parsed = parse_iso_timestamp(end)
    if parsed is None:
        raise ValueError(f"Invalid end timestamp '{end}'")
    return parsed


def _average_interval(first_at: str | None, last_at: str | None, count: int) -> int | None:
    if count < 2:
        return None
    first = parse_iso_timestamp(first_at)
    last = parse_iso_timestamp(last_at)
    if first is None or last is None:
        return None
    return round((last - first).total_seconds() / (count - 1))


async def device_summaries(db: AsyncSession) -> list[DeviceSummary]:
    """Summarise every known device.

    Signal and battery come from the latest uplink, the meter value from
    the latest reading: not every uplink carries a parsed meter value.
    """
    summaries: list[DeviceSummary] = []
    for device in await list_devices(db):
        dev_eui = device["dev_eui"]
        last_up = await latest_uplink(db, dev_eui)
        last_read = await latest_reading(db, dev_eui)
        stats = await uplink_stats(db, dev_eui)

        summaries.append(
            DeviceSummary(
                dev_eui=dev_eui,
                device_name=device["device_name"],
                last_seen=last_up.at if last_up is not None else stats.last_at,
                first_seen=stats.first_at,
                battery_mv=last_up.battery_mv if last_up is not None else None,
                rssi=last_up.rssi if last_up is not None else None,
                snr=last_up.snr if last_up is not None else None,
                total_uplinks=stats.count,
                avg_interval_seconds=_average_interval(stats.first_at, stats.last_at, stats.count),
                meter_value=last_read.meter_value if last_read is not None else None,
                meter_value_raw=last_read.meter_value_raw if last_read is not None else None,
            )
        )
    return summaries
