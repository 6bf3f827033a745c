"""
Query and delete endpoints over the uplink log and reading series.

All time bounds are ISO-8601 strings compared as stored; ranges are
inclusive on both ends. Device EUIs in query parameters are trimmed and
lower-cased to match the stored form.

CHANGELOG:
- 2026-10-18: Invalidate the latest-uplink cache after deleting uplinks
- 2026-10-17: Serve /api/last-uplink from the optional Redis cache
- 2026-10-16: Point and range deletion endpoints
- 2026-10-14: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query

from meterlink.api.deps import AppSettings, DbSession, required_dev_eui
from meterlink.cache.redis_client import (
    get_cached_json,
    invalidate_device_cache,
    last_uplink_key,
    set_cached_json,
)
from meterlink.db.models import Reading, Uplink
from meterlink.services.queries import (
    DeleteResult,
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
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["readings"])

DevEuiParam = Annotated[str | None, Query(alias="devEui")]
FromParam = Annotated[str | None, Query(alias="from")]
ToParam = Annotated[str | None, Query()]


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------


def reading_to_dict(reading: Reading) -> dict[str, Any]:
    """Serialise a Reading row to a JSON-compatible dict."""
    return {
        "dev_eui": reading.dev_eui,
        "at": reading.at,
        "meter_value": reading.meter_value,
        "meter_value_raw": reading.meter_value_raw,
        "device_name": reading.device_name,
        "application_id": reading.application_id,
        "application_name": reading.application_name,
        "deduplication_id": reading.deduplication_id,
        "battery_mv": reading.battery_mv,
        "rssi": reading.rssi,
        "snr": reading.snr,
    }


def uplink_to_dict(uplink: Uplink) -> dict[str, Any]:
    """Serialise an Uplink row, including its decoded and raw JSON documents."""
    return {
        "id": uplink.id,
        "dev_eui": uplink.dev_eui,
        "at": uplink.at,
        "provider": uplink.provider,
        "device_name": uplink.device_name,
        "application_id": uplink.application_id,
        "application_name": uplink.application_name,
        "deduplication_id": uplink.deduplication_id,
        "meter_value": uplink.meter_value,
        "meter_value_raw": uplink.meter_value_raw,
        "battery_mv": uplink.battery_mv,
        "rssi": uplink.rssi,
        "snr": uplink.snr,
        "decoded_json": uplink.decoded_json,
        "payload_json": uplink.payload_json,
    }


def _required_bounds(from_: str | None, to: str | None) -> tuple[str, str]:
    from_ = (from_ or "").strip()
    to = (to or "").strip()
    if not from_ or not to:
        raise HTTPException(status_code=400, detail="from and to are required (ISO timestamps)")
    return from_, to


def _delete_response(result: DeleteResult, **fields: Any) -> dict[str, Any]:
    return {
        **fields,
        "readings_deleted": result.readings_deleted,
        "uplinks_deleted": result.uplinks_deleted,
    }


def _scope(source: str | None) -> DeleteScope:
    try:
        return DeleteScope((source or "both").strip().lower())
    except ValueError:
        return DeleteScope.BOTH


# ---------------------------------------------------------------------------
# Read routes
# ---------------------------------------------------------------------------


@router.get("/devices")
async def get_devices(db: DbSession) -> dict[str, Any]:
    """List every known device with its most recent name."""
    return {"devices": await list_devices(db)}


@router.get("/readings")
async def get_readings(
    db: DbSession,
    dev_eui: DevEuiParam = None,
    from_: FromParam = None,
    to: ToParam = None,
) -> dict[str, Any]:
    """Return a device's reading series, oldest first."""
    device = required_dev_eui(dev_eui)
    readings = await list_readings(db, device, from_ or None, to or None)
    return {"devEui": device, "readings": [reading_to_dict(r) for r in readings]}


@router.get("/uplinks")
async def get_uplinks(
    db: DbSession,
    settings: AppSettings,
    dev_eui: DevEuiParam = None,
    from_: FromParam = None,
    to: ToParam = None,
    limit: Annotated[int | None, Query()] = None,
) -> dict[str, Any]:
    """Return the most recent uplinks of a device, oldest first."""
    device = required_dev_eui(dev_eui)
    rows = await list_uplinks(
        db,
        device,
        from_ or None,
        to or None,
        limit=limit if limit is not None else settings.uplink_list_limit,
    )
    return {"devEui": device, "uplinks": [uplink_to_dict(u) for u in rows]}


@router.get("/last-reading")
async def get_last_reading(db: DbSession, dev_eui: DevEuiParam = None) -> dict[str, Any]:
    """Return a device's latest reading, or ``null``."""
    device = required_dev_eui(dev_eui)
    reading = await latest_reading(db, device)
    return {"devEui": device, "last": reading_to_dict(reading) if reading is not None else None}


@router.get("/last-uplink")
async def get_last_uplink(
    db: DbSession,
    settings: AppSettings,
    dev_eui: DevEuiParam = None,
) -> dict[str, Any]:
    """Return a device's latest uplink, or ``null``.

    Served from the Redis cache when configured; the cache entry is
    invalidated whenever the device stores a new uplink.
    """
    device = required_dev_eui(dev_eui)
    cache_key = last_uplink_key(device)

    cached = await get_cached_json(cache_key)
    if cached is not None:
        return {"devEui": device, "last": cached}

    uplink = await latest_uplink(db, device)
    if uplink is None:
        return {"devEui": device, "last": None}

    last = uplink_to_dict(uplink)
    await set_cached_json(cache_key, last, settings.cache_ttl_s)
    return {"devEui": device, "last": last}


@router.get("/tx-count")
async def get_tx_count(
    db: DbSession,
    dev_eui: DevEuiParam = None,
    from_: FromParam = None,
    to: ToParam = None,
) -> dict[str, Any]:
    """Count uplinks in ``[from, to]``, for one device or all."""
    start, end = _required_bounds(from_, to)
    device = (dev_eui or "").strip().lower() or None
    count = await count_uplinks(db, device, start, end)
    return {"devEui": device, "from": start, "to": end, "count": count}


# ---------------------------------------------------------------------------
# Delete routes
# ---------------------------------------------------------------------------


@router.delete("/devices/{dev_eui}")
async def remove_device(db: DbSession, dev_eui: str) -> dict[str, Any]:
    """Delete every reading and uplink of a device."""
    device = required_dev_eui(dev_eui)
    result = await delete_device(db, device)
    await invalidate_device_cache(device)
    return _delete_response(result, devEui=device)


@router.delete("/data-point")
async def remove_data_point(
    db: DbSession,
    dev_eui: DevEuiParam = None,
    at: Annotated[str | None, Query()] = None,
    source: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    """Delete the rows of a device stored at exactly ``at``.

    ``source`` selects ``readings``, ``uplinks`` or ``both`` (default;
    unrecognised values also mean both).
    """
    device = required_dev_eui(dev_eui)
    at = (at or "").strip()
    if not at:
        raise HTTPException(status_code=400, detail="at is required (ISO timestamp)")
    scope = _scope(source)
    result = await delete_at(db, device, at, scope)
    if scope.uplinks:
        await invalidate_device_cache(device)
    return _delete_response(result, devEui=device, at=at, source=scope.value)


@router.delete("/data-range")
async def remove_data_range(
    db: DbSession,
    dev_eui: DevEuiParam = None,
    from_: FromParam = None,
    to: ToParam = None,
    source: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    """Delete the rows of a device with ``from <= at <= to``."""
    device = required_dev_eui(dev_eui)
    start, end = _required_bounds(from_, to)
    if start > end:
        raise HTTPException(status_code=400, detail="from must be <= to")
    scope = _scope(source)
    result = await delete_range(db, device, start, end, scope)
    if scope.uplinks:
        await invalidate_device_cache(device)
    return _delete_response(result, devEui=device, **{"from": start, "to": end}, source=scope.value)
