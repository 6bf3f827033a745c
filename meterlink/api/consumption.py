"""
Aggregated views: daily consumption series and device summaries.

CHANGELOG:
- 2026-10-16: Add /api/device-summaries
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query

from meterlink.api.deps import AppSettings, DbSession, required_dev_eui
from meterlink.services.aggregation import daily_consumption, device_summaries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["consumption"])


@router.get("/consumption/daily")
async def get_daily_consumption(
    db: DbSession,
    settings: AppSettings,
    dev_eui: Annotated[str | None, Query(alias="devEui")] = None,
    days: Annotated[int | None, Query()] = None,
    tz: Annotated[str | None, Query()] = None,
    end: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    """Return per-local-day consumption for a device.

    Args:
        db: Async database session.
        settings: Supplies the default window (UI_DAYS) and zone (UI_TIMEZONE).
        dev_eui: Device to aggregate.
        days: Window length in days.
        tz: IANA zone name or fixed UTC offset.
        end: Window end (ISO-8601); defaults to now.

    Returns:
        dict: ``devEui``, ``days``, ``tz`` and the ``series`` of daily points.

    Raises:
        HTTPException: 400 if devEui is missing, days is not positive, or
            tz/end cannot be interpreted.
    """
    device = required_dev_eui(dev_eui)
    window = days if days is not None else settings.ui_days
    if window < 1:
        raise HTTPException(status_code=400, detail="days must be >= 1")
    zone = (tz or "").strip() or settings.ui_timezone

    try:
        series = await daily_consumption(db, device, window, zone, end or None)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None

    return {
        "devEui": device,
        "days": window,
        "tz": zone,
        "series": [point.to_dict() for point in series],
    }


@router.get("/device-summaries")
async def get_device_summaries(db: DbSession) -> dict[str, Any]:
    """Return one summary per known device."""
    summaries = await device_summaries(db)
    logger.debug("Device summaries: %d device(s)", len(summaries))
    return {"devices": [summary.to_dict() for summary in summaries]}
