"""
Ingestion store: idempotent persistence of normalized uplinks.

Every accepted uplink is written to the ``uplinks`` log, upserted on
(dev_eui, deduplication_id); uplinks carrying a parsed meter value are also
upserted into ``readings`` on (dev_eui, at). Both writes use the database's
native INSERT ... ON CONFLICT DO UPDATE, so concurrent redeliveries of the
same key cannot produce duplicate rows, and the newest delivery wins.

Uplinks without a device identity are dropped (nothing written). Storage
failures are rolled back, logged and reported to the caller as an ``error``
outcome rather than raised: the webhook must still acknowledge the
delivery, since network servers retry non-2xx responses.

CHANGELOG:
- 2026-10-18: Report every write failure as an error outcome
- 2026-10-17: Report outcomes to the recent-events log
- 2026-10-15: Invalidate the latest-uplink cache after a successful write
- 2026-10-14: Initial creation

TODO:
- None
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from meterlink.cache.redis_client import invalidate_device_cache
from meterlink.db.models import Reading, Uplink
from meterlink.models import NormalizedUplink
from meterlink.normalizer import normalize, to_int64
from meterlink.services.events import EventLog

logger = logging.getLogger(__name__)

_UPLINK_KEY = ("dev_eui", "deduplication_id")
_READING_KEY = ("dev_eui", "at")

# Columns overwritten when a redelivery hits an existing row. The key
# columns and the uplink's surrogate id are never touched.
_UPLINK_MERGE_COLUMNS = (
    "at",
    "provider",
    "device_name",
    "application_id",
    "application_name",
    "meter_value",
    "meter_value_raw",
    "battery_mv",
    "rssi",
    "snr",
    "decoded_json",
    "payload_json",
)
_READING_MERGE_COLUMNS = (
    "meter_value",
    "meter_value_raw",
    "device_name",
    "application_id",
    "application_name",
    "deduplication_id",
    "battery_mv",
    "rssi",
    "snr",
)


class IngestStatus(str, Enum):
    """What happened to one delivery."""

    STORED = "stored"
    DROPPED = "dropped"
    ERROR = "error"


@dataclass(frozen=True)
class IngestOutcome:
    """Result of ingesting one normalized uplink.

    Attributes:
        status: stored, dropped (no device identity) or error (storage).
        uplink: The normalized uplink that was processed.
        reading_stored: Whether a reading row was written.
        reason: Short diagnostic for dropped/error outcomes.
    """

    status: IngestStatus
    uplink: NormalizedUplink
    reading_stored: bool = False
    reason: str | None = None

    @property
    def dev_eui(self) -> str | None:
        return self.uplink.dev_eui


def synthesize_deduplication_id(dev_eui: str, at: str) -> str:
    """Deduplication id for deliveries that carry none."""
    return f"{dev_eui}:{at}"


def _insert(db: AsyncSession, model: type[Uplink] | type[Reading]) -> Any:
    """Build a dialect-specific INSERT supporting ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise RuntimeError(f"Unsupported database dialect for upserts: {dialect}")


def _text_or_none(value: Any) -> str | None:
    return None if value is None else str(value)


def _uplink_row(uplink: NormalizedUplink) -> dict[str, Any]:
    if not uplink.dev_eui:
        raise ValueError("uplink without dev_eui cannot be stored")
    return {
        "dev_eui": uplink.dev_eui,
        "at": uplink.timestamp,
        "provider": uplink.provider.value,
        "device_name": uplink.device_name,
        "application_id": uplink.application_id,
        "application_name": uplink.application_name,
        "deduplication_id": uplink.deduplication_id
        or synthesize_deduplication_id(uplink.dev_eui, uplink.timestamp),
        "meter_value": uplink.meter_value,
        "meter_value_raw": _text_or_none(uplink.meter_value_raw),
        "battery_mv": to_int64(uplink.battery_mv),
        "rssi": to_int64(uplink.rssi),
        "snr": uplink.snr,
        "decoded_json": uplink.decoded_object,
        "payload_json": uplink.raw_payload,
    }


def _reading_row(uplink: NormalizedUplink) -> dict[str, Any]:
    if not uplink.dev_eui:
        raise ValueError("uplink without dev_eui cannot be stored")
    return {
        "dev_eui": uplink.dev_eui,
        "at": uplink.timestamp,
        "meter_value": uplink.meter_value,
        "meter_value_raw": _text_or_none(uplink.meter_value_raw),
        "device_name": uplink.device_name,
        "application_id": uplink.application_id,
        "application_name": uplink.application_name,
        "deduplication_id": uplink.deduplication_id,
        "battery_mv": to_int64(uplink.battery_mv),
        "rssi": to_int64(uplink.rssi),
        "snr": uplink.snr,
    }


async def record_uplink(db: AsyncSession, uplink: NormalizedUplink) -> None:
    """Upsert the uplink log row for (dev_eui, deduplication_id).

    A missing or empty deduplication id is synthesized as
    ``"<dev_eui>:<at>"`` so id-less redeliveries still collapse. On conflict
    every non-key column is overwritten with this delivery's values. Does
    not commit.

    Args:
        db: Async SQLAlchemy session.
        uplink: Normalized uplink with a device identity.
    """
    stmt = _insert(db, Uplink).values(**_uplink_row(uplink))
    stmt = stmt.on_conflict_do_update(
        index_elements=list(_UPLINK_KEY),
        set_={column: stmt.excluded[column] for column in _UPLINK_MERGE_COLUMNS},
    )
    await db.execute(stmt)


async def record_reading(db: AsyncSession, uplink: NormalizedUplink) -> bool:
    """Upsert the reading for (dev_eui, at) if the uplink carries a meter value.

    Returns:
        bool: True if a reading row was written. Does not commit.
    """
    if uplink.meter_value is None:
        return False
    stmt = _insert(db, Reading).values(**_reading_row(uplink))
    stmt = stmt.on_conflict_do_update(
        index_elements=list(_READING_KEY),
        set_={column: stmt.excluded[column] for column in _READING_MERGE_COLUMNS},
    )
    await db.execute(stmt)
    return True


async def ingest_uplink(
    db: AsyncSession,
    uplink: NormalizedUplink,
    events: EventLog | None = None,
) -> IngestOutcome:
    """Persist one normalized uplink and report what happened.

    Writes the uplink row and, when a meter value was parsed, the reading
    row in a single transaction. Never raises for data or storage problems.

    Args:
        db: Async SQLAlchemy session.
        uplink: The normalized uplink.
        events: Optional recent-events log to record the outcome in.

    Returns:
        IngestOutcome: stored, dropped or error.
    """
    if not uplink.dev_eui:
        logger.warning(
            "Dropped uplink without device identity provider=%s at=%s",
            uplink.provider.value,
            uplink.timestamp,
        )
        if events is not None:
            events.push(
                "up-missing",
                provider=uplink.provider.value,
                devEui=uplink.dev_eui_base64,
                meterValue=uplink.meter_value,
                at=uplink.timestamp,
            )
        return IngestOutcome(IngestStatus.DROPPED, uplink, reason="no device identity")

    try:
        await record_uplink(db, uplink)
        reading_stored = await record_reading(db, uplink)
        await db.commit()
    except Exception as exc:
        logger.exception(
            "Failed to store uplink for device %s at %s",
            uplink.dev_eui,
            uplink.timestamp,
        )
        await _rollback_quietly(db)
        if events is not None:
            events.push("up-error", devEui=uplink.dev_eui, at=uplink.timestamp)
        return IngestOutcome(IngestStatus.ERROR, uplink, reason=type(exc).__name__)

    logger.info(
        "Stored uplink dev_eui=%s meter=%s battery_mv=%s at=%s reading=%s",
        uplink.dev_eui,
        uplink.meter_value,
        uplink.battery_mv,
        uplink.timestamp,
        reading_stored,
    )
    await invalidate_device_cache(uplink.dev_eui)
    if events is not None:
        events.push(
            "up",
            provider=uplink.provider.value,
            devEui=uplink.dev_eui,
            meterValue=uplink.meter_value,
            battery_mv=uplink.battery_mv,
            rssi=uplink.rssi,
            snr=uplink.snr,
            at=uplink.timestamp,
        )
    return IngestOutcome(IngestStatus.STORED, uplink, reading_stored=reading_stored)


async def ingest_document(
    db: AsyncSession,
    document: Any,
    events: EventLog | None = None,
) -> IngestOutcome:
    """Normalize a raw webhook document and ingest it."""
    return await ingest_uplink(db, normalize(document), events)


async def _rollback_quietly(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError:
        logger.warning("Rollback after failed ingest also failed", exc_info=True)
