"""
SQLAlchemy ORM models for the meterlink database.

Two independently keyed tables:

- ``uplinks``: one row per accepted delivery, unique on
  (dev_eui, deduplication_id) so redeliveries merge in place. The integer
  ``id`` orders deliveries that share a timestamp.
- ``readings``: the deduplicated meter series, composite primary key
  (dev_eui, at), one observation per device and instant.

Timestamps are stored as the producer's ISO-8601 text. Fixed-width ISO-8601
sorts like chronological order, so range filters compare strings.

CHANGELOG:
- 2026-10-16: Add battery_mv/rssi/snr to readings (revision 002)
- 2026-10-14: Initial creation

TODO:
- None
"""

from typing import Any

from sqlalchemy import JSON, Double, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all meterlink ORM models."""

    pass


class Uplink(Base):
    """One accepted webhook delivery for a device.

    Attributes:
        id: Surrogate key, assigned once and never changed by merges.
        dev_eui: Device EUI (lowercase hex).
        at: ISO-8601 reception timestamp.
        provider: Detected network-server family.
        device_name: Network-server device name.
        application_id: Network-server application id.
        application_name: Network-server application name.
        deduplication_id: Producer id, or ``"<dev_eui>:<at>"`` if none.
        meter_value: Parsed meter reading (nullable).
        meter_value_raw: Meter reading text before parsing (nullable).
        battery_mv: Battery level in millivolts (nullable).
        rssi: Best gateway RSSI in dBm (nullable).
        snr: SNR paired with the best RSSI (nullable).
        decoded_json: Provider-decoded payload object (nullable).
        payload_json: Entire original document (nullable).
    """

    __tablename__ = "uplinks"
    __table_args__ = (
        UniqueConstraint("dev_eui", "deduplication_id", name="uq_uplinks_dev_dedup"),
        Index("idx_uplinks_dev_at", "dev_eui", "at"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    dev_eui: Mapped[str] = mapped_column(Text, nullable=False)
    at: Mapped[str] = mapped_column(Text, nullable=False)
    provider: Mapped[str | None] = mapped_column(Text, nullable=True)
    device_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    application_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    application_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    deduplication_id: Mapped[str] = mapped_column(Text, nullable=False)
    meter_value: Mapped[float | None] = mapped_column(Double, nullable=True)
    meter_value_raw: Mapped[str | None] = mapped_column(Text, nullable=True)
    battery_mv: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rssi: Mapped[int | None] = mapped_column(Integer, nullable=True)
    snr: Mapped[float | None] = mapped_column(Double, nullable=True)
    decoded_json: Mapped[Any] = mapped_column(JSON(none_as_null=True), nullable=True)
    payload_json: Mapped[Any] = mapped_column(JSON(none_as_null=True), nullable=True)

    def __repr__(self) -> str:
        """Return string representation of the Uplink."""
        return (
            f"Uplink(id={self.id!r}, dev_eui={self.dev_eui!r}, "
            f"at={self.at!r}, deduplication_id={self.deduplication_id!r})"
        )


class Reading(Base):
    """One parsed meter observation for a device at one instant.

    Attributes:
        dev_eui: Device EUI (lowercase hex).
        at: ISO-8601 observation timestamp.
        meter_value: Parsed meter reading.
        meter_value_raw: Meter reading text before parsing.
        device_name: Network-server device name.
        application_id: Network-server application id.
        application_name: Network-server application name.
        deduplication_id: Producer deduplication id, as delivered.
        battery_mv: Battery level in millivolts.
        rssi: Best gateway RSSI in dBm.
        snr: SNR paired with the best RSSI.
    """

    __tablename__ = "readings"

    dev_eui: Mapped[str] = mapped_column(Text, primary_key=True, nullable=False)
    at: Mapped[str] = mapped_column(Text, primary_key=True, nullable=False)
    meter_value: Mapped[float] = mapped_column(Double, nullable=False)
    meter_value_raw: Mapped[str | None] = mapped_column(Text, nullable=True)
    device_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    application_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    application_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    deduplication_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    battery_mv: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rssi: Mapped[int | None] = mapped_column(Integer, nullable=True)
    snr: Mapped[float | None] = mapped_column(Double, nullable=True)

    def __repr__(self) -> str:
        """Return string representation of the Reading."""
        return (
            f"Reading(dev_eui={self.dev_eui!r}, at={self.at!r}, "
            f"meter_value={self.meter_value!r})"
        )
