"""
Pydantic models for normalized LoRaWAN uplinks.

Defines the provider-agnostic NormalizedUplink record that the normalizer
produces from a raw webhook document and the ingestion store persists.
Every field except ``provider`` and ``timestamp`` is optional: a completely
unrecognised document still yields a valid, mostly-empty record.

CHANGELOG:
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


class Provider(str, Enum):
    """Network-server family, detected from the document's top-level shape."""

    TTN = "ttn"
    CHIRPSTACK = "chirpstack"
    GENERIC_DEVICE = "generic-device"
    GENERIC = "generic"


class NormalizedUplink(BaseModel):
    """A single uplink after provider-specific fields have been resolved.

    Attributes:
        provider: Detected network-server family.
        dev_eui: Device EUI as 16 lowercase hex characters. Identifiers that
            are neither hex nor base64 of 8 bytes are kept lower-cased as-is.
        dev_eui_base64: Original base64 text when the EUI arrived encoded.
        device_name: Network-server device name / id.
        application_id: Network-server application id.
        application_name: Network-server application name.
        timestamp: ISO-8601 reception time as given by the producer, or the
            normalization time when the document carries none.
        deduplication_id: Producer deduplication id or frame counter.
        rssi: Best RSSI across gateway reports (dBm).
        snr: SNR paired with the best RSSI (dB).
        battery_mv: Battery level in millivolts.
        meter_value: Parsed meter reading.
        meter_value_raw: Meter reading exactly as found, before parsing.
        decoded_object: Provider-decoded payload object.
        raw_payload: The entire original document.
    """

    provider: Provider = Provider.GENERIC
    dev_eui: str | None = None
    dev_eui_base64: str | None = None
    device_name: str | None = None
    application_id: str | None = None
    application_name: str | None = None
    timestamp: str
    deduplication_id: str | None = None
    rssi: float | None = None
    snr: float | None = None
    battery_mv: int | None = None
    meter_value: float | None = None
    meter_value_raw: int | float | str | None = None
    decoded_object: dict[str, Any] | None = None
    raw_payload: Any = None
