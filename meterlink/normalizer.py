"""
Pure normalizer that converts a raw network-server webhook document into a
NormalizedUplink.

Handles The Things Network v3 (``end_device_ids`` / ``uplink_message``),
ChirpStack v3/v4 (``deviceInfo`` / ``rxInfo`` / ``object`` / ``objectJSON``)
and generic forwarders that post flat documents. Vendor differences are
expressed only as the priority order of candidate paths; the resolution
logic itself is shared.

Meter values and numeric parsing are ordered fallback chains: each strategy
is a small pure function returning a result or ``None``, and the first
result wins.

This is a pure function: no I/O and no side effects. The wall clock is only
consulted when the document carries no timestamp, and can be injected via
``now``.

CHANGELOG:
- 2026-10-18: Skip non-scalar text candidates, bound integers to 64-bit and
  keep raw meter values too large for a float
- 2026-10-17: Limit odometer regrouping to 1-3 trailing digits
- 2026-10-16: Fall back to top-level RSSI/SNR when no gateway list exists
- 2026-10-15: Accept base64-encoded device EUIs (ChirpStack v3)
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from meterlink.models import NormalizedUplink, Provider
from meterlink.resolver import (
    Path,
    decode_base64_bytes,
    decode_base64_text,
    first_present,
    parse_json_object,
    resolve_path,
    search_by_key_names,
    to_number,
)
from meterlink.timeutil import utc_now_iso

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Candidate paths, provider-specific first, generic fallbacks last.
# ---------------------------------------------------------------------------

DEV_EUI_PATHS: tuple[Path, ...] = (
    ("deviceInfo", "devEui"),
    ("end_device_ids", "dev_eui"),
    ("endDeviceIds", "devEui"),
    ("device", "devEui"),
    ("devEui",),
    ("devEUI",),
    ("dev_eui",),
    ("deviceEui",),
)

DEVICE_NAME_PATHS: tuple[Path, ...] = (
    ("deviceInfo", "deviceName"),
    ("end_device_ids", "device_id"),
    ("endDeviceIds", "deviceId"),
    ("device", "name"),
    ("deviceName",),
)

APPLICATION_ID_PATHS: tuple[Path, ...] = (
    ("deviceInfo", "applicationId"),
    ("end_device_ids", "application_ids", "application_id"),
    ("endDeviceIds", "applicationIds", "applicationId"),
    ("applicationId",),
)

APPLICATION_NAME_PATHS: tuple[Path, ...] = (
    ("deviceInfo", "applicationName"),
    ("applicationName",),
)

TIMESTAMP_PATHS: tuple[Path, ...] = (
    ("time",),
    ("publishedAt",),
    ("received_at",),
    ("uplink_message", "received_at"),
)

DEDUPLICATION_PATHS: tuple[Path, ...] = (
    ("deduplicationId",),
    ("deduplication_id",),
    ("uplink_message", "f_cnt"),
    ("f_cnt",),
)

GATEWAY_LIST_PATHS: tuple[Path, ...] = (
    ("rxInfo",),
    ("uplink_message", "rx_metadata"),
)

GATEWAY_RSSI_PATHS: tuple[Path, ...] = (("rssi",), ("channel_rssi",))
GATEWAY_SNR_PATHS: tuple[Path, ...] = (("loRaSNR",), ("loraSNR",), ("snr",))

TOP_LEVEL_RSSI_PATHS: tuple[Path, ...] = (("rssi",), ("uplink_message", "rssi"))
TOP_LEVEL_SNR_PATHS: tuple[Path, ...] = (
    ("loRaSNR",),
    ("loraSNR",),
    ("snr",),
    ("uplink_message", "snr"),
)

DECODED_OBJECT_PATHS: tuple[Path, ...] = (
    ("object",),
    ("decoded_payload",),
    ("uplink_message", "decoded_payload"),
)
DECODED_JSON_PATHS: tuple[Path, ...] = (("objectJSON",), ("objectJson",))

METER_PATHS: tuple[Path, ...] = (
    ("meterValue",),
    ("meter_value",),
    ("message",),
    ("uplink_message", "decoded_payload", "meterValue"),
)
METER_KEYS = ("meterValue", "meter_value", "meter", "reading", "counter", "message", "value")

RADIO_PAYLOAD_PATHS: tuple[Path, ...] = (
    ("data",),
    ("frm_payload",),
    ("uplink_message", "frm_payload"),
    ("payload_raw",),
)

BATTERY_PATHS: tuple[Path, ...] = (
    ("battery_mv",),
    ("batteryMv",),
    ("uplink_message", "decoded_payload", "battery_mv"),
)
BATTERY_KEYS = (
    "battery_mv",
    "batteryMv",
    "battery_mV",
    "battery",
    "battery_voltage",
    "batteryVoltage",
    "batt",
    "voltage",
)

_PROVIDER_MARKERS: tuple[tuple[str, Provider], ...] = (
    ("end_device_ids", Provider.TTN),
    ("deviceInfo", Provider.CHIRPSTACK),
    ("device", Provider.GENERIC_DEVICE),
)

# Batteries report either volts (3.6) or millivolts (3600); anything in this
# open interval is taken as volts.
_VOLTS_RANGE = (0.0, 20.0)

# Integer columns are signed 64-bit.
_INT64_RANGE = (-(2**63), 2**63 - 1)

_HEX16_RE = re.compile(r"^[0-9a-fA-F]{16}$")
# Mechanical meters display five integer digits and 1-3 fractional wheels.
_ODOMETER_RE = re.compile(r"^(\d{5})(\d{1,3})$")
_ODOMETER_PREFIX_RE = re.compile(r"^(\d{5})(\d{1,3})(?!\d)")
_EMBEDDED_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


# ---------------------------------------------------------------------------
# Small coercion helpers
# ---------------------------------------------------------------------------


def _as_text(value: Any) -> str | None:
    """Stringify a JSON scalar; containers and booleans are not identifiers."""
    if value is None or isinstance(value, (bool, Mapping, list)):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _first_text(document: Any, paths: tuple[Path, ...]) -> str | None:
    """Return the first candidate that stringifies; objects and lists are skipped."""
    for path in paths:
        text = _as_text(resolve_path(document, path))
        if text is not None:
            return text
    return None


def to_int64(value: float | None) -> int | None:
    """Round to an integer column value; out-of-range values become ``None``."""
    if value is None:
        return None
    rounded = round(value)
    low, high = _INT64_RANGE
    return rounded if low <= rounded <= high else None


def detect_provider(document: Any) -> Provider:
    """Classify a document by its end-device identity block."""
    if not isinstance(document, Mapping):
        return Provider.GENERIC
    for key, provider in _PROVIDER_MARKERS:
        if document.get(key) not in (None, False, "", 0):
            return provider
    return Provider.GENERIC


def normalize_dev_eui(value: Any) -> tuple[str | None, str | None]:
    """Return ``(hex, base64)`` for a raw device EUI value.

    16 hex characters are lower-cased. Otherwise the value is tried as
    base64 of exactly 8 bytes (keeping the base64 text). Anything else is
    accepted lower-cased as-is.
    """
    if not isinstance(value, str):
        return None, None
    text = value.strip()
    if not text:
        return None, None
    if _HEX16_RE.match(text):
        return text.lower(), None
    decoded = decode_base64_bytes(text)
    if decoded is not None and len(decoded) == 8:
        return decoded.hex(), text
    return text.lower(), None


# ---------------------------------------------------------------------------
# Signal quality
# ---------------------------------------------------------------------------


def best_signal(records: list[Any]) -> tuple[float | None, float | None]:
    """Pick ``(rssi, snr)`` from the gateway record with the greatest RSSI.

    Records without a usable RSSI are ignored; ties keep the first record.
    """
    best_rssi: float | None = None
    best_snr: float | None = None
    for record in records:
        rssi = to_number(first_present(record, GATEWAY_RSSI_PATHS))
        if rssi is None:
            continue
        if best_rssi is None or rssi > best_rssi:
            best_rssi = rssi
            best_snr = to_number(first_present(record, GATEWAY_SNR_PATHS))
    return best_rssi, best_snr


def _gateway_records(document: Any) -> list[Any]:
    records: list[Any] = []
    for path in GATEWAY_LIST_PATHS:
        value = resolve_path(document, path)
        if isinstance(value, list):
            records.extend(value)
    return records


# ---------------------------------------------------------------------------
# Meter value: numeric parsing chain
# ---------------------------------------------------------------------------


def _parse_direct(text: str) -> float | None:
    candidate = text.replace(",", ".", 1)
    if not _DECIMAL_RE.match(candidate):
        return None
    return float(candidate)


def _parse_odometer(text: str) -> float | None:
    match = _ODOMETER_RE.match(text)
    if match is None:
        return None
    return float(f"{match.group(1)}.{match.group(2)}")


def _parse_embedded(text: str) -> float | None:
    match = _EMBEDDED_NUMBER_RE.search(text.replace(",", ".", 1))
    if match is None:
        return None
    return float(match.group(0))


_NUMBER_PARSERS: tuple[Callable[[str], float | None], ...] = (
    _parse_direct,
    _parse_odometer,
    _parse_embedded,
)


def parse_meter_number(raw: Any) -> tuple[float | None, int | float | str | None]:
    """Parse a meter reading, returning ``(value, raw)``.

    Numbers pass through when finite; integers too large for a float keep
    only ``raw``. Strings go through the parsing chain: plain number (first comma as decimal separator), odometer regrouping of
    5 + 1-3 digits, then the first signed decimal embedded in the text. The
    stripped string is kept as ``raw`` even when no strategy succeeds.
    """
    if isinstance(raw, bool):
        return None, None
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            return None, None
        try:
            return float(raw), raw
        except OverflowError:
            return None, raw
    if not isinstance(raw, str):
        return None, None

    text = raw.strip()
    if not text:
        return None, None
    for parser in _NUMBER_PARSERS:
        value = parser(text)
        if value is not None and math.isfinite(value):
            return value, text
    return None, text


# ---------------------------------------------------------------------------
# Meter value: source chain
# ---------------------------------------------------------------------------


def _meter_from_fields(document: Any, decoded: dict[str, Any] | None) -> Any:
    return first_present(document, METER_PATHS)


def _meter_from_decoded(document: Any, decoded: dict[str, Any] | None) -> Any:
    if decoded is None:
        return None
    return search_by_key_names(decoded, METER_KEYS)


def _meter_from_radio_payload(document: Any, decoded: dict[str, Any] | None) -> Any:
    text = decode_base64_text(first_present(document, RADIO_PAYLOAD_PATHS))
    if text is None:
        return None
    text = text.strip().strip("\x00").strip()
    return _ODOMETER_PREFIX_RE.sub(r"\1.\2", text) or None


_METER_SOURCES: tuple[Callable[[Any, dict[str, Any] | None], Any], ...] = (
    _meter_from_fields,
    _meter_from_decoded,
    _meter_from_radio_payload,
)


def _resolve_meter_raw(document: Any, decoded: dict[str, Any] | None) -> Any:
    for source in _METER_SOURCES:
        value = source(document, decoded)
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# Battery
# ---------------------------------------------------------------------------


def normalize_battery(value: Any) -> int | None:
    """Convert a battery reading to millivolts.

    Values strictly between 0 and 20 are volts; everything else is already
    millivolts and only rounded. Readings outside the signed 64-bit range
    are treated as absent.
    """
    number = to_number(value)
    if number is None:
        return None
    low, high = _VOLTS_RANGE
    if low < number < high:
        return to_int64(number * 1000)
    return to_int64(number)


def _resolve_battery_raw(document: Any, decoded: dict[str, Any] | None) -> Any:
    value = first_present(document, BATTERY_PATHS)
    if to_number(value) is None and decoded is not None:
        value = search_by_key_names(decoded, BATTERY_KEYS)
    return value


def _decoded_object(document: Any) -> dict[str, Any] | None:
    value = first_present(document, DECODED_OBJECT_PATHS)
    if isinstance(value, dict):
        return value
    return parse_json_object(first_present(document, DECODED_JSON_PATHS))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize(document: Any, *, now: datetime | None = None) -> NormalizedUplink:
    """Convert a raw webhook document into a NormalizedUplink.

    Never raises: every field defaults to ``None`` and an unrecognised
    document yields ``provider=generic`` with only ``timestamp`` and
    ``raw_payload`` populated.

    Args:
        document: Decoded JSON body of one webhook delivery.
        now: Timestamp used when the document carries none. Defaults to the
            current UTC time.

    Returns:
        The normalized uplink.
    """
    provider = detect_provider(document)
    dev_eui, dev_eui_base64 = normalize_dev_eui(first_present(document, DEV_EUI_PATHS))

    timestamp = _first_text(document, TIMESTAMP_PATHS) or utc_now_iso(now)

    rssi, snr = best_signal(_gateway_records(document))
    if rssi is None:
        rssi = to_number(first_present(document, TOP_LEVEL_RSSI_PATHS))
    if snr is None:
        snr = to_number(first_present(document, TOP_LEVEL_SNR_PATHS))

    decoded = _decoded_object(document)
    meter_value, meter_value_raw = parse_meter_number(_resolve_meter_raw(document, decoded))
    battery_mv = normalize_battery(_resolve_battery_raw(document, decoded))

    uplink = NormalizedUplink(
        provider=provider,
        dev_eui=dev_eui,
        dev_eui_base64=dev_eui_base64,
        device_name=_first_text(document, DEVICE_NAME_PATHS),
        application_id=_first_text(document, APPLICATION_ID_PATHS),
        application_name=_first_text(document, APPLICATION_NAME_PATHS),
        timestamp=timestamp,
        deduplication_id=_first_text(document, DEDUPLICATION_PATHS),
        rssi=rssi,
        snr=snr,
        battery_mv=battery_mv,
        meter_value=meter_value,
        meter_value_raw=meter_value_raw,
        decoded_object=decoded,
        raw_payload=document,
    )
    logger.debug(
        "Normalized uplink provider=%s dev_eui=%s meter=%s battery_mv=%s rssi=%s snr=%s at=%s",
        uplink.provider.value,
        uplink.dev_eui,
        uplink.meter_value,
        uplink.battery_mv,
        uplink.rssi,
        uplink.snr,
        uplink.timestamp,
    )
    return uplink
