"""
Timestamp and timezone helpers shared by the normalizer and aggregator.

Producer timestamps are stored verbatim as ISO-8601 text; these helpers only
interpret them when absolute time is needed (window filtering, local-date
bucketing). Network servers emit nanosecond fractions (ChirpStack, TTN),
which ``datetime.fromisoformat`` rejects, so fractions are truncated to
microseconds before parsing.

CHANGELOG:
- 2026-10-16: Accept fixed UTC offsets ("UTC+2", "+02:00") as timezones
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_OFFSET_RE = re.compile(r"^(?:UTC|GMT)?\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)
_UTC_NAMES = frozenset({"utc", "gmt", "z", "etc/utc", "etc/gmt"})


def parse_iso_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Naive timestamps are taken as UTC. Returns ``None`` for anything that
    is not a parseable string.
    """
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None
    if raw[-1] in ("Z", "z"):
        raw = raw[:-1] + "+00:00"
    raw = _FRACTION_RE.sub(r"\1", raw)
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def resolve_timezone(name: str) -> tzinfo:
    """Resolve an IANA zone name or a fixed UTC offset into a tzinfo.

    Accepted forms: ``Europe/Berlin``, ``UTC``, ``UTC+2``, ``GMT-05:30``,
    ``+02:00``.

    Raises:
        ValueError: If the name is neither a known zone nor a valid offset.
    """
    key = (name or "").strip()
    if key.lower() in _UTC_NAMES:
        return UTC

    match = _OFFSET_RE.match(key)
    if match:
        sign, hours, minutes = match.group(1), int(match.group(2)), int(match.group(3) or 0)
        if hours > 14 or minutes > 59:
            raise ValueError(f"Invalid UTC offset '{name}'")
        delta = timedelta(hours=hours, minutes=minutes)
        return timezone(-delta if sign == "-" else delta)

    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise ValueError(f"Unknown timezone '{name}'") from None


def utc_now_iso(now: datetime | None = None) -> str:
    """Format *now* (default: current time) as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    moment = now if now is not None else datetime.now(tz=UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
