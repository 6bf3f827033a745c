"""
Field resolution over shape-unknown JSON documents.

Webhook documents from different network servers carry the same facts
(device EUI, RSSI, decoded payload, ...) at different locations. Instead of
one parser per vendor, the normalizer asks these helpers for the first
value present among an ordered list of candidate paths, or searches a
decoded payload for any key with a meter-like name.

All helpers are pure and never raise on malformed input.

CHANGELOG:
- 2026-10-18: Integers too large for a float coerce to None
- 2026-10-15: Track visited containers in keyword search
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

PathSegment = str | int
Path = Sequence[PathSegment]

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def resolve_path(document: Any, path: Path) -> Any:
    """Follow *path* through nested mappings and lists.

    String segments index mappings, integer segments index lists. Returns
    ``None`` if any segment is missing, wrong-typed or out of bounds.
    """
    current = document
    for segment in path:
        if isinstance(segment, int) and not isinstance(segment, bool):
            if not isinstance(current, list) or not 0 <= segment < len(current):
                return None
            current = current[segment]
        else:
            if not isinstance(current, Mapping) or segment not in current:
                return None
            current = current[segment]
    return current


def first_present(document: Any, candidate_paths: Iterable[Path]) -> Any:
    """Return the first non-null value among *candidate_paths*, in order."""
    for path in candidate_paths:
        value = resolve_path(document, path)
        if value is not None:
            return value
    return None


def search_by_key_names(
    document: Any,
    key_names: Iterable[str],
    max_depth: int = 4,
) -> Any:
    """Find a non-null value stored under any of *key_names*.

    Depth-first over an explicit stack, never more than *max_depth* edges
    below *document*. Containers are visited at most once, so aliased or
    self-referencing structures terminate. When several keys match, which
    one is returned depends on traversal order; callers get "some match
    within the depth bound", not a specific one.
    """
    wanted = frozenset(key_names)
    seen: set[int] = set()
    stack: list[tuple[Any, int]] = [(document, 0)]

    while stack:
        node, depth = stack.pop()
        if depth > max_depth or not isinstance(node, (Mapping, list)):
            continue
        if id(node) in seen:
            continue
        seen.add(id(node))

        if isinstance(node, list):
            stack.extend((item, depth + 1) for item in node)
            continue

        for key, value in node.items():
            if key in wanted and value is not None:
                return value
            stack.append((value, depth + 1))

    return None


def decode_base64_text(value: Any) -> str | None:
    """Best-effort decode of base64 (standard or URL-safe) into text.

    Missing padding is tolerated and undecodable bytes are replaced.
    Returns ``None`` for non-strings, blanks and malformed input.
    """
    data = _b64decode(value)
    if not data:
        return None
    return data.decode("utf-8", errors="replace")


def decode_base64_bytes(value: Any) -> bytes | None:
    """Strictly decode base64 into bytes, or ``None`` when malformed."""
    return _b64decode(value)


def _b64decode(value: Any) -> bytes | None:
    if not isinstance(value, str):
        return None
    text = "".join(value.split())
    if not text:
        return None
    text = text.replace("-", "+").replace("_", "/")
    text += "=" * (-len(text) % 4)
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None


def to_number(value: Any) -> float | None:
    """Coerce a JSON scalar into a finite number.

    Accepts ints, floats and plain decimal strings (``"-71"``, ``"3.6"``,
    ``"1e3"``). Booleans, blanks, NaN/inf, integers too large for a float
    and everything else yield ``None``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not _NUMBER_RE.match(text):
            return None
        number = float(text)
    else:
        return None
    return number if math.isfinite(number) else None


def parse_json_object(value: Any) -> dict[str, Any] | None:
    """Parse a JSON string holding an object; anything else yields ``None``."""
    if not isinstance(value, str):
        return None
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        return None
    return decoded if isinstance(decoded, dict) else None
