"""Tolerant decoders for untyped JSON values.

Log writers disagree on types from one file to the next: counters arrive as
numbers or numeric strings, booleans as ``true`` or ``"True"``, timestamps as
ISO strings, naive strings or Unix seconds/milliseconds. Every decoder here is
total: any JSON value (including objects and arrays where a scalar was
expected) yields a value or a default, never an exception.
"""
from __future__ import annotations

import json
import math
import re
from datetime import datetime
from typing import Any

from request_tracker.date_utils import (
    from_unix,
    parse_fallback_datetime,
    parse_iso_datetime,
    to_local,
)

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def _parse_int(token: str) -> int | None:
    # Very long digit strings exceed the interpreter's int conversion limit.
    try:
        return int(token)
    except ValueError:
        return None


def decode_int(value: Any) -> int:
    """Decode a counter. Floats truncate toward zero; anything unusable is 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return int(value)
    if isinstance(value, str):
        token = value.strip()
        if _INT_PATTERN.match(token):
            return _parse_int(token) or 0
    return 0


def decode_bool(value: Any) -> bool:
    if value is True:
        return True
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def decode_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str) and _FLOAT_PATTERN.match(value.strip()):
        result = float(value.strip())
    else:
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def decode_timestamp(value: Any) -> datetime | None:
    """Decode a timestamp into an aware local datetime, or None when unknown.

    Digit-only strings are Unix values; other strings are tried as ISO-8601,
    then against common locale formats. Integers (and floats, truncated) are Unix
    time: milliseconds above 1e12, seconds otherwise.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        token = value.strip()
        # Digit-only strings are Unix values; compact ISO dates are not emitted by log writers.
        if _INT_PATTERN.match(token):
            number = _parse_int(token)
            return _from_unix_local(number) if number is not None else None
        parsed = parse_iso_datetime(token) or parse_fallback_datetime(token)
        if parsed is not None:
            return to_local(parsed)
        return None
    if isinstance(value, int):
        return _from_unix_local(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return _from_unix_local(int(value))
    return None


def _from_unix_local(value: int) -> datetime | None:
    parsed = from_unix(value)
    if parsed is None:
        return None
    return to_local(parsed)


def as_text(value: Any) -> str:
    """Render any JSON value as display text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return str(value)
        return json.dumps(value)
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(value)


def as_str(value: Any) -> str:
    """Scalar-to-string coercion for string fields; containers become empty."""
    if isinstance(value, (dict, list)):
        return ""
    return as_text(value)


def as_text_list(value: Any) -> list[str]:
    """Array elements as text; a lone non-null scalar becomes a one-item list."""
    if value is None:
        return []
    if isinstance(value, list):
        return [as_text(item) for item in value if item is not None]
    return [as_text(value)]


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def lookup(payload: Any, *keys: str, default: Any = None) -> Any:
    """Case-insensitive property lookup returning the first key present."""
    if not isinstance(payload, dict):
        return default
    for key in keys:
        if key in payload:
            return payload[key]
    lowered = {str(k).lower(): v for k, v in payload.items()}
    for key in keys:
        token = key.lower()
        if token in lowered:
            return lowered[token]
    return default


def has_key(payload: Any, key: str) -> bool:
    if not isinstance(payload, dict):
        return False
    token = key.lower()
    return any(str(k).lower() == token for k in payload)


def first_non_empty(*values: str) -> str:
    for value in values:
        if value and value.strip():
            return value
    return ""
