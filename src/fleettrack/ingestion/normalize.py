"""Normalization helpers.

Centralizes defensive parsing and placeholder handling.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 1e11


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def float_in_range(value: Any, low: float | None = None, high: float | None = None) -> float | None:
    """Parse *value* as a float and drop it when outside ``[low, high]``."""
    parsed = safe_float(value)
    if parsed is None:
        return None
    if low is not None and parsed < low:
        return None
    if high is not None and parsed > high:
        return None
    return parsed


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or epoch number (seconds or ms) to a UTC datetime.

    Naive datetimes are assumed to be UTC. Returns ``None`` when unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            numeric = safe_float(text)
            if numeric is None:
                return None
            return parse_timestamp(numeric)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > _MS_THRESHOLD:
        ts /= 1000.0
    try:
        return datetime.fromtimestamp(ts, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def unwrap_collection(payload: Any) -> list[Any] | None:
    """Return the record list from a bare array or a ``{"data": [...]}`` envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        nested = payload.get("data")
        if isinstance(nested, list):
            return nested
    return None
