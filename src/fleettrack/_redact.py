"""Helpers for safe debug logging.

Tracking traffic carries a bearer credential on every request and
worker contact details plus precise positions in every response. This
module produces a log-safe copy of headers and payloads:

* credential headers keep their scheme only (``Bearer <redacted>``)
* contact fields (email, phone) are replaced outright
* ``coordinates`` pairs are rounded to roughly 100 m
* long strings and record arrays are truncated
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_CREDENTIAL_KEYS: frozenset[str] = frozenset({"authorization", "cookie", "set-cookie"})
_SECRET_KEYS: frozenset[str] = frozenset({"token", "accesstoken", "refreshtoken", "password"})
_CONTACT_KEYS: frozenset[str] = frozenset({"email", "phone"})
_COORDINATE_KEYS: frozenset[str] = frozenset({"coordinates", "coords"})

_COORDINATE_DIGITS = 3
_MAX_DEPTH = 20


def _redact_credential(value: Any) -> str:
    scheme, _, rest = str(value).partition(" ")
    if rest:
        return f"{scheme} <redacted>"
    return "<redacted>"


def _round_coordinates(value: Any) -> Any:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) == 2:
        try:
            return [round(float(part), _COORDINATE_DIGITS) for part in value]
        except (TypeError, ValueError):
            return "<coordinates>"
    return "<coordinates>"


def redact_for_log(value: Any, *, max_string: int = 512, max_items: int = 20, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    def _child(item: Any) -> Any:
        return redact_for_log(item, max_string=max_string, max_items=max_items, _depth=_depth + 1)

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for raw_key, item in value.items():
            key = str(raw_key)
            lowered = key.lower()
            if lowered in _CREDENTIAL_KEYS:
                redacted[key] = _redact_credential(item)
            elif lowered in _SECRET_KEYS or lowered in _CONTACT_KEYS:
                redacted[key] = "<redacted>"
            elif lowered in _COORDINATE_KEYS:
                redacted[key] = _round_coordinates(item)
            else:
                redacted[key] = _child(item)
        return redacted

    if isinstance(value, Sequence):
        items = [_child(item) for item in value[:max_items]]
        if len(value) > max_items:
            items.append(f"<{len(value) - max_items} more>")
        return items

    return repr(value)
