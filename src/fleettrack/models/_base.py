"""Base model and enum for tracking API records.

Every wire record inherits from :class:`FleetBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase API keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that strips placeholder values
  (``""``, ``"--"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.

Status enums inherit from :class:`FleetEnum` which requires an
``UNKNOWN`` member and adds a ``_missing_`` hook that matches values
case-insensitively and returns ``UNKNOWN`` for anything unmapped.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from fleettrack.ingestion.normalize import parse_timestamp

# Placeholder strings the backend uses for "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan", "null"})

FleetTimestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO-8601 strings or epoch numbers to UTC datetimes."""


class FleetEnum(StrEnum):
    """Base for status/priority enums.

    Every subclass **must** define ``UNKNOWN = "unknown"``.
    """

    @classmethod
    def _missing_(cls, value: object) -> FleetEnum | None:
        if isinstance(value, str):
            normalized = value.strip().lower().replace(" ", "_").replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        unknown = cls._value2member_map_.get("unknown")
        return unknown if isinstance(unknown, FleetEnum) else None

    @property
    def is_known(self) -> bool:
        return self.value != "unknown"


class FleetBaseModel(BaseModel):
    """Base for tracking API records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original API payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = FleetBaseModel._clean_dict(values)
        # Keep an explicit raw= from keyword construction.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
