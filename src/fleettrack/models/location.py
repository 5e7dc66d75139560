"""Worker location model."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AliasChoices, BeforeValidator, Field, field_validator

from fleettrack.ingestion.normalize import float_in_range, safe_str
from fleettrack.models._base import FleetBaseModel, FleetEnum, FleetTimestamp
from fleettrack.models.geo import Coordinate, coerce_coordinate

MaybeCoordinate = Annotated[Coordinate | None, BeforeValidator(coerce_coordinate)]
"""A coordinate field that degrades to ``None`` instead of failing validation."""


class WorkerStatus(FleetEnum):
    AVAILABLE = "available"
    ON_JOB = "on_job"
    OFFLINE = "offline"
    BREAK = "break"
    UNKNOWN = "unknown"


class WorkerRef(FleetBaseModel):
    """The worker owning a location record."""

    id: str = Field(default="", validation_alias=AliasChoices("_id", "id"))
    name: str = ""
    email: str | None = None
    phone: str | None = None
    role: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return safe_str(value) or ""

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id or "Unknown worker"


class LocationRecord(FleetBaseModel):
    """The latest reported position of one field worker.

    Parameters
    ----------
    id : str
        Record identity, stable across refreshes.
    user : WorkerRef
        Owning worker.
    coordinates : Coordinate or None
        ``None`` when the backend sent no usable position.
    status : WorkerStatus
        Unrecognised values become ``WorkerStatus.UNKNOWN``.
    battery : float or None
        Battery percentage (0-100).
    speed : float or None
        Speed in metres per second.
    accuracy : float or None
        Positional accuracy in metres.
    last_updated : datetime or None
        Time of the last position report.
    """

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    user: WorkerRef = Field(default_factory=WorkerRef)
    coordinates: MaybeCoordinate = None
    status: WorkerStatus = WorkerStatus.UNKNOWN
    battery: float | None = None
    speed: float | None = None
    accuracy: float | None = None
    last_updated: FleetTimestamp = None

    @field_validator("id", mode="before")
    @classmethod
    def _require_id(cls, value: Any) -> str:
        text = safe_str(value)
        if text is None:
            raise ValueError("location record has no id")
        return text

    @field_validator("user", mode="before")
    @classmethod
    def _coerce_user(cls, value: Any) -> Any:
        # Unpopulated references arrive as a bare id string.
        if isinstance(value, str):
            return {"_id": value}
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> WorkerStatus:
        return WorkerStatus(value)

    @field_validator("battery", mode="before")
    @classmethod
    def _coerce_battery(cls, value: Any) -> float | None:
        return float_in_range(value, 0.0, 100.0)

    @field_validator("speed", "accuracy", mode="before")
    @classmethod
    def _coerce_non_negative(cls, value: Any) -> float | None:
        return float_in_range(value, 0.0)

    @property
    def raw_status(self) -> Any:
        return self.raw.get("status")
