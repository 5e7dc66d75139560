"""Active job (work order) model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from fleettrack.ingestion.normalize import safe_str
from fleettrack.models._base import FleetBaseModel, FleetEnum
from fleettrack.models.geo import Coordinate
from fleettrack.models.location import MaybeCoordinate


class JobPriority(FleetEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class JobStatus(FleetEnum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class JobSite(FleetBaseModel):
    coordinates: MaybeCoordinate = None
    address: str = ""


class AssigneeRef(FleetBaseModel):
    id: str = Field(default="", validation_alias=AliasChoices("_id", "id"))
    name: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return safe_str(value) or ""


class JobMarker(FleetBaseModel):
    """A job shown on the map at its site location."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str = ""
    description: str = ""
    location: JobSite = Field(default_factory=JobSite)
    priority: JobPriority = JobPriority.UNKNOWN
    status: JobStatus = JobStatus.UNKNOWN
    assigned_to: AssigneeRef | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _require_id(cls, value: Any) -> str:
        text = safe_str(value)
        if text is None:
            raise ValueError("job record has no id")
        return text

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> JobPriority:
        return JobPriority(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> JobStatus:
        return JobStatus(value)

    @field_validator("assigned_to", mode="before")
    @classmethod
    def _coerce_assignee(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"_id": value}
        return value

    @property
    def coordinates(self) -> Coordinate | None:
        return self.location.coordinates

    @property
    def address(self) -> str:
        return self.location.address

    @property
    def raw_priority(self) -> Any:
        return self.raw.get("priority")
