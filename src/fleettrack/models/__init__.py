"""Data models for tracking API records."""

from fleettrack.models._base import FleetBaseModel, FleetEnum, FleetTimestamp
from fleettrack.models.geo import Bounds, Coordinate, coerce_coordinate
from fleettrack.models.job import AssigneeRef, JobMarker, JobPriority, JobSite, JobStatus
from fleettrack.models.location import LocationRecord, WorkerRef, WorkerStatus
from fleettrack.models.snapshot import EntityKey, EntityType, Snapshot

__all__ = [
    "AssigneeRef",
    "Bounds",
    "Coordinate",
    "EntityKey",
    "EntityType",
    "FleetBaseModel",
    "FleetEnum",
    "FleetTimestamp",
    "JobMarker",
    "JobPriority",
    "JobSite",
    "JobStatus",
    "LocationRecord",
    "Snapshot",
    "WorkerRef",
    "WorkerStatus",
    "coerce_coordinate",
]
