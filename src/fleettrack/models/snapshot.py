"""Snapshot model and entity keys."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from fleettrack.models.job import JobMarker
from fleettrack.models.location import LocationRecord


class EntityType(StrEnum):
    WORKER = "worker"
    JOB = "job"


class EntityKey(NamedTuple):
    """Identity of a rendered entity.

    Worker and job id spaces are independent, so the type is part of the key.
    """

    type: EntityType
    id: str

    @classmethod
    def worker(cls, record_id: str) -> EntityKey:
        return cls(EntityType.WORKER, record_id)

    @classmethod
    def job(cls, record_id: str) -> EntityKey:
        return cls(EntityType.JOB, record_id)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Snapshot(BaseModel):
    """One atomic pull of worker locations and active jobs.

    ``generation`` is stamped by the scheduler when the fetch is issued;
    a snapshot with a lower generation never replaces a higher one.
    ``degraded`` marks the empty snapshot applied after a malformed payload.
    """

    model_config = ConfigDict(frozen=True)

    locations: tuple[LocationRecord, ...] = ()
    jobs: tuple[JobMarker, ...] = ()
    generation: int = 0
    fetched_at: datetime = Field(default_factory=_utcnow)
    degraded: bool = False

    @classmethod
    def empty(cls, generation: int = 0, *, degraded: bool = False) -> Snapshot:
        return cls(generation=generation, degraded=degraded)

    @property
    def is_empty(self) -> bool:
        return not self.locations and not self.jobs
