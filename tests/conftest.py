from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

import pytest

from fleettrack.exceptions import FetchError
from fleettrack.models.job import JobMarker
from fleettrack.models.location import LocationRecord


def location_payload(
    record_id: str,
    status: str = "available",
    lng: float = 10.0,
    lat: float = 20.0,
    **extra: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "_id": record_id,
        "user": {"_id": f"user-{record_id}", "name": f"Worker {record_id}", "email": f"{record_id}@example.com", "role": "field_worker"},
        "coordinates": [lng, lat],
        "status": status,
        "lastUpdated": "2026-01-01T12:00:00.000Z",
    }
    payload.update(extra)
    return payload


def job_payload(
    record_id: str,
    priority: str = "high",
    status: str = "assigned",
    lng: float = 11.0,
    lat: float = 21.0,
    **extra: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "_id": record_id,
        "title": f"Job {record_id}",
        "description": "Replace meter",
        "location": {"type": "Point", "coordinates": [lng, lat], "address": "1 Main St"},
        "status": status,
        "priority": priority,
    }
    payload.update(extra)
    return payload


@dataclass
class FakeFleetBackend:
    """Scripted stand-in for :class:`fleettrack._transport.RestTransport`."""

    locations: Any = field(default_factory=list)
    jobs: Any = field(default_factory=list)
    failures: dict[str, FetchError] = field(default_factory=dict)
    calls: list[tuple[str, str, tuple[tuple[str, str], ...]]] = field(default_factory=list)

    async def get_json(self, endpoint: str, *, token: str, params: Any = ()) -> Any:
        self.calls.append((endpoint, token, tuple(params)))
        error = self.failures.get(endpoint)
        if error is not None:
            raise error
        if endpoint == "/locations":
            return self.locations
        if endpoint == "/workorders":
            return self.jobs
        raise AssertionError(f"unexpected endpoint {endpoint}")


@pytest.fixture
def backend() -> FakeFleetBackend:
    return FakeFleetBackend()


@pytest.fixture
def make_location() -> Callable[..., LocationRecord]:
    def _make(record_id: str, status: str = "available", lng: float = 10.0, lat: float = 20.0, **extra: Any) -> LocationRecord:
        return LocationRecord.model_validate(location_payload(record_id, status, lng, lat, **extra))

    return _make


@pytest.fixture
def make_job() -> Callable[..., JobMarker]:
    def _make(record_id: str, priority: str = "high", lng: float = 11.0, lat: float = 21.0, **extra: Any) -> JobMarker:
        return JobMarker.model_validate(job_payload(record_id, priority, lng=lng, lat=lat, **extra))

    return _make


@pytest.fixture
def payloads() -> SimpleNamespace:
    """Expose the payload builders to tests that need raw dicts."""
    return SimpleNamespace(location=location_payload, job=job_payload)
