"""Record-level parsing of backend collections.

A collection payload either parses into a list of typed records or, if
it is not an array at all, raises :class:`FleetMalformedError`. Bad
individual items never fail the collection: they are dropped with a
warning so the rest of the snapshot still renders.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from pydantic import ValidationError

from fleettrack.exceptions import FleetMalformedError
from fleettrack.ingestion.normalize import unwrap_collection
from fleettrack.models._base import FleetBaseModel
from fleettrack.models.job import JobMarker
from fleettrack.models.location import LocationRecord

_logger = logging.getLogger(__name__)

TRecord = TypeVar("TRecord", bound=FleetBaseModel)

# Raw status/priority values already reported, so each is warned about once.
# Insertion-ordered; the oldest entry is evicted once the cap is reached.
_MAX_REPORTED_UNKNOWN = 256
_reported_unknown: dict[tuple[str, str], None] = {}


def _warn_unknown(kind: str, raw_value: Any) -> None:
    marker = (kind, str(raw_value))
    if marker in _reported_unknown:
        return
    if len(_reported_unknown) >= _MAX_REPORTED_UNKNOWN:
        del _reported_unknown[next(iter(_reported_unknown))]
    _reported_unknown[marker] = None
    _logger.warning("Unrecognised %s %r; rendering with the default style", kind, raw_value)


def _parse_collection(
    payload: Any,
    model: type[TRecord],
    *,
    endpoint: str,
    label: str,
    record_id: Callable[[TRecord], str],
) -> list[TRecord]:
    items = unwrap_collection(payload)
    if items is None:
        raise FleetMalformedError(
            f"Expected a JSON array of {label} records from {endpoint}, got {type(payload).__name__}",
            endpoint=endpoint,
        )

    records: list[TRecord] = []
    seen: set[str] = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            _logger.warning("Skipping %s item #%d from %s: not an object", label, index, endpoint)
            continue
        try:
            record = model.model_validate(item)
        except ValidationError as exc:
            _logger.warning(
                "Skipping %s item #%d from %s: %d validation error(s): %s",
                label,
                index,
                endpoint,
                exc.error_count(),
                exc.errors(include_url=False, include_input=False),
            )
            continue
        key = record_id(record)
        if key in seen:
            _logger.warning("Skipping duplicate %s id %s from %s", label, key, endpoint)
            continue
        seen.add(key)
        records.append(record)
    return records


def parse_locations(payload: Any, *, endpoint: str = "") -> list[LocationRecord]:
    """Parse a worker-location collection payload."""
    records = _parse_collection(
        payload,
        LocationRecord,
        endpoint=endpoint,
        label="location",
        record_id=lambda record: record.id,
    )
    for record in records:
        if not record.status.is_known:
            _warn_unknown("worker status", record.raw_status)
    return records


def parse_jobs(
    payload: Any,
    *,
    endpoint: str = "",
    active_statuses: Iterable[str] | None = None,
) -> list[JobMarker]:
    """Parse a job collection payload.

    When *active_statuses* is given, jobs in any other status are dropped.
    """
    records = _parse_collection(
        payload,
        JobMarker,
        endpoint=endpoint,
        label="job",
        record_id=lambda record: record.id,
    )
    if active_statuses is not None:
        wanted = {str(status) for status in active_statuses}
        kept = [record for record in records if record.status.value in wanted]
        if len(kept) != len(records):
            _logger.debug("Dropped %d inactive job(s) from %s", len(records) - len(kept), endpoint)
        records = kept
    for record in records:
        if not record.priority.is_known:
            _warn_unknown("job priority", record.raw_priority)
    return records
