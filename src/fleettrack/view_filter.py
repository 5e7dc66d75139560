"""Status filter and summary counts for the tracking view."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence
from enum import StrEnum

from fleettrack.models.job import JobMarker
from fleettrack.models.location import LocationRecord, WorkerStatus
from fleettrack.models.snapshot import Snapshot


class FilterSelection(StrEnum):
    ALL = "all"
    AVAILABLE = "available"
    ON_JOB = "on_job"
    BREAK = "break"
    OFFLINE = "offline"

    @property
    def status(self) -> WorkerStatus | None:
        """The worker status this filter keeps, or ``None`` for ``ALL``."""
        if self is FilterSelection.ALL:
            return None
        return WorkerStatus(self.value)


@dataclasses.dataclass(frozen=True)
class StatusCounts:
    """Summary-bar counts over the *unfiltered* population."""

    total: int = 0
    available: int = 0
    on_job: int = 0
    on_break: int = 0
    offline: int = 0
    unknown: int = 0
    active_jobs: int = 0

    def count_for(self, selection: FilterSelection) -> int:
        """Number shown next to a filter button."""
        return {
            FilterSelection.ALL: self.total,
            FilterSelection.AVAILABLE: self.available,
            FilterSelection.ON_JOB: self.on_job,
            FilterSelection.BREAK: self.on_break,
            FilterSelection.OFFLINE: self.offline,
        }[selection]


@dataclasses.dataclass(frozen=True)
class FilteredView:
    selection: FilterSelection
    locations: tuple[LocationRecord, ...]
    jobs: tuple[JobMarker, ...]
    counts: StatusCounts


def filter_locations(
    locations: Iterable[LocationRecord],
    selection: FilterSelection,
) -> tuple[LocationRecord, ...]:
    """Keep the records matching *selection*, preserving order."""
    wanted = selection.status
    if wanted is None:
        return tuple(locations)
    return tuple(record for record in locations if record.status is wanted)


def count_statuses(locations: Iterable[LocationRecord], jobs: Sequence[JobMarker] = ()) -> StatusCounts:
    tally = {status: 0 for status in WorkerStatus}
    total = 0
    for record in locations:
        tally[record.status] += 1
        total += 1
    return StatusCounts(
        total=total,
        available=tally[WorkerStatus.AVAILABLE],
        on_job=tally[WorkerStatus.ON_JOB],
        on_break=tally[WorkerStatus.BREAK],
        offline=tally[WorkerStatus.OFFLINE],
        unknown=tally[WorkerStatus.UNKNOWN],
        active_jobs=len(jobs),
    )


class ViewFilter:
    """Holds the current :class:`FilterSelection`; everything else is derived."""

    def __init__(self, selection: FilterSelection = FilterSelection.ALL) -> None:
        self._selection = FilterSelection(selection)

    @property
    def selection(self) -> FilterSelection:
        return self._selection

    def set_selection(self, selection: FilterSelection | str) -> bool:
        """Change the filter. Returns ``True`` when the value changed."""
        new = FilterSelection(selection)
        if new is self._selection:
            return False
        self._selection = new
        return True

    def apply(self, snapshot: Snapshot) -> FilteredView:
        return FilteredView(
            selection=self._selection,
            locations=filter_locations(snapshot.locations, self._selection),
            jobs=snapshot.jobs,
            counts=count_statuses(snapshot.locations, snapshot.jobs),
        )
