"""Focused-entity tracking for the detail panel."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterable

from fleettrack.models.geo import Coordinate
from fleettrack.models.job import JobMarker
from fleettrack.models.location import LocationRecord
from fleettrack.models.snapshot import EntityKey

_logger = logging.getLogger(__name__)

Record = LocationRecord | JobMarker


@dataclasses.dataclass(frozen=True)
class Selection:
    key: EntityKey
    record: Record


def _key_for(record: Record) -> EntityKey:
    if isinstance(record, LocationRecord):
        return EntityKey.worker(record.id)
    return EntityKey.job(record.id)


class SelectionController:
    """Hold at most one selected entity and keep it consistent with the view.

    Parameters
    ----------
    on_change
        Called with the new :class:`Selection` (or ``None``) whenever the
        selection is set, refreshed with a newer record, or cleared.
    focus
        Called with the coordinate of a newly selected entity so the map
        can pan it into view.
    """

    def __init__(
        self,
        *,
        on_change: Callable[[Selection | None], None] | None = None,
        focus: Callable[[Coordinate], None] | None = None,
    ) -> None:
        self._on_change = on_change
        self._focus = focus
        self._visible: dict[EntityKey, Record] = {}
        self._selected: Selection | None = None

    @property
    def selected(self) -> Selection | None:
        return self._selected

    def select(self, key: EntityKey) -> Selection | None:
        """Select a visible entity by key (marker click)."""
        record = self._visible.get(key)
        if record is None:
            _logger.debug("Ignoring selection of %s %s: not visible", key.type, key.id)
            return None
        return self._set(Selection(key, record), focus=True)

    def select_record(self, record: Record) -> Selection | None:
        """Select from a list row; the record must be in the visible subset."""
        return self.select(_key_for(record))

    def clear(self) -> None:
        if self._selected is None:
            return
        self._selected = None
        self._emit()

    def sync(self, locations: Iterable[LocationRecord], jobs: Iterable[JobMarker] = ()) -> None:
        """Adopt a new visible subset, dropping or refreshing the selection."""
        visible: dict[EntityKey, Record] = {}
        for location in locations:
            visible.setdefault(EntityKey.worker(location.id), location)
        for job in jobs:
            visible.setdefault(EntityKey.job(job.id), job)
        self._visible = visible

        current = self._selected
        if current is None:
            return
        record = visible.get(current.key)
        if record is None:
            _logger.debug("Selected %s %s left the view; clearing", current.key.type, current.key.id)
            self.clear()
        elif record is not current.record:
            self._set(Selection(current.key, record), focus=False)

    def _set(self, selection: Selection, *, focus: bool) -> Selection:
        self._selected = selection
        coordinate = selection.record.coordinates
        if focus and coordinate is not None and self._focus is not None:
            try:
                self._focus(coordinate)
            except Exception:
                _logger.warning("Could not pan to %s %s", selection.key.type, selection.key.id, exc_info=True)
        self._emit()
        return selection

    def _emit(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self._selected)
        except Exception:
            _logger.warning("Selection change handler failed", exc_info=True)
