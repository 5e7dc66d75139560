"""Diff-based marker reconciliation.

The reconciler owns the ledger of what is currently drawn: one entry per
``(entity type, id)`` holding the surface handle plus the coordinate,
style key and popup text last pushed to it. A pass compares the ledger
with the new visible subset and issues only the surface calls needed to
make the map match:

* removal: in the ledger, not in the subset → ``remove_marker``
* addition: in the subset, not in the ledger → ``create_marker``
* update: in both → ``move_marker`` / ``set_marker_icon`` /
  ``set_marker_popup``, each only if that attribute changed

Handles are created and released here and nowhere else. No exception
escapes a pass: a record that cannot be placed or a surface call that
fails is logged and skipped.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from fleettrack.models.geo import Coordinate
from fleettrack.models.job import JobMarker
from fleettrack.models.location import LocationRecord
from fleettrack.models.snapshot import EntityKey
from fleettrack.popups import render_job_popup, render_worker_popup
from fleettrack.styles import icon_for
from fleettrack.surface import MapSurface, MarkerHandle

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(slots=True)
class _LedgerEntry:
    handle: MarkerHandle
    coordinate: Coordinate
    style_key: str
    popup: str


@dataclasses.dataclass(frozen=True, slots=True)
class _Desired:
    coordinate: Coordinate
    style_key: str
    popup: str


@dataclasses.dataclass(frozen=True)
class ReconcileResult:
    """What one pass did.

    ``handles`` lists every handle rendered after the pass, for viewport
    fitting; the ledger itself stays private.
    """

    created: tuple[EntityKey, ...] = ()
    moved: tuple[EntityKey, ...] = ()
    restyled: tuple[EntityKey, ...] = ()
    repopulated: tuple[EntityKey, ...] = ()
    removed: tuple[EntityKey, ...] = ()
    skipped: tuple[EntityKey, ...] = ()
    handles: tuple[MarkerHandle, ...] = ()

    @property
    def membership_changed(self) -> bool:
        return bool(self.created or self.removed)

    @property
    def is_noop(self) -> bool:
        return not (self.created or self.moved or self.restyled or self.repopulated or self.removed)


class MarkerReconciler:
    """Apply minimal add/update/remove operations to a :class:`MapSurface`.

    Parameters
    ----------
    surface
        Map surface receiving marker operations.
    on_click
        Called with the :class:`EntityKey` of a clicked marker.
    """

    def __init__(
        self,
        surface: MapSurface,
        *,
        on_click: Callable[[EntityKey], None] | None = None,
    ) -> None:
        self._surface = surface
        self._on_click = on_click
        self._ledger: dict[EntityKey, _LedgerEntry] = {}

    def __len__(self) -> int:
        return len(self._ledger)

    def __contains__(self, key: object) -> bool:
        return key in self._ledger

    def rendered_keys(self) -> frozenset[EntityKey]:
        return frozenset(self._ledger)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(
        self,
        locations: Iterable[LocationRecord],
        jobs: Iterable[JobMarker] = (),
    ) -> ReconcileResult:
        """Bring the surface in line with *locations* and *jobs*."""
        skipped: list[EntityKey] = []
        desired = self._collect(locations, jobs, skipped)

        removed: list[EntityKey] = []
        for key in [key for key in self._ledger if key not in desired]:
            entry = self._ledger.pop(key)
            self._release(key, entry)
            removed.append(key)

        moved: list[EntityKey] = []
        restyled: list[EntityKey] = []
        repopulated: list[EntityKey] = []
        created: list[EntityKey] = []
        for key, want in desired.items():
            entry = self._ledger.get(key)
            if entry is None:
                if self._create(key, want):
                    created.append(key)
                else:
                    skipped.append(key)
                continue
            self._update(key, entry, want, moved, restyled, repopulated)

        return ReconcileResult(
            created=tuple(created),
            moved=tuple(moved),
            restyled=tuple(restyled),
            repopulated=tuple(repopulated),
            removed=tuple(removed),
            skipped=tuple(skipped),
            handles=tuple(entry.handle for entry in self._ledger.values()),
        )

    def teardown(self) -> int:
        """Release every handle and empty the ledger. Returns the count released."""
        released = 0
        while self._ledger:
            key, entry = self._ledger.popitem()
            self._release(key, entry)
            released += 1
        if released:
            _logger.debug("Released %d marker(s) on teardown", released)
        return released

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collect(
        self,
        locations: Iterable[LocationRecord],
        jobs: Iterable[JobMarker],
        skipped: list[EntityKey],
    ) -> dict[EntityKey, _Desired]:
        desired: dict[EntityKey, _Desired] = {}
        for key, record in self._keyed(locations, jobs):
            if key in desired:
                _logger.warning("Duplicate %s id %s in visible subset; keeping the first", key.type, key.id)
                continue
            coordinate = record.coordinates
            if coordinate is None:
                _logger.warning("Skipping %s %s: no usable coordinate", key.type, key.id)
                skipped.append(key)
                continue
            try:
                if isinstance(record, LocationRecord):
                    want = _Desired(coordinate, record.status.value, render_worker_popup(record))
                else:
                    want = _Desired(coordinate, record.priority.value, render_job_popup(record))
            except Exception:
                _logger.warning("Skipping %s %s: could not build marker", key.type, key.id, exc_info=True)
                skipped.append(key)
                continue
            desired[key] = want
        return desired

    @staticmethod
    def _keyed(
        locations: Iterable[LocationRecord],
        jobs: Iterable[JobMarker],
    ) -> Iterator[tuple[EntityKey, LocationRecord | JobMarker]]:
        for location in locations:
            yield EntityKey.worker(location.id), location
        for job in jobs:
            yield EntityKey.job(job.id), job

    def _create(self, key: EntityKey, want: _Desired) -> bool:
        try:
            handle = self._surface.create_marker(want.coordinate, icon_for(key.type, want.style_key))
        except Exception:
            _logger.warning("Could not create marker for %s %s", key.type, key.id, exc_info=True)
            return False
        # The handle is owned from here on, even if decorating it fails.
        self._ledger[key] = _LedgerEntry(handle=handle, coordinate=want.coordinate, style_key=want.style_key, popup="")
        if self._call("set popup for", key, self._surface.set_marker_popup, handle, want.popup):
            self._ledger[key].popup = want.popup
        self._call(
            "subscribe click for",
            key,
            self._surface.subscribe_click,
            handle,
            functools.partial(self._forward_click, key),
        )
        return True

    def _update(
        self,
        key: EntityKey,
        entry: _LedgerEntry,
        want: _Desired,
        moved: list[EntityKey],
        restyled: list[EntityKey],
        repopulated: list[EntityKey],
    ) -> None:
        if want.coordinate != entry.coordinate:
            if self._call("move", key, self._surface.move_marker, entry.handle, want.coordinate):
                entry.coordinate = want.coordinate
                moved.append(key)
        if want.style_key != entry.style_key:
            icon = icon_for(key.type, want.style_key)
            if self._call("restyle", key, self._surface.set_marker_icon, entry.handle, icon):
                entry.style_key = want.style_key
                restyled.append(key)
        if want.popup != entry.popup:
            if self._call("set popup for", key, self._surface.set_marker_popup, entry.handle, want.popup):
                entry.popup = want.popup
                repopulated.append(key)

    def _release(self, key: EntityKey, entry: _LedgerEntry) -> None:
        self._call("remove", key, self._surface.remove_marker, entry.handle)

    @staticmethod
    def _call(action: str, key: EntityKey, fn: Callable[..., Any], *args: Any) -> bool:
        try:
            fn(*args)
        except Exception:
            _logger.warning("Could not %s %s %s", action, key.type, key.id, exc_info=True)
            return False
        return True

    def _forward_click(self, key: EntityKey) -> None:
        if self._on_click is None:
            return
        try:
            self._on_click(key)
        except Exception:
            _logger.warning("Marker click handler failed for %s %s", key.type, key.id, exc_info=True)
