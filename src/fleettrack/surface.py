"""Map surface contract and an in-memory implementation.

The reconciler only ever talks to :class:`MapSurface`. Concrete map
widgets adapt their marker API to it; :class:`InMemoryMapSurface` keeps
markers in a dict, records every call, and serves tests and headless runs.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Any, Protocol

from fleettrack.exceptions import FleetSurfaceError
from fleettrack.models.geo import Bounds, Coordinate
from fleettrack.styles import IconSpec

_logger = logging.getLogger(__name__)

MarkerHandle = Any
"""Opaque reference to a marker owned by the surface."""


class MapSurface(Protocol):
    def create_marker(self, coordinate: Coordinate, icon: IconSpec) -> MarkerHandle: ...

    def move_marker(self, handle: MarkerHandle, coordinate: Coordinate) -> None: ...

    def set_marker_icon(self, handle: MarkerHandle, icon: IconSpec) -> None: ...

    def set_marker_popup(self, handle: MarkerHandle, content: str) -> None: ...

    def remove_marker(self, handle: MarkerHandle) -> None: ...

    def subscribe_click(self, handle: MarkerHandle, callback: Callable[[], None]) -> None: ...

    def fit_bounds(self, handles: Sequence[MarkerHandle], padding: float) -> None: ...

    def set_view(self, center: Coordinate, zoom: int) -> None: ...

    def pan_to(self, coordinate: Coordinate) -> None: ...


class SurfaceOp(StrEnum):
    CREATE = "create"
    MOVE = "move"
    SET_ICON = "set_icon"
    SET_POPUP = "set_popup"
    REMOVE = "remove"
    SUBSCRIBE = "subscribe"
    FIT = "fit"
    SET_VIEW = "set_view"
    PAN = "pan"


@dataclasses.dataclass
class _Marker:
    coordinate: Coordinate
    icon: IconSpec
    popup: str = ""
    click_callbacks: list[Callable[[], None]] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class Viewport:
    center: Coordinate
    zoom: int | None = None
    bounds: Bounds | None = None


class InMemoryMapSurface:
    """Dictionary-backed :class:`MapSurface` that records every call."""

    def __init__(self) -> None:
        self._markers: dict[int, _Marker] = {}
        self._ids = itertools.count(1)
        self.operations: list[tuple[SurfaceOp, Any]] = []
        self.viewport: Viewport | None = None

    # ------------------------------------------------------------------
    # MapSurface
    # ------------------------------------------------------------------

    def create_marker(self, coordinate: Coordinate, icon: IconSpec) -> int:
        handle = next(self._ids)
        self._markers[handle] = _Marker(coordinate=coordinate, icon=icon)
        self._record(SurfaceOp.CREATE, handle)
        return handle

    def move_marker(self, handle: int, coordinate: Coordinate) -> None:
        self._marker(handle).coordinate = coordinate
        self._record(SurfaceOp.MOVE, handle)

    def set_marker_icon(self, handle: int, icon: IconSpec) -> None:
        self._marker(handle).icon = icon
        self._record(SurfaceOp.SET_ICON, handle)

    def set_marker_popup(self, handle: int, content: str) -> None:
        self._marker(handle).popup = content
        self._record(SurfaceOp.SET_POPUP, handle)

    def remove_marker(self, handle: int) -> None:
        self._marker(handle)
        del self._markers[handle]
        self._record(SurfaceOp.REMOVE, handle)

    def subscribe_click(self, handle: int, callback: Callable[[], None]) -> None:
        self._marker(handle).click_callbacks.append(callback)
        self._record(SurfaceOp.SUBSCRIBE, handle)

    def fit_bounds(self, handles: Sequence[int], padding: float) -> None:
        bounds = Bounds.from_coordinates(self._marker(h).coordinate for h in handles)
        if bounds is None:
            return
        padded = bounds.padded(padding)
        self.viewport = Viewport(center=padded.center, bounds=padded)
        self._record(SurfaceOp.FIT, tuple(handles))

    def set_view(self, center: Coordinate, zoom: int) -> None:
        self.viewport = Viewport(center=center, zoom=zoom)
        self._record(SurfaceOp.SET_VIEW, center)

    def pan_to(self, coordinate: Coordinate) -> None:
        zoom = self.viewport.zoom if self.viewport is not None else None
        self.viewport = Viewport(center=coordinate, zoom=zoom)
        self._record(SurfaceOp.PAN, coordinate)

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    @property
    def outstanding_handles(self) -> frozenset[int]:
        return frozenset(self._markers)

    def marker(self, handle: int) -> _Marker:
        return self._marker(handle)

    def click(self, handle: int) -> None:
        """Simulate a user click on a marker."""
        for callback in list(self._marker(handle).click_callbacks):
            callback()

    def count(self, op: SurfaceOp) -> int:
        return sum(1 for kind, _ in self.operations if kind is op)

    def clear_operations(self) -> None:
        self.operations.clear()

    def _marker(self, handle: int) -> _Marker:
        try:
            return self._markers[handle]
        except KeyError:
            raise FleetSurfaceError(f"Unknown marker handle {handle!r}") from None

    def _record(self, op: SurfaceOp, subject: Any) -> None:
        self.operations.append((op, subject))
        _logger.debug("surface %s %r", op, subject)
