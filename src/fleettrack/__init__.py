"""fleettrack - Async live fleet-tracking synchronization engine."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleettrack")
except PackageNotFoundError:
    __version__ = "0+local"
from fleettrack.config import FleetConfig
from fleettrack.exceptions import (
    FetchError,
    FetchErrorKind,
    FleetConfigError,
    FleetError,
    FleetMalformedError,
    FleetNetworkError,
    FleetSurfaceError,
    FleetUnauthorizedError,
)
from fleettrack.fetcher import SnapshotFetcher
from fleettrack.models import (
    Bounds,
    Coordinate,
    EntityKey,
    EntityType,
    JobMarker,
    JobPriority,
    JobStatus,
    LocationRecord,
    Snapshot,
    WorkerStatus,
)
from fleettrack.reconciler import MarkerReconciler, ReconcileResult
from fleettrack.scheduler import LoopTimer, ManualTimer, RefreshScheduler, SchedulerState
from fleettrack.selection import Selection, SelectionController
from fleettrack.styles import IconSpec, StatusStyle, icon_for, style_for
from fleettrack.surface import InMemoryMapSurface, MapSurface
from fleettrack.tracker import FleetTracker, TrackerView
from fleettrack.view_filter import FilterSelection, StatusCounts, ViewFilter
from fleettrack.viewport import ViewportFitter

__all__ = [
    "__version__",
    "Bounds",
    "Coordinate",
    "EntityKey",
    "EntityType",
    "FetchError",
    "FetchErrorKind",
    "FilterSelection",
    "FleetConfig",
    "FleetConfigError",
    "FleetError",
    "FleetMalformedError",
    "FleetNetworkError",
    "FleetSurfaceError",
    "FleetTracker",
    "FleetUnauthorizedError",
    "IconSpec",
    "InMemoryMapSurface",
    "JobMarker",
    "JobPriority",
    "JobStatus",
    "LocationRecord",
    "LoopTimer",
    "ManualTimer",
    "MapSurface",
    "MarkerReconciler",
    "ReconcileResult",
    "RefreshScheduler",
    "SchedulerState",
    "Selection",
    "SelectionController",
    "Snapshot",
    "SnapshotFetcher",
    "StatusCounts",
    "StatusStyle",
    "TrackerView",
    "ViewFilter",
    "ViewportFitter",
    "WorkerStatus",
    "icon_for",
    "style_for",
]
