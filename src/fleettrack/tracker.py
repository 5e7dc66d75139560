"""Live tracking engine: the object a tracking view holds for its lifetime."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

import aiohttp

from fleettrack._transport import RestTransport, Transport
from fleettrack.config import FleetConfig
from fleettrack.exceptions import FetchError, FleetError, FleetUnauthorizedError
from fleettrack.fetcher import SnapshotFetcher
from fleettrack.models.geo import Coordinate
from fleettrack.models.job import JobMarker
from fleettrack.models.location import LocationRecord
from fleettrack.models.snapshot import EntityKey, Snapshot
from fleettrack.reconciler import MarkerReconciler
from fleettrack.scheduler import RefreshScheduler, SchedulerState, Timer
from fleettrack.selection import Selection, SelectionController
from fleettrack.surface import MapSurface
from fleettrack.view_filter import FilteredView, FilterSelection, StatusCounts, ViewFilter
from fleettrack.viewport import ViewportFitter

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class TrackerView:
    """Read-only state for the UI shell."""

    counts: StatusCounts
    locations: tuple[LocationRecord, ...]
    jobs: tuple[JobMarker, ...]
    filter: FilterSelection
    selection: Selection | None
    last_updated: datetime | None
    connection_issue: bool
    loading: bool
    degraded: bool
    state: SchedulerState


class FleetTracker:
    """Poll the backend and keep a map surface in sync with the latest snapshot.

    Usage::

        async with FleetTracker(config, surface, token=token) as tracker:
            tracker.set_filter("on_job")
            ...

    Entering the context acquires the HTTP session and starts polling if a
    token is present. Leaving it stops polling, cancels in-flight fetches
    and releases every marker handle.
    """

    def __init__(
        self,
        config: FleetConfig,
        surface: MapSurface,
        *,
        token: str | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        timer: Timer | None = None,
        monotonic: Callable[[], float] = time.monotonic,
        on_view_change: Callable[[TrackerView], None] | None = None,
        on_unauthorized: Callable[[FleetUnauthorizedError], None] | None = None,
    ) -> None:
        self._config = config
        self._surface = surface
        self._token = token
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._fetcher: SnapshotFetcher | None = None
        self._on_view_change = on_view_change
        self._on_unauthorized_cb = on_unauthorized

        self._filter = ViewFilter()
        self._reconciler = MarkerReconciler(surface, on_click=self._on_marker_click)
        self._fitter = ViewportFitter(
            surface,
            padding=config.fit_padding,
            cooldown=config.interaction_cooldown,
            clock=monotonic,
        )
        self._selection = SelectionController(on_change=self._on_selection_change, focus=surface.pan_to)
        self._scheduler = RefreshScheduler(
            self._fetch,
            interval=config.refresh_interval,
            timer=timer,
            failure_threshold=config.stale_failure_threshold,
            on_snapshot=self._on_snapshot,
            on_error=self._on_fetch_error,
            on_unauthorized=self._on_unauthorized,
        )

        self._snapshot: Snapshot | None = None
        self._filtered: FilteredView | None = None
        self._rendering = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetTracker:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = RestTransport(self._config, self._http_session)
        self._fetcher = SnapshotFetcher(self._config, self._transport)
        try:
            self._surface.set_view(Coordinate.from_lng_lat(self._config.default_center), self._config.default_zoom)
        except Exception:
            _logger.warning("Could not set the initial map view", exc_info=True)
        if self._token:
            self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop polling and release everything the view holds."""
        await self._scheduler.aclose()
        self._release()
        self._fetcher = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    # ------------------------------------------------------------------
    # Session collaborator
    # ------------------------------------------------------------------

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        """Adopt a new credential; ``None`` stops polling and clears the map."""
        if token == self._token:
            return
        self._token = token
        if not token:
            _logger.info("Auth token cleared; stopping refresh")
            self._scheduler.stop()
            self._release()
            self._publish()
            return
        if self._fetcher is None:
            return
        if self._scheduler.state is SchedulerState.IDLE:
            self.start()
            return
        # Fetches sent with the previous credential must not decide anything.
        _logger.debug("Auth token rotated; discarding %d in-flight fetch(es)", self._scheduler.in_flight)
        self._scheduler.discard_in_flight()
        self._scheduler.manual_refresh()

    # ------------------------------------------------------------------
    # Refresh control
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None] | None:
        self._require_fetcher()
        if not self._token:
            _logger.debug("start() without a token; not polling")
            return None
        return self._scheduler.start()

    def pause(self) -> None:
        self._scheduler.pause()
        self._publish()

    def resume(self) -> None:
        if not self._token:
            _logger.debug("resume() without a token; not polling")
            return
        self._scheduler.resume()
        self._publish()

    async def refresh(self) -> None:
        """Fetch now, outside the timer's period, and wait for the result."""
        self._require_fetcher()
        if not self._token:
            _logger.debug("refresh() without a token; skipped")
            return
        task = self._scheduler.manual_refresh()
        await asyncio.gather(task, return_exceptions=True)

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    # ------------------------------------------------------------------
    # User input
    # ------------------------------------------------------------------

    def set_filter(self, selection: FilterSelection | str) -> None:
        if not self._filter.set_selection(selection):
            return
        if self._snapshot is not None:
            self._render(self._snapshot)
        else:
            self._publish()

    def select(self, key: EntityKey) -> Selection | None:
        return self._selection.select(key)

    def select_record(self, record: LocationRecord | JobMarker) -> Selection | None:
        return self._selection.select_record(record)

    def clear_selection(self) -> None:
        self._selection.clear()

    def note_user_viewport_change(self) -> None:
        self._fitter.note_user_interaction()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def view(self) -> TrackerView:
        filtered = self._filtered
        snapshot = self._snapshot
        return TrackerView(
            counts=filtered.counts if filtered is not None else StatusCounts(),
            locations=filtered.locations if filtered is not None else (),
            jobs=filtered.jobs if filtered is not None else (),
            filter=self._filter.selection,
            selection=self._selection.selected,
            last_updated=self._scheduler.last_updated,
            connection_issue=self._scheduler.connection_issue,
            loading=bool(self._token) and snapshot is None,
            degraded=snapshot.degraded if snapshot is not None else False,
            state=self._scheduler.state,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_fetcher(self) -> SnapshotFetcher:
        if self._fetcher is None:
            raise FleetError("Tracker not initialized. Use 'async with FleetTracker(...) as tracker:'")
        return self._fetcher

    async def _fetch(self, generation: int) -> Snapshot:
        fetcher = self._require_fetcher()
        return await fetcher.fetch(self._token, generation=generation)

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self._render(snapshot)

    def _render(self, snapshot: Snapshot) -> None:
        self._rendering = True
        try:
            filtered = self._filter.apply(snapshot)
            result = self._reconciler.reconcile(filtered.locations, filtered.jobs)
            self._fitter.refit(result)
            self._selection.sync(filtered.locations, filtered.jobs)
            self._filtered = filtered
        finally:
            self._rendering = False
        _logger.debug(
            "Rendered generation %d: +%d ~%d -%d (skipped %d)",
            snapshot.generation,
            len(result.created),
            len(result.moved) + len(result.restyled),
            len(result.removed),
            len(result.skipped),
        )
        self._publish()

    def _release(self) -> None:
        self._reconciler.teardown()
        self._selection.sync(())
        self._snapshot = None
        self._filtered = None

    def _on_fetch_error(self, _exc: FetchError) -> None:
        self._publish()

    def _on_unauthorized(self, exc: FleetUnauthorizedError) -> None:
        self._token = None
        self._release()
        self._publish()
        if self._on_unauthorized_cb is not None:
            try:
                self._on_unauthorized_cb(exc)
            except Exception:
                _logger.warning("on_unauthorized callback failed", exc_info=True)

    def _on_marker_click(self, key: EntityKey) -> None:
        self._selection.select(key)

    def _on_selection_change(self, _selection: Selection | None) -> None:
        if not self._rendering:
            self._publish()

    def _publish(self) -> None:
        if self._on_view_change is None:
            return
        try:
            self._on_view_change(self.view)
        except Exception:
            _logger.debug("on_view_change callback failed", exc_info=True)
