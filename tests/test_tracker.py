from __future__ import annotations

import asyncio

import pytest

from fleettrack.config import FleetConfig
from fleettrack.exceptions import FleetError, FleetNetworkError, FleetUnauthorizedError
from fleettrack.models.geo import Coordinate
from fleettrack.models.snapshot import EntityKey
from fleettrack.scheduler import ManualTimer, SchedulerState
from fleettrack.surface import InMemoryMapSurface, SurfaceOp
from fleettrack.tracker import FleetTracker, TrackerView
from fleettrack.view_filter import FilterSelection


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def surface() -> InMemoryMapSurface:
    return InMemoryMapSurface()


@pytest.fixture
def seeded_backend(backend, payloads):
    backend.locations = [
        payloads.location("w1", "available", lng=10.0, lat=20.0),
        payloads.location("w2", "on_job", lng=12.0, lat=22.0),
    ]
    backend.jobs = [payloads.job("j1", priority="critical", lng=11.0, lat=21.0)]
    return backend


def _tracker(surface, backend, views: list[TrackerView] | None = None, **kwargs) -> FleetTracker:
    kwargs.setdefault("token", "tok")
    return FleetTracker(
        FleetConfig(),
        surface,
        transport=backend,
        timer=ManualTimer(),
        on_view_change=views.append if views is not None else None,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_initial_view_and_first_render(surface, seeded_backend) -> None:
    views: list[TrackerView] = []
    async with _tracker(surface, seeded_backend, views) as tracker:
        await tracker.scheduler.wait_idle()
        view = tracker.view

        assert surface.operations[0] == (SurfaceOp.SET_VIEW, Coordinate(longitude=-71.0589, latitude=42.3601))
        assert len(surface.outstanding_handles) == 3
        assert surface.count(SurfaceOp.FIT) == 1
        assert view.counts.total == 2
        assert view.counts.active_jobs == 1
        assert view.state is SchedulerState.REFRESHING
        assert not view.loading
        assert view.last_updated is not None
        assert views[-1] == view

    assert surface.outstanding_handles == frozenset()


@pytest.mark.asyncio
async def test_refresh_applies_changes_minimally(surface, seeded_backend, payloads) -> None:
    async with _tracker(surface, seeded_backend) as tracker:
        await tracker.scheduler.wait_idle()
        surface.clear_operations()

        seeded_backend.locations = [
            payloads.location("w1", "available", lng=10.5, lat=20.0),
            payloads.location("w3", "break", lng=13.0, lat=23.0),
        ]
        await tracker.refresh()

        assert surface.count(SurfaceOp.MOVE) == 1
        assert surface.count(SurfaceOp.REMOVE) == 1
        assert surface.count(SurfaceOp.CREATE) == 1
        assert tracker.scheduler.applied_generation == 2
        assert len(surface.outstanding_handles) == 3


@pytest.mark.asyncio
async def test_filter_rerenders_without_fetching(surface, seeded_backend) -> None:
    async with _tracker(surface, seeded_backend) as tracker:
        await tracker.scheduler.wait_idle()
        calls = len(seeded_backend.calls)

        tracker.set_filter("on_job")

        assert len(seeded_backend.calls) == calls
        assert tracker.view.filter is FilterSelection.ON_JOB
        assert [record.id for record in tracker.view.locations] == ["w2"]
        assert tracker.view.counts.total == 2
        assert len(surface.outstanding_handles) == 2

        tracker.set_filter(FilterSelection.ALL)
        assert len(surface.outstanding_handles) == 3


@pytest.mark.asyncio
async def test_marker_click_selects_and_pans(surface, seeded_backend) -> None:
    async with _tracker(surface, seeded_backend) as tracker:
        await tracker.scheduler.wait_idle()
        first_handle = next(subject for op, subject in surface.operations if op is SurfaceOp.CREATE)

        surface.click(first_handle)

        selection = tracker.view.selection
        assert selection is not None
        assert selection.key == EntityKey.worker("w1")
        assert surface.count(SurfaceOp.PAN) == 1

        tracker.set_filter("on_job")
        assert tracker.view.selection is None


@pytest.mark.asyncio
async def test_unauthorized_releases_everything(surface, seeded_backend) -> None:
    rejected: list[FleetUnauthorizedError] = []
    async with _tracker(surface, seeded_backend, on_unauthorized=rejected.append) as tracker:
        await tracker.scheduler.wait_idle()
        assert surface.outstanding_handles

        seeded_backend.failures["/locations"] = FleetUnauthorizedError("HTTP 401", status_code=401)
        await tracker.refresh()

        assert len(rejected) == 1
        assert tracker.token is None
        assert surface.outstanding_handles == frozenset()
        assert tracker.view.state is SchedulerState.IDLE
        assert tracker.view.counts.total == 0

        # Re-authentication resumes polling.
        seeded_backend.failures.clear()
        tracker.set_token("tok-2")
        await tracker.scheduler.wait_idle()

        assert seeded_backend.calls[-1][1] == "tok-2"
        assert len(surface.outstanding_handles) == 3


@pytest.mark.asyncio
async def test_clearing_token_stops_and_clears_map(surface, seeded_backend) -> None:
    async with _tracker(surface, seeded_backend) as tracker:
        await tracker.scheduler.wait_idle()

        tracker.set_token(None)

        assert surface.outstanding_handles == frozenset()
        assert tracker.view.state is SchedulerState.IDLE
        assert not tracker.view.loading


@pytest.mark.asyncio
async def test_without_token_nothing_is_fetched(surface, seeded_backend) -> None:
    async with _tracker(surface, seeded_backend, token=None) as tracker:
        await tracker.refresh()

        assert seeded_backend.calls == []
        assert tracker.view.state is SchedulerState.IDLE
        assert not tracker.view.loading


@pytest.mark.asyncio
async def test_network_failures_keep_last_markers(surface, seeded_backend) -> None:
    async with _tracker(surface, seeded_backend) as tracker:
        await tracker.scheduler.wait_idle()

        seeded_backend.failures["/workorders"] = FleetNetworkError("HTTP 502", status_code=502)
        await tracker.refresh()
        assert not tracker.view.connection_issue
        await tracker.refresh()

        assert tracker.view.connection_issue
        assert len(surface.outstanding_handles) == 3
        assert tracker.view.state is SchedulerState.REFRESHING


@pytest.mark.asyncio
async def test_malformed_payload_renders_degraded_empty_view(surface, seeded_backend) -> None:
    async with _tracker(surface, seeded_backend) as tracker:
        await tracker.scheduler.wait_idle()

        seeded_backend.locations = {"message": "maintenance"}
        await tracker.refresh()

        assert tracker.view.degraded
        assert surface.outstanding_handles == frozenset()
        assert not tracker.view.connection_issue


@pytest.mark.asyncio
async def test_user_pan_suppresses_refit(surface, seeded_backend, payloads) -> None:
    clock = FakeMonotonic()
    async with _tracker(surface, seeded_backend, monotonic=clock) as tracker:
        await tracker.scheduler.wait_idle()
        assert surface.count(SurfaceOp.FIT) == 1

        tracker.note_user_viewport_change()
        seeded_backend.locations = [*seeded_backend.locations, payloads.location("w4", lng=15.0, lat=25.0)]
        await tracker.refresh()

        assert len(surface.outstanding_handles) == 4
        assert surface.count(SurfaceOp.FIT) == 1


@pytest.mark.asyncio
async def test_pause_and_resume_through_tracker(surface, seeded_backend) -> None:
    async with _tracker(surface, seeded_backend) as tracker:
        await tracker.scheduler.wait_idle()

        tracker.pause()
        assert tracker.view.state is SchedulerState.PAUSED
        tracker.resume()
        assert tracker.view.state is SchedulerState.REFRESHING


def test_start_before_enter_raises(surface, backend) -> None:
    tracker = _tracker(surface, backend)
    with pytest.raises(FleetError, match="not initialized"):
        tracker.start()


class ExpiringTokenBackend:
    """Serves *backend*, but holds requests sent with *expired* and then rejects them."""

    def __init__(self, backend, expired: str) -> None:
        self.backend = backend
        self.expired = expired
        self.release = asyncio.Event()

    async def get_json(self, endpoint: str, *, token: str, params=()):
        if token == self.expired:
            await self.release.wait()
            raise FleetUnauthorizedError("HTTP 401: jwt expired", status_code=401, endpoint=endpoint)
        return await self.backend.get_json(endpoint, token=token, params=params)


@pytest.mark.asyncio
async def test_late_rejection_of_rotated_token_is_ignored(surface, seeded_backend) -> None:
    transport = ExpiringTokenBackend(seeded_backend, expired="old")
    rejected: list[FleetUnauthorizedError] = []
    async with _tracker(surface, transport, token="old", on_unauthorized=rejected.append) as tracker:
        for _ in range(3):
            await asyncio.sleep(0)
        assert tracker.scheduler.in_flight == 1

        tracker.set_token("new")
        await tracker.refresh()
        transport.release.set()
        await tracker.scheduler.wait_idle()

        assert tracker.token == "new"
        assert rejected == []
        assert tracker.view.state is SchedulerState.REFRESHING
        assert len(surface.outstanding_handles) == 3
        assert all(token == "new" for _, token, _ in seeded_backend.calls)
