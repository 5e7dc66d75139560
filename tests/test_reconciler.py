from __future__ import annotations

import pytest

from fleettrack.models.geo import Coordinate
from fleettrack.models.snapshot import EntityKey
from fleettrack.reconciler import MarkerReconciler
from fleettrack.surface import InMemoryMapSurface, SurfaceOp


@pytest.fixture
def surface() -> InMemoryMapSurface:
    return InMemoryMapSurface()


def test_first_pass_creates_one_marker_per_record(surface, make_location, make_job) -> None:
    reconciler = MarkerReconciler(surface)

    result = reconciler.reconcile([make_location("w1"), make_location("w2")], [make_job("j1")])

    assert set(result.created) == {EntityKey.worker("w1"), EntityKey.worker("w2"), EntityKey.job("j1")}
    assert result.membership_changed
    assert surface.count(SurfaceOp.CREATE) == 3
    assert surface.count(SurfaceOp.SET_POPUP) == 3
    assert surface.count(SurfaceOp.SUBSCRIBE) == 3
    assert len(reconciler) == 3
    assert set(result.handles) == surface.outstanding_handles


def test_identical_pass_issues_no_calls(surface, make_location, make_job) -> None:
    reconciler = MarkerReconciler(surface)
    locations, jobs = [make_location("w1"), make_location("w2")], [make_job("j1")]
    reconciler.reconcile(locations, jobs)
    surface.clear_operations()

    result = reconciler.reconcile(locations, jobs)

    assert result.is_noop
    assert not result.membership_changed
    assert surface.operations == []


def test_equal_records_from_a_fresh_parse_issue_no_calls(surface, make_location) -> None:
    reconciler = MarkerReconciler(surface)
    reconciler.reconcile([make_location("w1")])
    surface.clear_operations()

    reconciler.reconcile([make_location("w1")])

    assert surface.operations == []


def test_move_remove_and_add_in_one_pass(surface, make_location) -> None:
    reconciler = MarkerReconciler(surface)
    first = reconciler.reconcile(
        [make_location("w1", lng=10.0, lat=20.0), make_location("w2", "on_job", lng=12.0, lat=22.0)],
    )
    w1_handle, w2_handle = first.handles
    surface.clear_operations()

    result = reconciler.reconcile(
        [make_location("w1", lng=10.5, lat=20.0), make_location("w3", "break", lng=14.0, lat=24.0)],
    )

    assert result.moved == (EntityKey.worker("w1"),)
    assert result.removed == (EntityKey.worker("w2"),)
    assert result.created == (EntityKey.worker("w3"),)
    assert result.restyled == ()
    assert surface.count(SurfaceOp.MOVE) == 1
    assert surface.count(SurfaceOp.REMOVE) == 1
    assert surface.count(SurfaceOp.CREATE) == 1
    assert surface.count(SurfaceOp.SET_ICON) == 0
    assert surface.marker(w1_handle).coordinate == Coordinate(longitude=10.5, latitude=20.0)
    assert w2_handle not in surface.outstanding_handles

    ops = [op for op, _ in surface.operations]
    assert ops.index(SurfaceOp.REMOVE) < ops.index(SurfaceOp.CREATE)


def test_status_change_restyles_without_moving(surface, make_location) -> None:
    reconciler = MarkerReconciler(surface)
    first = reconciler.reconcile([make_location("w1", "available")])
    surface.clear_operations()

    result = reconciler.reconcile([make_location("w1", "on_job")])

    assert result.restyled == (EntityKey.worker("w1"),)
    assert result.moved == ()
    assert surface.count(SurfaceOp.SET_ICON) == 1
    assert surface.marker(first.handles[0]).icon.color == "#3b82f6"
    assert "On Job" in surface.marker(first.handles[0]).popup


def test_worker_and_job_ids_do_not_collide(surface, make_location, make_job) -> None:
    reconciler = MarkerReconciler(surface)

    result = reconciler.reconcile([make_location("x")], [make_job("x")])

    assert len(result.created) == 2
    assert len(surface.outstanding_handles) == 2
    assert EntityKey.worker("x") in reconciler
    assert EntityKey.job("x") in reconciler


def test_record_without_coordinate_is_skipped(surface, make_location) -> None:
    reconciler = MarkerReconciler(surface)

    result = reconciler.reconcile([make_location("w1"), make_location("w2", coordinates=None)])

    assert result.created == (EntityKey.worker("w1"),)
    assert result.skipped == (EntityKey.worker("w2"),)
    assert len(surface.outstanding_handles) == 1


def test_record_losing_its_coordinate_is_removed(surface, make_location) -> None:
    reconciler = MarkerReconciler(surface)
    reconciler.reconcile([make_location("w1")])

    result = reconciler.reconcile([make_location("w1", coordinates=None)])

    assert result.removed == (EntityKey.worker("w1"),)
    assert surface.outstanding_handles == frozenset()


def test_teardown_releases_every_handle(surface, make_location, make_job) -> None:
    reconciler = MarkerReconciler(surface)
    reconciler.reconcile([make_location("w1"), make_location("w2")], [make_job("j1")])

    assert reconciler.teardown() == 3
    assert surface.outstanding_handles == frozenset()
    assert len(reconciler) == 0
    assert reconciler.teardown() == 0


def test_empty_subset_removes_everything(surface, make_location) -> None:
    reconciler = MarkerReconciler(surface)
    reconciler.reconcile([make_location("w1"), make_location("w2")])

    result = reconciler.reconcile([])

    assert len(result.removed) == 2
    assert result.handles == ()
    assert surface.outstanding_handles == frozenset()


class _FlakySurface(InMemoryMapSurface):
    def __init__(self) -> None:
        super().__init__()
        self.fail_moves = True
        self.fail_create_at: set[tuple[float, float]] = set()

    def create_marker(self, coordinate, icon):
        if coordinate.as_lng_lat() in self.fail_create_at:
            raise RuntimeError("widget refused marker")
        return super().create_marker(coordinate, icon)

    def move_marker(self, handle, coordinate):
        if self.fail_moves:
            raise RuntimeError("widget busy")
        super().move_marker(handle, coordinate)


def test_surface_failures_are_contained_and_retried(make_location) -> None:
    surface = _FlakySurface()
    surface.fail_create_at.add((30.0, 30.0))
    reconciler = MarkerReconciler(surface)

    result = reconciler.reconcile([make_location("w1"), make_location("w2", lng=30.0, lat=30.0)])
    assert result.created == (EntityKey.worker("w1"),)
    assert result.skipped == (EntityKey.worker("w2"),)

    moved = reconciler.reconcile([make_location("w1", lng=11.0)])
    assert moved.moved == ()

    surface.fail_moves = False
    retried = reconciler.reconcile([make_location("w1", lng=11.0)])
    assert retried.moved == (EntityKey.worker("w1"),)


def test_click_forwards_entity_key(surface, make_location) -> None:
    clicked: list[EntityKey] = []
    reconciler = MarkerReconciler(surface, on_click=clicked.append)
    result = reconciler.reconcile([make_location("w1")])

    surface.click(result.handles[0])

    assert clicked == [EntityKey.worker("w1")]


def test_failing_click_handler_is_contained(surface, make_location) -> None:
    def boom(_key: EntityKey) -> None:
        raise RuntimeError("panel crashed")

    reconciler = MarkerReconciler(surface, on_click=boom)
    result = reconciler.reconcile([make_location("w1")])

    surface.click(result.handles[0])


def test_restyle_remove_and_add_in_one_pass(surface, make_location) -> None:
    reconciler = MarkerReconciler(surface)
    first = reconciler.reconcile(
        [make_location("w1", "available", lng=10.0, lat=20.0), make_location("w2", "on_job", lng=12.0, lat=22.0)],
    )
    w1_handle, w2_handle = first.handles
    surface.clear_operations()

    result = reconciler.reconcile(
        [make_location("w1", "on_job", lng=10.0, lat=20.0), make_location("w3", "break", lng=14.0, lat=24.0)],
    )

    assert result.restyled == (EntityKey.worker("w1"),)
    assert result.removed == (EntityKey.worker("w2"),)
    assert result.created == (EntityKey.worker("w3"),)
    assert surface.count(SurfaceOp.SET_ICON) == 1
    assert surface.count(SurfaceOp.MOVE) == 0
    assert surface.count(SurfaceOp.REMOVE) == 1
    assert surface.count(SurfaceOp.CREATE) == 1
    assert surface.marker(w1_handle).icon.color == "#3b82f6"
    assert surface.marker(w1_handle).coordinate == Coordinate(longitude=10.0, latitude=20.0)
    assert w2_handle not in surface.outstanding_handles
