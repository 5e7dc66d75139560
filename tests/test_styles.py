from __future__ import annotations

import pytest

from fleettrack.models.job import JobPriority
from fleettrack.models.location import WorkerStatus
from fleettrack.models.snapshot import EntityType
from fleettrack.styles import (
    DEFAULT_JOB_STYLE,
    DEFAULT_WORKER_STYLE,
    MarkerShape,
    icon_for,
    job_style,
    status_label,
    style_for,
    worker_style,
)


@pytest.mark.parametrize(
    ("status", "color"),
    [
        ("available", "#10b981"),
        ("on_job", "#3b82f6"),
        ("offline", "#6b7280"),
        ("break", "#f59e0b"),
    ],
)
def test_worker_colors(status: str, color: str) -> None:
    assert worker_style(status).color == color


@pytest.mark.parametrize(
    ("priority", "color"),
    [
        ("critical", "#ef4444"),
        ("high", "#f97316"),
        ("medium", "#eab308"),
        ("low", "#22c55e"),
    ],
)
def test_job_colors(priority: str, color: str) -> None:
    assert job_style(priority).color == color


def test_unknown_values_fall_back_to_default() -> None:
    assert worker_style("lunch") is DEFAULT_WORKER_STYLE
    assert worker_style(WorkerStatus.UNKNOWN).glyph == "❓"
    assert job_style("urgent") is DEFAULT_JOB_STYLE
    assert style_for(EntityType.JOB, JobPriority.UNKNOWN) is DEFAULT_JOB_STYLE


def test_worker_icon() -> None:
    icon = icon_for(EntityType.WORKER, "on_job")
    assert icon.shape is MarkerShape.CIRCLE
    assert icon.size == 32
    assert icon.anchor == (16, 16)
    assert icon.glyph == "🔧"
    assert icon.color == "#3b82f6"


def test_job_icon() -> None:
    icon = icon_for(EntityType.JOB, "critical")
    assert icon.shape is MarkerShape.SQUARE
    assert icon.size == 28
    assert icon.glyph == "📋"
    assert icon.color == "#ef4444"


def test_icon_lookup_is_pure() -> None:
    assert icon_for(EntityType.WORKER, "break") == icon_for(EntityType.WORKER, "break")


def test_status_label() -> None:
    assert status_label("on_job") == "ON JOB"
