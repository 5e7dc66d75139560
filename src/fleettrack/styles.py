"""Status/priority → visual style lookup.

One table per entity type, shared by marker icons, list badges and the
summary bar so every surface shows the same colour for the same value.
Values without an entry fall back to the default style.
"""

from __future__ import annotations

import dataclasses
from enum import StrEnum

from fleettrack.models.job import JobPriority
from fleettrack.models.location import WorkerStatus
from fleettrack.models.snapshot import EntityType


class MarkerShape(StrEnum):
    CIRCLE = "circle"
    SQUARE = "square"


@dataclasses.dataclass(frozen=True)
class StatusStyle:
    """Display attributes for one status or priority value."""

    label: str
    color: str
    badge_class: str
    glyph: str


@dataclasses.dataclass(frozen=True)
class IconSpec:
    """Everything a map surface needs to draw a marker icon.

    ``anchor`` is the pixel offset of the geographic point within the icon.
    """

    shape: MarkerShape
    color: str
    glyph: str
    size: int
    anchor: tuple[int, int]
    border_color: str = "#ffffff"


WORKER_STYLES: dict[WorkerStatus, StatusStyle] = {
    WorkerStatus.AVAILABLE: StatusStyle("Available", "#10b981", "bg-green-100 text-green-800", "✅"),
    WorkerStatus.ON_JOB: StatusStyle("On Job", "#3b82f6", "bg-blue-100 text-blue-800", "🚀"),
    WorkerStatus.OFFLINE: StatusStyle("Offline", "#6b7280", "bg-gray-100 text-gray-800", "⚫"),
    WorkerStatus.BREAK: StatusStyle("Break", "#f59e0b", "bg-orange-100 text-orange-800", "☕"),
}
DEFAULT_WORKER_STYLE = StatusStyle("Unknown", "#6b7280", "bg-gray-100 text-gray-800", "❓")

JOB_STYLES: dict[JobPriority, StatusStyle] = {
    JobPriority.LOW: StatusStyle("Low", "#22c55e", "bg-gray-100 text-gray-800 border-gray-300", "📋"),
    JobPriority.MEDIUM: StatusStyle("Medium", "#eab308", "bg-blue-100 text-blue-800 border-blue-300", "📋"),
    JobPriority.HIGH: StatusStyle("High", "#f97316", "bg-orange-100 text-orange-800 border-orange-300", "📋"),
    JobPriority.CRITICAL: StatusStyle("Critical", "#ef4444", "bg-red-100 text-red-800 border-red-300", "📋"),
}
DEFAULT_JOB_STYLE = StatusStyle("Unknown", "#6b7280", "bg-gray-100 text-gray-800 border-gray-300", "📋")

_WORKER_ICON_GLYPH = "🔧"
_WORKER_ICON_SIZE = 32
_JOB_ICON_SIZE = 28


def worker_style(status: WorkerStatus | str) -> StatusStyle:
    return WORKER_STYLES.get(WorkerStatus(status), DEFAULT_WORKER_STYLE)


def job_style(priority: JobPriority | str) -> StatusStyle:
    return JOB_STYLES.get(JobPriority(priority), DEFAULT_JOB_STYLE)


def style_for(entity_type: EntityType, key: str) -> StatusStyle:
    """Style for a worker status or job priority value."""
    if entity_type is EntityType.WORKER:
        return worker_style(key)
    return job_style(key)


def icon_for(entity_type: EntityType, key: str) -> IconSpec:
    """Pure mapping ``(entity type, status|priority) → IconSpec``."""
    style = style_for(entity_type, key)
    if entity_type is EntityType.WORKER:
        half = _WORKER_ICON_SIZE // 2
        return IconSpec(
            shape=MarkerShape.CIRCLE,
            color=style.color,
            glyph=_WORKER_ICON_GLYPH,
            size=_WORKER_ICON_SIZE,
            anchor=(half, half),
        )
    half = _JOB_ICON_SIZE // 2
    return IconSpec(
        shape=MarkerShape.SQUARE,
        color=style.color,
        glyph=style.glyph,
        size=_JOB_ICON_SIZE,
        anchor=(half, half),
    )


def status_label(value: str) -> str:
    """``"on_job"`` → ``"ON JOB"`` for list badges."""
    return value.replace("_", " ").upper()
