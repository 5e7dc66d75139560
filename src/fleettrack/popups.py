"""Popup/detail HTML for map markers.

Content is rebuilt from the current record on every reconciliation pass
because it shows fast-changing fields (battery, speed, last update).
"""

from __future__ import annotations

from datetime import datetime
from html import escape

from fleettrack._constants import mps_to_kmh
from fleettrack.models.job import JobMarker
from fleettrack.models.location import LocationRecord
from fleettrack.styles import job_style, worker_style

_TITLE = '<div class="fleet-popup__title">{}</div>'
_ROW = '<div class="fleet-popup__row">{}: <span class="fleet-popup__value">{}</span></div>'
_NOTE = '<div class="fleet-popup__note">{}</div>'


def _wrap(parts: list[str]) -> str:
    return '<div class="fleet-popup">' + "".join(parts) + "</div>"


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return "unknown"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def render_worker_popup(record: LocationRecord) -> str:
    style = worker_style(record.status)
    parts = [
        _TITLE.format(escape(record.user.display_name)),
        _ROW.format("Status", escape(style.label)),
    ]
    if record.user.email:
        parts.append(_NOTE.format(escape(record.user.email)))
    if record.user.phone:
        parts.append(_ROW.format("Phone", escape(record.user.phone)))
    if record.battery is not None:
        parts.append(_ROW.format("Battery", f"{record.battery:g}%"))
    if record.speed is not None:
        parts.append(_ROW.format("Speed", f"{mps_to_kmh(record.speed)} km/h"))
    if record.coordinates is not None:
        lat, lng = record.coordinates.as_lat_lng()
        parts.append(_ROW.format("Coordinates", f"{lat:.6f}, {lng:.6f}"))
    parts.append(_NOTE.format(f"Last updated: {escape(format_timestamp(record.last_updated))}"))
    return _wrap(parts)


def render_job_popup(job: JobMarker) -> str:
    parts = [
        _TITLE.format(escape(job.title or job.id)),
        _ROW.format("Priority", escape(job_style(job.priority).label)),
        _ROW.format("Status", escape(job.status.value.replace("_", " "))),
    ]
    if job.assigned_to is not None and (job.assigned_to.name or job.assigned_to.id):
        parts.append(_ROW.format("Assigned to", escape(job.assigned_to.name or job.assigned_to.id)))
    if job.address:
        parts.append(_NOTE.format(escape(job.address)))
    return _wrap(parts)
