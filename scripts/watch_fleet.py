#!/usr/bin/env python3
"""Watch the live fleet from a terminal.

Runs the tracking engine against a headless map surface and prints the
summary bar and marker changes after every refresh, so you can check a
backend without a browser.

Usage
-----
Set environment variables and run::

    export FLEET_BASE_URL="https://fleet.example.com/api"
    export FLEET_TOKEN="eyJhbGciOi..."
    python scripts/watch_fleet.py

Options::

    --token TOKEN        Bearer token (default: $FLEET_TOKEN)
    --filter STATUS      all | available | on_job | break | offline
    --interval SECONDS   Override the refresh interval
    --once               Fetch a single snapshot and exit
    --duration SECONDS   Stop after this many seconds (default: run until Ctrl+C)
    --json               Print each view as a JSON line
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleettrack import FilterSelection, FleetConfig, FleetTracker, InMemoryMapSurface, TrackerView  # noqa: E402
from fleettrack.styles import worker_style  # noqa: E402

_logger = logging.getLogger("watch_fleet")


def _view_to_dict(view: TrackerView) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "state": view.state.value,
        "filter": view.filter.value,
        "counts": {
            "total": view.counts.total,
            "available": view.counts.available,
            "on_job": view.counts.on_job,
            "break": view.counts.on_break,
            "offline": view.counts.offline,
            "unknown": view.counts.unknown,
            "active_jobs": view.counts.active_jobs,
        },
        "visible_workers": [record.id for record in view.locations],
        "visible_jobs": [job.id for job in view.jobs],
        "last_updated": view.last_updated.isoformat() if view.last_updated else None,
        "connection_issue": view.connection_issue,
        "degraded": view.degraded,
    }


def _format_view(view: TrackerView) -> str:
    counts = view.counts
    stamp = view.last_updated.strftime("%H:%M:%S") if view.last_updated else "--:--:--"
    flags = []
    if view.connection_issue:
        flags.append("STALE")
    if view.degraded:
        flags.append("DEGRADED")
    if view.loading:
        flags.append("loading")
    lines = [
        f"[{stamp}] {view.state.value:<10} filter={view.filter.value:<9} "
        f"total={counts.total} available={counts.available} on_job={counts.on_job} "
        f"break={counts.on_break} offline={counts.offline} jobs={counts.active_jobs} {' '.join(flags)}".rstrip()
    ]
    for record in view.locations:
        coords = record.coordinates.as_lat_lng() if record.coordinates else None
        where = f"{coords[0]:.5f},{coords[1]:.5f}" if coords else "no position"
        lines.append(f"    {worker_style(record.status).glyph} {record.user.display_name:<24} {where}")
    return "\n".join(lines)


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Watch live worker locations and active jobs from the tracking backend.",
    )
    parser.add_argument("--token", default=os.environ.get("FLEET_TOKEN"), help="Bearer token (default: $FLEET_TOKEN)")
    parser.add_argument(
        "--filter",
        choices=[selection.value for selection in FilterSelection],
        default=FilterSelection.ALL.value,
        help="Worker status filter",
    )
    parser.add_argument("--interval", type=float, help="Override the refresh interval in seconds")
    parser.add_argument("--once", action="store_true", help="Fetch a single snapshot and exit")
    parser.add_argument("--duration", type=float, help="Stop after this many seconds")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Print each view as a JSON line")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    if not args.token:
        parser.error("no token: pass --token or set FLEET_TOKEN")

    overrides: dict[str, Any] = {}
    if args.interval is not None:
        overrides["refresh_interval"] = args.interval
    config = FleetConfig.from_env(**overrides)

    def show(view: TrackerView) -> None:
        if args.json_mode:
            print(json.dumps(_view_to_dict(view), ensure_ascii=False), flush=True)
        else:
            print(_format_view(view), flush=True)

    rejected = asyncio.Event()
    surface = InMemoryMapSurface()

    async with FleetTracker(
        config,
        surface,
        token=args.token,
        on_view_change=show,
        on_unauthorized=lambda _exc: rejected.set(),
    ) as tracker:
        tracker.set_filter(args.filter)
        if args.once:
            await tracker.scheduler.wait_idle()
        else:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(rejected.wait(), timeout=args.duration)
        _logger.debug("Rendered %d marker(s) at exit", len(surface.outstanding_handles))

    if rejected.is_set():
        print("Credential rejected by the backend; log in again.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
