"""Active job endpoint.

Endpoint:
  - GET {jobs_endpoint}?status=assigned&status=in_progress -> JSON array of jobs
"""

from __future__ import annotations

import logging

from fleettrack._transport import Transport
from fleettrack.config import FleetConfig
from fleettrack.ingestion.records import parse_jobs
from fleettrack.models.job import JobMarker

_logger = logging.getLogger(__name__)


def build_active_job_params(config: FleetConfig) -> list[tuple[str, str]]:
    """One repeated ``status`` parameter per active status."""
    return [("status", status) for status in config.active_job_statuses]


async def fetch_active_jobs(config: FleetConfig, transport: Transport, token: str) -> list[JobMarker]:
    """Fetch jobs that are currently assigned or in progress."""
    endpoint = config.jobs_endpoint
    payload = await transport.get_json(endpoint, token=token, params=build_active_job_params(config))
    records = parse_jobs(payload, endpoint=endpoint, active_statuses=config.active_job_statuses)
    _logger.debug("Fetched %d active job(s)", len(records))
    return records
