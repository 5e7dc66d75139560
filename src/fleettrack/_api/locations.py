"""Worker-location endpoint.

Endpoint:
  - GET {locations_endpoint} -> JSON array of location records
"""

from __future__ import annotations

import logging

from fleettrack._transport import Transport
from fleettrack.config import FleetConfig
from fleettrack.ingestion.records import parse_locations
from fleettrack.models.location import LocationRecord

_logger = logging.getLogger(__name__)


async def fetch_locations(config: FleetConfig, transport: Transport, token: str) -> list[LocationRecord]:
    """Fetch the current location of every tracked worker."""
    endpoint = config.locations_endpoint
    payload = await transport.get_json(endpoint, token=token)
    records = parse_locations(payload, endpoint=endpoint)
    _logger.debug("Fetched %d location record(s)", len(records))
    return records
