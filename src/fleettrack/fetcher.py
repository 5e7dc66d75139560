"""One authenticated round trip producing a :class:`Snapshot`."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from fleettrack._api.jobs import fetch_active_jobs
from fleettrack._api.locations import fetch_locations
from fleettrack._transport import Transport
from fleettrack.config import FleetConfig
from fleettrack.exceptions import FetchError, FleetUnauthorizedError, most_severe
from fleettrack.models.snapshot import Snapshot

_logger = logging.getLogger(__name__)


class SnapshotFetcher:
    """Pull worker locations and active jobs concurrently.

    Both halves must succeed. If either fails the whole fetch fails with
    the most severe of the errors; a previous good half is never mixed
    with a new one.
    """

    def __init__(self, config: FleetConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    async def fetch(self, token: str | None, *, generation: int = 0) -> Snapshot:
        """Fetch a snapshot stamped with *generation*.

        Raises
        ------
        FleetUnauthorizedError
            No token, or the backend rejected it. No request is sent
            without a token.
        FleetNetworkError
            Either request failed to complete.
        FleetMalformedError
            Either response was not a record array.
        """
        if not token:
            raise FleetUnauthorizedError("No auth token available; refusing to fetch")

        results = await asyncio.gather(
            fetch_locations(self._config, self._transport, token),
            fetch_active_jobs(self._config, self._transport, token),
            return_exceptions=True,
        )
        locations, jobs = results

        errors: list[FetchError] = []
        for result in results:
            if isinstance(result, FetchError):
                errors.append(result)
            elif isinstance(result, BaseException):
                # Cancellation and programming errors are not fetch outcomes.
                raise result
        if errors:
            error = most_severe(errors)
            if len(errors) == 1:
                _logger.debug("Snapshot fetch failed on one half (%s): %s", error.kind, error)
            else:
                _logger.debug("Snapshot fetch failed on both halves; reporting %s", error.kind)
            raise error

        assert isinstance(locations, list) and isinstance(jobs, list)  # noqa: S101
        return Snapshot(
            locations=tuple(locations),
            jobs=tuple(jobs),
            generation=generation,
            fetched_at=datetime.now(UTC),
        )
