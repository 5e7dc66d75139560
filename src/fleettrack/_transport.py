"""Authenticated REST transport for the tracking backend."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import aiohttp

from fleettrack._constants import UNAUTHORIZED_STATUS_CODES, USER_AGENT
from fleettrack._redact import redact_for_log
from fleettrack.config import FleetConfig
from fleettrack.exceptions import (
    FleetMalformedError,
    FleetNetworkError,
    FleetUnauthorizedError,
)

_logger = logging.getLogger(__name__)

QueryParams = Sequence[tuple[str, str]]


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`RestTransport`) concrete.
    """

    async def get_json(self, endpoint: str, *, token: str, params: QueryParams = ()) -> Any: ...


class RestTransport:
    """GET-only JSON transport sending a bearer credential with every request."""

    def __init__(self, config: FleetConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def get_json(self, endpoint: str, *, token: str, params: QueryParams = ()) -> Any:
        """Fetch *endpoint* and return the decoded JSON body.

        Raises
        ------
        FleetUnauthorizedError
            HTTP 401/403.
        FleetNetworkError
            Connection failure, timeout, or any other non-2xx status.
        FleetMalformedError
            The body is not valid JSON.
        """
        url = self._config.url_for(endpoint)
        headers: dict[str, str] = {
            "accept": "application/json",
            "authorization": f"Bearer {token}",
            "user-agent": USER_AGENT,
        }

        _logger.debug("GET %s params=%s", url, list(params))
        if self._config.api_trace_enabled:
            _logger.debug("Request headers: %s", redact_for_log(headers))

        try:
            async with self._http.get(url, params=list(params), headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise FleetNetworkError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc
        except asyncio.TimeoutError as exc:
            raise FleetNetworkError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc

        if status in UNAUTHORIZED_STATUS_CODES:
            raise FleetUnauthorizedError(
                f"HTTP {status} from {endpoint}: credential rejected",
                status_code=status,
                endpoint=endpoint,
            )
        if not 200 <= status < 300:
            raise FleetNetworkError(
                f"HTTP {status} from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FleetMalformedError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("Response from %s: %s", endpoint, redact_for_log(body))
        return body
