"""Custom exception hierarchy for fleettrack."""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar


class FetchErrorKind(StrEnum):
    UNAUTHORIZED = "unauthorized"
    NETWORK = "network"
    MALFORMED = "malformed"


class FleetError(Exception):
    """Base exception for all fleettrack errors."""


class FleetConfigError(FleetError):
    """Invalid or missing configuration."""


class FleetSurfaceError(FleetError):
    """A map surface call referenced an unknown or released handle."""


class FetchError(FleetError):
    """A snapshot round trip failed.

    ``kind`` tells the scheduler how to react: unauthorized halts polling,
    network waits for the next tick, malformed degrades to an empty snapshot.
    """

    kind: ClassVar[FetchErrorKind]

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FleetUnauthorizedError(FetchError):
    """Token missing, expired or rejected by the backend (HTTP 401/403).

    Never retried locally; the session collaborator has to re-authenticate.
    """

    kind = FetchErrorKind.UNAUTHORIZED


class FleetNetworkError(FetchError):
    """Connectivity failure, timeout or non-2xx status."""

    kind = FetchErrorKind.NETWORK


class FleetMalformedError(FetchError):
    """Response body is not valid JSON or not the expected array shape."""

    kind = FetchErrorKind.MALFORMED


_SEVERITY: dict[FetchErrorKind, int] = {
    FetchErrorKind.UNAUTHORIZED: 2,
    FetchErrorKind.NETWORK: 1,
    FetchErrorKind.MALFORMED: 0,
}


def most_severe(errors: list[FetchError]) -> FetchError:
    """Pick the error that should decide the outcome of a combined fetch."""
    if not errors:
        raise ValueError("errors must be non-empty")
    return max(errors, key=lambda err: _SEVERITY[err.kind])
