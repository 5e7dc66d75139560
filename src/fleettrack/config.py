"""Engine configuration for fleettrack."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fleettrack._constants import (
    ACTIVE_JOB_STATUSES,
    BASE_URL,
    DEFAULT_CENTER,
    DEFAULT_ZOOM,
    JOBS_ENDPOINT,
    LOCATIONS_ENDPOINT,
)
from fleettrack.exceptions import FleetConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_tuple(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclasses.dataclass(frozen=True)
class FleetConfig:
    """Tracking engine configuration.

    Parameters
    ----------
    base_url : str
        REST API base URL, without a trailing slash.
    locations_endpoint : str
        Path of the worker-location collection.
    jobs_endpoint : str
        Path of the work-order collection.
    active_job_statuses : tuple of str
        Job statuses requested from the backend and kept on the map.
    refresh_interval : float
        Seconds between scheduled refreshes.
    request_timeout : float
        Total timeout in seconds for a single HTTP request.
    fit_padding : float
        Fraction of the bounds' span added on every side when refitting.
    interaction_cooldown : float
        Seconds after a user pan/zoom during which automatic refits are
        suppressed.
    stale_failure_threshold : int
        Consecutive failed fetches after which the connection-issue
        indicator is raised.
    default_center : tuple of float
        Initial map centre as ``(longitude, latitude)``.
    default_zoom : int
        Initial map zoom level.
    api_trace_enabled : bool
        Log redacted request/response payloads at DEBUG level.
    """

    base_url: str = BASE_URL
    locations_endpoint: str = LOCATIONS_ENDPOINT
    jobs_endpoint: str = JOBS_ENDPOINT
    active_job_statuses: tuple[str, ...] = ACTIVE_JOB_STATUSES
    refresh_interval: float = 10.0
    request_timeout: float = 10.0
    fit_padding: float = 0.1
    interaction_cooldown: float = 3.0
    stale_failure_threshold: int = 2
    default_center: tuple[float, float] = DEFAULT_CENTER
    default_zoom: int = DEFAULT_ZOOM
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if not self.base_url:
            raise FleetConfigError("base_url must be non-empty")
        if self.refresh_interval <= 0:
            raise FleetConfigError(f"refresh_interval must be positive, got {self.refresh_interval}")
        if self.request_timeout <= 0:
            raise FleetConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.fit_padding < 0:
            raise FleetConfigError(f"fit_padding must not be negative, got {self.fit_padding}")
        if self.interaction_cooldown < 0:
            raise FleetConfigError(f"interaction_cooldown must not be negative, got {self.interaction_cooldown}")
        if self.stale_failure_threshold < 1:
            raise FleetConfigError(
                f"stale_failure_threshold must be at least 1, got {self.stale_failure_threshold}"
            )
        if not self.active_job_statuses:
            raise FleetConfigError("active_job_statuses must name at least one status")
        # Normalise so URL joining never produces "//".
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetConfig:
        """Create configuration from environment variables.

        Reads optional ``FLEET_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FleetConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "FLEET_BASE_URL": "base_url",
            "FLEET_LOCATIONS_ENDPOINT": "locations_endpoint",
            "FLEET_JOBS_ENDPOINT": "jobs_endpoint",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "FLEET_REFRESH_INTERVAL": "refresh_interval",
            "FLEET_REQUEST_TIMEOUT": "request_timeout",
            "FLEET_FIT_PADDING": "fit_padding",
            "FLEET_INTERACTION_COOLDOWN": "interaction_cooldown",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = float(val)
            except ValueError as exc:
                raise FleetConfigError(f"{env_key} must be a number, got {val!r}") from exc

        threshold_env = env.get("FLEET_STALE_FAILURE_THRESHOLD")
        if threshold_env is not None and "stale_failure_threshold" not in overrides:
            try:
                config_kwargs["stale_failure_threshold"] = int(threshold_env)
            except ValueError as exc:
                raise FleetConfigError(
                    f"FLEET_STALE_FAILURE_THRESHOLD must be an integer, got {threshold_env!r}"
                ) from exc

        statuses_env = env.get("FLEET_ACTIVE_JOB_STATUSES")
        if statuses_env is not None and "active_job_statuses" not in overrides:
            config_kwargs["active_job_statuses"] = _env_tuple(statuses_env)

        if "api_trace_enabled" not in overrides:
            config_kwargs["api_trace_enabled"] = _env_bool(
                env.get("FLEET_API_TRACE_ENABLED"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
