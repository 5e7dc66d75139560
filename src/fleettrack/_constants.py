"""Internal constants shared across the library."""

BASE_URL = "http://localhost:5001/api"
USER_AGENT = "fleettrack/0 (+aiohttp)"
LOCATIONS_ENDPOINT = "/locations"
JOBS_ENDPOINT = "/workorders"
ACTIVE_JOB_STATUSES: tuple[str, ...] = ("assigned", "in_progress")
UNAUTHORIZED_STATUS_CODES: frozenset[int] = frozenset({401, 403})

# Map defaults used until the first fit (longitude, latitude).
DEFAULT_CENTER: tuple[float, float] = (-71.0589, 42.3601)
DEFAULT_ZOOM = 12

# ------------------------------------------------------------------
# Unit conversions
# ------------------------------------------------------------------

_MPS_TO_KMH = 3.6


def mps_to_kmh(speed: float) -> int:
    """Convert a speed in m/s to a rounded km/h value for display."""
    return int(round(float(speed) * _MPS_TO_KMH))
