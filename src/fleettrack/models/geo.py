"""Coordinate and bounds models.

Coordinates travel as ``[longitude, latitude]`` pairs on the wire.
The ordering matters and is preserved everywhere inside the engine;
only display code flips it to ``lat, lng``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fleettrack.ingestion.normalize import float_in_range


class Coordinate(BaseModel):
    """A WGS84 position."""

    model_config = ConfigDict(frozen=True)

    longitude: float = Field(ge=-180.0, le=180.0)
    latitude: float = Field(ge=-90.0, le=90.0)

    @classmethod
    def from_lng_lat(cls, pair: tuple[float, float] | list[float]) -> Coordinate:
        lng, lat = pair
        return cls(longitude=lng, latitude=lat)

    def as_lng_lat(self) -> tuple[float, float]:
        return (self.longitude, self.latitude)

    def as_lat_lng(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


def coerce_coordinate(value: Any) -> Coordinate | None:
    """Best-effort conversion of a wire coordinate to :class:`Coordinate`.

    Accepts ``[lng, lat]``, a GeoJSON point object, or a dict with
    ``longitude``/``latitude`` (or ``lng``/``lat``) keys. Anything
    missing, non-numeric or out of range yields ``None``.
    """
    if value is None:
        return None
    if isinstance(value, Coordinate):
        return value
    if isinstance(value, dict):
        if "coordinates" in value:
            return coerce_coordinate(value.get("coordinates"))
        lng = value.get("longitude", value.get("lng", value.get("lon")))
        lat = value.get("latitude", value.get("lat"))
        value = [lng, lat]
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return None
    lng = float_in_range(value[0], -180.0, 180.0)
    lat = float_in_range(value[1], -90.0, 90.0)
    if lng is None or lat is None:
        return None
    return Coordinate(longitude=lng, latitude=lat)


class Bounds(BaseModel):
    """An axis-aligned lng/lat rectangle."""

    model_config = ConfigDict(frozen=True)

    west: float
    south: float
    east: float
    north: float

    @classmethod
    def from_coordinates(cls, coordinates: Iterable[Coordinate]) -> Bounds | None:
        """Smallest bounds containing every coordinate, or ``None`` if empty."""
        points = list(coordinates)
        if not points:
            return None
        return cls(
            west=min(p.longitude for p in points),
            south=min(p.latitude for p in points),
            east=max(p.longitude for p in points),
            north=max(p.latitude for p in points),
        )

    def padded(self, ratio: float) -> Bounds:
        """Extend every side by *ratio* times the span on that axis."""
        dx = (self.east - self.west) * ratio
        dy = (self.north - self.south) * ratio
        return Bounds(
            west=self.west - dx,
            south=self.south - dy,
            east=self.east + dx,
            north=self.north + dy,
        )

    def contains(self, coordinate: Coordinate) -> bool:
        return self.west <= coordinate.longitude <= self.east and self.south <= coordinate.latitude <= self.north

    @property
    def center(self) -> Coordinate:
        return Coordinate(
            longitude=(self.west + self.east) / 2,
            latitude=(self.south + self.north) / 2,
        )
