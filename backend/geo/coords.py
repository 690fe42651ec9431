from __future__ import annotations

import math
from dataclasses import dataclass


class InvalidCoordinateError(ValueError):
    pass


# Vertex order used by ESRI JSON and GeoJSON alike: (x, y) == (lon, lat).
LonLat = tuple[float, float]


@dataclass(frozen=True)
class Coordinate:
    """
    WGS84 location in degrees.

    Convention used throughout this repo:
    - `Coordinate` is (latitude, longitude), validated on construction
    - geometry vertices are plain `(lon, lat)` tuples (see `LonLat`)
    """

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat = self.latitude
        lon = self.longitude
        if not _finite(lat) or not -90.0 <= float(lat) <= 90.0:
            raise InvalidCoordinateError(f"latitude out of range: {lat!r}")
        if not _finite(lon) or not -180.0 <= float(lon) <= 180.0:
            raise InvalidCoordinateError(f"longitude out of range: {lon!r}")

    @classmethod
    def from_lon_lat(cls, vertex: LonLat) -> "Coordinate":
        return cls(latitude=float(vertex[1]), longitude=float(vertex[0]))

    def lon_lat(self) -> LonLat:
        return (self.longitude, self.latitude)

    def rounded_key(self, decimals: int = 4) -> tuple[float, float]:
        """
        A stable, hashable key for caching per-location results.

        decimals=4 is ~11m-ish in latitude, which is plenty for enrichment lookups.
        """
        return (round(self.latitude, decimals), round(self.longitude, decimals))


def _finite(v) -> bool:
    try:
        return math.isfinite(float(v))
    except (TypeError, ValueError):
        return False
