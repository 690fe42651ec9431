from __future__ import annotations

import math
from functools import lru_cache
from typing import Callable, Sequence

from pyproj import Geod

from geo.containment import point_in_polygon
from geo.coords import Coordinate, InvalidCoordinateError, LonLat

EARTH_RADIUS_MILES = 3959.0
METERS_PER_MILE = 1609.34

# (lat1, lon1, lat2, lon2) -> miles
Metric = Callable[[float, float, float, float], float]


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlon / 2) ** 2
    )
    # Clamp: rounding can push `a` a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(min(1.0, a)))


@lru_cache(maxsize=1)
def wgs84_geod() -> Geod:
    return Geod(ellps="WGS84")


def ellipsoid_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Geodesic distance on the WGS84 ellipsoid (miles).

    Used for datasets configured with `distanceModel: ellipsoid`; everything else uses
    the spherical haversine.
    """
    _az12, _az21, meters = wgs84_geod().inv(lon1, lat1, lon2, lat2)
    return abs(float(meters)) / METERS_PER_MILE


def distance(a: Coordinate, b: Coordinate, *, metric: Metric = haversine_miles) -> float:
    return metric(a.latitude, a.longitude, b.latitude, b.longitude)


def distance_to_segment(
    p: Coordinate,
    seg_start: LonLat,
    seg_end: LonLat,
    *,
    metric: Metric = haversine_miles,
) -> float:
    """
    Distance from `p` to the closest point of a segment (miles).

    Geospatial note: the closest point is found in a planar (lon, lat) projection and
    only the final leg is measured on the sphere. This is inexact at continental scale
    but fine below ~100 miles.
    """
    x1, y1 = seg_start
    x2, y2 = seg_end
    px, py = p.longitude, p.latitude
    dx = x2 - x1
    dy = y2 - y1
    len_sq = dx * dx + dy * dy
    t = 0.0
    if len_sq != 0:
        t = ((px - x1) * dx + (py - y1) * dy) / len_sq
        t = max(0.0, min(1.0, t))
    cx = x1 + t * dx
    cy = y1 + t * dy
    return metric(py, px, cy, cx)


def distance_to_polyline(
    p: Coordinate,
    paths: Sequence[Sequence[LonLat]],
    *,
    metric: Metric = haversine_miles,
) -> float:
    best = math.inf
    for path in paths:
        for i in range(len(path) - 1):
            d = distance_to_segment(p, path[i], path[i + 1], metric=metric)
            if d < best:
                best = d
    return best


def distance_to_polygon(
    p: Coordinate,
    rings: Sequence[Sequence[LonLat]],
    *,
    metric: Metric = haversine_miles,
) -> float:
    """
    Distance to the polygon's outer boundary, or 0 when the polygon contains `p`.
    """
    if not rings:
        return math.inf
    if point_in_polygon(p, rings):
        return 0.0

    outer = rings[0]
    best = math.inf
    n = len(outer)
    for i in range(n):
        start = outer[i]
        end = outer[(i + 1) % n]
        d = min(
            distance_to_segment(p, start, end, metric=metric),
            metric(p.latitude, p.longitude, start[1], start[0]),
        )
        if d < best:
            best = d
    return best


def centroid(paths: Sequence[Sequence[LonLat]]) -> Coordinate | None:
    """Vertex mean; None when there are no vertices or the mean is not a valid lon/lat."""
    n = 0
    sum_lon = 0.0
    sum_lat = 0.0
    for path in paths:
        for lon, lat in path:
            sum_lon += float(lon)
            sum_lat += float(lat)
            n += 1
    if n == 0:
        return None
    try:
        return Coordinate(latitude=sum_lat / n, longitude=sum_lon / n)
    except InvalidCoordinateError:
        return None
