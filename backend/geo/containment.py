from __future__ import annotations

from typing import Sequence

from geo.coords import Coordinate, LonLat

# Absolute tolerance (degrees^2) for the on-edge cross product test.
_EDGE_EPS = 1e-12


def point_in_ring(
    p: Coordinate, ring: Sequence[LonLat], *, include_boundary: bool = True
) -> bool:
    """
    Ray casting toward +longitude; an odd number of crossings means inside.

    Only edges whose latitude span straddles `p.latitude` (half-open) are counted, so
    a ray passing exactly through a vertex is counted once.

    Boundary rule: a point exactly on an edge or vertex is inside iff `include_boundary`.
    Rings with fewer than 3 distinct vertices contain nothing.
    """
    if _distinct_vertices(ring) < 3:
        return False

    lon, lat = p.longitude, p.latitude
    if _on_boundary(lon, lat, ring):
        return include_boundary

    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lon < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_polygon(p: Coordinate, rings: Sequence[Sequence[LonLat]]) -> bool:
    """
    `rings[0]` is the outer boundary, `rings[1:]` are holes.

    A point inside a hole is NOT contained, even though it is inside the outer ring.
    Boundaries of the outer ring and of holes both count as part of the polygon, which
    is the same answer shapely's `Polygon.covers` gives.
    """
    if not rings:
        return False
    if not point_in_ring(p, rings[0], include_boundary=True):
        return False
    for hole in rings[1:]:
        if point_in_ring(p, hole, include_boundary=False):
            return False
    return True


def _on_boundary(lon: float, lat: float, ring: Sequence[LonLat]) -> bool:
    n = len(ring)
    for i in range(n):
        x1, y1 = ring[i]
        x2, y2 = ring[(i + 1) % n]
        if min(x1, x2) - _EDGE_EPS <= lon <= max(x1, x2) + _EDGE_EPS and min(
            y1, y2
        ) - _EDGE_EPS <= lat <= max(y1, y2) + _EDGE_EPS:
            cross = (x2 - x1) * (lat - y1) - (y2 - y1) * (lon - x1)
            if abs(cross) <= _EDGE_EPS:
                return True
    return False


def _distinct_vertices(ring: Sequence[LonLat]) -> int:
    return len({(float(x), float(y)) for x, y in ring})
