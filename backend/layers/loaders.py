from __future__ import annotations

import math
import threading
from typing import Any

from pyproj import Transformer

from geo.coords import Coordinate, InvalidCoordinateError, LonLat
from layers.types import (
    Geometry,
    PointGeometry,
    PolygonGeometry,
    PolylineGeometry,
    RawFeature,
)

# EPSG:3857 spans +-20037508.34 m on both axes.
WEB_MERCATOR_EXTENT = 20037508.342789244

_local = threading.local()


def web_mercator_to_wgs84() -> Transformer:
    # One transformer per thread; passes decode concurrently.
    t = getattr(_local, "transformer", None)
    if t is None:
        t = Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)
        _local.transformer = t
    return t


def decode_features(features: list[Any]) -> list[RawFeature]:
    """
    Decode a feature service `features` array.

    Input items look like `{attributes: {...}, geometry: {...}}` (ESRI JSON). GeoJSON-ish
    items carrying `properties` instead of `attributes` are accepted too. A geometry that
    cannot be decoded leaves the feature with `geometry=None`.
    """
    out: list[RawFeature] = []
    for i, feature in enumerate(features or []):
        if not isinstance(feature, dict):
            continue
        attrs = feature.get("attributes")
        if attrs is None:
            attrs = feature.get("properties")
        if not isinstance(attrs, dict):
            attrs = {}
        try:
            geometry = decode_geometry(feature.get("geometry"))
        except (TypeError, ValueError):
            geometry = None
        out.append(RawFeature(index=i, geometry=geometry, attributes=attrs))
    return out


def decode_geometry(geom: Any) -> Geometry | None:
    """
    ESRI JSON (`x/y`, `paths`, `rings`) or GeoJSON (`type` + `coordinates`) -> Geometry.

    Returns None for missing, empty or unsupported shapes. Web Mercator vertices (a
    service ignoring `outSR=4326`) are reprojected to lon/lat.
    """
    if not isinstance(geom, dict) or not geom:
        return None

    if "type" in geom and "coordinates" in geom:
        return _decode_geojson(geom)

    if "x" in geom and "y" in geom:
        return _point(geom.get("x"), geom.get("y"))

    if "paths" in geom:
        return _polyline(_sequence(geom.get("paths")))

    if "rings" in geom:
        return _polygon(_sequence(geom.get("rings")))

    return None


def _decode_geojson(geom: dict[str, Any]) -> Geometry | None:
    gtype = geom.get("type")
    coords = _sequence(geom.get("coordinates"))
    if not coords:
        return None

    if gtype == "Point":
        if len(coords) < 2:
            return None
        return _point(coords[0], coords[1])
    if gtype == "LineString":
        return _polyline([coords])
    if gtype == "MultiLineString":
        return _polyline(coords)
    if gtype == "Polygon":
        return _polygon(coords)
    return None


def _sequence(v: Any) -> list[Any]:
    return list(v) if isinstance(v, (list, tuple)) else []


def _polyline(raw_paths: list[Any]) -> PolylineGeometry | None:
    paths = [p for p in (_to_path(raw) for raw in raw_paths) if p]
    return PolylineGeometry(paths=paths) if paths else None


def _polygon(raw_rings: list[Any]) -> PolygonGeometry | None:
    rings = [_ensure_closed(_to_path(raw)) for raw in raw_rings]
    rings = [r for r in rings if len(r) >= 4]
    return PolygonGeometry(rings=rings) if rings else None


def _point(x: Any, y: Any) -> PointGeometry | None:
    try:
        vertex = _to_path([[x, y]])
    except (TypeError, ValueError):
        return None
    if not vertex:
        return None
    try:
        return PointGeometry(coord=Coordinate.from_lon_lat(vertex[0]))
    except InvalidCoordinateError:
        return None


def _to_path(raw: Any) -> list[LonLat]:
    """
    `[[x, y], ...]` -> lon/lat vertices.

    Non-numeric and non-finite vertices are skipped. A path that is entirely inside the
    Web Mercator extent but not all geographic is reprojected; otherwise vertices outside
    lon/lat range are dropped.
    """
    out: list[LonLat] = []
    for p in _sequence(raw):
        if not isinstance(p, (list, tuple)) or len(p) < 2:
            continue
        try:
            x, y = float(p[0]), float(p[1])
        except (TypeError, ValueError):
            continue
        if math.isfinite(x) and math.isfinite(y):
            out.append((x, y))

    if all(_geographic(x, y) for x, y in out):
        return out
    if all(abs(x) <= WEB_MERCATOR_EXTENT and abs(y) <= WEB_MERCATOR_EXTENT for x, y in out):
        xs, ys = web_mercator_to_wgs84().transform([x for x, _ in out], [y for _, y in out])
        out = [(float(lon), float(lat)) for lon, lat in zip(xs, ys)]
    return [(x, y) for x, y in out if math.isfinite(x) and math.isfinite(y) and _geographic(x, y)]


def _geographic(lon: float, lat: float) -> bool:
    return -180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0


def _ensure_closed(ring: list[LonLat]) -> list[LonLat]:
    if not ring:
        return ring
    if ring[0] != ring[-1]:
        return [*ring, ring[0]]
    return ring
