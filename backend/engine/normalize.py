from __future__ import annotations

import hashlib
from typing import Any, Iterable, Mapping

from layers.types import (
    FeatureIdentity,
    Geometry,
    PointGeometry,
    PolygonGeometry,
    PolylineGeometry,
    RawFeature,
)


def first_present(attributes: Mapping[str, Any], candidates: Iterable[str]) -> Any:
    """
    Value of the first candidate field that is present, not null and not blank.

    Replaces per-dataset chains like `attrs.NAME || attrs.Name || attrs.name || null`.
    Unlike that chain, falsy-but-real values (0, False) are kept.
    """
    for name in candidates:
        if name not in attributes:
            continue
        v = attributes[name]
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None


class FieldNormalizer:
    """
    Maps a service's raw attribute dictionary into a canonical record.

    `fields` is the dataset's alias table: canonical name -> ordered attribute names.
    """

    def __init__(self, fields: Mapping[str, list[str]] | None = None):
        self.fields = {k: list(v) for k, v in (fields or {}).items()}

    def __call__(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        return {name: first_present(attributes, aliases) for name, aliases in self.fields.items()}


def feature_identity(
    raw: RawFeature, candidates: Iterable[str], *, pass_name: str
) -> tuple[str, FeatureIdentity]:
    """
    Stable identity for de-duplication across passes.

    Returns (dedupe_key, identity). Fallback chain:
    1. first present identity field (priority order)
    2. fingerprint of the geometry's vertices
    3. position within the pass; scoped to the pass so it never merges across passes
    """
    v = first_present(raw.attributes, candidates)
    if v is not None:
        identity: FeatureIdentity = v if isinstance(v, (int, str)) and not isinstance(v, bool) else str(v)
        return f"id:{identity}", identity

    if raw.geometry is not None:
        fp = geometry_fingerprint(raw.geometry)
        return f"geom:{fp}", f"geom:{fp}"

    pos = f"{pass_name}#{raw.index}"
    return f"pos:{pos}", pos


def geometry_fingerprint(geom: Geometry, *, decimals: int = 6) -> str:
    h = hashlib.sha1()
    if isinstance(geom, PointGeometry):
        parts: list[list[tuple[float, float]]] = [[geom.coord.lon_lat()]]
    elif isinstance(geom, PolylineGeometry):
        parts = geom.paths
    elif isinstance(geom, PolygonGeometry):
        parts = geom.rings
    else:
        parts = []
    h.update(geom.kind.encode())
    for part in parts:
        h.update(b"|")
        for lon, lat in part:
            h.update(f"{round(lon, decimals)},{round(lat, decimals)};".encode())
    return h.hexdigest()[:16]
