from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias, Union

from geo.coords import Coordinate, LonLat


GeometryKind = Literal["point", "polyline", "polygon"]


@dataclass(frozen=True)
class PointGeometry:
    coord: Coordinate

    @property
    def kind(self) -> GeometryKind:
        return "point"


@dataclass(frozen=True)
class PolylineGeometry:
    # [path, ...]; each path is [(lon, lat), ...]
    paths: list[list[LonLat]]

    @property
    def kind(self) -> GeometryKind:
        return "polyline"


@dataclass(frozen=True)
class PolygonGeometry:
    # [outer_ring, hole, ...]; each ring is closed [(lon, lat), ...]
    rings: list[list[LonLat]]

    @property
    def kind(self) -> GeometryKind:
        return "polygon"


Geometry: TypeAlias = Union[PointGeometry, PolylineGeometry, PolygonGeometry]

FeatureIdentity: TypeAlias = Union[str, int]


@dataclass(frozen=True)
class RawFeature:
    """
    One decoded record from a remote pass, before annotation.

    `index` is the record's position within its pass (used only as a last-resort identity).
    """

    index: int
    geometry: Geometry | None
    attributes: dict[str, Any]


@dataclass(frozen=True)
class Feature:
    """
    A resolved feature.

    `attributes` is kept verbatim from the service; `record` is the canonical mapping
    produced by the dataset's field normalizer.
    """

    identity: FeatureIdentity
    geometry: Geometry
    attributes: dict[str, Any]
    distance_miles: float | None = None
    is_containing: bool = False
    record: dict[str, Any] = field(default_factory=dict)
