from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from catalog.types import DatasetDescriptor
from engine.types import ResolveResult
from layers.types import (
    Feature,
    Geometry,
    GeometryKind,
    PointGeometry,
    PolygonGeometry,
    PolylineGeometry,
)


class ApiDataset(BaseModel):
    id: str
    title: str
    category: str | None = None
    geometryKind: GeometryKind
    supportsContainment: bool
    maxRadiusMiles: float

    @classmethod
    def from_descriptor(cls, d: DatasetDescriptor) -> "ApiDataset":
        return cls(
            id=d.id,
            title=d.title,
            category=d.category,
            geometryKind=d.geometryKind,
            supportsContainment=d.supportsContainment,
            maxRadiusMiles=d.maxRadiusMiles,
        )


class ApiLocation(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    radiusMiles: float | None = None


class ApiResolveRequest(ApiLocation):
    datasetId: str


class ApiEnrichRequest(ApiLocation):
    # None means every enabled dataset in the catalog.
    datasetIds: list[str] | None = None
    category: str | None = None


class ApiFeature(BaseModel):
    identity: str | int
    isContaining: bool
    distanceMiles: float | None
    record: dict[str, Any]
    attributes: dict[str, Any]
    geometry: dict[str, Any]


class ApiPass(BaseModel):
    name: str
    fetched: int
    batches: int
    stopReason: str
    error: str | None = None


class ApiResolveResponse(BaseModel):
    datasetId: str
    clampedRadiusMiles: float
    truncated: bool
    error: str | None = None
    passes: list[ApiPass]
    features: list[ApiFeature]


class ApiEnrichResponse(BaseModel):
    results: dict[str, ApiResolveResponse]


def encode_geometry(geom: Geometry) -> dict[str, Any]:
    """
    Geometry -> ESRI JSON shape in wkid 4326 (what map clients already draw).
    """
    sr = {"wkid": 4326}
    if isinstance(geom, PointGeometry):
        return {"x": geom.coord.longitude, "y": geom.coord.latitude, "spatialReference": sr}
    if isinstance(geom, PolylineGeometry):
        return {"paths": [[list(v) for v in p] for p in geom.paths], "spatialReference": sr}
    if isinstance(geom, PolygonGeometry):
        return {"rings": [[list(v) for v in r] for r in geom.rings], "spatialReference": sr}
    return {}


def to_api_feature(f: Feature) -> ApiFeature:
    return ApiFeature(
        identity=f.identity,
        isContaining=f.is_containing,
        # Display precision; ranking already happened on the exact value.
        distanceMiles=round(f.distance_miles, 2) if f.distance_miles is not None else None,
        record=f.record,
        attributes=f.attributes,
        geometry=encode_geometry(f.geometry),
    )


def to_api_response(result: ResolveResult) -> ApiResolveResponse:
    return ApiResolveResponse(
        datasetId=result.dataset_id,
        clampedRadiusMiles=result.clamped_radius_miles,
        truncated=result.truncated,
        error=result.error,
        passes=[ApiPass(**p.as_dict()) for p in result.passes],
        features=[to_api_feature(f) for f in result.features],
    )
