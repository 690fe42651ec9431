from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from catalog.types import DatasetDescriptor
from geo.coords import Coordinate
from geo.radius import to_meters
from remote.errors import MalformedResponse, RemoteReportedError


PassName = Literal["containment", "proximity"]


@dataclass(frozen=True)
class QueryTemplate:
    """
    One spatially-filtered query, minus the pagination parameters.

    The fetcher adds `resultOffset` / `resultRecordCount` per batch.
    """

    pass_name: PassName
    url: str
    params: dict[str, Any] = field(default_factory=dict)

    def page(self, *, offset: int, page_size: int) -> dict[str, Any]:
        return {
            **self.params,
            "resultOffset": int(offset),
            "resultRecordCount": int(page_size),
        }


def _base_params(dataset: DatasetDescriptor, origin: Coordinate) -> dict[str, Any]:
    point = {
        "x": origin.longitude,
        "y": origin.latitude,
        "spatialReference": {"wkid": 4326},
    }
    return {
        "f": "json",
        "where": dataset.where,
        "outFields": dataset.outFields,
        "geometry": json.dumps(point, separators=(",", ":")),
        "geometryType": "esriGeometryPoint",
        "spatialRel": "esriSpatialRelIntersects",
        "inSR": "4326",
        "outSR": "4326",
        "returnGeometry": "true",
    }


def containment_query(dataset: DatasetDescriptor, origin: Coordinate) -> QueryTemplate:
    # Intersects only (no buffer); results are re-verified locally.
    return QueryTemplate(
        pass_name="containment",
        url=dataset.query_url(),
        params=_base_params(dataset, origin),
    )


def proximity_query(
    dataset: DatasetDescriptor, origin: Coordinate, radius_miles: float
) -> QueryTemplate:
    params = _base_params(dataset, origin)
    params["distance"] = to_meters(radius_miles)
    params["units"] = "esriSRUnit_Meter"
    return QueryTemplate(pass_name="proximity", url=dataset.query_url(), params=params)


def read_page(body: Any) -> tuple[list[Any], bool]:
    """
    Validate one query response.

    Returns (features, exceeded_transfer_limit). Raises `RemoteReportedError` for an
    `error` payload and `MalformedResponse` for anything that is not a feature set.
    """
    if not isinstance(body, dict):
        raise MalformedResponse(f"expected a JSON object, got {type(body).__name__}")

    err = body.get("error")
    if err:
        if isinstance(err, dict):
            raise RemoteReportedError(
                str(err.get("message") or "service reported an error"),
                code=err.get("code") if isinstance(err.get("code"), int) else None,
                details=err.get("details") if isinstance(err.get("details"), list) else None,
            )
        raise RemoteReportedError(str(err))

    features = body.get("features")
    if not isinstance(features, list):
        raise MalformedResponse("response has no `features` array")

    exceeded = body.get("exceededTransferLimit") is True
    if not exceeded:
        props = body.get("properties")
        exceeded = isinstance(props, dict) and props.get("exceededTransferLimit") is True
    return features, exceeded
