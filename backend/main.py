from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from api.resolve import (
    ApiDataset,
    ApiEnrichRequest,
    ApiEnrichResponse,
    ApiResolveRequest,
    ApiResolveResponse,
    to_api_response,
)
from catalog.registry import DatasetNotFoundError, get_dataset, list_datasets
from engine.fanout import resolve_many
from engine.resolver import ResultResolver
from engine.types import QueryRequest, Resolver
from geo.coords import Coordinate, InvalidCoordinateError
from telemetry.singleton import get_store, telemetry_sink

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_resolver() -> Resolver:
    return ResultResolver(sink=telemetry_sink())


def _origin(lat: float, lon: float) -> Coordinate:
    try:
        return Coordinate(latitude=lat, longitude=lon)
    except InvalidCoordinateError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.get("/datasets")
def datasets() -> list[ApiDataset]:
    return [ApiDataset.from_descriptor(d) for d in list_datasets()]


@app.post("/resolve")
def resolve(
    body: ApiResolveRequest, resolver: Resolver = Depends(get_resolver)
) -> ApiResolveResponse:
    origin = _origin(body.lat, body.lon)
    try:
        dataset = get_dataset(body.datasetId)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=404, detail=f"Unknown dataset: {body.datasetId}") from e
    result = resolver.resolve(origin, body.radiusMiles, dataset)
    return to_api_response(result)


@app.post("/enrich")
def enrich(
    body: ApiEnrichRequest, resolver: Resolver = Depends(get_resolver)
) -> ApiEnrichResponse:
    origin = _origin(body.lat, body.lon)
    if body.datasetIds is None:
        selected = list_datasets()
    else:
        try:
            selected = [get_dataset(did) for did in body.datasetIds]
        except DatasetNotFoundError as e:
            raise HTTPException(status_code=404, detail=f"Unknown dataset: {e.args[0]}") from e
    if body.category:
        selected = [d for d in selected if d.category == body.category]

    results = resolve_many(
        QueryRequest(origin=origin, requested_radius_miles=body.radiusMiles),
        selected,
        resolver=resolver,
    )
    return ApiEnrichResponse(
        results={did: to_api_response(r) for did, r in results.items()}
    )


@app.get("/telemetry/summary")
def telemetry_summary(datasetId: str | None = None, sinceMs: int | None = None):
    store = get_store()
    if store is None:
        return []
    return store.summary(dataset_id=datasetId, since_ms=sinceMs)


@app.get("/telemetry/slowest")
def telemetry_slowest(datasetId: str | None = None, limit: int = 25):
    store = get_store()
    if store is None:
        return []
    return store.slowest(dataset_id=datasetId, limit=limit)
