from __future__ import annotations

import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Mapping

from catalog.types import DatasetDescriptor
from engine.normalize import FieldNormalizer, feature_identity
from engine.types import PassReport, QueryRequest, ResolveResult
from geo import radius as radius_policy
from geo.containment import point_in_polygon
from geo.coords import Coordinate
from geo.great_circle import (
    Metric,
    centroid,
    distance,
    distance_to_polygon,
    distance_to_polyline,
    ellipsoid_miles,
    haversine_miles,
)
from layers.loaders import decode_features
from layers.types import (
    Feature,
    PointGeometry,
    PolygonGeometry,
    PolylineGeometry,
    RawFeature,
)
from remote.backoff import FixedBackoff
from remote.config import FetchSettings, fetch_settings
from remote.paginator import PaginatedFetcher
from remote.query import QueryTemplate, containment_query, proximity_query
from remote.transport import FeatureTransport, HttpFeatureClient
from telemetry.events import EventSink, ResolverEvent, emit

Normalizer = Callable[[Mapping[str, Any]], dict[str, Any]]


class ResultResolver:
    """
    Answers "which features contain this location, and which are within R of it?"
    for one dataset descriptor per call.

    Per call:
    1. containment pass (polygon datasets that support it), re-verified locally
    2. proximity pass (clamped radius > 0), distances computed locally
    3. de-duplicate by identity, containing classification wins
    4. drop proximity features beyond the clamped radius
    5. rank: containing (discovery order), then ascending distance

    The remote spatial predicates are pre-filters only: "intersects" is never taken as
    "contains", and the buffer query is never taken as "within R".

    Instances hold configuration only; concurrent `resolve` calls share no mutable state.
    """

    def __init__(
        self,
        transport: FeatureTransport | None = None,
        *,
        settings: FetchSettings | None = None,
        backoff: FixedBackoff | None = None,
        sink: EventSink | None = None,
        parallel_passes: bool = True,
    ):
        self.settings = settings or fetch_settings()
        self.backoff = backoff or FixedBackoff.from_settings(self.settings)
        self.transport = transport or HttpFeatureClient(
            settings=self.settings, backoff=self.backoff
        )
        self.sink = sink
        self.parallel_passes = parallel_passes

    def resolve(
        self,
        origin: Coordinate,
        requested_radius_miles: float | None,
        dataset: DatasetDescriptor,
        *,
        normalizer: Normalizer | None = None,
    ) -> ResolveResult:
        if not isinstance(origin, Coordinate):
            raise TypeError(f"origin must be a Coordinate, got {type(origin).__name__}")
        if not isinstance(dataset, DatasetDescriptor):
            raise TypeError(
                f"dataset must be a DatasetDescriptor, got {type(dataset).__name__}"
            )

        t0 = time.perf_counter()
        radius = radius_policy.clamp(requested_radius_miles, dataset.maxRadiusMiles)
        normalize = normalizer or FieldNormalizer(dataset.fields)
        metric = ellipsoid_miles if dataset.distanceModel == "ellipsoid" else haversine_miles

        templates: list[QueryTemplate] = []
        if dataset.supportsContainment:
            templates.append(containment_query(dataset, origin))
        if radius > 0:
            templates.append(proximity_query(dataset, origin, radius))

        emit(
            self.sink,
            ResolverEvent(
                kind="resolve_started",
                dataset_id=dataset.id,
                extra={
                    "requestedRadiusMiles": requested_radius_miles,
                    "clampedRadiusMiles": radius,
                    "passes": [t.pass_name for t in templates],
                },
            ),
        )

        outcomes = self._run_passes(templates, dataset)

        annotated: list[tuple[str, Feature]] = []
        reports: list[PassReport] = []
        for template in templates:
            raws, report = outcomes[template.pass_name]
            reports.append(report)
            if template.pass_name == "containment":
                annotated.extend(_annotate_containment(raws, origin, dataset, normalize))
            else:
                annotated.extend(
                    _annotate_proximity(raws, origin, dataset, normalize, metric=metric)
                )

        features = _rank(_within_radius(_merge(annotated), radius))
        truncated = any(r.truncated for r in reports)

        emit(
            self.sink,
            ResolverEvent(
                kind="resolve_finished",
                dataset_id=dataset.id,
                n_features=len(features),
                truncated=truncated,
                elapsed_ms=(time.perf_counter() - t0) * 1000.0,
                extra={
                    "containing": sum(1 for f in features if f.is_containing),
                    "clampedRadiusMiles": radius,
                },
            ),
        )
        return ResolveResult(
            dataset_id=dataset.id,
            features=features,
            truncated=truncated,
            clamped_radius_miles=radius,
            passes=reports,
        )

    def resolve_request(
        self, request: QueryRequest, dataset: DatasetDescriptor
    ) -> ResolveResult:
        return self.resolve(request.origin, request.requested_radius_miles, dataset)

    def _run_passes(
        self, templates: list[QueryTemplate], dataset: DatasetDescriptor
    ) -> dict[str, tuple[list[RawFeature], PassReport]]:
        if self.parallel_passes and len(templates) > 1:
            # The two passes are independent; pages within a pass stay sequential.
            with ThreadPoolExecutor(
                max_workers=len(templates), thread_name_prefix=f"resolve-{dataset.id}"
            ) as pool:
                futures = {
                    t.pass_name: pool.submit(self._run_pass, t, dataset) for t in templates
                }
                return {name: fut.result() for name, fut in futures.items()}
        return {t.pass_name: self._run_pass(t, dataset) for t in templates}

    def _run_pass(
        self, template: QueryTemplate, dataset: DatasetDescriptor
    ) -> tuple[list[RawFeature], PassReport]:
        emit(
            self.sink,
            ResolverEvent(kind="pass_started", dataset_id=dataset.id, pass_name=template.pass_name),
        )
        fetcher = PaginatedFetcher(
            self.transport,
            settings=self.settings,
            backoff=self.backoff,
            sink=self.sink,
            dataset_id=dataset.id,
        )
        raw, _truncated = fetcher.fetch_all(template)
        if fetcher.stop_reason is None:
            raise RuntimeError(f"{template.pass_name} pass ended without a stop reason")
        report = PassReport(
            name=template.pass_name,
            fetched=len(raw),
            batches=fetcher.batches,
            stop_reason=fetcher.stop_reason,
            error=f"{type(fetcher.error).__name__}: {fetcher.error}"
            if fetcher.error is not None
            else None,
        )
        return decode_features(raw), report


def _annotate_containment(
    raws: list[RawFeature],
    origin: Coordinate,
    dataset: DatasetDescriptor,
    normalize: Normalizer,
) -> list[tuple[str, Feature]]:
    out: list[tuple[str, Feature]] = []
    for raw in raws:
        geom = raw.geometry
        # Only polygons can contain; anything else is an "intersects" false positive.
        if not isinstance(geom, PolygonGeometry):
            continue
        if not point_in_polygon(origin, geom.rings):
            continue
        key, identity = feature_identity(
            raw, dataset.identityFieldCandidates, pass_name="containment"
        )
        out.append(
            (
                key,
                Feature(
                    identity=identity,
                    geometry=geom,
                    attributes=raw.attributes,
                    distance_miles=0.0,
                    is_containing=True,
                    record=normalize(raw.attributes),
                ),
            )
        )
    return out


def _annotate_proximity(
    raws: list[RawFeature],
    origin: Coordinate,
    dataset: DatasetDescriptor,
    normalize: Normalizer,
    *,
    metric: Metric,
) -> list[tuple[str, Feature]]:
    out: list[tuple[str, Feature]] = []
    for raw in raws:
        geom = raw.geometry
        containing = False
        if isinstance(geom, PolygonGeometry):
            if point_in_polygon(origin, geom.rings):
                containing = True
                d = 0.0
            else:
                d = distance_to_polygon(origin, geom.rings, metric=metric)
        elif isinstance(geom, PolylineGeometry):
            if dataset.queryAsPoints:
                c = centroid(geom.paths)
                d = distance(origin, c, metric=metric) if c is not None else math.inf
            else:
                d = distance_to_polyline(origin, geom.paths, metric=metric)
        elif isinstance(geom, PointGeometry):
            d = distance(origin, geom.coord, metric=metric)
        else:
            # No geometry: nothing to measure.
            continue

        if not math.isfinite(d):
            continue
        key, identity = feature_identity(
            raw, dataset.identityFieldCandidates, pass_name="proximity"
        )
        out.append(
            (
                key,
                Feature(
                    identity=identity,
                    geometry=geom,
                    attributes=raw.attributes,
                    distance_miles=d,
                    is_containing=containing,
                    record=normalize(raw.attributes),
                ),
            )
        )
    return out


def _merge(annotated: list[tuple[str, Feature]]) -> list[Feature]:
    """
    One entry per identity, at its first discovery position.

    Containing beats non-containing; otherwise the smaller distance wins.
    """
    merged: dict[str, Feature] = {}
    for key, f in annotated:
        prev = merged.get(key)
        if prev is None:
            merged[key] = f
            continue
        if prev.is_containing:
            continue
        if f.is_containing or _dist(f) < _dist(prev):
            # Re-assigning an existing key keeps its insertion position.
            merged[key] = f
    return list(merged.values())


def _within_radius(features: list[Feature], radius_miles: float) -> list[Feature]:
    return [f for f in features if f.is_containing or _dist(f) <= radius_miles]


def _rank(features: list[Feature]) -> list[Feature]:
    containing = [f for f in features if f.is_containing]
    nearby = sorted((f for f in features if not f.is_containing), key=_dist)
    return containing + nearby


def _dist(f: Feature) -> float:
    return f.distance_miles if f.distance_miles is not None else math.inf
