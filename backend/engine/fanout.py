from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable

from catalog.types import DatasetDescriptor
from engine.types import QueryRequest, ResolveResult, Resolver
from remote.config import fanout_workers


def resolve_many(
    request: QueryRequest,
    datasets: Iterable[DatasetDescriptor],
    *,
    resolver: Resolver,
    max_workers: int | None = None,
) -> dict[str, ResolveResult]:
    """
    Resolve one location against many datasets concurrently.

    One bad source never aborts the others: a dataset whose resolution raises ends up as
    an empty, truncated result carrying the error text. Disabled datasets are skipped.
    Output order follows the input order.
    """
    active = [d for d in datasets if d.enabled]
    if not active:
        return {}

    workers = max(1, min(int(max_workers or fanout_workers()), len(active)))
    results: dict[str, ResolveResult] = {}

    def _one(dataset: DatasetDescriptor) -> ResolveResult:
        return resolver.resolve(request.origin, request.requested_radius_miles, dataset)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fanout") as pool:
        futures = {pool.submit(_one, d): d for d in active}
        for fut in as_completed(futures):
            d = futures[fut]
            try:
                results[d.id] = fut.result()
            except Exception as e:
                results[d.id] = ResolveResult.failed(d.id, error=f"{type(e).__name__}: {e}")

    return {d.id: results[d.id] for d in active}
