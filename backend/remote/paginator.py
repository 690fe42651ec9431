from __future__ import annotations

import time
from enum import Enum
from typing import Any

from remote.backoff import FixedBackoff
from remote.config import FetchSettings, fetch_settings
from remote.errors import RemoteError, RemoteUnavailable, StopReason
from remote.query import QueryTemplate, read_page
from remote.transport import FeatureTransport
from telemetry.events import EventSink, ResolverEvent, emit


class FetchState(str, Enum):
    idle = "idle"
    fetching = "fetching"
    accumulating = "accumulating"
    exhausted = "exhausted"
    failed = "failed"


class PaginatedFetcher:
    """
    Offset-based pagination over one spatially-filtered query.

    Single use: create one fetcher per pass. Batches run sequentially because each
    offset depends on the previous batch's size / continuation signal.

    Failure policy: a failed batch stops the pass but keeps what was accumulated so far.
    `fetch_all` never raises for remote problems.
    """

    def __init__(
        self,
        transport: FeatureTransport,
        *,
        settings: FetchSettings | None = None,
        backoff: FixedBackoff | None = None,
        sink: EventSink | None = None,
        dataset_id: str = "",
    ):
        self.transport = transport
        self.settings = settings or fetch_settings()
        self.backoff = backoff or FixedBackoff.from_settings(self.settings)
        self.sink = sink
        self.dataset_id = dataset_id

        self.state = FetchState.idle
        self.stop_reason: StopReason | None = None
        self.error: RemoteError | None = None
        self.batches = 0

    def fetch_all(self, template: QueryTemplate) -> tuple[list[Any], bool]:
        if self.state is not FetchState.idle:
            raise RuntimeError("PaginatedFetcher is single-use; create a new one per pass")

        page_size = int(self.settings.page_size)
        max_offset = int(self.settings.max_offset)
        features: list[Any] = []
        offset = 0
        t_pass = time.perf_counter()

        while True:
            self.state = FetchState.fetching
            t0 = time.perf_counter()
            try:
                body = self.transport.query(
                    template.url, template.page(offset=offset, page_size=page_size)
                )
                page, exceeded = read_page(body)
            except RemoteError as e:
                reason = self._fail(template, offset, e)
                break
            except Exception as e:
                # Custom transports may leak their own exceptions; treat them as outages.
                reason = self._fail(
                    template, offset, RemoteUnavailable(f"{type(e).__name__}: {e}")
                )
                break

            self.state = FetchState.accumulating
            self.batches += 1
            features.extend(page)
            emit(
                self.sink,
                ResolverEvent(
                    kind="batch_fetched",
                    dataset_id=self.dataset_id,
                    pass_name=template.pass_name,
                    offset=offset,
                    n_features=len(page),
                    elapsed_ms=(time.perf_counter() - t0) * 1000.0,
                    extra={"exceededTransferLimit": exceeded},
                ),
            )

            has_more = bool(page) and (exceeded or len(page) == page_size)
            if not has_more:
                reason = self._finish(StopReason.exhausted)
                break

            offset += page_size
            if offset >= max_offset:
                reason = self._finish(StopReason.ceiling)
                break
            self.backoff.between_batches(self.batches)

        truncated = reason.truncated
        emit(
            self.sink,
            ResolverEvent(
                kind="pass_finished",
                dataset_id=self.dataset_id,
                pass_name=template.pass_name,
                offset=offset,
                n_features=len(features),
                truncated=truncated,
                error=str(self.error) if self.error is not None else None,
                elapsed_ms=(time.perf_counter() - t_pass) * 1000.0,
                extra={"batches": self.batches, "stopReason": reason.value},
            ),
        )
        return features, truncated

    def _finish(self, reason: StopReason) -> StopReason:
        # The offset ceiling still ends in EXHAUSTED; `stop_reason` records why.
        self.state = FetchState.exhausted
        self.stop_reason = reason
        return reason

    def _fail(self, template: QueryTemplate, offset: int, error: RemoteError) -> StopReason:
        self.state = FetchState.failed
        self.stop_reason = StopReason.failed
        self.error = error
        emit(
            self.sink,
            ResolverEvent(
                kind="batch_failed",
                dataset_id=self.dataset_id,
                pass_name=template.pass_name,
                offset=offset,
                error=f"{type(error).__name__}: {error}",
            ),
        )
        return StopReason.failed
