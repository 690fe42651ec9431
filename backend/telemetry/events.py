from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Literal


EventKind = Literal[
    "resolve_started",
    "resolve_finished",
    "pass_started",
    "pass_finished",
    "batch_fetched",
    "batch_failed",
]


@dataclass(frozen=True)
class ResolverEvent:
    kind: EventKind
    dataset_id: str
    pass_name: str | None = None
    offset: int | None = None
    n_features: int | None = None
    truncated: bool | None = None
    error: str | None = None
    elapsed_ms: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    ts_ms: int = field(default_factory=lambda: int(time.time() * 1000))


EventSink = Callable[[ResolverEvent], None]


def emit(sink: EventSink | None, event: ResolverEvent) -> None:
    # Sink errors are dropped; a resolution never fails because of its sink.
    if sink is None:
        return
    try:
        sink(event)
    except Exception:
        pass
