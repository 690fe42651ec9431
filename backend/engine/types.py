from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from catalog.types import DatasetDescriptor
from geo.coords import Coordinate
from layers.types import Feature
from remote.errors import StopReason


@dataclass(frozen=True)
class QueryRequest:
    """
    Request-scoped query coming from a caller.

    `requested_radius_miles` absent or <= 0 means containment only.
    """

    origin: Coordinate
    requested_radius_miles: float | None = None


@dataclass(frozen=True)
class PassReport:
    name: str
    fetched: int
    batches: int
    stop_reason: StopReason
    error: str | None = None

    @property
    def truncated(self) -> bool:
        return self.stop_reason.truncated

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "fetched": self.fetched,
            "batches": self.batches,
            "stopReason": self.stop_reason.value,
            "error": self.error,
        }


@dataclass(frozen=True)
class ResolveResult:
    """
    What a resolver returns for one dataset.

    - features: ranked list (containing first, then nearest first)
    - truncated: some pass stopped early (failure or safety ceiling); results may be
      incomplete, but this is not an error
    """

    dataset_id: str
    features: list[Feature]
    truncated: bool
    clamped_radius_miles: float
    passes: list[PassReport] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def failed(cls, dataset_id: str, *, error: str) -> "ResolveResult":
        return cls(
            dataset_id=dataset_id,
            features=[],
            truncated=True,
            clamped_radius_miles=0.0,
            error=error,
        )


class Resolver(Protocol):
    def resolve(
        self,
        origin: Coordinate,
        requested_radius_miles: float | None,
        dataset: DatasetDescriptor,
    ) -> ResolveResult: ...
