from __future__ import annotations

from enum import Enum


class RemoteError(Exception):
    """
    A single remote batch failed.

    Recovered inside a pass; never surfaced to the resolver's caller.
    """


class RemoteUnavailable(RemoteError):
    """Network failure, timeout, or a non-success HTTP status."""


class RemoteReportedError(RemoteError):
    """The service answered with an `error` object."""

    def __init__(self, message: str, *, code: int | None = None, details: list | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or []


class MalformedResponse(RemoteError):
    """HTML error page, non-JSON body, or JSON without a `features` array."""


class StopReason(str, Enum):
    exhausted = "exhausted"
    # Safety ceiling on cumulative offset reached; more records may exist.
    ceiling = "ceiling"
    failed = "failed"

    @property
    def truncated(self) -> bool:
        return self is not StopReason.exhausted
