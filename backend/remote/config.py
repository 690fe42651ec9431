from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if raw:
        try:
            return max(lo, min(hi, int(raw)))
        except Exception:
            pass
    return default


def _env_float(name: str, default: float, *, lo: float, hi: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if raw:
        try:
            return max(lo, min(hi, float(raw)))
        except Exception:
            pass
    return default


@dataclass(frozen=True)
class FetchSettings:
    # ArcGIS services commonly cap a page at 2000 records.
    page_size: int = 2000
    page_delay_s: float = 0.1
    # Hard ceiling on cumulative offset; bounds a service that never stops paging.
    max_offset: int = 100_000
    timeout_s: float = 20.0
    # Total tries per batch request (1 == no retry).
    attempts: int = 1
    retry_delay_s: float = 0.2


def fetch_settings() -> FetchSettings:
    return FetchSettings(
        page_size=_env_int("GEOENRICH_PAGE_SIZE", 2000, lo=1, hi=10_000),
        page_delay_s=_env_int("GEOENRICH_PAGE_DELAY_MS", 100, lo=0, hi=10_000) / 1000.0,
        max_offset=_env_int("GEOENRICH_MAX_OFFSET", 100_000, lo=1, hi=10_000_000),
        timeout_s=_env_float("GEOENRICH_HTTP_TIMEOUT_S", 20.0, lo=0.5, hi=300.0),
        attempts=_env_int("GEOENRICH_HTTP_ATTEMPTS", 1, lo=1, hi=10),
        retry_delay_s=_env_int("GEOENRICH_RETRY_DELAY_MS", 200, lo=0, hi=60_000) / 1000.0,
    )


def fanout_workers() -> int:
    return _env_int("GEOENRICH_FANOUT_WORKERS", 8, lo=1, hi=64)
