from __future__ import annotations

import os
from pathlib import Path

_OFF = {"0", "false", "no", "off"}


def default_telemetry_path() -> Path:
    # <repo>/data/telemetry/, next to datasets/ and outside the package
    return Path(__file__).resolve().parents[2] / "data" / "telemetry" / "resolver_events.duckdb"


def telemetry_path() -> Path:
    raw = (os.getenv("GEOENRICH_TELEMETRY_PATH") or "").strip()
    return Path(raw) if raw else default_telemetry_path()


def telemetry_enabled() -> bool:
    return (os.getenv("GEOENRICH_TELEMETRY") or "1").strip().lower() not in _OFF
