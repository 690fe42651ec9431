from __future__ import annotations

import threading

import duckdb

from telemetry.config import telemetry_enabled, telemetry_path
from telemetry.events import EventSink
from telemetry.store import TelemetryStore

_current: TelemetryStore | None = None
_guard = threading.RLock()


def _close(store: TelemetryStore) -> None:
    store.stop(timeout_s=2.0)
    try:
        store.conn.close()
    except duckdb.Error:
        pass


def get_store() -> TelemetryStore | None:
    """
    Process-wide store, opened lazily on the configured path.

    A changed `GEOENRICH_TELEMETRY_PATH` (tests, dev sessions) reopens it there.
    """
    global _current
    if not telemetry_enabled():
        return None
    path = telemetry_path()
    with _guard:
        if _current is not None and _current.path.resolve() == path.resolve():
            return _current
        if _current is not None:
            _close(_current)
            _current = None

        path.parent.mkdir(parents=True, exist_ok=True)
        store = TelemetryStore(path=path, conn=duckdb.connect(str(path)))
        store.ensure_schema()
        store.start()
        _current = store
        return store


def telemetry_sink() -> EventSink | None:
    store = get_store()
    return store.record_event if store is not None else None


def reset_store() -> None:
    global _current
    with _guard:
        if _current is None:
            telemetry_path().unlink(missing_ok=True)
            return
        _current.reset()
        _current = None
