from __future__ import annotations

import json
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from telemetry.events import ResolverEvent
from telemetry.sql import (
    CREATE_EVENTS_TABLE_SQL,
    INSERT_EVENTS_SQL,
    SLOWEST_SQL_TEMPLATE,
    SUMMARY_SQL_TEMPLATE,
)

# Writer batching: insert when this many rows are pending, or after the interval.
BATCH_ROWS = 250
BATCH_INTERVAL_S = 0.5


def _as_float(v: Any) -> float | None:
    if v is None:
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _event_row(event: ResolverEvent) -> tuple:
    return (
        int(event.ts_ms),
        str(event.kind),
        str(event.dataset_id),
        event.pass_name,
        event.offset,
        event.n_features,
        event.truncated,
        event.error,
        _as_float(event.elapsed_ms),
        json.dumps(event.extra, ensure_ascii=False, default=str),
    )


def _filters(dataset_id: str | None, since_ms: int | None) -> tuple[list[str], list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if dataset_id:
        clauses.append("dataset_id = ?")
        params.append(dataset_id)
    if since_ms is not None:
        clauses.append("ts_ms >= ?")
        params.append(int(since_ms))
    return clauses, params


@dataclass
class TelemetryStore:
    """
    DuckDB-backed sink for resolver events.

    `record_event` matches `EventSink`: it only enqueues. One writer thread owns the
    inserts and batches them, so resolver threads never wait on the database.
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _pending: "queue.Queue[tuple | threading.Event]" = field(
        default_factory=queue.Queue, repr=False
    )
    _closing: threading.Event = field(default_factory=threading.Event, repr=False)
    _writer: threading.Thread | None = field(default=None, repr=False)

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._writer is not None:
            return
        self._closing.clear()
        self._writer = threading.Thread(
            target=self._write_loop, name="telemetry-writer", daemon=True
        )
        self._writer.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        self._closing.set()
        writer = self._writer
        if writer is not None and writer.is_alive():
            writer.join(timeout=timeout_s)
        self._writer = None

    def record_event(self, event: ResolverEvent) -> None:
        self.start()
        self._pending.put_nowait(_event_row(event))

    def flush(self, *, timeout_s: float = 2.0) -> bool:
        """
        Block until every event recorded before this call is inserted.

        Returns False if the writer did not catch up within `timeout_s`.
        """
        if self._writer is None:
            return True
        done = threading.Event()
        self._pending.put_nowait(done)
        return done.wait(timeout=timeout_s)

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        """
        Read through the writer's own connection.

        DuckDB locks the file per process, so readers in the same process share it.
        """
        with self._lock:
            return self.conn.execute(sql, params or []).fetchall()

    def summary(
        self,
        *,
        dataset_id: str | None = None,
        since_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        clauses, params = _filters(dataset_id, since_ms)
        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params)
        return [
            {
                "datasetId": did,
                "n": int(n or 0),
                "avgMs": _as_float(avg_ms),
                "p50Ms": _as_float(p50),
                "p95Ms": _as_float(p95),
                "avgFeatures": _as_float(avg_features),
                "truncatedRate": _as_float(truncated_rate),
                "failedBatches": int(failed or 0),
            }
            for did, n, avg_ms, p50, p95, avg_features, truncated_rate, failed in rows
        ]

    def slowest(
        self,
        *,
        dataset_id: str | None = None,
        limit: int = 25,
    ) -> list[dict[str, Any]]:
        clauses, params = _filters(dataset_id, None)
        clauses = ["kind = 'resolve_finished'", "elapsed_ms IS NOT NULL", *clauses]
        params.append(max(1, min(200, int(limit))))
        rows = self.query(SLOWEST_SQL_TEMPLATE.format(where_sql=" AND ".join(clauses)), params)
        return [
            {
                "tsMs": int(ts_ms),
                "datasetId": did,
                "totalMs": _as_float(elapsed_ms),
                "nFeatures": None if n is None else int(n),
                "truncated": None if truncated is None else bool(truncated),
            }
            for ts_ms, did, elapsed_ms, n, truncated in rows
        ]

    def reset(self) -> None:
        """Stop writing, close the connection and delete the database file."""
        self.stop(timeout_s=2.0)
        with self._lock:
            try:
                self.conn.close()
            except duckdb.Error:
                pass
            self.path.unlink(missing_ok=True)

    def _insert(self, rows: list[tuple]) -> None:
        if not rows:
            return
        with self._lock:
            self.conn.executemany(INSERT_EVENTS_SQL, rows)
            self.conn.execute("CHECKPOINT;")

    def _write_loop(self) -> None:
        self.ensure_schema()
        rows: list[tuple] = []
        waiters: list[threading.Event] = []
        last_insert = time.monotonic()

        while True:
            closing = self._closing.is_set()
            try:
                item = self._pending.get(timeout=0.1) if not closing else self._pending.get_nowait()
            except queue.Empty:
                item = None

            if isinstance(item, threading.Event):
                waiters.append(item)
            elif item is not None:
                rows.append(item)

            due = time.monotonic() - last_insert >= BATCH_INTERVAL_S
            if len(rows) >= BATCH_ROWS or waiters or (rows and due) or (closing and item is None):
                self._insert(rows)
                rows = []
                last_insert = time.monotonic()
                for w in waiters:
                    w.set()
                waiters = []

            if closing and item is None:
                return
