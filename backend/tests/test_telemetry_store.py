from __future__ import annotations

from telemetry.events import ResolverEvent
from telemetry.singleton import get_store, reset_store, telemetry_sink


def _use_tmp_db(tmp_path, monkeypatch):
    db_path = tmp_path / "telemetry.duckdb"
    monkeypatch.setenv("GEOENRICH_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("GEOENRICH_TELEMETRY", "1")
    return db_path


def test_telemetry_store_writes_rows(tmp_path, monkeypatch):
    _use_tmp_db(tmp_path, monkeypatch)
    store = get_store()
    assert store is not None

    store.record_event(
        ResolverEvent(
            kind="batch_fetched",
            dataset_id="blm_lwcf",
            pass_name="proximity",
            offset=2000,
            n_features=17,
            elapsed_ms=12.5,
            extra={"exceededTransferLimit": False},
        )
    )
    assert store.flush(timeout_s=2.0)

    # Use the existing connection; DuckDB disallows opening the same file with different configs.
    row = store.conn.execute(
        "select kind, dataset_id, pass_name, result_offset, n_features from resolver_events"
    ).fetchone()
    assert row == ("batch_fetched", "blm_lwcf", "proximity", 2000, 17)


def test_summary_and_slowest(tmp_path, monkeypatch):
    _use_tmp_db(tmp_path, monkeypatch)
    sink = telemetry_sink()
    assert sink is not None

    for ms, n, truncated in [(10.0, 3, False), (30.0, 1, True)]:
        sink(
            ResolverEvent(
                kind="resolve_finished",
                dataset_id="blm_fire_perimeters",
                n_features=n,
                truncated=truncated,
                elapsed_ms=ms,
            )
        )
    sink(ResolverEvent(kind="batch_failed", dataset_id="blm_fire_perimeters", error="x"))
    sink(ResolverEvent(kind="resolve_finished", dataset_id="blm_lwcf", elapsed_ms=5.0))

    store = get_store()
    assert store is not None
    assert store.flush(timeout_s=2.0)

    rows = {r["datasetId"]: r for r in store.summary()}
    fires = rows["blm_fire_perimeters"]
    assert fires["n"] == 2
    assert fires["avgMs"] == 20.0
    assert fires["avgFeatures"] == 2.0
    assert fires["truncatedRate"] == 0.5
    assert fires["failedBatches"] == 1
    assert [r["datasetId"] for r in store.summary(dataset_id="blm_lwcf")] == ["blm_lwcf"]

    slow = store.slowest(limit=2)
    assert [s["totalMs"] for s in slow] == [30.0, 10.0]
    assert slow[0]["truncated"] is True


def test_disabled_telemetry_has_no_sink(monkeypatch):
    monkeypatch.setenv("GEOENRICH_TELEMETRY", "0")
    assert get_store() is None
    assert telemetry_sink() is None


def test_telemetry_reset_deletes_db(tmp_path, monkeypatch):
    db_path = _use_tmp_db(tmp_path, monkeypatch)

    store = get_store()
    assert store is not None
    store.record_event(ResolverEvent(kind="resolve_started", dataset_id="x"))
    assert store.path.resolve() == db_path.resolve()

    reset_store()
    assert not db_path.exists()
