from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS resolver_events (
  ts_ms BIGINT,
  kind TEXT,
  dataset_id TEXT,
  pass_name TEXT,
  result_offset BIGINT,
  n_features BIGINT,
  truncated BOOLEAN,
  error TEXT,
  elapsed_ms DOUBLE,
  extra_json TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  dataset_id,
  COUNT(*) FILTER (WHERE kind = 'resolve_finished') AS n,
  AVG(elapsed_ms) FILTER (WHERE kind = 'resolve_finished') AS avg_ms,
  quantile_cont(elapsed_ms, 0.50) FILTER (WHERE kind = 'resolve_finished') AS p50_ms,
  quantile_cont(elapsed_ms, 0.95) FILTER (WHERE kind = 'resolve_finished') AS p95_ms,
  AVG(n_features) FILTER (WHERE kind = 'resolve_finished') AS avg_features,
  AVG(CASE WHEN truncated THEN 1 ELSE 0 END) FILTER (WHERE kind = 'resolve_finished') AS truncated_rate,
  COUNT(*) FILTER (WHERE kind = 'batch_failed') AS failed_batches
FROM resolver_events
{where_sql}
GROUP BY dataset_id
ORDER BY dataset_id
"""

SLOWEST_SQL_TEMPLATE = """
SELECT
  ts_ms,
  dataset_id,
  elapsed_ms,
  n_features,
  truncated
FROM resolver_events
WHERE {where_sql}
ORDER BY elapsed_ms DESC
LIMIT ?
"""

INSERT_EVENTS_SQL = """
INSERT INTO resolver_events
  (ts_ms, kind, dataset_id, pass_name, result_offset, n_features, truncated, error, elapsed_ms, extra_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
