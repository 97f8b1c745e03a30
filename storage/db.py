"""DuckDB run store: one row per analysis plus its adjusted metrics.

Recorded metrics double as the peer population for ``StoredPeerSource``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable

import duckdb

from pipelines.model import AnalysisResult

DB_ENV_VAR = "ANALYSIS_DB_PATH"
DEFAULT_DB_PATH = Path("data/analyses.duckdb")

ANALYSIS_RUNS_TABLE = "analysis_runs"
LOCATION_METRICS_TABLE = "location_metrics"

RUN_COLUMNS = ("slug", "query", "mode", "final_score", "band", "data_quality", "created_at")


def get_database_path(override: str | os.PathLike[str] | None = None) -> Path:
    """Explicit path, else ``$ANALYSIS_DB_PATH``, else the default under ``data/``."""
    if override is not None:
        return Path(override)
    return Path(os.getenv(DB_ENV_VAR) or DEFAULT_DB_PATH)


def connect(path: str | os.PathLike[str] | None = None) -> duckdb.DuckDBPyConnection:
    """Open the run store, creating its directory and tables on first use."""
    db_path = get_database_path(path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = duckdb.connect(str(db_path))
    ensure_tables(conn)
    return conn


def ensure_tables(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {ANALYSIS_RUNS_TABLE} (
            slug TEXT PRIMARY KEY,
            query TEXT NOT NULL,
            mode TEXT NOT NULL,
            final_score INTEGER NOT NULL,
            band TEXT NOT NULL,
            data_quality INTEGER NOT NULL,
            created_at TIMESTAMP NOT NULL
        )
        """
    )
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {LOCATION_METRICS_TABLE} (
            slug TEXT NOT NULL,
            metric TEXT NOT NULL,
            raw_value DOUBLE,
            adjusted_value DOUBLE,
            confidence TEXT NOT NULL,
            computed_at TIMESTAMP NOT NULL,
            PRIMARY KEY (slug, metric)
        )
        """
    )
    conn.execute(
        f"""
        CREATE INDEX IF NOT EXISTS idx_{LOCATION_METRICS_TABLE}_metric
        ON {LOCATION_METRICS_TABLE} (metric)
        """
    )


def record_run(conn: duckdb.DuckDBPyConnection, result: AnalysisResult) -> int:
    """Upsert a completed run and replace its metric rows.

    Returns
    -------
    int
        Number of metric rows written.
    """

    meta = result.meta
    score = result.investment_score
    conn.execute(
        f"""
        INSERT OR REPLACE INTO {ANALYSIS_RUNS_TABLE} ({", ".join(RUN_COLUMNS)})
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            meta.slug,
            meta.query,
            meta.mode.value,
            score.final_score,
            score.band,
            result.data_quality.overall_score,
            meta.created_at,
        ],
    )
    conn.execute(f"DELETE FROM {LOCATION_METRICS_TABLE} WHERE slug = ?", [meta.slug])

    rows = [
        (
            meta.slug,
            metric,
            adjusted.raw_value,
            adjusted.adjusted_value,
            adjusted.confidence.value,
            score.calculated_at,
        )
        for metric, adjusted in result.processed_metrics.adjusted_metrics.items()
        if adjusted.adjusted_value is not None
    ]
    if rows:
        conn.executemany(
            f"""
            INSERT INTO {LOCATION_METRICS_TABLE} (
                slug, metric, raw_value, adjusted_value, confidence, computed_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def fetch_peer_values(
    conn: duckdb.DuckDBPyConnection,
    metrics: Iterable[str],
    *,
    exclude_slug: str | None = None,
) -> dict[str, list[float]]:
    metrics = list(metrics)
    if not metrics:
        return {}
    placeholders = ", ".join("?" for _ in metrics)
    sql = (
        f"SELECT metric, adjusted_value FROM {LOCATION_METRICS_TABLE}"
        f" WHERE metric IN ({placeholders}) AND adjusted_value IS NOT NULL"
    )
    params: list[Any] = list(metrics)
    if exclude_slug:
        sql += " AND slug <> ?"
        params.append(exclude_slug)

    values: dict[str, list[float]] = {}
    for metric, value in conn.execute(sql, params).fetchall():
        values.setdefault(metric, []).append(float(value))
    return values


def runs_query(limit: int | None = None) -> str:
    sql = f"SELECT {', '.join(RUN_COLUMNS)} FROM {ANALYSIS_RUNS_TABLE} ORDER BY created_at DESC"
    if limit is not None:
        sql += f" LIMIT {int(limit)}"
    return sql


def fetch_runs(conn: duckdb.DuckDBPyConnection, *, limit: int | None = None) -> list[dict[str, Any]]:
    """Recorded runs, newest first."""
    rows = conn.execute(runs_query(limit)).fetchall()
    return [dict(zip(RUN_COLUMNS, row)) for row in rows]


__all__ = [
    "ANALYSIS_RUNS_TABLE",
    "LOCATION_METRICS_TABLE",
    "RUN_COLUMNS",
    "connect",
    "ensure_tables",
    "fetch_peer_values",
    "fetch_runs",
    "get_database_path",
    "record_run",
    "runs_query",
]
