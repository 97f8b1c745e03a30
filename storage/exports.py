"""CSV and Parquet exports of recorded analysis runs, written by DuckDB ``COPY``."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

import duckdb

from storage.db import runs_query

EXPORT_FORMATS: Mapping[str, str] = {
    "csv": "FORMAT CSV, HEADER TRUE",
    "parquet": "FORMAT PARQUET",
}

MEDIA_TYPES: Mapping[str, str] = {
    "csv": "text/csv",
    "parquet": "application/vnd.apache.parquet",
}


def export_runs(
    conn: duckdb.DuckDBPyConnection,
    destination: str | Path,
    *,
    fmt: str = "csv",
    limit: int | None = None,
) -> Path:
    """Copy the newest ``limit`` runs (all when ``None``) to ``destination``."""
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format '{fmt}'")
    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    quoted = str(target).replace("'", "''")
    conn.execute(f"COPY ({runs_query(limit)}) TO '{quoted}' ({EXPORT_FORMATS[fmt]})")
    return target


def runs_dataframe(conn: duckdb.DuckDBPyConnection, limit: int | None = None):
    """Recorded runs as a pandas DataFrame."""
    return conn.execute(runs_query(limit)).df()


__all__ = ["EXPORT_FORMATS", "MEDIA_TYPES", "export_runs", "runs_dataframe"]
