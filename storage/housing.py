"""Bulk regional housing-market dataset loaded from Zillow-style wide CSV files.

Each file holds one metric: identifying columns (``RegionName``,
``StateName``, ...) followed by one column per month (``YYYY-MM-DD``). Files
are read through DuckDB's CSV reader and kept in memory as
``metric -> region -> {date: value}``.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, Sequence

import duckdb

from pipelines.common import coerce_float

logger = logging.getLogger(__name__)

HOUSING_FILES: Mapping[str, str] = {
    "zhvi": "Metro_zhvi_uc_sfrcondo_tier_0.33_0.67_sm_sa_month.csv",
    "zori": "Metro_zori_uc_sfrcondomfr_sm_month.csv",
    "inventory": "Metro_invt_fs_uc_sfrcondo_sm_month.csv",
    "sales_count": "Metro_sales_count_now_uc_sfrcondo_month.csv",
    "days_on_market": "Metro_mean_doz_pending_uc_sfrcondo_sm_month.csv",
    "market_temp": "Metro_market_temp_index_uc_sfrcondo_month.csv",
}

DATE_COLUMN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Series = dict[str, float]


def read_wide_csv(
    path: str | os.PathLike[str],
    conn: duckdb.DuckDBPyConnection | None = None,
) -> tuple[dict[str, Series], dict[str, str]]:
    """Return ``(region -> series, region -> state)`` for one wide CSV file."""

    own_conn = conn is None
    conn = conn or duckdb.connect()
    sanitized_path = str(path).replace("'", "''")
    try:
        cursor = conn.execute(f"SELECT * FROM read_csv_auto('{sanitized_path}', header=true)")
        columns = [column[0] for column in cursor.description]
        rows = cursor.fetchall()
    finally:
        if own_conn:
            conn.close()

    if "RegionName" not in columns:
        raise ValueError(f"{path} has no RegionName column")
    name_idx = columns.index("RegionName")
    state_idx = columns.index("StateName") if "StateName" in columns else None
    date_columns = [(idx, col) for idx, col in enumerate(columns) if DATE_COLUMN.match(str(col))]

    series: dict[str, Series] = {}
    states: dict[str, str] = {}
    for row in rows:
        region = row[name_idx]
        if not region:
            continue
        region = str(region)
        points = {}
        for idx, col in date_columns:
            value = coerce_float(row[idx])
            if value is not None:
                points[str(col)] = value
        series[region] = points
        if state_idx is not None and row[state_idx]:
            states[region] = str(row[state_idx])
    return series, states


def _state_from_name(region: str) -> str | None:
    # "Denver, CO" style names carry the state after the last comma
    if "," not in region:
        return None
    state = region.rsplit(",", 1)[1].strip()
    return state or None


class HousingMarketDataset:
    """In-memory ``metric -> region -> {date: value}`` lookup."""

    def __init__(
        self,
        data: Mapping[str, Mapping[str, Mapping[str, Any]]],
        states: Mapping[str, str] | None = None,
    ) -> None:
        self._data: dict[str, dict[str, Series]] = {}
        for metric, regions in data.items():
            self._data[metric] = {
                region: {
                    date: numeric
                    for date, raw in points.items()
                    if (numeric := coerce_float(raw)) is not None
                }
                for region, points in regions.items()
            }
        self._states = dict(states or {})

    @classmethod
    def from_directory(
        cls,
        directory: str | os.PathLike[str],
        files: Mapping[str, str] = HOUSING_FILES,
    ) -> "HousingMarketDataset":
        base = Path(directory)
        data: dict[str, dict[str, Series]] = {}
        states: dict[str, str] = {}
        conn = duckdb.connect()
        try:
            for metric, filename in files.items():
                path = base / filename
                if not path.is_file():
                    logger.warning("Housing file for %s not found: %s", metric, path)
                    continue
                series, file_states = read_wide_csv(path, conn)
                data[metric] = series
                for region, state in file_states.items():
                    states.setdefault(region, state)
                logger.info("Loaded %d regions of %s from %s", len(series), metric, path.name)
        finally:
            conn.close()
        return cls(data, states)

    @property
    def metrics(self) -> list[str]:
        return list(self._data)

    def regions(self) -> list[str]:
        """Every region name across all metrics, in first-seen order."""
        seen: dict[str, None] = {}
        for regions in self._data.values():
            for region in regions:
                seen.setdefault(region, None)
        return list(seen)

    def series(self, metric: str, region: str) -> Series:
        return dict(self._data.get(metric, {}).get(region, {}))

    def region_series(self, region: str) -> dict[str, Series]:
        return {metric: self.series(metric, region) for metric in self._data}

    def state(self, region: str) -> str | None:
        return self._states.get(region) or _state_from_name(region)

    def regions_in_state(self, state: str | None) -> list[str]:
        if not state:
            return self.regions()
        wanted = state.upper()
        return [region for region in self.regions() if (self.state(region) or "").upper() == wanted]

    def __len__(self) -> int:
        return len(self.regions())


def load_dataset(directory: str | os.PathLike[str] | None) -> HousingMarketDataset | None:
    """Dataset from ``directory``, or ``None`` when it is unset or absent."""
    if not directory or not Path(directory).is_dir():
        return None
    return HousingMarketDataset.from_directory(directory)


__all__ = [
    "DATE_COLUMN",
    "HOUSING_FILES",
    "HousingMarketDataset",
    "load_dataset",
    "read_wide_csv",
]
