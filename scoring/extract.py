"""Pull scoreable metrics out of a raw bundle and discount them."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from pipelines.common import coerce_float
from pipelines.model import AdjustedMetric, MetricEnvelope, RawDataBundle
from scoring.adjust import adjust

# metric -> (provider, payload section or None, key)
METRIC_SOURCES: Mapping[str, tuple[str, str | None, str]] = {
    "zhvi_1y_growth": ("housing_index", "metrics", "zhvi_1y_growth"),
    "zhvi_3y_cagr": ("housing_index", "metrics", "zhvi_3y_cagr"),
    "current_zhvi": ("housing_index", "metrics", "current_zhvi"),
    "days_on_market": ("housing_index", "metrics", "days_on_market"),
    "months_supply": ("housing_index", "metrics", "months_supply"),
    "zori_1y_growth": ("housing_index", "metrics", "zori_1y_growth"),
    "market_temp_6m_trend": ("housing_index", "metrics", "market_temp_6m_trend"),
    "sales_velocity_trend": ("housing_index", "metrics", "sales_velocity_trend"),
    "population": ("census", "computed_metrics", "population"),
    "median_household_income": ("census", "computed_metrics", "median_household_income"),
    "pct_bachelor_plus": ("census", "computed_metrics", "pct_bachelor_plus"),
    "pct_25_34": ("census", "computed_metrics", "pct_25_34"),
    "vacancy_rate": ("census", "computed_metrics", "vacancy_rate"),
    "rental_rate": ("census", "computed_metrics", "rental_rate"),
    "price_to_income_ratio": ("census", "computed_metrics", "price_to_income_ratio"),
    "rent_to_income_ratio": ("census", "computed_metrics", "rent_to_income_ratio"),
    "unemployment_rate": ("employment", None, "current_unemployment_rate"),
    "amenity_density_score": ("places", None, "total_amenities"),
}


def _lookup(envelope: MetricEnvelope, section: str | None, key: str) -> Any:
    if not envelope.available:
        return None
    container = envelope.get(section) if section else envelope.value
    if not isinstance(container, Mapping):
        return None
    return container.get(key)


def extract_metrics(
    bundle: RawDataBundle,
    *,
    sources: Mapping[str, tuple[str, str | None, str]] = METRIC_SOURCES,
    now: datetime | None = None,
) -> dict[str, AdjustedMetric]:
    adjusted: dict[str, AdjustedMetric] = {}
    for metric, (provider, section, key) in sources.items():
        envelope: MetricEnvelope = getattr(bundle, provider)
        raw = coerce_float(_lookup(envelope, section, key))
        adjusted[metric] = adjust(raw, envelope.confidence, envelope.retrieved_at, now=now)
    return adjusted


__all__ = ["METRIC_SOURCES", "extract_metrics"]
