"""Housing-market index adapter over the bulk regional dataset.

Free text is resolved to a dataset region with ``RegionMatcher``; growth and
trend metrics are computed only when the series is long enough (13 monthly
points for a year-over-year change, 37 for a three-year CAGR).
"""

from __future__ import annotations

from typing import Mapping

from pipelines.matching import RegionMatcher
from pipelines.model import Confidence, GeographyContext, MetricEnvelope
from pipelines.sources.base import ProviderAdapter
from storage.housing import DATE_COLUMN, HousingMarketDataset

ONE_YEAR_POINTS = 13
THREE_YEAR_POINTS = 37
SIX_MONTH_POINTS = 7


def _ordered(series: Mapping[str, float] | None) -> list[tuple[str, float]]:
    if not series:
        return []
    return sorted((date, value) for date, value in series.items() if DATE_COLUMN.match(date))


def _pct_change(latest: float, earlier: float) -> float | None:
    if not earlier:
        return None
    return round((latest - earlier) / earlier * 100, 2)


def compute_market_metrics(series: Mapping[str, Mapping[str, float]]) -> dict[str, float | str | None]:
    """Derived housing metrics for one region; each is ``None`` without enough history."""
    metrics: dict[str, float | str | None] = {
        "current_zhvi": None,
        "zhvi_1y_growth": None,
        "zhvi_3y_cagr": None,
        "current_zori": None,
        "zori_1y_growth": None,
        "rent_to_price_ratio": None,
        "current_inventory": None,
        "months_supply": None,
        "days_on_market": None,
        "market_temperature": None,
        "market_temp_6m_trend": None,
        "current_sales_count": None,
        "sales_velocity_trend": None,
        "as_of": None,
    }

    zhvi = _ordered(series.get("zhvi"))
    if zhvi:
        latest = zhvi[-1][1]
        metrics["current_zhvi"] = round(latest, 2)
        metrics["as_of"] = zhvi[-1][0]
        if len(zhvi) >= ONE_YEAR_POINTS:
            metrics["zhvi_1y_growth"] = _pct_change(latest, zhvi[-ONE_YEAR_POINTS][1])
        if len(zhvi) >= THREE_YEAR_POINTS:
            three_years_ago = zhvi[-THREE_YEAR_POINTS][1]
            if three_years_ago > 0 and latest > 0:
                metrics["zhvi_3y_cagr"] = round(((latest / three_years_ago) ** (1 / 3) - 1) * 100, 2)

    zori = _ordered(series.get("zori"))
    if zori:
        latest_rent = zori[-1][1]
        metrics["current_zori"] = round(latest_rent, 2)
        if len(zori) >= ONE_YEAR_POINTS:
            metrics["zori_1y_growth"] = _pct_change(latest_rent, zori[-ONE_YEAR_POINTS][1])
        if metrics["current_zhvi"]:
            metrics["rent_to_price_ratio"] = round(latest_rent * 12 / metrics["current_zhvi"] * 100, 2)

    sales = _ordered(series.get("sales_count"))
    if sales:
        current_sales = sales[-1][1]
        metrics["current_sales_count"] = current_sales
        if len(sales) >= ONE_YEAR_POINTS:
            metrics["sales_velocity_trend"] = _pct_change(current_sales, sales[-ONE_YEAR_POINTS][1])

    inventory = _ordered(series.get("inventory"))
    if inventory:
        metrics["current_inventory"] = inventory[-1][1]
        if metrics["current_sales_count"]:
            metrics["months_supply"] = round(inventory[-1][1] / metrics["current_sales_count"], 2)

    dom = _ordered(series.get("days_on_market"))
    if dom:
        metrics["days_on_market"] = dom[-1][1]

    temp = _ordered(series.get("market_temp"))
    if temp:
        metrics["market_temperature"] = temp[-1][1]
        if len(temp) >= SIX_MONTH_POINTS:
            metrics["market_temp_6m_trend"] = round(temp[-1][1] - temp[-SIX_MONTH_POINTS][1], 2)

    if metrics["as_of"] is None:
        latest_dates = [points[-1][0] for points in (zori, sales, inventory, dom, temp) if points]
        metrics["as_of"] = max(latest_dates) if latest_dates else None
    return metrics


class HousingIndexAdapter(ProviderAdapter):
    name = "housing_index"
    source = "zillow_research_data"

    def __init__(
        self,
        settings,
        limiter,
        dataset: HousingMarketDataset | None,
        matcher: RegionMatcher | None = None,
    ) -> None:
        super().__init__(settings, limiter)
        self.dataset = dataset
        self.matcher = matcher or RegionMatcher()

    def is_configured(self) -> bool:
        return self.dataset is not None

    def resolve_region(self, context: GeographyContext) -> str | None:
        regions = self.dataset.regions()
        region = self.matcher.resolve(context.query, regions)
        if region is None and context.formatted_address:
            region = self.matcher.resolve(context.formatted_address, regions)
        return region

    async def _fetch(self, context: GeographyContext) -> MetricEnvelope:
        region = self.resolve_region(context)
        if region is None:
            return MetricEnvelope.missing(
                self.source, f"No housing-market region matches '{context.query}'"
            )

        series = self.dataset.region_series(region)
        observations = {metric: len(points) for metric, points in series.items()}
        if not any(observations.values()):
            return MetricEnvelope.missing(self.source, f"No observations for region '{region}'")

        value = {
            "region": region,
            "state": self.dataset.state(region),
            "observations": observations,
            "metrics": compute_market_metrics(series),
        }
        if not observations.get("zhvi"):
            return MetricEnvelope.ok(
                self.source,
                value,
                confidence=Confidence.PARTIAL,
                note="home value index unavailable; secondary series only",
            )
        return MetricEnvelope.ok(self.source, value)


__all__ = ["HousingIndexAdapter", "compute_market_metrics"]
