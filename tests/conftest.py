import inspect
from typing import Any

import httpx
import pytest

from jobs.config import Settings
from pipelines.model import (
    AdjustedMetric,
    AnalysisMeta,
    AnalysisMode,
    AnalysisResult,
    Confidence,
    DataQualityReport,
    InvestmentScore,
    ProcessedMetrics,
)
from pipelines.ratelimit import RateLimiter
from pipelines.sources import base


class FakeHttp:
    """Stand-in for ``fetch_json`` routing on URL prefix.

    A route maps to a payload, an exception instance to raise, or a callable
    ``(url, kwargs)`` returning either (optionally awaitable).
    """

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, url: str, **kwargs: Any) -> Any:
        self.calls.append((url, kwargs))
        for prefix, response in self.routes.items():
            if not url.startswith(prefix):
                continue
            if callable(response):
                response = response(url, kwargs)
                if inspect.isawaitable(response):
                    response = await response
            if isinstance(response, BaseException):
                raise response
            return response
        raise httpx.ConnectError(f"no route for {url}")

    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


@pytest.fixture()
def fake_http(monkeypatch):
    def install(routes: dict[str, Any]) -> FakeHttp:
        fake = FakeHttp(routes)
        monkeypatch.setattr(base, "fetch_json", fake)
        return fake

    return install


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        google_api_key="google-key",
        housing_data_dir=None,
        output_dir=tmp_path / "outputs",
        database_path=tmp_path / "runs.duckdb",
        rate_limits_ms={},
    )


@pytest.fixture()
def limiter():
    return RateLimiter({})


@pytest.fixture()
def make_result():
    def build(
        location: str = "Denver, CO",
        slug: str = "denver_co",
        final_score: int = 72,
        band: str = "Moderate Opportunity",
        data_quality: int = 55,
    ) -> AnalysisResult:
        return AnalysisResult(
            meta=AnalysisMeta(query=location, mode=AnalysisMode.POINT, slug=slug),
            processed_metrics=ProcessedMetrics(
                adjusted_metrics={
                    "zhvi_1y_growth": AdjustedMetric(
                        raw_value=10.0,
                        adjusted_value=10.0,
                        confidence=Confidence.GOOD,
                        confidence_multiplier=1.0,
                        recency_multiplier=1.0,
                    ),
                    "unemployment_rate": AdjustedMetric(
                        confidence=Confidence.MISSING,
                        confidence_multiplier=0.0,
                        recency_multiplier=1.0,
                    ),
                }
            ),
            investment_score=InvestmentScore(final_score=final_score, band=band),
            data_quality=DataQualityReport(overall_score=data_quality),
        )

    return build
