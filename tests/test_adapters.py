import asyncio

import httpx
import pytest

from jobs.config import Settings
from pipelines.common import coerce_float, safe_ratio
from pipelines.model import Confidence, Coordinates, GeographyContext, MetricEnvelope
from pipelines.sources.base import ProviderAdapter
from pipelines.sources.flood import FloodRiskAdapter
from pipelines.sources.weather import WeatherAdapter

CONTEXT = GeographyContext(query="Denver, CO", coordinates=Coordinates(lat=39.7392, lng=-104.9903))


class EchoAdapter(ProviderAdapter):
    name = "echo"
    source = "echo_api"
    rate_key = "echo"

    async def _fetch(self, context):
        payload = await self._get_json("https://echo.test/value")
        return MetricEnvelope.ok(self.source, payload)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://echo.test/value")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("server error", request=request, response=response)


@pytest.mark.parametrize(
    "failure, expected",
    [
        (httpx.ReadTimeout("slow"), "timeout"),
        (_status_error(503), "http_503"),
        (ValueError("bad payload"), "bad payload"),
    ],
)
def test_adapter_failures_become_missing_envelopes(fake_http, settings, limiter, failure, expected):
    fake_http({"https://echo.test": failure})

    envelope = asyncio.run(EchoAdapter(settings, limiter).fetch(CONTEXT))

    assert envelope.confidence is Confidence.MISSING
    assert envelope.value is None
    assert envelope.error == expected
    assert envelope.retrieved_at is not None


def test_adapter_success_passes_payload(fake_http, settings, limiter):
    fake = fake_http({"https://echo.test": {"answer": 42}})

    envelope = asyncio.run(EchoAdapter(settings, limiter).fetch(CONTEXT))

    assert envelope.confidence is Confidence.GOOD
    assert envelope.get("answer") == 42
    assert fake.calls[0][1]["timeout"] == settings.http_timeout_seconds
    assert fake.calls[0][1]["attempts"] == 1


def test_unconfigured_provider_never_calls_out(fake_http, settings, limiter):
    fake = fake_http({})

    weather = asyncio.run(WeatherAdapter(settings, limiter).fetch(CONTEXT))
    flood = asyncio.run(FloodRiskAdapter(settings, limiter).fetch(CONTEXT))

    assert weather.error == "weather not configured"
    assert flood.error == "flood not configured"
    assert fake.calls == []


@pytest.mark.parametrize(
    "key, url, expected",
    [("f", "https://flood.example/risk", True), ("f", "", False), ("", "https://flood.example/risk", False)],
)
def test_flood_configured_flag_matches_adapter(limiter, key, url, expected):
    settings = Settings(flood_api_key=key, flood_api_url=url)

    assert settings.configured_providers()["flood"] is expected
    assert FloodRiskAdapter(settings, limiter).is_configured() is expected


def test_weather_parses_current_conditions(fake_http, settings, limiter):
    fake_http(
        {
            "https://api.openweathermap.org": {
                "main": {"temp": 71.3, "humidity": 22},
                "weather": [{"description": "clear sky"}],
            }
        }
    )
    configured = Settings(weather_api_key="w-key", rate_limits_ms={})

    envelope = asyncio.run(WeatherAdapter(configured, limiter).fetch(CONTEXT))

    assert envelope.confidence is Confidence.GOOD
    assert envelope.value == {"current_temperature": 71.3, "humidity": 22.0, "conditions": "clear sky"}


def test_weather_without_main_block_is_missing(fake_http, limiter):
    fake_http({"https://api.openweathermap.org": {"cod": 401}})

    envelope = asyncio.run(WeatherAdapter(Settings(weather_api_key="w"), limiter).fetch(CONTEXT))

    assert envelope.confidence is Confidence.MISSING
    assert envelope.error == "Invalid weather response"


def test_flood_risk_fields(fake_http, limiter):
    fake_http({"https://api.floodfactor.com": {"floodZone": "X", "riskLevel": "minimal", "score": "2"}})

    envelope = asyncio.run(FloodRiskAdapter(Settings(flood_api_key="f"), limiter).fetch(CONTEXT))

    assert envelope.confidence is Confidence.GOOD
    assert envelope.get("flood_zone") == "X"
    assert envelope.get("risk_level") == "minimal"
    assert envelope.get("flood_factor_score") == 2.0
    assert envelope.get("annual_chance") is None


@pytest.mark.parametrize(
    "raw, expected",
    [("12.5", 12.5), (7, 7.0), ("", None), (".", None), ("N/A", None), (float("nan"), None), (True, None)],
)
def test_coerce_float(raw, expected):
    assert coerce_float(raw) == expected


def test_safe_ratio_absent_on_unusable_denominator():
    assert safe_ratio(100, 1000, scale=100) == 10.0
    assert safe_ratio(100, 0, scale=100) is None
    assert safe_ratio(None, 10) is None
    assert safe_ratio(5, None) is None
