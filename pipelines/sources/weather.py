"""OpenWeatherMap current-conditions adapter."""

from __future__ import annotations

from typing import Mapping

from pipelines.common import coerce_float
from pipelines.model import GeographyContext, MetricEnvelope
from pipelines.sources.base import ProviderAdapter

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"


class WeatherAdapter(ProviderAdapter):
    name = "weather"
    source = "openweathermap"
    rate_key = "weather"

    def is_configured(self) -> bool:
        return bool(self.settings.weather_api_key)

    async def _fetch(self, context: GeographyContext) -> MetricEnvelope:
        coords = context.coordinates
        payload = await self._get_json(
            OPENWEATHER_URL,
            params={
                "lat": coords.lat,
                "lon": coords.lng,
                "appid": self.settings.weather_api_key,
                "units": "imperial",
            },
        )
        main = payload.get("main") if isinstance(payload, Mapping) else None
        if not isinstance(main, Mapping):
            return MetricEnvelope.missing(self.source, "Invalid weather response")

        conditions = payload.get("weather") or [{}]
        return MetricEnvelope.ok(
            self.source,
            {
                "current_temperature": coerce_float(main.get("temp")),
                "humidity": coerce_float(main.get("humidity")),
                "conditions": conditions[0].get("description") if conditions else None,
            },
        )


__all__ = ["WeatherAdapter"]
