"""Flood-risk adapter: one call to the configured risk endpoint."""

from __future__ import annotations

from typing import Any, Mapping

from pipelines.common import coerce_float
from pipelines.model import GeographyContext, MetricEnvelope
from pipelines.sources.base import ProviderAdapter


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def parse_flood_risk(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "flood_zone": _first(payload, "zone", "floodZone") or "Unknown",
        "risk_level": _first(payload, "risk", "riskLevel") or "Unknown",
        "annual_chance": coerce_float(_first(payload, "annualChance", "annual_chance")),
        "flood_factor_score": coerce_float(_first(payload, "score", "floodFactor")),
        "projected_risk": _first(payload, "projectedRisk", "projected_risk"),
    }


class FloodRiskAdapter(ProviderAdapter):
    name = "flood"
    source = "flood_risk_api"
    rate_key = "flood"

    def is_configured(self) -> bool:
        return bool(self.settings.flood_api_key and self.settings.flood_api_url)

    async def _fetch(self, context: GeographyContext) -> MetricEnvelope:
        coords = context.coordinates
        payload = await self._get_json(
            self.settings.flood_api_url,
            params={"lat": coords.lat, "lng": coords.lng, "key": self.settings.flood_api_key},
        )
        if not isinstance(payload, Mapping) or not payload:
            return MetricEnvelope.missing(self.source, "Empty flood risk response")
        if payload.get("error"):
            return MetricEnvelope.missing(self.source, f"Flood API error: {payload['error']}")
        return MetricEnvelope.ok(self.source, parse_flood_risk(payload))


__all__ = ["FloodRiskAdapter", "parse_flood_risk"]
