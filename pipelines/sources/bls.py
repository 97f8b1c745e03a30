"""Bureau of Labor Statistics LAUS metro unemployment adapter."""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Iterable, Mapping

from jobs.config import BLS_METRO_AREAS, MetroArea
from pipelines.common import coerce_float
from pipelines.model import Confidence, GeographyContext, MetricEnvelope
from pipelines.sources.base import ProviderAdapter

BLS_TIMESERIES_URL = "https://api.bls.gov/publicAPI/v2/timeseries/data/"
MAX_METRO_DISTANCE_DEGREES = 2.0
HISTORY_YEARS = 3

logger = logging.getLogger(__name__)


def match_metro(
    lat: float,
    lng: float,
    metros: Iterable[MetroArea] = BLS_METRO_AREAS,
    max_distance: float = MAX_METRO_DISTANCE_DEGREES,
) -> MetroArea | None:
    """Nearest metro centroid in degree space, or ``None`` beyond ``max_distance``."""
    best: MetroArea | None = None
    best_distance = max_distance
    for metro in metros:
        distance = math.hypot(lat - metro.lat, lng - metro.lng)
        if distance < best_distance:
            best, best_distance = metro, distance
    return best


def _parse_observation(obs: Mapping[str, Any]) -> dict[str, Any] | None:
    period = str(obs.get("period", ""))
    # M13 is the annual average
    if not period.startswith("M") or period == "M13":
        return None
    try:
        year = int(obs.get("year", ""))
        month = int(period[1:])
        observed = date(year, month, 1)
    except (TypeError, ValueError):
        return None
    value = coerce_float(obs.get("value"))
    if value is None:
        return None
    return {"date": observed.isoformat(), "year": year, "period": period, "value": value}


def parse_series(observations: Iterable[Any]) -> list[dict[str, Any]]:
    """Monthly observations, newest first."""
    parsed = [
        point
        for point in (_parse_observation(obs) for obs in observations if isinstance(obs, Mapping))
        if point is not None
    ]
    parsed.sort(key=lambda point: point["date"], reverse=True)
    return parsed


class BlsEmploymentAdapter(ProviderAdapter):
    name = "employment"
    source = "bls_laus_api"
    rate_key = "bls"

    def is_configured(self) -> bool:
        return bool(self.settings.bls_api_key)

    async def _fetch(self, context: GeographyContext) -> MetricEnvelope:
        coords = context.coordinates
        metro = match_metro(coords.lat, coords.lng)
        if metro is None:
            logger.info("[employment] no metro within %.1f degrees of %s", MAX_METRO_DISTANCE_DEGREES, coords)
            return MetricEnvelope.ok(
                self.source,
                None,
                confidence=Confidence.PARTIAL,
                error="Could not map location to BLS area",
                note="Location not covered by major metro BLS data",
            )

        end_year = date.today().year
        payload = await self._get_json(
            BLS_TIMESERIES_URL,
            method="POST",
            headers={"Content-Type": "application/json"},
            json={
                "seriesid": [metro.laus_series_id],
                "startyear": str(end_year - HISTORY_YEARS),
                "endyear": str(end_year),
                "registrationkey": self.settings.bls_api_key,
            },
        )
        if not isinstance(payload, Mapping) or payload.get("status") != "REQUEST_SUCCEEDED":
            message = payload.get("message") if isinstance(payload, Mapping) else None
            return MetricEnvelope.missing(self.source, f"BLS API error: {message or 'Unknown error'}")

        series = (payload.get("Results") or {}).get("series") or []
        if not series:
            return MetricEnvelope.missing(self.source, "BLS returned no series")
        points = parse_series(series[0].get("data") or [])
        if not points:
            return MetricEnvelope.missing(self.source, "BLS series has no monthly observations")

        current = points[0]["value"]
        change = round(current - points[12]["value"], 2) if len(points) >= 13 else None
        return MetricEnvelope.ok(
            self.source,
            {
                "metro": metro.key,
                "metro_name": metro.name,
                "series_id": metro.laus_series_id,
                "current_unemployment_rate": current,
                "unemployment_rate_change": change,
                "as_of": points[0]["date"],
                "time_series": points[:12],
            },
        )


__all__ = ["BlsEmploymentAdapter", "MAX_METRO_DISTANCE_DEGREES", "match_metro", "parse_series"]
