"""Google Maps Platform adapters: geocoding, nearby amenities and local news.

Geocoding is the one mandatory provider of a run; places and news degrade
independently like every other source.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Sequence

from pipelines.model import (
    Confidence,
    Coordinates,
    GeographyContext,
    LocationQuery,
    MetricEnvelope,
)
from pipelines.sources.base import ProviderAdapter

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
PLACES_NEARBY_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

AMENITY_TYPES: tuple[str, ...] = (
    "restaurant",
    "cafe",
    "grocery_or_supermarket",
    "school",
    "hospital",
    "park",
    "gym",
    "transit_station",
)

# statuses that mean the category search itself worked
_PLACES_OK = {"OK", "ZERO_RESULTS"}

NEWS_CATEGORIES: Mapping[str, tuple[str, ...]] = {
    "development": ("development", "construction", "new project"),
    "market_trends": ("market", "price", "sale"),
    "policy_zoning": ("zoning", "planning", "permit"),
}

EARTH_RADIUS_M = 6371000

logger = logging.getLogger(__name__)


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class GoogleGeocoder(ProviderAdapter):
    name = "geocoding"
    source = "google_geocoding_api"
    rate_key = "google"

    def is_configured(self) -> bool:
        return bool(self.settings.google_api_key)

    async def _fetch(self, query: LocationQuery) -> MetricEnvelope:
        payload = await self._get_json(
            GEOCODE_URL,
            params={"address": query.location, "key": self.settings.google_api_key},
        )
        status = payload.get("status") if isinstance(payload, Mapping) else None
        results = payload.get("results") if isinstance(payload, Mapping) else None
        if status != "OK" or not results:
            return MetricEnvelope.missing(self.source, f"Geocoding failed: {status or 'no status'}")

        result = results[0]
        location = (result.get("geometry") or {}).get("location") or {}
        if "lat" not in location or "lng" not in location:
            return MetricEnvelope.missing(self.source, "Geocoding result has no coordinates")

        return MetricEnvelope.ok(
            self.source,
            {
                "coordinates": {"lat": float(location["lat"]), "lng": float(location["lng"])},
                "formatted_address": result.get("formatted_address"),
                "place_id": result.get("place_id"),
                "address_components": result.get("address_components", []),
            },
        )


def _summarize_place(place: Mapping[str, Any], origin: Coordinates) -> dict[str, Any] | None:
    location = (place.get("geometry") or {}).get("location") or {}
    if "lat" not in location or "lng" not in location:
        return None
    return {
        "name": place.get("name"),
        "place_id": place.get("place_id"),
        "rating": place.get("rating"),
        "distance_m": round(
            haversine_m(origin.lat, origin.lng, float(location["lat"]), float(location["lng"])), 1
        ),
    }


def nearest_places(
    places: Sequence[Mapping[str, Any]], origin: Coordinates, limit: int
) -> list[dict[str, Any]]:
    """Distance-sorted display list truncated to ``limit`` entries."""
    summarized = [s for s in (_summarize_place(p, origin) for p in places) if s is not None]
    summarized.sort(key=lambda item: item["distance_m"])
    return summarized[:limit]


class GooglePlacesAdapter(ProviderAdapter):
    """One nearby search per amenity category; each category fails on its own."""

    name = "places"
    source = "google_places_api"
    rate_key = "google"

    def __init__(self, settings, limiter, amenity_types: Sequence[str] = AMENITY_TYPES) -> None:
        super().__init__(settings, limiter)
        self.amenity_types = tuple(amenity_types)

    def is_configured(self) -> bool:
        return bool(self.settings.google_api_key)

    async def _search_category(self, origin: Coordinates, amenity_type: str) -> dict[str, Any]:
        payload = await self._get_json(
            PLACES_NEARBY_URL,
            params={
                "location": f"{origin.lat},{origin.lng}",
                "radius": self.settings.amenity_radius_meters,
                "type": amenity_type,
                "key": self.settings.google_api_key,
            },
        )
        if not isinstance(payload, Mapping):
            raise ValueError("unexpected places payload")
        status = payload.get("status")
        if status not in _PLACES_OK:
            raise ValueError(f"places status {status}")
        results = payload.get("results") or []
        return {
            "count": len(results),
            "status": status,
            "nearest": nearest_places(results, origin, self.settings.amenity_display_limit),
        }

    async def _fetch(self, context: GeographyContext) -> MetricEnvelope:
        origin = context.coordinates
        counts: dict[str, dict[str, Any]] = {}
        failures: dict[str, str] = {}

        for amenity_type in self.amenity_types:
            try:
                counts[amenity_type] = await self._search_category(origin, amenity_type)
            except Exception as exc:  # noqa: BLE001
                failures[amenity_type] = str(exc) or type(exc).__name__
                logger.warning("[places] %s search failed: %s", amenity_type, failures[amenity_type])

        if not counts:
            return MetricEnvelope.missing(
                self.source, f"all {len(self.amenity_types)} amenity searches failed"
            )

        value = {
            "coordinates": origin.model_dump(),
            "radius_meters": self.settings.amenity_radius_meters,
            "amenity_counts": {k: {"count": v["count"], "status": v["status"]} for k, v in counts.items()},
            "nearest": {k: v["nearest"] for k, v in counts.items()},
            "total_amenities": sum(v["count"] for v in counts.values()),
            "failed_categories": failures,
        }
        if failures:
            return MetricEnvelope.ok(
                self.source,
                value,
                confidence=Confidence.PARTIAL,
                note=f"{len(counts)} of {len(self.amenity_types)} amenity categories returned data",
            )
        return MetricEnvelope.ok(self.source, value)


def categorize_articles(articles: Sequence[Mapping[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    categorized: dict[str, list[dict[str, Any]]] = {key: [] for key in NEWS_CATEGORIES}
    for article in articles:
        text = f"{article.get('title') or ''} {article.get('snippet') or ''}".lower()
        for category, keywords in NEWS_CATEGORIES.items():
            if any(keyword in text for keyword in keywords):
                categorized[category].append(
                    {"title": article.get("title"), "link": article.get("link")}
                )
    return categorized


class GoogleNewsAdapter(ProviderAdapter):
    name = "news"
    source = "google_custom_search"
    rate_key = "news"

    def is_configured(self) -> bool:
        return bool(self.settings.google_api_key and self.settings.google_custom_search_id)

    async def _fetch(self, context: GeographyContext) -> MetricEnvelope:
        query = f"{context.query} real estate development news"
        payload = await self._get_json(
            CUSTOM_SEARCH_URL,
            params={
                "key": self.settings.google_api_key,
                "cx": self.settings.google_custom_search_id,
                "q": query,
                "num": 10,
            },
        )
        if not isinstance(payload, Mapping):
            return MetricEnvelope.missing(self.source, "unexpected search payload")

        items = [item for item in payload.get("items") or [] if isinstance(item, Mapping)]
        articles = [
            {
                "title": item.get("title"),
                "link": item.get("link"),
                "snippet": item.get("snippet"),
                "source": item.get("displayLink"),
            }
            for item in items
        ]
        return MetricEnvelope.ok(
            self.source,
            {
                "query": query,
                "results_count": len(articles),
                "articles": articles,
                "categorized": categorize_articles(articles),
            },
        )


__all__ = [
    "AMENITY_TYPES",
    "GoogleGeocoder",
    "GoogleNewsAdapter",
    "GooglePlacesAdapter",
    "categorize_articles",
    "haversine_m",
    "nearest_places",
]
