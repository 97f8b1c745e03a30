"""Census Bureau adapters.

``CensusGeographyAdapter`` turns coordinates into the administrative hierarchy
(tract, block group, county, state, place, ZCTA) through the public, keyless
Census geocoder. ``AcsAdapter`` pulls tract-level American Community Survey
5-year estimates for that hierarchy and derives the housing and labor ratios
used downstream.
"""

from __future__ import annotations

from typing import Any, Mapping

from pipelines.common import coerce_float, safe_ratio
from pipelines.model import Confidence, Coordinates, GeographyContext, MetricEnvelope
from pipelines.sources.base import ProviderAdapter

CENSUS_GEOCODER_URL = "https://geocoding.geo.census.gov/geocoder/geographies/coordinates"
ACS_BASE_URL = "https://api.census.gov/data"
ACS_DEFAULT_DATASET = "acs/acs5"

# Layer names carry a vintage prefix in some releases ("2020 Census Blocks"),
# so they are matched by substring.
GEOGRAPHY_LAYERS: Mapping[str, str] = {
    "tract": "Census Tracts",
    "block_group": "Block Groups",
    "county": "Counties",
    "state": "States",
    "place": "Incorporated Places",
    "zcta": "ZIP Code Tabulation",
}

ACS_VARIABLES: Mapping[str, str] = {
    "B01003_001E": "population",
    "B19013_001E": "median_household_income",
    "B25001_001E": "total_housing_units",
    "B25003_001E": "occupied_housing_units",
    "B25003_002E": "owner_occupied_units",
    "B25003_003E": "renter_occupied_units",
    "B25077_001E": "median_home_value",
    "B25064_001E": "median_gross_rent",
    "B23025_002E": "labor_force",
    "B23025_005E": "unemployed",
    "B15003_022E": "bachelors_degree",
    "B15003_001E": "education_universe",
    "B01001_011E": "male_25_29",
    "B01001_012E": "male_30_34",
    "B01001_035E": "female_25_29",
    "B01001_036E": "female_30_34",
}

_YOUNG_ADULT_CELLS = ("male_25_29", "male_30_34", "female_25_29", "female_30_34")

# ACS annotation values for suppressed or non-computable estimates
_ACS_SENTINELS = {-666666666.0, -888888888.0, -999999999.0, -222222222.0, -333333333.0, -555555555.0}


def _acs_value(raw: Any) -> float | None:
    value = coerce_float(raw)
    if value is None or value in _ACS_SENTINELS:
        return None
    return value


def _first_layer(geographies: Mapping[str, Any], needle: str) -> dict[str, Any] | None:
    for layer_name, entries in geographies.items():
        if needle.lower() in layer_name.lower() and isinstance(entries, list) and entries:
            first = entries[0]
            return dict(first) if isinstance(first, Mapping) else None
    return None


def parse_geographies(geographies: Mapping[str, Any]) -> dict[str, dict[str, Any] | None]:
    return {key: _first_layer(geographies, needle) for key, needle in GEOGRAPHY_LAYERS.items()}


class CensusGeographyAdapter(ProviderAdapter):
    name = "geography_hierarchy"
    source = "census_geocoder"
    rate_key = "census"

    async def _fetch(self, coordinates: Coordinates) -> MetricEnvelope:
        payload = await self._get_json(
            CENSUS_GEOCODER_URL,
            params={
                "x": coordinates.lng,
                "y": coordinates.lat,
                "benchmark": "Public_AR_Current",
                "vintage": "Current_Current",
                "format": "json",
            },
        )
        result = payload.get("result") if isinstance(payload, Mapping) else None
        geographies = result.get("geographies") if isinstance(result, Mapping) else None
        if not isinstance(geographies, Mapping) or not geographies:
            return MetricEnvelope.missing(self.source, "No geography data returned")
        return MetricEnvelope.ok(self.source, parse_geographies(geographies))


def derive_metrics(values: Mapping[str, float | None]) -> dict[str, float | None]:
    """Ratios over the raw ACS cells; an unusable denominator leaves only that ratio absent."""
    total_units = values.get("total_housing_units")
    occupied = values.get("occupied_housing_units")
    income = values.get("median_household_income")
    rent = values.get("median_gross_rent")
    population = values.get("population")

    vacant = total_units - occupied if total_units is not None and occupied is not None else None
    young_cells = [values.get(cell) for cell in _YOUNG_ADULT_CELLS]
    young_adults = sum(young_cells) if all(v is not None for v in young_cells) else None

    return {
        "population": population,
        "median_household_income": income,
        "median_home_value": values.get("median_home_value"),
        "median_gross_rent": rent,
        "total_housing_units": total_units,
        "occupied_housing_units": occupied,
        "vacancy_rate": safe_ratio(vacant, total_units, scale=100),
        "ownership_rate": safe_ratio(values.get("owner_occupied_units"), occupied, scale=100),
        "rental_rate": safe_ratio(values.get("renter_occupied_units"), occupied, scale=100),
        "unemployment_rate": safe_ratio(values.get("unemployed"), values.get("labor_force"), scale=100),
        "pct_bachelor_plus": safe_ratio(
            values.get("bachelors_degree"), values.get("education_universe"), scale=100
        ),
        "pct_25_34": safe_ratio(young_adults, population, scale=100),
        "price_to_income_ratio": safe_ratio(values.get("median_home_value"), income),
        "rent_to_income_ratio": safe_ratio(rent * 12 if rent is not None else None, income),
    }


class AcsAdapter(ProviderAdapter):
    """Tract-level ACS 5-year estimates for the resolved geography."""

    name = "census"
    source = "census_acs"
    rate_key = "census"

    def __init__(self, settings, limiter, variables: Mapping[str, str] = ACS_VARIABLES) -> None:
        super().__init__(settings, limiter)
        self.variables = dict(variables)

    def is_configured(self) -> bool:
        return bool(self.settings.census_api_key)

    async def _fetch(self, context: GeographyContext) -> MetricEnvelope:
        tract = context.tract
        if not tract or not context.tract_fips:
            return MetricEnvelope.missing(self.source, "No tract data available")

        params: dict[str, Any] = {
            "get": ",".join(self.variables),
            "for": f"tract:{tract['TRACT']}",
            "in": f"state:{tract['STATE']} county:{tract['COUNTY']}",
            "key": self.settings.census_api_key,
        }
        url = f"{ACS_BASE_URL}/{self.settings.acs_year}/{ACS_DEFAULT_DATASET}"
        payload = await self._get_json(url, params=params)

        if not isinstance(payload, list) or len(payload) < 2:
            return MetricEnvelope.missing(self.source, "No ACS data returned")
        header_row, data_row = payload[0], payload[1]
        if not isinstance(header_row, list) or not isinstance(data_row, list):
            return MetricEnvelope.missing(self.source, "Unexpected ACS payload shape")

        row = dict(zip(header_row, data_row))
        values = {name: _acs_value(row.get(code)) for code, name in self.variables.items()}
        present = sum(1 for value in values.values() if value is not None)
        if present == 0:
            return MetricEnvelope.missing(self.source, "ACS returned no usable estimates")

        value = {
            "tract_fips": context.tract_fips,
            "acs_year": self.settings.acs_year,
            "variables": values,
            "computed_metrics": derive_metrics(values),
        }
        if present < len(values):
            return MetricEnvelope.ok(
                self.source,
                value,
                confidence=Confidence.PARTIAL,
                note=f"{present} of {len(values)} ACS estimates available",
            )
        return MetricEnvelope.ok(self.source, value)


__all__ = [
    "ACS_VARIABLES",
    "AcsAdapter",
    "CensusGeographyAdapter",
    "derive_metrics",
    "parse_geographies",
]
