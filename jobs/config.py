"""Process-wide settings and static lookup tables.

``Settings`` is built once at start-up and passed into every adapter; nothing
below the entry points reads the environment directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from dotenv import load_dotenv

DEFAULT_RATE_LIMITS_MS: Mapping[str, int] = {
    "google": 100,
    "census": 200,
    "weather": 1000,
    "bls": 500,
    "news": 1000,
    "flood": 1000,
}


@dataclass(frozen=True)
class MetroArea:
    """A metro area the employment provider can resolve coordinates to."""

    key: str
    name: str
    lat: float
    lng: float
    cbsa_code: str
    state_fips: str

    @property
    def laus_series_id(self) -> str:
        return f"LAUMT{self.state_fips}{self.cbsa_code}00000003"


BLS_METRO_AREAS: tuple[MetroArea, ...] = (
    MetroArea("new_york", "New York-Newark-Jersey City", 40.7128, -74.0060, "35620", "36"),
    MetroArea("boston", "Boston-Cambridge-Newton", 42.3601, -71.0589, "14460", "25"),
    MetroArea("philadelphia", "Philadelphia-Camden-Wilmington", 39.9526, -75.1652, "37980", "42"),
    MetroArea("atlanta", "Atlanta-Sandy Springs-Alpharetta", 33.7490, -84.3880, "12060", "13"),
    MetroArea("miami", "Miami-Fort Lauderdale-Pompano Beach", 25.7617, -80.1918, "33100", "12"),
    MetroArea("charlotte", "Charlotte-Concord-Gastonia", 35.2271, -80.8431, "16740", "37"),
    MetroArea("chicago", "Chicago-Naperville-Elgin", 41.8781, -87.6298, "16980", "17"),
    MetroArea("detroit", "Detroit-Warren-Dearborn", 42.3314, -83.0458, "19820", "26"),
    MetroArea("minneapolis", "Minneapolis-St. Paul-Bloomington", 44.9778, -93.2650, "33460", "27"),
    MetroArea("dallas", "Dallas-Fort Worth-Arlington", 32.7767, -96.7970, "19100", "48"),
    MetroArea("houston", "Houston-The Woodlands-Sugar Land", 29.7604, -95.3698, "26420", "48"),
    MetroArea("austin", "Austin-Round Rock-Georgetown", 30.2672, -97.7431, "12420", "48"),
    MetroArea("denver", "Denver-Aurora-Lakewood", 39.7392, -104.9903, "19740", "08"),
    MetroArea("phoenix", "Phoenix-Mesa-Chandler", 33.4484, -112.0740, "38060", "04"),
    MetroArea("las_vegas", "Las Vegas-Henderson-Paradise", 36.1699, -115.1398, "29820", "32"),
    MetroArea("los_angeles", "Los Angeles-Long Beach-Anaheim", 34.0522, -118.2437, "31080", "06"),
    MetroArea("san_francisco", "San Francisco-Oakland-Berkeley", 37.7749, -122.4194, "41860", "06"),
    MetroArea("seattle", "Seattle-Tacoma-Bellevue", 47.6062, -122.3321, "42660", "53"),
)


METROS_BY_KEY: Mapping[str, MetroArea] = {metro.key: metro for metro in BLS_METRO_AREAS}


def select_metros(keys: Sequence[str] | None = None) -> tuple[MetroArea, ...]:
    """Metros named by ``keys`` in the order given, or every metro when ``None``.

    Raises ``KeyError`` naming all unknown keys at once.
    """
    if keys is None:
        return BLS_METRO_AREAS
    unknown = [key for key in keys if key not in METROS_BY_KEY]
    if unknown:
        raise KeyError(", ".join(unknown))
    return tuple(METROS_BY_KEY[key] for key in keys)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    """Credentials and tunables for one process."""

    google_api_key: str = ""
    google_custom_search_id: str = ""
    census_api_key: str = ""
    bls_api_key: str = ""
    weather_api_key: str = ""
    flood_api_key: str = ""
    flood_api_url: str = "https://api.floodfactor.com/v1/risk"
    acs_year: int = 2022
    housing_data_dir: Path | None = Path("data/housing")
    output_dir: Path = Path("outputs")
    database_path: Path = Path("data/analyses.duckdb")
    http_timeout_seconds: float = 30.0
    http_max_attempts: int = 1
    provider_timeout_seconds: float = 45.0
    peer_source: str = "synthetic"
    peer_seed: int = 7
    amenity_radius_meters: int = 1600
    amenity_display_limit: int = 5
    rate_limits_ms: Mapping[str, int] = field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS_MS)
    )

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        housing_dir = os.getenv("HOUSING_DATA_DIR", "data/housing")
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY", ""),
            google_custom_search_id=os.getenv("GOOGLE_CUSTOM_SEARCH_ID", ""),
            census_api_key=os.getenv("CENSUS_API_KEY", ""),
            bls_api_key=os.getenv("BLS_API_KEY", ""),
            weather_api_key=os.getenv("WEATHER_API_KEY", ""),
            flood_api_key=os.getenv("FLOOD_API_KEY", ""),
            flood_api_url=os.getenv("FLOOD_API_URL", cls.flood_api_url),
            acs_year=_env_int("ACS_YEAR", 2022),
            housing_data_dir=Path(housing_dir) if housing_dir else None,
            output_dir=Path(os.getenv("ANALYSIS_OUTPUT_DIR", "outputs")),
            database_path=Path(os.getenv("ANALYSIS_DB_PATH", "data/analyses.duckdb")),
            http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 30.0),
            http_max_attempts=_env_int("HTTP_MAX_ATTEMPTS", 1),
            provider_timeout_seconds=_env_float("PROVIDER_TIMEOUT_SECONDS", 45.0),
            peer_source=os.getenv("PEER_SOURCE", "synthetic"),
            peer_seed=_env_int("PEER_SEED", 7),
            amenity_radius_meters=_env_int("AMENITY_RADIUS_METERS", 1600),
            amenity_display_limit=_env_int("AMENITY_DISPLAY_LIMIT", 5),
        )

    def configured_providers(self) -> dict[str, bool]:
        return {
            "geography": bool(self.google_api_key),
            "census": bool(self.census_api_key),
            "employment": bool(self.bls_api_key),
            "housing_index": bool(
                self.housing_data_dir and Path(self.housing_data_dir).is_dir()
            ),
            "places": bool(self.google_api_key),
            "weather": bool(self.weather_api_key),
            "flood": bool(self.flood_api_key and self.flood_api_url),
            "news": bool(self.google_api_key and self.google_custom_search_id),
        }


__all__ = [
    "BLS_METRO_AREAS",
    "DEFAULT_RATE_LIMITS_MS",
    "METROS_BY_KEY",
    "MetroArea",
    "Settings",
    "select_metros",
]
