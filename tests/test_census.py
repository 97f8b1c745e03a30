import asyncio

from jobs.config import Settings
from pipelines.model import Confidence, Coordinates, GeographyContext
from pipelines.sources.census import ACS_VARIABLES, AcsAdapter, CensusGeographyAdapter, derive_metrics

DENVER = Coordinates(lat=39.7392, lng=-104.9903)
TRACT = {"STATE": "08", "COUNTY": "031", "TRACT": "002701", "GEOID": "08031002701"}

FULL_VALUES = {
    "B01003_001E": "4000",
    "B19013_001E": "80000",
    "B25001_001E": "1000",
    "B25003_001E": "900",
    "B25003_002E": "360",
    "B25003_003E": "540",
    "B25077_001E": "480000",
    "B25064_001E": "1600",
    "B23025_002E": "2500",
    "B23025_005E": "100",
    "B15003_022E": "1200",
    "B15003_001E": "3000",
    "B01001_011E": "200",
    "B01001_012E": "200",
    "B01001_035E": "150",
    "B01001_036E": "150",
}


def _acs_payload(values):
    header = [*values.keys(), "state", "county", "tract"]
    row = [*values.values(), "08", "031", "002701"]
    return [header, row]


def _context(tract=TRACT):
    return GeographyContext(query="Denver, CO", coordinates=DENVER, tract=tract)


def test_vacancy_rate_from_units():
    metrics = derive_metrics({"total_housing_units": 1000.0, "occupied_housing_units": 900.0})

    assert metrics["vacancy_rate"] == 10.0


def test_zero_denominator_leaves_only_that_metric_absent():
    metrics = derive_metrics(
        {
            "total_housing_units": 0.0,
            "occupied_housing_units": 0.0,
            "median_home_value": 400000.0,
            "median_household_income": 80000.0,
            "median_gross_rent": 1600.0,
        }
    )

    assert metrics["vacancy_rate"] is None
    assert metrics["rental_rate"] is None
    assert metrics["price_to_income_ratio"] == 5.0
    assert metrics["rent_to_income_ratio"] == 0.24


def test_acs_adapter_good_when_every_variable_present(fake_http, limiter):
    fake = fake_http({"https://api.census.gov/data/2022/acs/acs5": _acs_payload(FULL_VALUES)})

    envelope = asyncio.run(AcsAdapter(Settings(census_api_key="c-key"), limiter).fetch(_context()))

    assert envelope.confidence is Confidence.GOOD
    computed = envelope.get("computed_metrics")
    assert computed["vacancy_rate"] == 10.0
    assert computed["ownership_rate"] == 40.0
    assert computed["rental_rate"] == 60.0
    assert computed["unemployment_rate"] == 4.0
    assert computed["pct_bachelor_plus"] == 40.0
    assert computed["pct_25_34"] == 17.5
    assert computed["price_to_income_ratio"] == 6.0
    assert computed["rent_to_income_ratio"] == 0.24
    assert envelope.get("tract_fips") == "08031002701"

    params = fake.calls[0][1]["params"]
    assert params["for"] == "tract:002701"
    assert params["in"] == "state:08 county:031"
    assert params["key"] == "c-key"
    assert params["get"].split(",") == list(ACS_VARIABLES)


def test_acs_sentinels_make_result_partial(fake_http, limiter):
    values = dict(FULL_VALUES, B19013_001E="-666666666", B25064_001E=None)
    fake_http({"https://api.census.gov": _acs_payload(values)})

    envelope = asyncio.run(AcsAdapter(Settings(census_api_key="c-key"), limiter).fetch(_context()))

    assert envelope.confidence is Confidence.PARTIAL
    assert envelope.get("variables")["median_household_income"] is None
    computed = envelope.get("computed_metrics")
    assert computed["price_to_income_ratio"] is None
    assert computed["vacancy_rate"] == 10.0


def test_acs_without_tract_is_missing(fake_http, limiter):
    fake = fake_http({})

    envelope = asyncio.run(AcsAdapter(Settings(census_api_key="c-key"), limiter).fetch(_context(None)))

    assert envelope.confidence is Confidence.MISSING
    assert envelope.error == "No tract data available"
    assert fake.calls == []


def test_acs_header_only_payload_is_missing(fake_http, limiter):
    fake_http({"https://api.census.gov": [["B01003_001E"]]})

    envelope = asyncio.run(AcsAdapter(Settings(census_api_key="c-key"), limiter).fetch(_context()))

    assert envelope.confidence is Confidence.MISSING
    assert envelope.error == "No ACS data returned"


def test_geography_hierarchy_matches_vintage_layer_names(fake_http, limiter):
    fake_http(
        {
            "https://geocoding.geo.census.gov": {
                "result": {
                    "geographies": {
                        "Census Tracts": [TRACT],
                        "2020 Census Blocks": [{"BLOCK": "1000"}],
                        "Counties": [{"NAME": "Denver County", "STATE": "08", "COUNTY": "031"}],
                        "States": [{"STUSAB": "CO", "STATE": "08"}],
                        "Incorporated Places": [],
                        "2020 Census ZIP Code Tabulation Areas": [{"ZCTA5": "80202"}],
                    }
                }
            }
        }
    )

    envelope = asyncio.run(CensusGeographyAdapter(Settings(), limiter).fetch(DENVER))

    assert envelope.confidence is Confidence.GOOD
    assert envelope.get("tract") == TRACT
    assert envelope.get("state")["STUSAB"] == "CO"
    assert envelope.get("zcta") == {"ZCTA5": "80202"}
    assert envelope.get("place") is None
    assert envelope.get("block_group") is None


def test_geography_hierarchy_without_geographies_is_missing(fake_http, limiter):
    fake_http({"https://geocoding.geo.census.gov": {"result": {}}})

    envelope = asyncio.run(CensusGeographyAdapter(Settings(), limiter).fetch(DENVER))

    assert envelope.confidence is Confidence.MISSING
    assert envelope.error == "No geography data returned"
