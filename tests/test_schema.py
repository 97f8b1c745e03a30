from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from pipelines.model import (
    AnalysisResult,
    Confidence,
    Coordinates,
    GeographyContext,
    LocationQuery,
    MetricEnvelope,
    PROVIDER_NAMES,
    RawDataBundle,
)
from storage.snapshots import is_slug, slugify


def test_missing_envelope_cannot_carry_value():
    with pytest.raises(ValidationError):
        MetricEnvelope(source="census_acs", confidence=Confidence.MISSING, value={"population": 1})


def test_envelope_helpers():
    ok = MetricEnvelope.ok("census_acs", {"population": 1200})
    missing = MetricEnvelope.missing("census_acs", "timeout")

    assert ok.available
    assert ok.get("population") == 1200
    assert ok.retrieved_at is not None
    assert not missing.available
    assert missing.value is None
    assert missing.get("population", "n/a") == "n/a"
    assert missing.error == "timeout"


def test_partial_envelope_without_value_is_not_available():
    envelope = MetricEnvelope.ok("bls_laus_api", None, confidence=Confidence.PARTIAL, note="no metro")

    assert envelope.confidence is Confidence.PARTIAL
    assert not envelope.available


def test_bundle_always_has_every_provider_key():
    bundle = RawDataBundle()
    dumped = bundle.model_dump()

    assert set(dumped) == set(PROVIDER_NAMES)
    assert PROVIDER_NAMES[0] == "geography"
    for name in PROVIDER_NAMES:
        assert dumped[name]["confidence"] == "missing"
        assert dumped[name]["error"] == "not fetched"


def test_location_query_validation():
    query = LocationQuery(location="  80202 ")
    assert query.location == "80202"
    assert query.is_zip
    assert query.mode.value == "point"

    with pytest.raises(ValidationError):
        LocationQuery(location="")
    with pytest.raises(ValidationError):
        LocationQuery(location="Denver", top_n=0)


def test_geography_context_keys():
    context = GeographyContext(
        query="Denver, CO",
        coordinates=Coordinates(lat=39.7392, lng=-104.9903),
        tract={"STATE": "08", "COUNTY": "031", "TRACT": "002701"},
        state={"STUSAB": "CO", "STATE": "08"},
    )

    assert context.tract_fips == "08031002701"
    assert context.state_abbr == "CO"
    assert GeographyContext(query="x", coordinates=Coordinates(lat=0, lng=0)).tract_fips is None


def test_analysis_result_json_roundtrip(make_result):
    result = make_result()
    restored = AnalysisResult.model_validate_json(result.model_dump_json())

    assert restored.investment_score.final_score == result.investment_score.final_score
    assert restored.investment_score.band == result.investment_score.band
    assert restored.meta.created_at == result.meta.created_at
    assert restored.raw_data.weather.confidence is Confidence.MISSING
    assert isinstance(restored.investment_score.calculated_at, datetime)
    assert restored.investment_score.calculated_at.utcoffset() == timedelta(0)


@pytest.mark.parametrize("location", ["Denver, CO", "  80202 ", "St. Louis, MO", "!!!"])
def test_slugify_output_is_a_slug(location):
    assert is_slug(slugify(location))


@pytest.mark.parametrize("value", ["", "..", "../outputs", "Denver_CO", "denver_co.json", "a" * 61])
def test_is_slug_rejects_non_slugs(value):
    assert not is_slug(value)
