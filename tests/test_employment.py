import asyncio

from jobs.config import METROS_BY_KEY, Settings
from pipelines.model import Confidence, Coordinates, GeographyContext
from pipelines.sources.bls import BlsEmploymentAdapter, match_metro, parse_series

DENVER = GeographyContext(query="Denver, CO", coordinates=Coordinates(lat=39.7392, lng=-104.9903))
RURAL_SD = GeographyContext(query="Pierre, SD", coordinates=Coordinates(lat=44.3683, lng=-100.3510))


def _observations(count):
    # newest first, as the API returns them
    points = []
    for idx in range(count):
        year, month = 2024 - idx // 12, 12 - idx % 12
        points.append({"year": str(year), "period": f"M{month:02d}", "value": f"{3.0 + idx * 0.1:.1f}"})
    points.append({"year": "2024", "period": "M13", "value": "3.5"})
    return points


def test_match_metro_nearest_within_threshold():
    assert match_metro(39.74, -104.99).key == "denver"
    assert match_metro(39.55, -105.2).key == "denver"
    assert match_metro(44.3683, -100.3510) is None


def test_laus_series_id_format():
    assert METROS_BY_KEY["denver"].laus_series_id == "LAUMT081974000000003"


def test_parse_series_drops_annual_average_and_sorts_newest_first():
    points = parse_series(reversed(_observations(3)))

    assert [p["date"] for p in points] == ["2024-12-01", "2024-11-01", "2024-10-01"]
    assert all(p["period"] != "M13" for p in points)


def test_unmapped_location_is_partial_with_note(fake_http, limiter):
    fake = fake_http({})

    envelope = asyncio.run(BlsEmploymentAdapter(Settings(bls_api_key="b"), limiter).fetch(RURAL_SD))

    assert envelope.confidence is Confidence.PARTIAL
    assert envelope.value is None
    assert envelope.error == "Could not map location to BLS area"
    assert envelope.note
    assert fake.calls == []


def test_metro_series_current_rate_and_change(fake_http, limiter):
    fake = fake_http(
        {
            "https://api.bls.gov": {
                "status": "REQUEST_SUCCEEDED",
                "Results": {"series": [{"seriesID": "LAUMT081974000000003", "data": _observations(14)}]},
            }
        }
    )

    envelope = asyncio.run(BlsEmploymentAdapter(Settings(bls_api_key="b"), limiter).fetch(DENVER))

    assert envelope.confidence is Confidence.GOOD
    assert envelope.get("metro") == "denver"
    assert envelope.get("current_unemployment_rate") == 3.0
    assert envelope.get("unemployment_rate_change") == -1.2
    assert len(envelope.get("time_series")) == 12
    assert envelope.get("as_of") == "2024-12-01"

    url, kwargs = fake.calls[0]
    assert kwargs["method"] == "POST"
    assert kwargs["json"]["seriesid"] == ["LAUMT081974000000003"]
    assert kwargs["json"]["registrationkey"] == "b"


def test_short_series_has_no_change(fake_http, limiter):
    fake_http(
        {
            "https://api.bls.gov": {
                "status": "REQUEST_SUCCEEDED",
                "Results": {"series": [{"data": _observations(5)}]},
            }
        }
    )

    envelope = asyncio.run(BlsEmploymentAdapter(Settings(bls_api_key="b"), limiter).fetch(DENVER))

    assert envelope.get("unemployment_rate_change") is None


def test_failed_request_status_is_missing(fake_http, limiter):
    fake_http({"https://api.bls.gov": {"status": "REQUEST_NOT_PROCESSED", "message": ["daily threshold"]}})

    envelope = asyncio.run(BlsEmploymentAdapter(Settings(bls_api_key="b"), limiter).fetch(DENVER))

    assert envelope.confidence is Confidence.MISSING
    assert envelope.error.startswith("BLS API error")
