from __future__ import annotations

import asyncio

import pytest

from heartnextdoor import places
from heartnextdoor.community import import_local_groups
from heartnextdoor.errors import ExternalServiceError


GEOCODE_OK = {
    "status": "OK",
    "results": [
        {
            "geometry": {"location": {"lat": 42.33, "lng": -83.05}},
            "address_components": [
                {"long_name": "Detroit", "short_name": "Detroit", "types": ["locality", "political"]},
                {"long_name": "Michigan", "short_name": "MI", "types": ["administrative_area_level_1"]},
            ],
        }
    ],
}


@pytest.fixture
def fake_google(monkeypatch):
    calls = []

    async def fake_get_json(url, params):
        calls.append((url, params))
        if url == places.GEOCODE_URL:
            return GEOCODE_OK
        if url.endswith("/textsearch/json"):
            return {
                "status": "OK",
                "results": [
                    {"place_id": "doula-1", "name": "Motor City Doulas"},
                    {"place_id": "closed-1", "name": "Gone", "business_status": "CLOSED_PERMANENTLY"},
                ],
            }
        return {
            "status": "OK",
            "result": {
                "place_id": params["place_id"],
                "name": "Motor City Doulas",
                "formatted_address": "1 Woodward Ave, Detroit, MI",
                "formatted_phone_number": "(313) 555-0100",
                "website": "https://doulas.test",
                "rating": 4.6,
                "types": ["health"],
            },
        }

    monkeypatch.setattr(places, "is_configured", lambda: True)
    monkeypatch.setattr(places, "_get_json", fake_get_json)
    monkeypatch.setattr(places, "QUERY_DELAY_SECONDS", 0)
    return calls


def test_parse_geocode_result() -> None:
    assert places.parse_geocode_result(GEOCODE_OK) == {"lat": 42.33, "lng": -83.05, "city": "Detroit", "state": "MI"}
    assert places.parse_geocode_result({"status": "REQUEST_DENIED", "error_message": "bad key"}) is None
    assert places.parse_geocode_result({"status": "ZERO_RESULTS", "results": []}) is None


def test_determine_topic() -> None:
    assert places.determine_topic("Motor City Doulas") == "doula"
    assert places.determine_topic("Henry Ford Birth Center") == "birth_center"
    assert places.determine_topic("Mama's Lactation Lounge") == "breastfeeding"
    assert places.determine_topic("General Clinic", ["hospital"]) == "healthcare"
    assert places.determine_topic("Somewhere", ["health"]) == "wellness"
    assert places.determine_topic("Somewhere") == "wellness"


def test_unconfigured_search_returns_nothing() -> None:
    assert asyncio.run(places.search_maternal_health_resources("48201")) == []


def test_search_dedupes_and_skips_closed(fake_google) -> None:
    results = asyncio.run(places.search_maternal_health_resources("48201"))
    assert len(results) == 1
    found = results[0]
    assert found["google_place_id"] == "doula-1"
    assert found["topic"] == "doula"
    assert found["rating"] == 5
    assert found["city"] == "Detroit"
    assert found["state"] == "MI"
    assert not any(params.get("place_id") == "closed-1" for _, params in fake_google)


def test_import_creates_external_groups_once(fake_google) -> None:
    imported = asyncio.run(import_local_groups("48201"))
    assert [group.name for group in imported] == ["Motor City Doulas"]
    assert imported[0].is_external is True
    assert imported[0].type == "resource"
    assert imported[0].zip_code == "48201"

    assert asyncio.run(import_local_groups("48201")) == []


def test_import_endpoint_requires_key(client) -> None:
    resp = client.post("/api/community/groups/import", json={"zipCode": "48201"})
    assert resp.status_code == 503


def test_import_endpoint(client, fake_google) -> None:
    resp = client.post("/api/community/groups/import", json={"zipCode": "48201"})
    assert resp.status_code == 200
    assert [group["googlePlaceId"] for group in resp.json()] == ["doula-1"]


def test_google_failures_degrade_to_empty(monkeypatch) -> None:
    async def failing_get_json(url, params):
        raise ExternalServiceError("Google request failed: ConnectTimeout")

    monkeypatch.setattr(places, "is_configured", lambda: True)
    monkeypatch.setattr(places, "_get_json", failing_get_json)
    assert asyncio.run(places.geocode_zip("48201")) is None
    assert asyncio.run(places.search_places("doula", 42.3, -83.0)) == []
    assert asyncio.run(places.get_place_details("abc")) is None
