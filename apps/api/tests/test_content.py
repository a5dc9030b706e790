from __future__ import annotations

from heartnextdoor.main import run
from heartnextdoor.seed import DEFAULT_AFFIRMATIONS, DEFAULT_GROUPS, seed_defaults


def test_seed_is_idempotent() -> None:
    first = seed_defaults()
    assert first["affirmations"] == len(DEFAULT_AFFIRMATIONS)
    assert first["groups"] == len(DEFAULT_GROUPS)

    second = seed_defaults()
    assert set(second.values()) == {0}


def test_affirmations_by_stage(client) -> None:
    seed_defaults()
    third = client.get("/api/affirmations", params={"stage": "third"}).json()
    assert len(third) == 2
    assert {item["pregnancyStage"] for item in third} == {"third"}

    random_one = client.get("/api/affirmations/random", params={"stage": "postpartum"}).json()
    assert random_one["pregnancyStage"] == "postpartum"


def test_random_affirmation_without_content(client) -> None:
    resp = client.get("/api/affirmations/random")
    assert resp.status_code == 200
    assert resp.json() is None


def test_experts_and_resources(client) -> None:
    seed_defaults()
    doulas = client.get("/api/experts", params={"specialty": "doula"}).json()
    assert [expert["specialty"] for expert in doulas] == ["doula"]
    assert isinstance(doulas[0]["contactInfo"], dict)

    popular = client.get("/api/resources", params={"popular": "true"}).json()
    assert len(popular) == 2
    assert all(item["isPopular"] for item in popular)

    sleep = client.get("/api/resources", params={"category": "sleep"}).json()
    assert [item["category"] for item in sleep] == ["sleep"]


def test_seeded_groups_show_for_detroit_zip(client) -> None:
    seed_defaults()
    detroit = client.get("/api/community/groups", params={"zipCode": "48201"}).json()
    assert len(detroit) == len(DEFAULT_GROUPS)
    assert client.get("/api/community/groups", params={"zipCode": "90210"}).json() == []


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_run_serves_app_with_uvicorn(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr("heartnextdoor.main.uvicorn.run", lambda target, **kwargs: calls.append((target, kwargs)))
    monkeypatch.setenv("PORT", "9001")
    monkeypatch.delenv("HOST", raising=False)

    run()
    assert calls == [("heartnextdoor.main:app", {"host": "127.0.0.1", "port": 9001})]
