from __future__ import annotations

from datetime import datetime, timedelta, timezone

from heartnextdoor.appointments import classify_appointment_type, is_pregnancy_related


def in_days(days: int) -> str:
    return (datetime.now(tz=timezone.utc) + timedelta(days=days)).isoformat()


def test_crud(client, make_user) -> None:
    user = make_user()
    created = client.post(
        "/api/appointments",
        json={"userId": user["id"], "title": "Prenatal visit", "date": in_days(5), "time": "10:30", "type": "ob"},
    )
    assert created.status_code == 200, created.text
    appointment = created.json()
    assert appointment["source"] == "manual"
    assert appointment["isExternal"] is False

    updated = client.put(f"/api/appointments/{appointment['id']}", json={"location": "Suite 200"})
    assert updated.json()["location"] == "Suite 200"
    assert updated.json()["title"] == "Prenatal visit"

    listing = client.get(f"/api/appointments/{user['id']}").json()
    assert [item["id"] for item in listing] == [appointment["id"]]

    deleted = client.delete(f"/api/appointments/{appointment['id']}")
    assert deleted.json() == {"message": "Appointment deleted successfully"}
    assert client.delete(f"/api/appointments/{appointment['id']}").status_code == 404


def test_upcoming_excludes_past(client, make_user) -> None:
    user = make_user()
    client.post("/api/appointments", json={"userId": user["id"], "title": "Past", "date": in_days(-1)})
    future = client.post("/api/appointments", json={"userId": user["id"], "title": "Future", "date": in_days(1)}).json()
    upcoming = client.get(f"/api/appointments/{user['id']}/upcoming").json()
    assert [item["id"] for item in upcoming] == [future["id"]]


def test_pregnancy_keywords() -> None:
    assert is_pregnancy_related("Anatomy scan")
    assert is_pregnancy_related("Visit", "with my doula")
    assert not is_pregnancy_related("Dentist")
    assert classify_appointment_type("Ultrasound") == "ultrasound"
    assert classify_appointment_type("Doula meeting") == "doula"
    assert classify_appointment_type("Lactation consult") == "lactation"
    assert classify_appointment_type("Newborn checkup") == "baby-checkup"
    assert classify_appointment_type("Prenatal visit") == "ob"
    assert classify_appointment_type("Hospital tour") == "other"


def test_calendar_sync(client, make_user) -> None:
    user = make_user()
    events = [
        {
            "id": "evt-1",
            "summary": "Prenatal checkup",
            "start": {"dateTime": "2030-02-01T09:00:00Z"},
            "end": {"dateTime": "2030-02-01T09:45:00Z"},
            "location": "Clinic",
        },
        {"id": "evt-2", "summary": "Dentist", "start": {"dateTime": "2030-02-02T09:00:00Z"}},
        {"id": "evt-3", "summary": "Ultrasound"},
        {"id": "evt-4", "title": "Doula visit", "start": {"date": "2030-02-03"}},
    ]
    resp = client.post("/api/calendar/sync/google", json={"userId": user["id"], "events": events})
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["syncedCount"] == 2
    assert data["skipped"] == {"notPregnancyRelated": 1, "alreadySynced": 0, "invalid": 1}

    first, second = data["appointments"]
    assert first["externalCalendarId"] == "evt-1"
    assert first["duration"] == 45
    assert first["time"] == "09:00"
    assert first["isExternal"] is True
    assert first["source"] == "google"
    assert second["type"] == "doula"
    assert second["duration"] == 60

    again = client.post("/api/calendar/sync/google", json={"userId": user["id"], "events": events[:1]}).json()
    assert again["syncedCount"] == 0
    assert again["skipped"]["alreadySynced"] == 1


def test_calendar_sync_rejects_unknown_source(client, make_user) -> None:
    user = make_user()
    resp = client.post("/api/calendar/sync/yahoo", json={"userId": user["id"], "events": []})
    assert resp.status_code == 400
