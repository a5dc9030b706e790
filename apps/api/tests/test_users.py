from __future__ import annotations

from datetime import datetime, timedelta, timezone

from heartnextdoor.users import derive_pregnancy_week, in_service_area


def parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_create_user_round_trips_due_date(client) -> None:
    resp = client.post(
        "/api/users",
        json={
            "name": "Maya Brooks",
            "firstName": "Maya",
            "email": "maya@example.com",
            "dueDate": "2027-01-15T00:00:00Z",
            "zipCode": "48201",
        },
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["userType"] == "mother"
    assert parse(data["dueDate"]) == datetime(2027, 1, 15, tzinfo=timezone.utc)
    assert data["waitlistUser"] is False

    fetched = client.get(f"/api/users/{data['id']}").json()
    assert parse(fetched["dueDate"]) == parse(data["dueDate"])
    assert client.get("/api/users/email/MAYA@example.com").json()["id"] == data["id"]


def test_due_date_derives_pregnancy_week(client) -> None:
    due = datetime.now(tz=timezone.utc) + timedelta(days=56, hours=12)
    resp = client.post("/api/users", json={"name": "A", "email": "a@example.com", "dueDate": due.isoformat()})
    assert resp.json()["pregnancyWeek"] == 32


def test_explicit_week_wins_over_due_date(client) -> None:
    due = datetime.now(tz=timezone.utc) + timedelta(days=56, hours=12)
    resp = client.post(
        "/api/users",
        json={"name": "A", "email": "a@example.com", "dueDate": due.isoformat(), "pregnancyWeek": 30},
    )
    assert resp.json()["pregnancyWeek"] == 30


def test_derive_pregnancy_week() -> None:
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert derive_pregnancy_week(now + timedelta(days=280), now=now) == 0
    assert derive_pregnancy_week(now + timedelta(days=70), now=now) == 30
    assert derive_pregnancy_week(now + timedelta(days=69), now=now) == 31
    assert derive_pregnancy_week(now, now=now) == 40
    assert derive_pregnancy_week(now + timedelta(days=400), now=now) == 0


def test_waitlist_outside_service_area(client) -> None:
    resp = client.post("/api/users", json={"name": "B", "email": "b@example.com", "zipCode": "90210"})
    assert resp.json()["waitlistUser"] is True
    assert in_service_area("48226")
    assert not in_service_area(None)


def test_zip_change_recomputes_waitlist(client, make_user) -> None:
    user = make_user(zipCode="90210")
    assert user["waitlistUser"] is True
    resp = client.put(f"/api/users/{user['id']}", json={"zipCode": "48201"})
    assert resp.json()["waitlistUser"] is False


def test_duplicate_email_conflicts(client, make_user) -> None:
    user = make_user()
    resp = client.post("/api/users", json={"name": "Again", "email": user["email"]})
    assert resp.status_code == 409
    assert resp.json()["message"] == "An account with this email already exists"


def test_email_case_does_not_create_second_account(client) -> None:
    first = client.post("/api/users", json={"name": "Ana", "email": "Ana.Lopez@Example.com"})
    assert first.status_code == 200
    assert first.json()["email"] == "ana.lopez@example.com"

    second = client.post("/api/users", json={"name": "Ana", "email": "ana.lopez@example.com"})
    assert second.status_code == 409
    assert client.get("/api/users/email/ANA.LOPEZ@example.com").json()["id"] == first.json()["id"]


def test_invalid_payload_is_400(client) -> None:
    resp = client.post("/api/users", json={"name": "No email"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Invalid request data"
    assert any("email" in error for error in body["errors"])


def test_update_user(client, make_user) -> None:
    user = make_user()
    resp = client.put(
        f"/api/users/{user['id']}",
        json={"obMidwifeEmail": "ob@clinic.test", "isPostpartum": True, "email": "ignored@example.com"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["obMidwifeEmail"] == "ob@clinic.test"
    assert data["isPostpartum"] is True
    assert data["email"] == user["email"]


def test_update_requires_fields(client, make_user) -> None:
    user = make_user()
    assert client.put(f"/api/users/{user['id']}", json={}).status_code == 400


def test_missing_user_is_404(client) -> None:
    assert client.get("/api/users/999999").status_code == 404
    assert client.put("/api/users/999999", json={"name": "x"}).status_code == 404


def test_token_requires_matching_email(client, make_user) -> None:
    user = make_user()
    ok = client.post("/api/auth/token", json={"userId": user["id"], "email": user["email"].upper()})
    assert ok.status_code == 200
    assert ok.json()["tokenType"] == "bearer"

    wrong = client.post("/api/auth/token", json={"userId": user["id"], "email": "other@example.com"})
    assert wrong.status_code == 401


def test_email_signups(client) -> None:
    resp = client.post("/api/email-signups", json={"email": "Wait@Example.com", "name": "W"})
    assert resp.status_code == 200
    assert resp.json()["email"] == "wait@example.com"
    assert resp.json()["source"] == "landing_page"

    dup = client.post("/api/email-signups", json={"email": "wait@example.com"})
    assert dup.status_code == 409
    assert [item["email"] for item in client.get("/api/email-signups").json()] == ["wait@example.com"]


def test_admin_stats(client, make_user) -> None:
    make_user(pregnancyStage="second")
    make_user(zipCode="90210")
    client.post("/api/email-signups", json={"email": "w@example.com"})

    stats = client.get("/api/admin/stats").json()
    assert stats == {"totalUsers": 2, "activePregnancies": 1, "redFlags": 0, "waitlistCount": 1}
    assert len(client.get("/api/admin/users").json()) == 2
