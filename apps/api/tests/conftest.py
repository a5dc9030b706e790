from __future__ import annotations

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="heartnextdoor-tests-")
os.environ["HEART_DATABASE_PATH"] = os.path.join(_TMP_DIR, "test.db")
os.environ["HEART_CONFIG_PATH"] = os.path.join(_TMP_DIR, "config.json")
for _name in ("OPENAI_API_KEY", "SENDGRID_API_KEY", "GOOGLE_API_KEY", "HEART_RED_FLAG_FEELINGS"):
    os.environ.pop(_name, None)

from typing import Callable, Dict  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from heartnextdoor.db import get_connection  # noqa: E402
from heartnextdoor.main import app  # noqa: E402

# Children before parents so foreign keys never block the reset.
TABLES = [
    "partner_updates",
    "notification_outbox",
    "partner_progress",
    "partnerships",
    "group_messages",
    "favorites",
    "memberships",
    "groups",
    "appointments",
    "chat_messages",
    "journal_entries",
    "check_ins",
    "email_signups",
    "affirmations",
    "experts",
    "resources",
    "partner_resources",
    "users",
]


@pytest.fixture(autouse=True)
def reset_state() -> None:
    with get_connection() as conn:
        for table in TABLES:
            conn.execute(f"DELETE FROM {table}")
        conn.commit()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_user(client: TestClient) -> Callable[..., dict]:
    counter = {"value": 0}

    def _make(**overrides) -> dict:
        counter["value"] += 1
        payload = {
            "name": f"User {counter['value']}",
            "firstName": f"User{counter['value']}",
            "email": f"user{counter['value']}@example.com",
            "userType": "mother",
            "zipCode": "48201",
        }
        payload.update(overrides)
        resp = client.post("/api/users", json=payload)
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _make


@pytest.fixture
def auth_headers(client: TestClient) -> Callable[[dict], Dict[str, str]]:
    def _headers(user: dict) -> Dict[str, str]:
        resp = client.post("/api/auth/token", json={"userId": user["id"], "email": user["email"]})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['accessToken']}"}

    return _headers


@pytest.fixture
def sent_emails(monkeypatch: pytest.MonkeyPatch) -> list:
    """Capture outgoing email instead of calling SendGrid."""
    sent: list = []

    def fake_send(to: str, subject: str, html: str, text=None) -> bool:
        sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return True

    monkeypatch.setattr("heartnextdoor.email.send_email", fake_send)
    return sent
