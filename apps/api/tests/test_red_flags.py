from __future__ import annotations

from datetime import datetime, timezone

from heartnextdoor.db import list_notifications
from heartnextdoor.email import PAIN_ALERT_SUBJECT, RED_FLAG_SUBJECT, render_red_flag_alert
from heartnextdoor.red_flags import evaluate_check_in
from heartnextdoor.schemas import CheckIn, NotificationKind, User


def post_check_in(client, user, feeling, body_care="yes", supported="yes") -> dict:
    resp = client.post(
        "/api/checkin",
        json={"userId": user["id"], "feeling": feeling, "bodyCare": body_care, "feelingSupported": supported},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def make_check_in(feeling: str, body_care: str = "yes", supported: str = "yes") -> CheckIn:
    return CheckIn(
        id=1,
        user_id=1,
        feeling=feeling,
        body_care=body_care,
        feeling_supported=supported,
        created_at=datetime.now(tz=timezone.utc),
    )


def test_overwhelmed_with_only_ob_sends_one_alert(client, make_user, sent_emails) -> None:
    mother = make_user(obMidwifeName="Dr. Reed", obMidwifeEmail="ob@clinic.test", doulaEmail="")
    created = post_check_in(client, mother, "overwhelmed")

    assert len(sent_emails) == 1
    assert sent_emails[0]["to"] == "ob@clinic.test"
    assert sent_emails[0]["subject"] == RED_FLAG_SUBJECT
    assert "Dr. Reed" in sent_emails[0]["html"]

    intents = list_notifications(check_in_id=created["id"])
    assert [intent.status.value for intent in intents] == ["sent"]
    assert intents[0].kind == NotificationKind.RED_FLAG_ALERT


def test_both_providers_each_get_one_alert(client, make_user, sent_emails) -> None:
    mother = make_user(obMidwifeEmail="ob@clinic.test", doulaName="Ana", doulaEmail="ana@doula.test")
    post_check_in(client, mother, "anxious", body_care="not-yet", supported="not-really")

    assert sorted(email["to"] for email in sent_emails) == ["ana@doula.test", "ob@clinic.test"]
    assert "No self-care activities reported" in sent_emails[0]["text"]
    assert "Mother reports feeling unsupported" in sent_emails[0]["text"]


def test_non_concerning_feeling_sends_nothing(client, make_user, sent_emails) -> None:
    mother = make_user(obMidwifeEmail="ob@clinic.test", doulaEmail="ana@doula.test")
    created = post_check_in(client, mother, "happy", body_care="not-yet", supported="not-really")

    assert sent_emails == []
    assert list_notifications(check_in_id=created["id"]) == []


def test_concerning_without_providers_sends_nothing(client, make_user, sent_emails) -> None:
    mother = make_user()
    post_check_in(client, mother, "disconnected")
    assert sent_emails == []


def test_pain_uses_urgent_template(client, make_user, sent_emails) -> None:
    mother = make_user(doulaEmail="ana@doula.test")
    created = post_check_in(client, mother, "in-pain")

    assert [email["subject"] for email in sent_emails] == [PAIN_ALERT_SUBJECT]
    intents = list_notifications(check_in_id=created["id"])
    assert intents[0].kind == NotificationKind.PAIN_ALERT


def test_email_failure_does_not_fail_check_in(client, make_user, monkeypatch) -> None:
    def broken_send(*_args, **_kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr("heartnextdoor.email.send_email", broken_send)
    mother = make_user(obMidwifeEmail="ob@clinic.test")
    created = post_check_in(client, mother, "overwhelmed")

    assert created["feeling"] == "overwhelmed"
    intents = list_notifications(check_in_id=created["id"])
    assert len(intents) == 1
    assert intents[0].status.value == "failed"
    assert intents[0].attempts == 1
    assert "smtp down" in intents[0].last_error

    history = client.get(f"/api/checkin/{mother['id']}").json()
    assert [item["id"] for item in history] == [created["id"]]


def test_unconfigured_sendgrid_marks_failed(client, make_user) -> None:
    mother = make_user(obMidwifeEmail="ob@clinic.test")
    created = post_check_in(client, mother, "overwhelmed")
    intents = list_notifications(check_in_id=created["id"])
    assert [intent.status.value for intent in intents] == ["failed"]


def test_evaluate_only_feeling_decides() -> None:
    assert evaluate_check_in(make_check_in("good", "not-yet", "not-really")).concerning is False

    assessment = evaluate_check_in(make_check_in("Overwhelmed", "not-yet", "a-little"))
    assert assessment.concerning is True
    assert assessment.kind == NotificationKind.RED_FLAG_ALERT
    assert assessment.details == [
        "Reported feeling: Overwhelmed",
        "Persistent negative emotional state",
        "No self-care activities reported",
        "Mother reports feeling unsupported",
    ]


def test_evaluate_honours_custom_feeling_set() -> None:
    custom = frozenset({"tired"})
    assert evaluate_check_in(make_check_in("tired"), custom).concerning is True
    assert evaluate_check_in(make_check_in("overwhelmed"), custom).concerning is False


def test_alert_body_escapes_patient_fields() -> None:
    mother = User(
        id=1,
        name="<b>Eve</b>",
        email="eve@example.com",
        created_at=datetime.now(tz=timezone.utc),
    )
    subject, html, text = render_red_flag_alert(
        mother=mother, provider_name="Dr. <Reed>", alert="Check", details=["x < y"]
    )
    assert subject == RED_FLAG_SUBJECT
    assert "<b>Eve</b>" not in html
    assert "&lt;b&gt;Eve&lt;/b&gt;" in html
    assert "Dr. &lt;Reed&gt;" in html
    assert "x &lt; y" in html
    assert "<b>Eve</b>" in text
