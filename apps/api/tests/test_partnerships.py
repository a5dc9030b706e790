from __future__ import annotations

import re
from datetime import timedelta

from heartnextdoor.db import get_connection, to_iso, utc_now
from heartnextdoor.errors import ConflictError


def create_invite(client, mother, headers, **flags) -> dict:
    payload = {"motherId": mother["id"], "relationshipType": "spouse", **flags}
    resp = client.post("/api/partnerships", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def expire_invite(partnership_id: int) -> None:
    with get_connection() as conn:
        conn.execute(
            "UPDATE partnerships SET expires_at = ? WHERE id = ?",
            (to_iso(utc_now() - timedelta(minutes=1)), partnership_id),
        )
        conn.commit()


def test_invite_defaults(client, make_user, auth_headers) -> None:
    mother = make_user()
    invite = create_invite(client, mother, auth_headers(mother))

    assert invite["status"] == "pending"
    assert invite["partnerId"] is None
    assert re.fullmatch(r"[A-Z0-9]{8}", invite["inviteCode"])
    assert invite["canViewCheckIns"] is True
    assert invite["canViewJournal"] is False
    assert invite["canViewAppointments"] is True
    assert invite["canViewResources"] is True
    assert invite["expiresAt"] is not None


def test_invite_requires_token(client, make_user) -> None:
    mother = make_user()
    resp = client.post("/api/partnerships", json={"motherId": mother["id"], "relationshipType": "spouse"})
    assert resp.status_code == 401


def test_invite_for_someone_else_is_forbidden(client, make_user, auth_headers) -> None:
    mother = make_user()
    stranger = make_user()
    resp = client.post(
        "/api/partnerships",
        json={"motherId": mother["id"], "relationshipType": "spouse"},
        headers=auth_headers(stranger),
    )
    assert resp.status_code == 403


def test_bad_token_is_rejected(client, make_user) -> None:
    mother = make_user()
    resp = client.post(
        "/api/partnerships",
        json={"motherId": mother["id"], "relationshipType": "spouse"},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert resp.status_code == 401


def test_redeem_pending_invite_activates(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    invite = create_invite(client, mother, auth_headers(mother))

    resp = client.post(
        "/api/partnerships/redeem",
        json={"inviteCode": invite["inviteCode"].lower(), "partnerId": partner["id"]},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["status"] == "active"
    assert data["partnerId"] == partner["id"]
    assert data["redeemedAt"] is not None
    assert data["acceptedAt"] is not None


def test_redeem_unknown_code(client, make_user) -> None:
    partner = make_user(userType="partner")
    resp = client.post("/api/partnerships/redeem", json={"inviteCode": "NOPE0000", "partnerId": partner["id"]})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid invite code"


def test_redeem_used_code_is_rejected(client, make_user, auth_headers) -> None:
    mother = make_user()
    first = make_user(userType="partner")
    second = make_user(userType="partner")
    invite = create_invite(client, mother, auth_headers(mother))

    ok = client.post("/api/partnerships/redeem", json={"inviteCode": invite["inviteCode"], "partnerId": first["id"]})
    assert ok.status_code == 200

    again = client.post(
        "/api/partnerships/redeem", json={"inviteCode": invite["inviteCode"], "partnerId": second["id"]}
    )
    assert again.status_code == 400
    assert again.json()["message"] == "Invite code has already been used"


def test_expired_invite_flips_to_expired_on_redeem(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    invite = create_invite(client, mother, auth_headers(mother))
    expire_invite(invite["id"])

    resp = client.post("/api/partnerships/redeem", json={"inviteCode": invite["inviteCode"], "partnerId": partner["id"]})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invite code has expired"

    lookup = client.get(f"/api/partnerships/code/{invite['inviteCode']}")
    assert lookup.json()["status"] == "expired"
    assert lookup.json()["partnerId"] is None


def test_self_invite_is_forbidden(client, make_user, auth_headers) -> None:
    mother = make_user()
    invite = create_invite(client, mother, auth_headers(mother))
    resp = client.post("/api/partnerships/redeem", json={"inviteCode": invite["inviteCode"], "partnerId": mother["id"]})
    assert resp.status_code == 403


def test_second_active_partnership_for_pair_conflicts(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    headers = auth_headers(mother)
    first = create_invite(client, mother, headers)
    second = create_invite(client, mother, headers)

    ok = client.post("/api/partnerships/redeem", json={"inviteCode": first["inviteCode"], "partnerId": partner["id"]})
    assert ok.status_code == 200

    dup = client.post("/api/partnerships/redeem", json={"inviteCode": second["inviteCode"], "partnerId": partner["id"]})
    assert dup.status_code == 409

    # The losing invite stays redeemable by someone else.
    lookup = client.get(f"/api/partnerships/code/{second['inviteCode']}")
    assert lookup.json()["status"] == "pending"


def test_accept_by_id(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    invite = create_invite(client, mother, auth_headers(mother))

    resp = client.post(f"/api/partnerships/{invite['id']}/accept", json={"partnerId": partner["id"]})
    assert resp.status_code == 200
    assert resp.json()["status"] == "active"


def test_accept_missing_or_expired_is_not_found(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    invite = create_invite(client, mother, auth_headers(mother))
    expire_invite(invite["id"])

    missing = client.post("/api/partnerships/999999/accept", json={"partnerId": partner["id"]})
    assert missing.status_code == 404

    expired = client.post(f"/api/partnerships/{invite['id']}/accept", json={"partnerId": partner["id"]})
    assert expired.status_code == 404


def test_register_partner_creates_account_and_links(client, make_user, auth_headers) -> None:
    mother = make_user()
    invite = create_invite(client, mother, auth_headers(mother))

    resp = client.post(
        "/api/partners/register",
        json={
            "inviteCode": invite["inviteCode"],
            "userData": {"name": "Jordan", "email": "jordan@example.com", "zipCode": "48201"},
        },
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["user"]["userType"] == "partner"
    assert data["partnership"]["status"] == "active"
    assert data["partnership"]["partnerId"] == data["user"]["id"]


def test_register_partner_with_mother_email_conflicts(client, make_user, auth_headers) -> None:
    mother = make_user()
    other_mother = make_user()
    invite = create_invite(client, mother, auth_headers(mother))

    resp = client.post(
        "/api/partners/register",
        json={"inviteCode": invite["inviteCode"], "userData": {"name": "X", "email": other_mother["email"]}},
    )
    assert resp.status_code == 409
    assert client.get(f"/api/partnerships/code/{invite['inviteCode']}").json()["status"] == "pending"


def test_register_partner_rolls_back_account_on_failure(client, make_user, auth_headers, monkeypatch) -> None:
    mother = make_user()
    invite = create_invite(client, mother, auth_headers(mother))

    def fail_activation(*_args, **_kwargs):
        raise ConflictError("boom")

    monkeypatch.setattr("heartnextdoor.partnerships._activate", fail_activation)
    resp = client.post(
        "/api/partners/register",
        json={"inviteCode": invite["inviteCode"], "userData": {"name": "Sam", "email": "sam@example.com"}},
    )
    assert resp.status_code == 409
    assert client.get("/api/users/email/sam@example.com").status_code == 404
    assert client.get(f"/api/partnerships/code/{invite['inviteCode']}").json()["status"] == "pending"


def test_only_mother_updates_permissions(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    invite = create_invite(client, mother, auth_headers(mother))
    client.post("/api/partnerships/redeem", json={"inviteCode": invite["inviteCode"], "partnerId": partner["id"]})

    denied = client.patch(
        f"/api/partnerships/{invite['id']}/permissions",
        json={"canViewJournal": True},
        headers=auth_headers(partner),
    )
    assert denied.status_code == 403

    resp = client.patch(
        f"/api/partnerships/{invite['id']}/permissions",
        json={"canViewJournal": True},
        headers=auth_headers(mother),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["canViewJournal"] is True
    # Untouched flags keep their values.
    assert data["canViewCheckIns"] is True


def test_partner_can_revoke(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    invite = create_invite(client, mother, auth_headers(mother))
    client.post("/api/partnerships/redeem", json={"inviteCode": invite["inviteCode"], "partnerId": partner["id"]})

    resp = client.post(f"/api/partnerships/{invite['id']}/revoke", headers=auth_headers(partner))
    assert resp.status_code == 200
    assert resp.json()["status"] == "revoked"

    # Revoking twice is a no-op.
    again = client.post(f"/api/partnerships/{invite['id']}/revoke", headers=auth_headers(mother))
    assert again.status_code == 200
    assert again.json()["status"] == "revoked"


def test_outsider_cannot_revoke(client, make_user, auth_headers) -> None:
    mother = make_user()
    outsider = make_user()
    invite = create_invite(client, mother, auth_headers(mother))
    resp = client.post(f"/api/partnerships/{invite['id']}/revoke", headers=auth_headers(outsider))
    assert resp.status_code == 403


def test_regenerate_issues_fresh_pending_code(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    headers = auth_headers(mother)
    invite = create_invite(client, mother, headers)
    client.post("/api/partnerships/redeem", json={"inviteCode": invite["inviteCode"], "partnerId": partner["id"]})

    blocked = client.post(f"/api/partnerships/{invite['id']}/regenerate", headers=headers)
    assert blocked.status_code == 409

    client.post(f"/api/partnerships/{invite['id']}/revoke", headers=headers)
    resp = client.post(f"/api/partnerships/{invite['id']}/regenerate", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "pending"
    assert data["partnerId"] is None
    assert data["inviteCode"] != invite["inviteCode"]

    # The old code no longer resolves; the new one can be redeemed again.
    assert client.get(f"/api/partnerships/code/{invite['inviteCode']}").status_code == 404
    redo = client.post("/api/partnerships/redeem", json={"inviteCode": data["inviteCode"], "partnerId": partner["id"]})
    assert redo.status_code == 200
    assert redo.json()["status"] == "active"


def test_list_partnerships_by_side(client, make_user, auth_headers) -> None:
    mother = make_user()
    partner = make_user(userType="partner")
    invite = create_invite(client, mother, auth_headers(mother))
    client.post("/api/partnerships/redeem", json={"inviteCode": invite["inviteCode"], "partnerId": partner["id"]})

    by_mother = client.get(f"/api/partnerships/mother/{mother['id']}").json()
    by_partner = client.get(f"/api/partnerships/partner/{partner['id']}").json()
    assert [item["id"] for item in by_mother] == [invite["id"]]
    assert [item["id"] for item in by_partner] == [invite["id"]]


def test_partner_cannot_link_to_a_second_mother(client, make_user, auth_headers) -> None:
    first_mother = make_user()
    second_mother = make_user()
    partner = make_user(userType="partner")
    first = create_invite(client, first_mother, auth_headers(first_mother))
    second = create_invite(client, second_mother, auth_headers(second_mother))

    ok = client.post("/api/partnerships/redeem", json={"inviteCode": first["inviteCode"], "partnerId": partner["id"]})
    assert ok.status_code == 200

    other = client.post("/api/partnerships/redeem", json={"inviteCode": second["inviteCode"], "partnerId": partner["id"]})
    assert other.status_code == 409
    assert other.json()["message"] == "An active partnership already exists for this partner"

    dashboard = client.get(f"/api/partner/dashboard/{partner['id']}").json()
    assert dashboard["mother"]["id"] == first_mother["id"]
    assert client.get(f"/api/partnerships/code/{second['inviteCode']}").json()["status"] == "pending"


def test_partner_can_link_to_another_mother_after_revoke(client, make_user, auth_headers) -> None:
    first_mother = make_user()
    second_mother = make_user()
    partner = make_user(userType="partner")
    first = create_invite(client, first_mother, auth_headers(first_mother))
    second = create_invite(client, second_mother, auth_headers(second_mother))
    client.post("/api/partnerships/redeem", json={"inviteCode": first["inviteCode"], "partnerId": partner["id"]})

    revoked = client.post(f"/api/partnerships/{first['id']}/revoke", headers=auth_headers(partner))
    assert revoked.status_code == 200

    resp = client.post("/api/partnerships/redeem", json={"inviteCode": second["inviteCode"], "partnerId": partner["id"]})
    assert resp.status_code == 200
    assert resp.json()["motherId"] == second_mother["id"]
