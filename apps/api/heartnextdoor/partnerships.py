"""Partnership lifecycle: invite, redeem, permissions, revoke, regenerate.

State machine::

    pending --redeem--> active --revoke--> revoked
    pending --(redeem after expiry)--> expired
    pending --revoke--> revoked
    expired|revoked|pending --regenerate--> pending (fresh code, partner cleared)
"""
from __future__ import annotations

import logging
import secrets
import sqlite3
import string
from datetime import datetime, timedelta
from typing import List, Optional

from .auth import AuthContext
from .config import CONFIG
from .db import (
    fetch_active_partnership_for_partner,
    fetch_partnership,
    fetch_partnership_by_code,
    fetch_user,
    get_connection,
    insert_partnership,
    insert_user,
    invite_code_exists,
    list_partnerships,
    to_utc,
    update_partnership,
    utc_now,
)
from .errors import (
    ConflictError,
    DuplicateActivePartnership,
    ForbiddenError,
    InvalidOrExpiredCode,
    NotFoundError,
)
from .schemas import (
    CreatePartnershipPayload,
    CreateUserPayload,
    PartnerRegistration,
    Partnership,
    PartnershipStatus,
    PermissionsPatch,
    User,
    UserType,
)
from .users import new_user_values

logger = logging.getLogger(__name__)

INVITE_CODE_LENGTH = 8
_INVITE_ALPHABET = string.ascii_uppercase + string.digits
_MAX_CODE_ATTEMPTS = 20


def generate_invite_code(conn: sqlite3.Connection) -> str:
    for _ in range(_MAX_CODE_ATTEMPTS):
        code = "".join(secrets.choice(_INVITE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
        if not invite_code_exists(conn, code):
            return code
    raise ConflictError("Could not allocate a unique invite code")


def _invite_expiry(now: Optional[datetime] = None) -> datetime:
    return (now or utc_now()) + timedelta(days=CONFIG.invite_ttl_days)


def _require_mother(auth: AuthContext, partnership: Partnership) -> None:
    if auth.user_id != partnership.mother_id:
        raise ForbiddenError("Only the mother can change this partnership")


def create_invite(auth: AuthContext, payload: CreatePartnershipPayload) -> Partnership:
    if auth.user_id != payload.mother_id:
        raise ForbiddenError("You can only invite partners to your own account")
    with get_connection() as conn:
        mother = fetch_user(conn, payload.mother_id)
        if not mother:
            raise NotFoundError("User not found")
        if mother.user_type == UserType.PARTNER:
            raise ForbiddenError("Partner accounts cannot send invites")
        partnership = insert_partnership(
            conn,
            mother_id=mother.id,
            relationship_type=payload.relationship_type,
            nickname=payload.nickname,
            invite_code=generate_invite_code(conn),
            expires_at=_invite_expiry(),
            can_view_check_ins=payload.can_view_check_ins,
            can_view_journal=payload.can_view_journal,
            can_view_appointments=payload.can_view_appointments,
            can_view_resources=payload.can_view_resources,
        )
        conn.commit()
    logger.info("partnership invite created", extra={"partnership_id": partnership.id, "mother_id": mother.id})
    return partnership


def _ensure_redeemable(conn: sqlite3.Connection, partnership: Optional[Partnership], now: datetime) -> Partnership:
    """Raise unless the invite is pending and unexpired. Flips stale pending rows to expired."""
    if partnership is None:
        raise InvalidOrExpiredCode("Invalid invite code")
    if partnership.status != PartnershipStatus.PENDING:
        raise InvalidOrExpiredCode("Invite code has already been used")
    if partnership.expires_at is not None and now > to_utc(partnership.expires_at):
        update_partnership(conn, partnership.id, {"status": PartnershipStatus.EXPIRED})
        conn.commit()
        logger.info("partnership invite expired", extra={"partnership_id": partnership.id})
        raise InvalidOrExpiredCode("Invite code has expired")
    return partnership


def _activate(conn: sqlite3.Connection, partnership: Partnership, partner: User, now: datetime) -> Partnership:
    if partner.id == partnership.mother_id:
        raise ForbiddenError("You cannot accept your own invite")
    # A partner account follows one mother at a time.
    if fetch_active_partnership_for_partner(conn, partner.id):
        raise DuplicateActivePartnership()
    prior = conn.execute(
        "SELECT 1 FROM partnerships WHERE mother_id = ? AND partner_id = ? AND id != ? LIMIT 1",
        (partnership.mother_id, partner.id, partnership.id),
    ).fetchone()
    if prior:
        raise ConflictError("This partner was linked before; regenerate that invite instead")
    return update_partnership(
        conn,
        partnership.id,
        {
            "partner_id": partner.id,
            "status": PartnershipStatus.ACTIVE,
            "redeemed_at": now,
            "accepted_at": now,
        },
    )


def _redeem(conn: sqlite3.Connection, partnership: Optional[Partnership], partner_id: int) -> Partnership:
    now = utc_now()
    partnership = _ensure_redeemable(conn, partnership, now)
    partner = fetch_user(conn, partner_id)
    if not partner:
        raise NotFoundError("Partner account not found")
    activated = _activate(conn, partnership, partner, now)
    conn.commit()
    logger.info(
        "partnership activated",
        extra={"partnership_id": activated.id, "mother_id": activated.mother_id, "partner_id": partner_id},
    )
    return activated


def redeem_invite(invite_code: str, partner_id: int) -> Partnership:
    with get_connection() as conn:
        return _redeem(conn, fetch_partnership_by_code(conn, invite_code), partner_id)


def accept_partnership(partnership_id: int, partner_id: int) -> Partnership:
    with get_connection() as conn:
        try:
            partnership = fetch_partnership(conn, partnership_id)
        except NotFoundError:
            partnership = None
        return _redeem(conn, partnership, partner_id)


def register_partner(invite_code: str, user_data: CreateUserPayload) -> PartnerRegistration:
    """Create (or reuse) the partner account and redeem in one transaction."""
    now = utc_now()
    with get_connection() as conn:
        partnership = _ensure_redeemable(conn, fetch_partnership_by_code(conn, invite_code), now)
        row = conn.execute(
            "SELECT id FROM users WHERE lower(email) = lower(?)", (user_data.email.strip(),)
        ).fetchone()
        if row:
            partner = fetch_user(conn, row["id"])
            if partner.user_type != UserType.PARTNER:
                raise ConflictError("An account with this email already exists")
        else:
            partner = insert_user(conn, new_user_values(user_data, user_type=UserType.PARTNER))
        activated = _activate(conn, partnership, partner, now)
        conn.commit()
    logger.info(
        "partner registered",
        extra={"partnership_id": activated.id, "partner_id": partner.id},
    )
    return PartnerRegistration(user=partner, partnership=activated)


def update_permissions(auth: AuthContext, partnership_id: int, patch: PermissionsPatch) -> Partnership:
    updates = {key: value for key, value in patch.model_dump().items() if value is not None}
    with get_connection() as conn:
        partnership = fetch_partnership(conn, partnership_id)
        _require_mother(auth, partnership)
        if updates:
            partnership = update_partnership(conn, partnership_id, updates)
            conn.commit()
    logger.info("partnership permissions updated", extra={"partnership_id": partnership_id, "fields": sorted(updates)})
    return partnership


def revoke_partnership(auth: AuthContext, partnership_id: int) -> Partnership:
    with get_connection() as conn:
        partnership = fetch_partnership(conn, partnership_id)
        if auth.user_id not in {partnership.mother_id, partnership.partner_id}:
            raise ForbiddenError("You are not part of this partnership")
        if partnership.status == PartnershipStatus.REVOKED:
            return partnership
        if partnership.status == PartnershipStatus.EXPIRED:
            raise ConflictError("This invite has already expired")
        partnership = update_partnership(conn, partnership_id, {"status": PartnershipStatus.REVOKED})
        conn.commit()
    logger.info("partnership revoked", extra={"partnership_id": partnership_id, "by_user_id": auth.user_id})
    return partnership


def regenerate_invite(auth: AuthContext, partnership_id: int) -> Partnership:
    with get_connection() as conn:
        partnership = fetch_partnership(conn, partnership_id)
        _require_mother(auth, partnership)
        if partnership.status == PartnershipStatus.ACTIVE:
            raise ConflictError("Revoke the active partnership before issuing a new invite")
        partnership = update_partnership(
            conn,
            partnership_id,
            {
                "invite_code": generate_invite_code(conn),
                "expires_at": _invite_expiry(),
                "status": PartnershipStatus.PENDING,
                "partner_id": None,
                "redeemed_at": None,
                "accepted_at": None,
            },
        )
        conn.commit()
    logger.info("partnership invite regenerated", extra={"partnership_id": partnership_id})
    return partnership


def get_by_code(invite_code: str) -> Partnership:
    with get_connection() as conn:
        partnership = fetch_partnership_by_code(conn, invite_code)
    if not partnership:
        raise NotFoundError("Partnership not found")
    return partnership


def list_for_mother(mother_id: int) -> List[Partnership]:
    return list_partnerships(mother_id=mother_id)


def list_for_partner(partner_id: int) -> List[Partnership]:
    return list_partnerships(partner_id=partner_id)
