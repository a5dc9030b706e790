from __future__ import annotations

import logging
import math
import sqlite3
from datetime import datetime
from typing import Any, Dict, Optional

from .db import fetch_user, get_connection, insert_user, to_utc, update_user, utc_now
from .errors import NotFoundError
from .schemas import CreateUserPayload, UpdateUserPayload, User, UserType
from .sharing import publish_milestone_update

logger = logging.getLogger(__name__)

FULL_TERM_WEEKS = 40

DETROIT_SERVICE_AREA = frozenset(
    [
        # Detroit proper
        *(str(code) for code in range(48201, 48241)),
        "48242",
        "48243",
        # Surrounding metro
        "48067", "48070", "48071", "48072", "48073", "48075", "48076",
        "48331", "48334", "48335", "48336", "48340", "48341", "48342",
        "48346", "48347", "48348", "48375", "48377", "48380",
    ]
)


def derive_pregnancy_week(due_date: datetime, *, now: Optional[datetime] = None) -> int:
    current = to_utc(now or utc_now())
    days_until_due = math.floor((to_utc(due_date) - current).total_seconds() / 86400)
    return max(0, FULL_TERM_WEEKS - math.floor(days_until_due / 7))


def in_service_area(zip_code: Optional[str]) -> bool:
    return bool(zip_code) and zip_code.strip() in DETROIT_SERVICE_AREA


def new_user_values(payload: CreateUserPayload, *, user_type: Optional[UserType] = None) -> Dict[str, Any]:
    values = payload.model_dump()
    values["email"] = payload.email.strip().lower()
    if user_type is not None:
        values["user_type"] = user_type
    if values.get("pregnancy_week") is None and payload.due_date is not None:
        values["pregnancy_week"] = derive_pregnancy_week(payload.due_date)
    values["waitlist_user"] = not in_service_area(payload.zip_code)
    return values


def register_user(payload: CreateUserPayload) -> User:
    with get_connection() as conn:
        user = insert_user(conn, new_user_values(payload))
        conn.commit()
    logger.info("user created", extra={"user_id": user.id, "user_type": user.user_type.value})
    return user


def update_profile(user_id: int, payload: UpdateUserPayload) -> User:
    updates = {key: getattr(payload, key) for key in payload.model_fields_set}
    if updates.get("name", "") is None:
        updates.pop("name")
    with get_connection() as conn:
        before = fetch_user(conn, user_id)
        if not before:
            raise NotFoundError("User not found")
        if "zip_code" in updates:
            updates["waitlist_user"] = not in_service_area(updates["zip_code"])
        user = update_user(conn, user_id, updates)
        _maybe_publish_milestone(conn, before, user)
        conn.commit()
    return user


def _maybe_publish_milestone(conn: sqlite3.Connection, before: User, after: User) -> None:
    if after.pregnancy_week is None or after.pregnancy_week == before.pregnancy_week:
        return
    publish_milestone_update(conn, after)
