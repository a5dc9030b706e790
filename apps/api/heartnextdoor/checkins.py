from __future__ import annotations

import logging
from typing import List

from .db import fetch_user, get_connection, insert_check_in, list_check_ins
from .errors import NotFoundError
from .red_flags import queue_provider_alerts
from .schemas import CheckIn, CreateCheckInPayload
from .sharing import publish_check_in_update

logger = logging.getLogger(__name__)

TREND_WINDOW = 7


def record_check_in(payload: CreateCheckInPayload) -> CheckIn:
    """Persist the check-in with its outbox intents and partner updates atomically."""
    with get_connection() as conn:
        mother = fetch_user(conn, payload.user_id)
        if not mother:
            raise NotFoundError("User not found")
        check_in = insert_check_in(
            conn,
            user_id=mother.id,
            feeling=payload.feeling.strip(),
            body_care=payload.body_care,
            feeling_supported=payload.feeling_supported,
            notes=payload.notes,
        )
        alerts = queue_provider_alerts(conn, mother, check_in)
        updates = publish_check_in_update(conn, mother, check_in)
        conn.commit()
    logger.info(
        "check-in recorded",
        extra={
            "user_id": mother.id,
            "check_in_id": check_in.id,
            "alerts_queued": len(alerts),
            "partner_updates": len(updates),
        },
    )
    return check_in


def check_in_trends(user_id: int) -> List[CheckIn]:
    return list_check_ins(user_id, newest_first=True, limit=TREND_WINDOW)
