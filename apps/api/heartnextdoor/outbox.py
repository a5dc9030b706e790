"""Notification outbox: intents are written with the triggering row and sent later."""
from __future__ import annotations

import argparse
import logging
import sqlite3
from typing import Optional

from . import email
from .config import CONFIG
from .db import (
    claim_notification,
    fetch_drainable_notifications,
    get_connection,
    initialize_db,
    insert_notification,
    record_notification_attempt,
)
from .schemas import NotificationIntent, NotificationKind, OutboxDrainResult, ProviderRole

logger = logging.getLogger(__name__)

DEFAULT_DRAIN_LIMIT = 50


def enqueue(
    conn: sqlite3.Connection,
    *,
    kind: NotificationKind,
    recipient: str,
    subject: str,
    html: str,
    text: Optional[str] = None,
    provider_role: Optional[ProviderRole] = None,
    check_in_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> NotificationIntent:
    """Insert a pending intent. The caller commits."""
    return insert_notification(
        conn,
        kind=kind.value,
        recipient=recipient,
        subject=subject,
        html=html,
        text=text,
        provider_role=provider_role.value if provider_role else None,
        check_in_id=check_in_id,
        user_id=user_id,
    )


def drain_outbox(limit: int = DEFAULT_DRAIN_LIMIT, max_attempts: Optional[int] = None) -> OutboxDrainResult:
    max_attempts = max_attempts if max_attempts is not None else CONFIG.outbox_max_attempts
    with get_connection() as conn:
        intents = fetch_drainable_notifications(conn, limit=limit, max_attempts=max_attempts)

    sent = 0
    failed = 0
    for intent in intents:
        with get_connection() as conn:
            claimed = claim_notification(conn, intent.id, max_attempts=max_attempts)
            conn.commit()
        if not claimed:
            logger.debug("notification already claimed", extra={"notification_id": intent.id})
            continue
        try:
            delivered = email.send_email(intent.recipient, intent.subject, intent.html, intent.text)
            error = None if delivered else "delivery failed"
        except Exception as exc:  # noqa: BLE001 - one bad intent must not stop the batch
            logger.exception("Unexpected error sending notification", exc_info=exc)
            delivered = False
            error = str(exc)[:500] or exc.__class__.__name__
        with get_connection() as conn:
            record_notification_attempt(conn, intent.id, sent=delivered, error=error)
            conn.commit()
        if delivered:
            sent += 1
        else:
            failed += 1
            logger.warning(
                "notification delivery failed",
                extra={"notification_id": intent.id, "kind": intent.kind.value, "attempt": intent.attempts + 1},
            )

    if intents:
        logger.info("outbox drained", extra={"sent": sent, "failed": failed})
    return OutboxDrainResult(sent=sent, failed=failed)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Send pending notification emails.")
    parser.add_argument("--limit", type=int, default=DEFAULT_DRAIN_LIMIT)
    parser.add_argument("--max-attempts", type=int, default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    initialize_db()
    result = drain_outbox(limit=args.limit, max_attempts=args.max_attempts)
    print(f"sent={result.sent} failed={result.failed}")


if __name__ == "__main__":
    main()
