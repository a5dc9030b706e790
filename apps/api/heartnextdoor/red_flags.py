"""Provider alerts triggered by check-in content, plus the weekly care-team digest."""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from . import email
from .config import CONFIG
from .db import get_connection, list_check_ins_since, list_mothers_with_providers, utc_now
from .outbox import enqueue
from .schemas import CheckIn, NotificationIntent, NotificationKind, ProviderRole, User

logger = logging.getLogger(__name__)

PAIN_FEELING = "in-pain"
NO_SELF_CARE = {"not-yet"}
UNSUPPORTED = {"not-really", "a-little"}


@dataclass
class RedFlagAssessment:
    concerning: bool
    kind: Optional[NotificationKind] = None
    alert: str = ""
    details: List[str] = field(default_factory=list)


def _providers(mother: User) -> list[tuple[ProviderRole, str, str]]:
    providers = []
    if mother.ob_midwife_email and mother.ob_midwife_email.strip():
        providers.append(
            (ProviderRole.OB_MIDWIFE, mother.ob_midwife_email.strip(), mother.ob_midwife_name or "Provider")
        )
    if mother.doula_email and mother.doula_email.strip():
        providers.append((ProviderRole.DOULA, mother.doula_email.strip(), mother.doula_name or "Doula"))
    return providers


def evaluate_check_in(check_in: CheckIn, concerning: Optional[frozenset[str]] = None) -> RedFlagAssessment:
    """Only the feeling decides whether to alert; other answers add context."""
    concerning = concerning if concerning is not None else CONFIG.concerning_feelings
    feeling = check_in.feeling.strip().lower()
    if feeling not in concerning:
        return RedFlagAssessment(concerning=False)

    details = [f"Reported feeling: {check_in.feeling}", "Persistent negative emotional state"]
    if (check_in.body_care or "").lower() in NO_SELF_CARE:
        details.append("No self-care activities reported")
    if (check_in.feeling_supported or "").lower() in UNSUPPORTED:
        details.append("Mother reports feeling unsupported")

    if feeling == PAIN_FEELING:
        return RedFlagAssessment(
            concerning=True,
            kind=NotificationKind.PAIN_ALERT,
            alert="Patient reported being in pain",
            details=details[2:],
        )
    return RedFlagAssessment(
        concerning=True,
        kind=NotificationKind.RED_FLAG_ALERT,
        alert="Concerning check-in responses detected",
        details=details,
    )


def queue_provider_alerts(conn: sqlite3.Connection, mother: User, check_in: CheckIn) -> List[NotificationIntent]:
    """One intent per provider with an email, inside the check-in's transaction."""
    assessment = evaluate_check_in(check_in)
    if not assessment.concerning:
        return []

    intents = []
    for role, address, name in _providers(mother):
        if assessment.kind == NotificationKind.PAIN_ALERT:
            subject, html, text = email.render_pain_alert(
                mother=mother, provider_name=name, check_in=check_in, details=assessment.details
            )
        else:
            subject, html, text = email.render_red_flag_alert(
                mother=mother, provider_name=name, alert=assessment.alert, details=assessment.details
            )
        intents.append(
            enqueue(
                conn,
                kind=assessment.kind,
                recipient=address,
                subject=subject,
                html=html,
                text=text,
                provider_role=role,
                check_in_id=check_in.id,
                user_id=mother.id,
            )
        )

    if intents:
        logger.info(
            "red flag alerts queued",
            extra={"user_id": mother.id, "check_in_id": check_in.id, "count": len(intents)},
        )
    else:
        logger.info("concerning check-in without provider emails", extra={"user_id": mother.id})
    return intents


def queue_weekly_summaries(days: int = 7) -> int:
    since = utc_now() - timedelta(days=days)
    queued = 0
    for mother in list_mothers_with_providers():
        check_ins = list_check_ins_since(mother.id, since)
        if not check_ins:
            continue
        with get_connection() as conn:
            for role, address, name in _providers(mother):
                subject, html, text = email.render_weekly_summary(
                    mother=mother,
                    provider_name=name,
                    check_ins=check_ins,
                    concerning=CONFIG.concerning_feelings,
                )
                enqueue(
                    conn,
                    kind=NotificationKind.WEEKLY_SUMMARY,
                    recipient=address,
                    subject=subject,
                    html=html,
                    text=text,
                    provider_role=role,
                    user_id=mother.id,
                )
                queued += 1
            conn.commit()
    logger.info("weekly summaries queued", extra={"count": queued})
    return queued
