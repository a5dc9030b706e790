from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from .db import (
    fetch_user,
    get_appointment_by_external_id,
    get_connection,
    insert_appointment,
    to_utc,
    utc_now,
)
from .errors import NotFoundError
from .schemas import (
    Appointment,
    CalendarEvent,
    CalendarSkipCounts,
    CalendarSyncPayload,
    CalendarSyncResult,
    CreateAppointmentPayload,
)
from .sharing import publish_appointment_update

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60

PREGNANCY_KEYWORDS = (
    "ob", "obgyn", "ob-gyn", "ob/gyn", "obstetric", "gynecolog",
    "prenatal", "pregnancy", "pregnant", "ultrasound", "sonogram",
    "doula", "midwife", "midwifery", "lactation", "breastfeeding",
    "maternal", "fetal", "baby", "infant", "newborn", "birth",
    "postpartum", "checkup", "check-up", "antenatal",
    "anatomy scan", "growth scan", "nst", "non-stress", "gestational",
    "cervix", "labor", "delivery", "trimester", "weeks pregnant",
    "due date", "contractions", "monitoring", "pediatric", "pediatrician",
    "hospital tour", "birthing class", "childbirth",
)


def _search_text(title: Optional[str], description: Optional[str]) -> str:
    return f"{title or ''} {description or ''}".lower()


def is_pregnancy_related(title: Optional[str], description: Optional[str] = None) -> bool:
    text = _search_text(title, description)
    return any(keyword in text for keyword in PREGNANCY_KEYWORDS)


def classify_appointment_type(title: Optional[str], description: Optional[str] = None) -> str:
    text = _search_text(title, description)
    if any(word in text for word in ("ultrasound", "sonogram", "scan")):
        return "ultrasound"
    if "doula" in text:
        return "doula"
    if "lactation" in text or "breastfeeding" in text:
        return "lactation"
    if "therap" in text:
        return "therapist"
    if any(word in text for word in ("baby", "pediatric", "newborn")):
        return "baby-checkup"
    if any(word in text for word in ("ob", "prenatal", "maternal")):
        return "ob"
    return "other"


def create_appointment(payload: CreateAppointmentPayload) -> Appointment:
    data = payload.model_dump(exclude={"user_id"})
    with get_connection() as conn:
        mother = fetch_user(conn, payload.user_id)
        if not mother:
            raise NotFoundError("User not found")
        appointment = insert_appointment(conn, mother.id, data)
        publish_appointment_update(conn, mother, appointment)
        conn.commit()
    logger.info("appointment created", extra={"user_id": mother.id, "appointment_id": appointment.id})
    return appointment


def _parse_event_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def _event_start(event: CalendarEvent) -> Optional[datetime]:
    if not event.start:
        return None
    return _parse_event_time(event.start.date_time or event.start.date)


def sync_calendar_events(source: str, payload: CalendarSyncPayload) -> CalendarSyncResult:
    skipped = CalendarSkipCounts()
    synced: list[Appointment] = []
    with get_connection() as conn:
        mother = fetch_user(conn, payload.user_id)
        if not mother:
            raise NotFoundError("User not found")

    for event in payload.events:
        title = event.title or event.summary
        if not is_pregnancy_related(title, event.description):
            skipped.not_pregnancy_related += 1
            continue
        if get_appointment_by_external_id(event.id, source):
            skipped.already_synced += 1
            continue
        start = _event_start(event)
        if start is None:
            skipped.invalid += 1
            continue
        end = _parse_event_time(event.end.date_time if event.end else None)
        end = end or start + timedelta(minutes=DEFAULT_DURATION_MINUTES)
        duration = round((end - start).total_seconds() / 60) or DEFAULT_DURATION_MINUTES

        with get_connection() as conn:
            appointment = insert_appointment(
                conn,
                mother.id,
                {
                    "title": title or "Appointment",
                    "description": event.description,
                    "type": classify_appointment_type(title, event.description),
                    "date": start,
                    "time": start.strftime("%H:%M"),
                    "duration": duration,
                    "location": event.location,
                    "reminders": True,
                    "source": source,
                    "external_calendar_id": event.id,
                    "last_synced_at": utc_now(),
                    "is_external": True,
                },
            )
            publish_appointment_update(conn, mother, appointment)
            conn.commit()
        synced.append(appointment)

    logger.info(
        "calendar synced",
        extra={"user_id": mother.id, "source": source, "synced": len(synced)},
    )
    return CalendarSyncResult(
        synced_count=len(synced),
        skipped=skipped,
        appointments=synced,
        message=f"Successfully synced {len(synced)} pregnancy-related appointment(s) from {source}.",
    )
