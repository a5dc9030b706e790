"""Partner-facing reads, gated by the active partnership's visibility flags."""
from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional, Union

from .db import (
    fetch_active_partnership_for_partner,
    fetch_user,
    get_connection,
    insert_partner_update,
    list_active_partnerships_for_mother,
    list_check_ins,
    list_journal_entries,
    list_partner_resources,
    list_upcoming_appointments,
)
from .schemas import (
    SHARE_CATEGORY_FLAGS,
    Appointment,
    CheckIn,
    JournalEntry,
    MotherSummary,
    PartnerDashboard,
    PartnerResource,
    PartnerUpdate,
    PartnerUpdateType,
    Partnership,
    PartnershipFlags,
    ShareCategory,
    User,
)

logger = logging.getLogger(__name__)

RECENT_CHECK_INS = 5
RECENT_JOURNAL_ENTRIES = 10
UPCOMING_APPOINTMENTS = 3

SharedItem = Union[CheckIn, JournalEntry, Appointment, PartnerResource]


def active_partnership_for(partner_id: int) -> Optional[Partnership]:
    with get_connection() as conn:
        return fetch_active_partnership_for_partner(conn, partner_id)


def _category_items(partnership: Partnership, category: ShareCategory) -> List[SharedItem]:
    if not getattr(partnership, SHARE_CATEGORY_FLAGS[category]):
        return []
    mother_id = partnership.mother_id
    if category == ShareCategory.CHECK_INS:
        return list_check_ins(mother_id, newest_first=True, limit=RECENT_CHECK_INS)
    if category == ShareCategory.JOURNAL:
        return list_journal_entries(mother_id, newest_first=True, limit=RECENT_JOURNAL_ENTRIES)
    if category == ShareCategory.APPOINTMENTS:
        return list_upcoming_appointments(mother_id, limit=UPCOMING_APPOINTMENTS)
    return list_partner_resources()


def shared_data(partner_id: int, category: ShareCategory) -> List[SharedItem]:
    """Empty unless an active partnership exists and the category's flag is on."""
    partnership = active_partnership_for(partner_id)
    if partnership is None:
        return []
    return _category_items(partnership, category)


def build_partner_dashboard(partner_id: int) -> PartnerDashboard:
    partnership = active_partnership_for(partner_id)
    if partnership is None:
        return PartnerDashboard()

    with get_connection() as conn:
        mother = fetch_user(conn, partnership.mother_id)
    summary = None
    if mother is not None:
        summary = MotherSummary(
            id=mother.id,
            first_name=mother.first_name,
            last_name=mother.last_name,
            pregnancy_week=mother.pregnancy_week,
            pregnancy_stage=mother.pregnancy_stage,
            due_date=mother.due_date,
            is_postpartum=mother.is_postpartum,
        )

    return PartnerDashboard(
        mother=summary,
        partnership=PartnershipFlags(
            can_view_check_ins=partnership.can_view_check_ins,
            can_view_journal=partnership.can_view_journal,
            can_view_appointments=partnership.can_view_appointments,
            can_view_resources=partnership.can_view_resources,
        ),
        recent_check_ins=_category_items(partnership, ShareCategory.CHECK_INS),
        upcoming_appointments=_category_items(partnership, ShareCategory.APPOINTMENTS),
        journal_entries=_category_items(partnership, ShareCategory.JOURNAL),
        resources=_category_items(partnership, ShareCategory.RESOURCES),
    )


# ---------------------------------------------------------------------------
# Partner update feed
# ---------------------------------------------------------------------------


def _first_name(user: User) -> str:
    return user.first_name or user.name


def publish_check_in_update(conn: sqlite3.Connection, mother: User, check_in: CheckIn) -> List[PartnerUpdate]:
    updates = []
    for partnership in list_active_partnerships_for_mother(conn, mother.id):
        if not partnership.can_view_check_ins:
            continue
        updates.append(
            insert_partner_update(
                conn,
                partnership=partnership,
                update_type=PartnerUpdateType.CHECK_IN.value,
                source_id=check_in.id,
                title=f"{_first_name(mother)} checked in",
                # Notes stay private to the mother.
                payload={
                    "feeling": check_in.feeling,
                    "bodyCare": check_in.body_care,
                    "feelingSupported": check_in.feeling_supported,
                    "createdAt": check_in.created_at.isoformat(),
                },
            )
        )
    return updates


def publish_appointment_update(conn: sqlite3.Connection, mother: User, appointment: Appointment) -> List[PartnerUpdate]:
    updates = []
    for partnership in list_active_partnerships_for_mother(conn, mother.id):
        if not partnership.can_view_appointments:
            continue
        updates.append(
            insert_partner_update(
                conn,
                partnership=partnership,
                update_type=PartnerUpdateType.APPOINTMENT.value,
                source_id=appointment.id,
                title=f"New appointment: {appointment.title}",
                payload={
                    "title": appointment.title,
                    "type": appointment.type,
                    "date": appointment.date.isoformat(),
                    "time": appointment.time,
                    "location": appointment.location,
                },
            )
        )
    return updates


def publish_milestone_update(conn: sqlite3.Connection, mother: User) -> List[PartnerUpdate]:
    updates = []
    for partnership in list_active_partnerships_for_mother(conn, mother.id):
        updates.append(
            insert_partner_update(
                conn,
                partnership=partnership,
                update_type=PartnerUpdateType.MILESTONE.value,
                title=f"{_first_name(mother)} is now {mother.pregnancy_week} weeks along",
                payload={"pregnancyWeek": mother.pregnancy_week, "isPostpartum": mother.is_postpartum},
            )
        )
    if updates:
        logger.info("milestone updates published", extra={"user_id": mother.id, "count": len(updates)})
    return updates
