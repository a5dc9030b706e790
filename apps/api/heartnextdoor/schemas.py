"""Pydantic schemas shared across the API."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserType(str, Enum):
    MOTHER = "mother"
    PARTNER = "partner"


class PregnancyStage(str, Enum):
    TRYING_TO_CONCEIVE = "trying_to_conceive"
    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    POSTPARTUM = "postpartum"


class PartnershipStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class ShareCategory(str, Enum):
    CHECK_INS = "check_ins"
    JOURNAL = "journal"
    APPOINTMENTS = "appointments"
    RESOURCES = "resources"


SHARE_CATEGORY_FLAGS = {
    ShareCategory.CHECK_INS: "can_view_check_ins",
    ShareCategory.JOURNAL: "can_view_journal",
    ShareCategory.APPOINTMENTS: "can_view_appointments",
    ShareCategory.RESOURCES: "can_view_resources",
}


class PartnerUpdateType(str, Enum):
    CHECK_IN = "check_in"
    APPOINTMENT = "appointment"
    MILESTONE = "milestone"


class ProviderRole(str, Enum):
    OB_MIDWIFE = "ob_midwife"
    DOULA = "doula"


class NotificationKind(str, Enum):
    RED_FLAG_ALERT = "red_flag_alert"
    PAIN_ALERT = "pain_alert"
    WEEKLY_SUMMARY = "weekly_summary"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(CamelModel):
    id: int
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    user_type: UserType = UserType.MOTHER
    pregnancy_week: Optional[int] = None
    pregnancy_stage: Optional[PregnancyStage] = None
    due_date: Optional[datetime] = None
    birth_date: Optional[datetime] = None
    is_postpartum: bool = False
    zip_code: Optional[str] = None
    waitlist_user: bool = False
    preferences: Dict[str, Any] = Field(default_factory=dict)
    ob_midwife_name: Optional[str] = None
    ob_midwife_email: Optional[str] = None
    doula_name: Optional[str] = None
    doula_email: Optional[str] = None
    created_at: datetime


class CreateUserPayload(CamelModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_type: UserType = UserType.MOTHER
    pregnancy_week: Optional[int] = Field(default=None, ge=0, le=45)
    pregnancy_stage: Optional[PregnancyStage] = None
    due_date: Optional[datetime] = None
    birth_date: Optional[datetime] = None
    is_postpartum: bool = False
    zip_code: Optional[str] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)
    ob_midwife_name: Optional[str] = None
    ob_midwife_email: Optional[str] = None
    doula_name: Optional[str] = None
    doula_email: Optional[str] = None


class UpdateUserPayload(CamelModel):
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    pregnancy_week: Optional[int] = Field(default=None, ge=0, le=45)
    pregnancy_stage: Optional[PregnancyStage] = None
    due_date: Optional[datetime] = None
    birth_date: Optional[datetime] = None
    is_postpartum: Optional[bool] = None
    zip_code: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None
    ob_midwife_name: Optional[str] = None
    ob_midwife_email: Optional[str] = None
    doula_name: Optional[str] = None
    doula_email: Optional[str] = None


class TokenRequest(CamelModel):
    user_id: int
    email: str


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


# ---------------------------------------------------------------------------
# Check-ins, journal, chat
# ---------------------------------------------------------------------------


class CheckIn(CamelModel):
    id: int
    user_id: int
    feeling: str
    body_care: Optional[str] = None
    feeling_supported: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class CreateCheckInPayload(CamelModel):
    user_id: int
    feeling: str = Field(..., min_length=1)
    body_care: str = Field(..., min_length=1)
    feeling_supported: str = Field(..., min_length=1)
    notes: Optional[str] = None


class JournalEntry(CamelModel):
    id: int
    user_id: int
    prompt: Optional[str] = None
    content: str
    pregnancy_week: Optional[int] = None
    created_at: datetime


class CreateJournalEntryPayload(CamelModel):
    user_id: int
    content: str = Field(..., min_length=1)
    prompt: Optional[str] = None
    pregnancy_week: Optional[int] = None


class ChatMessage(CamelModel):
    id: int
    user_id: int
    content: str
    is_from_user: bool
    timestamp: datetime


class ChatRequest(CamelModel):
    user_id: int
    message: str = Field(..., min_length=1, description="Free-form message to the companion")


class ChatExchange(CamelModel):
    user_message: ChatMessage
    ai_message: ChatMessage


class JournalPrompt(CamelModel):
    prompt: str


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------


class Appointment(CamelModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    type: str = "other"
    date: datetime
    time: Optional[str] = None
    duration: Optional[int] = None
    location: Optional[str] = None
    provider_name: Optional[str] = None
    provider_phone: Optional[str] = None
    provider_email: Optional[str] = None
    notes: Optional[str] = None
    reminders: bool = True
    source: str = "manual"
    external_calendar_id: Optional[str] = None
    is_external: bool = False
    last_synced_at: Optional[datetime] = None
    created_at: datetime


class CreateAppointmentPayload(CamelModel):
    user_id: int
    title: str = Field(..., min_length=1)
    date: datetime
    description: Optional[str] = None
    type: str = "other"
    time: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    provider_name: Optional[str] = None
    provider_phone: Optional[str] = None
    provider_email: Optional[str] = None
    notes: Optional[str] = None
    reminders: bool = True


class UpdateAppointmentPayload(CamelModel):
    title: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    type: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    provider_name: Optional[str] = None
    provider_phone: Optional[str] = None
    provider_email: Optional[str] = None
    notes: Optional[str] = None
    reminders: Optional[bool] = None


class CalendarEventTime(CamelModel):
    date_time: Optional[str] = None
    date: Optional[str] = None


class CalendarEvent(CamelModel):
    id: str
    title: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start: Optional[CalendarEventTime] = None
    end: Optional[CalendarEventTime] = None


class CalendarSyncPayload(CamelModel):
    user_id: int
    events: List[CalendarEvent]


class CalendarSkipCounts(CamelModel):
    not_pregnancy_related: int = 0
    already_synced: int = 0
    invalid: int = 0


class CalendarSyncResult(CamelModel):
    synced_count: int
    skipped: CalendarSkipCounts
    appointments: List[Appointment]
    message: str


# ---------------------------------------------------------------------------
# Community
# ---------------------------------------------------------------------------


class Group(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    type: str = "community"
    zip_code: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    address: Optional[str] = None
    topic: Optional[str] = None
    is_private: bool = False
    member_count: int = 0
    created_by: Optional[int] = None
    website: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    google_place_id: Optional[str] = None
    rating: Optional[int] = None
    is_external: bool = False
    created_at: datetime
    user_membership: Optional[bool] = None


class CreateGroupPayload(CamelModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: str = "community"
    zip_code: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    topic: Optional[str] = None
    is_private: bool = False
    created_by: Optional[int] = None
    website: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class ImportGroupsPayload(CamelModel):
    zip_code: str = Field(..., min_length=3)


class GroupMembershipPayload(CamelModel):
    user_id: int


class FavoritePayload(CamelModel):
    user_id: int
    group_id: int


class Favorite(CamelModel):
    id: int
    user_id: int
    group_id: int
    created_at: datetime


class GroupMessage(CamelModel):
    id: int
    group_id: int
    user_id: int
    content: str
    reply_to: Optional[int] = None
    created_at: datetime
    user_name: Optional[str] = None


class CreateGroupMessagePayload(CamelModel):
    group_id: int
    user_id: int
    content: str = Field(..., min_length=1)
    reply_to: Optional[int] = None


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class Affirmation(CamelModel):
    id: int
    content: str
    pregnancy_stage: Optional[str] = None
    is_active: bool = True


class Expert(CamelModel):
    id: int
    name: str
    title: str
    specialty: str
    rating: int = 5
    review_count: int = 0
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    contact_info: Dict[str, Any] = Field(default_factory=dict)
    is_available: bool = True


class Resource(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    type: str
    duration: Optional[str] = None
    pregnancy_stage: Optional[str] = None
    category: Optional[str] = None
    url: Optional[str] = None
    is_popular: bool = False


class PartnerResource(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    category: str
    content: Optional[str] = None
    sort_order: int = 0


class PartnerProgress(CamelModel):
    id: int
    partner_id: int
    resource_id: int
    completed_at: datetime


class CreatePartnerProgressPayload(CamelModel):
    partner_id: int
    resource_id: int


# ---------------------------------------------------------------------------
# Partnerships
# ---------------------------------------------------------------------------


class PartnershipFlags(CamelModel):
    can_view_check_ins: bool = True
    can_view_journal: bool = False
    can_view_appointments: bool = True
    can_view_resources: bool = True


class Partnership(PartnershipFlags):
    id: int
    mother_id: int
    partner_id: Optional[int] = None
    relationship_type: str
    nickname: Optional[str] = None
    status: PartnershipStatus
    invite_code: str
    expires_at: Optional[datetime] = None
    redeemed_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    created_at: datetime


class CreatePartnershipPayload(PartnershipFlags):
    mother_id: int
    relationship_type: str = Field(..., min_length=1)
    nickname: Optional[str] = None


class GenerateInvitePayload(CamelModel):
    mother_id: int
    relationship_type: str = Field(..., min_length=1)
    nickname: Optional[str] = None


class AcceptPartnershipPayload(CamelModel):
    partner_id: int


class RedeemInvitePayload(CamelModel):
    invite_code: str = Field(..., min_length=1)
    partner_id: int


class RegisterPartnerPayload(CamelModel):
    invite_code: str = Field(..., min_length=1)
    user_data: CreateUserPayload


class PartnerRegistration(CamelModel):
    user: User
    partnership: Partnership


class PermissionsPatch(CamelModel):
    can_view_check_ins: Optional[bool] = None
    can_view_journal: Optional[bool] = None
    can_view_appointments: Optional[bool] = None
    can_view_resources: Optional[bool] = None


class PartnerUpdate(CamelModel):
    id: int
    partnership_id: int
    partner_id: int
    mother_id: int
    update_type: PartnerUpdateType
    source_id: Optional[int] = None
    title: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: datetime


class MotherSummary(CamelModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    pregnancy_week: Optional[int] = None
    pregnancy_stage: Optional[PregnancyStage] = None
    due_date: Optional[datetime] = None
    is_postpartum: bool = False


class PartnerDashboard(CamelModel):
    mother: Optional[MotherSummary] = None
    partnership: Optional[PartnershipFlags] = None
    recent_check_ins: List[CheckIn] = Field(default_factory=list)
    upcoming_appointments: List[Appointment] = Field(default_factory=list)
    journal_entries: List[JournalEntry] = Field(default_factory=list)
    resources: List[PartnerResource] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Notifications, signups, admin
# ---------------------------------------------------------------------------


class NotificationIntent(CamelModel):
    id: int
    kind: NotificationKind
    recipient: str
    provider_role: Optional[ProviderRole] = None
    subject: str
    html: str
    text: Optional[str] = None
    check_in_id: Optional[int] = None
    user_id: Optional[int] = None
    status: NotificationStatus
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None


class OutboxDrainResult(CamelModel):
    sent: int
    failed: int


class WeeklySummaryResult(CamelModel):
    queued: int


class EmailSignup(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    user_type: Optional[str] = None
    due_date: Optional[str] = None
    source: str = "landing_page"
    signup_date: datetime


class CreateEmailSignupPayload(CamelModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    name: Optional[str] = None
    user_type: Optional[str] = None
    due_date: Optional[str] = None
    source: Optional[str] = None


class AdminStats(CamelModel):
    total_users: int
    active_pregnancies: int
    red_flags: int
    waitlist_count: int


class AdminUser(CamelModel):
    id: int
    name: str
    email: str
    pregnancy_stage: Optional[PregnancyStage] = None
    user_type: UserType
    created_at: datetime
    waitlist_user: bool
