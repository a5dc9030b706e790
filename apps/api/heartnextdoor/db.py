"""SQLite helpers.

Functions that take a ``conn`` argument never commit: they are composed into a
caller-owned transaction. Everything else opens its own short-lived connection.
"""
from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .config import CONFIG
from .errors import ConflictError, NotFoundError
from .schemas import (
    Affirmation,
    Appointment,
    ChatMessage,
    CheckIn,
    EmailSignup,
    Expert,
    Favorite,
    Group,
    GroupMessage,
    JournalEntry,
    NotificationIntent,
    NotificationStatus,
    PartnerProgress,
    PartnerResource,
    PartnerUpdate,
    Partnership,
    PartnershipStatus,
    Resource,
    User,
)

_DB_PATH = CONFIG.resolved_database_path
_DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, ddl: str) -> None:
    cursor = conn.execute(f"PRAGMA table_info({table})")
    existing = {row[1] for row in cursor.fetchall()}
    if column not in existing:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")


def initialize_db() -> None:
    with sqlite3.connect(_DB_PATH) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                first_name TEXT,
                last_name TEXT,
                email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                user_type TEXT NOT NULL DEFAULT 'mother',
                pregnancy_week INTEGER,
                pregnancy_stage TEXT,
                due_date TEXT,
                birth_date TEXT,
                is_postpartum INTEGER DEFAULT 0,
                zip_code TEXT,
                waitlist_user INTEGER DEFAULT 0,
                preferences TEXT NOT NULL DEFAULT '{}',
                ob_midwife_name TEXT,
                ob_midwife_email TEXT,
                doula_name TEXT,
                doula_email TEXT,
                created_at TEXT NOT NULL
            );
            """
        )
        _ensure_column(conn, "users", "birth_date", "TEXT")
        _ensure_column(conn, "users", "ob_midwife_name", "TEXT")
        _ensure_column(conn, "users", "ob_midwife_email", "TEXT")
        _ensure_column(conn, "users", "doula_name", "TEXT")
        _ensure_column(conn, "users", "doula_email", "TEXT")

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS check_ins (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                feeling TEXT NOT NULL,
                body_care TEXT,
                feeling_supported TEXT,
                notes TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id)
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS check_ins_user_created ON check_ins (user_id, created_at)"
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS journal_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                prompt TEXT,
                content TEXT NOT NULL,
                pregnancy_week INTEGER,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS chat_messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                content TEXT NOT NULL,
                is_from_user INTEGER NOT NULL,
                timestamp TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS appointments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                type TEXT NOT NULL DEFAULT 'other',
                date TEXT NOT NULL,
                time TEXT,
                duration INTEGER,
                location TEXT,
                provider_name TEXT,
                provider_phone TEXT,
                provider_email TEXT,
                notes TEXT,
                reminders INTEGER DEFAULT 1,
                source TEXT NOT NULL DEFAULT 'manual',
                external_calendar_id TEXT,
                is_external INTEGER DEFAULT 0,
                last_synced_at TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                type TEXT NOT NULL DEFAULT 'community',
                zip_code TEXT,
                city TEXT,
                state TEXT,
                address TEXT,
                topic TEXT,
                is_private INTEGER DEFAULT 0,
                member_count INTEGER DEFAULT 0,
                created_by INTEGER,
                website TEXT,
                contact_email TEXT,
                contact_phone TEXT,
                google_place_id TEXT UNIQUE,
                rating INTEGER,
                is_external INTEGER DEFAULT 0,
                created_at TEXT NOT NULL,
                FOREIGN KEY (created_by) REFERENCES users(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS memberships (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                group_id INTEGER NOT NULL,
                role TEXT NOT NULL DEFAULT 'member',
                joined_at TEXT NOT NULL,
                UNIQUE(user_id, group_id),
                FOREIGN KEY (user_id) REFERENCES users(id),
                FOREIGN KEY (group_id) REFERENCES groups(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS favorites (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                group_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(user_id, group_id),
                FOREIGN KEY (user_id) REFERENCES users(id),
                FOREIGN KEY (group_id) REFERENCES groups(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS group_messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                content TEXT NOT NULL,
                reply_to INTEGER,
                created_at TEXT NOT NULL,
                FOREIGN KEY (group_id) REFERENCES groups(id),
                FOREIGN KEY (user_id) REFERENCES users(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS affirmations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content TEXT NOT NULL,
                pregnancy_stage TEXT,
                is_active INTEGER DEFAULT 1
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS experts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                title TEXT NOT NULL,
                specialty TEXT NOT NULL,
                rating INTEGER DEFAULT 5,
                review_count INTEGER DEFAULT 0,
                photo_url TEXT,
                bio TEXT,
                contact_info TEXT NOT NULL DEFAULT '{}',
                is_available INTEGER DEFAULT 1
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS resources (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT,
                type TEXT NOT NULL,
                duration TEXT,
                pregnancy_stage TEXT,
                category TEXT,
                url TEXT,
                is_popular INTEGER DEFAULT 0
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS partner_resources (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT,
                category TEXT NOT NULL,
                content TEXT,
                sort_order INTEGER DEFAULT 0
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS partnerships (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                mother_id INTEGER NOT NULL,
                partner_id INTEGER,
                relationship_type TEXT NOT NULL,
                nickname TEXT,
                status TEXT NOT NULL DEFAULT 'pending',
                invite_code TEXT NOT NULL UNIQUE,
                expires_at TEXT,
                redeemed_at TEXT,
                accepted_at TEXT,
                can_view_check_ins INTEGER NOT NULL DEFAULT 1,
                can_view_journal INTEGER NOT NULL DEFAULT 0,
                can_view_appointments INTEGER NOT NULL DEFAULT 1,
                can_view_resources INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                FOREIGN KEY (mother_id) REFERENCES users(id),
                FOREIGN KEY (partner_id) REFERENCES users(id)
            );
            """
        )
        conn.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS partnerships_pair_unique
            ON partnerships (mother_id, partner_id)
            WHERE partner_id IS NOT NULL
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS partner_progress (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                partner_id INTEGER NOT NULL,
                resource_id INTEGER NOT NULL,
                completed_at TEXT NOT NULL,
                FOREIGN KEY (partner_id) REFERENCES users(id),
                FOREIGN KEY (resource_id) REFERENCES partner_resources(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS partner_updates (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                partnership_id INTEGER NOT NULL,
                partner_id INTEGER NOT NULL,
                mother_id INTEGER NOT NULL,
                update_type TEXT NOT NULL,
                source_id INTEGER,
                title TEXT NOT NULL,
                payload TEXT NOT NULL DEFAULT '{}',
                is_read INTEGER DEFAULT 0,
                created_at TEXT NOT NULL,
                FOREIGN KEY (partnership_id) REFERENCES partnerships(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS notification_outbox (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                kind TEXT NOT NULL,
                recipient TEXT NOT NULL,
                provider_role TEXT,
                subject TEXT NOT NULL,
                html TEXT NOT NULL,
                text TEXT,
                check_in_id INTEGER,
                user_id INTEGER,
                status TEXT NOT NULL DEFAULT 'pending',
                attempts INTEGER NOT NULL DEFAULT 0,
                last_error TEXT,
                created_at TEXT NOT NULL,
                sent_at TEXT,
                FOREIGN KEY (check_in_id) REFERENCES check_ins(id),
                FOREIGN KEY (user_id) REFERENCES users(id)
            );
            """
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS email_signups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE,
                name TEXT,
                user_type TEXT,
                due_date TEXT,
                source TEXT NOT NULL DEFAULT 'landing_page',
                signup_date TEXT NOT NULL
            );
            """
        )

        conn.commit()


@contextmanager
def get_connection() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(_DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # Fixed precision keeps lexical ordering equal to chronological ordering.
    return to_utc(value).isoformat(timespec="microseconds")


def _row_to_dict(row: sqlite3.Row | None) -> dict:
    if row is None:
        return {}
    return {key: row[key] for key in row.keys()}


def _decode_json(data: dict, *fields: str) -> dict:
    for field in fields:
        raw = data.get(field)
        if isinstance(raw, str):
            try:
                data[field] = json.loads(raw)
            except json.JSONDecodeError:
                data[field] = {}
        elif raw is None:
            data[field] = {}
    return data


def _build_update(table: str, row_id: int, updates: Dict[str, Any], allowed: Iterable[str]) -> tuple[str, list]:
    allowed_set = set(allowed)
    columns = [key for key in updates if key in allowed_set]
    assignments = ", ".join(f"{column} = ?" for column in columns)
    params = [updates[column] for column in columns]
    params.append(row_id)
    return f"UPDATE {table} SET {assignments} WHERE id = ?", params


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

_USER_COLUMNS = (
    "name",
    "first_name",
    "last_name",
    "email",
    "user_type",
    "pregnancy_week",
    "pregnancy_stage",
    "due_date",
    "birth_date",
    "is_postpartum",
    "zip_code",
    "waitlist_user",
    "preferences",
    "ob_midwife_name",
    "ob_midwife_email",
    "doula_name",
    "doula_email",
)


def _row_to_user(row) -> User:
    return User.model_validate(_decode_json(_row_to_dict(row), "preferences"))


def _user_values(data: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in _USER_COLUMNS:
            continue
        if isinstance(value, datetime):
            value = to_iso(value)
        elif key == "preferences":
            value = json.dumps(value or {})
        elif hasattr(value, "value"):
            value = value.value
        elif isinstance(value, bool):
            value = int(value)
        values[key] = value
    return values


def insert_user(conn: sqlite3.Connection, data: Dict[str, Any]) -> User:
    values = _user_values(data)
    values.setdefault("preferences", "{}")
    values["created_at"] = to_iso(utc_now())
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    try:
        cursor = conn.execute(
            f"INSERT INTO users ({columns}) VALUES ({placeholders})",
            tuple(values.values()),
        )
    except sqlite3.IntegrityError as exc:
        raise ConflictError("An account with this email already exists") from exc
    row = conn.execute("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return _row_to_user(row)


def create_user(data: Dict[str, Any]) -> User:
    with get_connection() as conn:
        user = insert_user(conn, data)
        conn.commit()
    return user


def fetch_user(conn: sqlite3.Connection, user_id: int) -> Optional[User]:
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return _row_to_user(row) if row else None


def get_user(user_id: int) -> User:
    with get_connection() as conn:
        user = fetch_user(conn, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_email(email: str) -> Optional[User]:
    with get_connection() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE lower(email) = lower(?)", (email.strip(),)
        ).fetchone()
    return _row_to_user(row) if row else None


def update_user(conn: sqlite3.Connection, user_id: int, updates: Dict[str, Any]) -> User:
    values = _user_values(updates)
    values.pop("email", None)
    if values:
        sql, params = _build_update("users", user_id, values, _USER_COLUMNS)
        conn.execute(sql, params)
    user = fetch_user(conn, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users() -> List[User]:
    with get_connection() as conn:
        rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
    return [_row_to_user(row) for row in rows]


def list_mothers_with_providers() -> List[User]:
    with get_connection() as conn:
        rows = conn.execute(
            """
            SELECT * FROM users
            WHERE user_type = 'mother'
              AND (COALESCE(ob_midwife_email, '') != '' OR COALESCE(doula_email, '') != '')
            ORDER BY id
            """
        ).fetchall()
    return [_row_to_user(row) for row in rows]


# ---------------------------------------------------------------------------
# Check-ins
# ---------------------------------------------------------------------------


def _row_to_check_in(row) -> CheckIn:
    return CheckIn.model_validate(_row_to_dict(row))


def insert_check_in(
    conn: sqlite3.Connection,
    *,
    user_id: int,
    feeling: str,
    body_care: Optional[str],
    feeling_supported: Optional[str],
    notes: Optional[str],
    created_at: Optional[datetime] = None,
) -> CheckIn:
    cursor = conn.execute(
        """
        INSERT INTO check_ins (user_id, feeling, body_care, feeling_supported, notes, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (user_id, feeling, body_care, feeling_supported, notes, to_iso(created_at or utc_now())),
    )
    row = conn.execute("SELECT * FROM check_ins WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return _row_to_check_in(row)


def list_check_ins(user_id: int, *, newest_first: bool = False, limit: Optional[int] = None) -> List[CheckIn]:
    order = "DESC" if newest_first else "ASC"
    sql = f"SELECT * FROM check_ins WHERE user_id = ? ORDER BY created_at {order}, id {order}"
    params: list = [user_id]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_check_in(row) for row in rows]


def list_check_ins_since(user_id: int, since: datetime) -> List[CheckIn]:
    with get_connection() as conn:
        rows = conn.execute(
            """
            SELECT * FROM check_ins
            WHERE user_id = ? AND created_at >= ?
            ORDER BY created_at ASC, id ASC
            """,
            (user_id, to_iso(since)),
        ).fetchall()
    return [_row_to_check_in(row) for row in rows]


def get_todays_check_in(user_id: int, *, now: Optional[datetime] = None) -> Optional[CheckIn]:
    """Latest check-in inside the current UTC calendar day; ties resolve to the highest id."""
    current = to_utc(now or utc_now())
    start = current.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    with get_connection() as conn:
        row = conn.execute(
            """
            SELECT * FROM check_ins
            WHERE user_id = ? AND created_at >= ? AND created_at < ?
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (user_id, to_iso(start), to_iso(end)),
        ).fetchone()
    return _row_to_check_in(row) if row else None


# ---------------------------------------------------------------------------
# Journal + chat
# ---------------------------------------------------------------------------


def create_journal_entry(
    *, user_id: int, content: str, prompt: Optional[str] = None, pregnancy_week: Optional[int] = None
) -> JournalEntry:
    with get_connection() as conn:
        cursor = conn.execute(
            """
            INSERT INTO journal_entries (user_id, prompt, content, pregnancy_week, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, prompt, content, pregnancy_week, to_iso(utc_now())),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM journal_entries WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return JournalEntry.model_validate(_row_to_dict(row))


def list_journal_entries(user_id: int, *, newest_first: bool = False, limit: Optional[int] = None) -> List[JournalEntry]:
    order = "DESC" if newest_first else "ASC"
    sql = f"SELECT * FROM journal_entries WHERE user_id = ? ORDER BY created_at {order}, id {order}"
    params: list = [user_id]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [JournalEntry.model_validate(_row_to_dict(row)) for row in rows]


def create_chat_message(*, user_id: int, content: str, is_from_user: bool) -> ChatMessage:
    with get_connection() as conn:
        cursor = conn.execute(
            """
            INSERT INTO chat_messages (user_id, content, is_from_user, timestamp)
            VALUES (?, ?, ?, ?)
            """,
            (user_id, content, int(is_from_user), to_iso(utc_now())),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM chat_messages WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return ChatMessage.model_validate(_row_to_dict(row))


def list_chat_messages(user_id: int) -> List[ChatMessage]:
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT * FROM chat_messages WHERE user_id = ? ORDER BY timestamp ASC, id ASC",
            (user_id,),
        ).fetchall()
    return [ChatMessage.model_validate(_row_to_dict(row)) for row in rows]


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------

_APPOINTMENT_COLUMNS = (
    "title",
    "description",
    "type",
    "date",
    "time",
    "duration",
    "location",
    "provider_name",
    "provider_phone",
    "provider_email",
    "notes",
    "reminders",
    "source",
    "external_calendar_id",
    "is_external",
    "last_synced_at",
)


def _row_to_appointment(row) -> Appointment:
    return Appointment.model_validate(_row_to_dict(row))


def _appointment_values(data: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in _APPOINTMENT_COLUMNS:
            continue
        if isinstance(value, datetime):
            value = to_iso(value)
        elif isinstance(value, bool):
            value = int(value)
        values[key] = value
    return values


def insert_appointment(conn: sqlite3.Connection, user_id: int, data: Dict[str, Any]) -> Appointment:
    values = _appointment_values(data)
    values["user_id"] = user_id
    values["created_at"] = to_iso(utc_now())
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    cursor = conn.execute(
        f"INSERT INTO appointments ({columns}) VALUES ({placeholders})",
        tuple(values.values()),
    )
    row = conn.execute("SELECT * FROM appointments WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return _row_to_appointment(row)


def get_appointment(appointment_id: int) -> Appointment:
    with get_connection() as conn:
        row = conn.execute("SELECT * FROM appointments WHERE id = ?", (appointment_id,)).fetchone()
    if not row:
        raise NotFoundError("Appointment not found")
    return _row_to_appointment(row)


def list_appointments(user_id: int) -> List[Appointment]:
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT * FROM appointments WHERE user_id = ? ORDER BY date ASC, id ASC",
            (user_id,),
        ).fetchall()
    return [_row_to_appointment(row) for row in rows]


def list_upcoming_appointments(
    user_id: int, *, now: Optional[datetime] = None, limit: Optional[int] = None
) -> List[Appointment]:
    sql = "SELECT * FROM appointments WHERE user_id = ? AND date >= ? ORDER BY date ASC, id ASC"
    params: list = [user_id, to_iso(now or utc_now())]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_appointment(row) for row in rows]


def update_appointment(appointment_id: int, updates: Dict[str, Any]) -> Appointment:
    values = _appointment_values(updates)
    with get_connection() as conn:
        if values:
            sql, params = _build_update("appointments", appointment_id, values, _APPOINTMENT_COLUMNS)
            conn.execute(sql, params)
            conn.commit()
        row = conn.execute("SELECT * FROM appointments WHERE id = ?", (appointment_id,)).fetchone()
    if not row:
        raise NotFoundError("Appointment not found")
    return _row_to_appointment(row)


def delete_appointment(appointment_id: int) -> None:
    with get_connection() as conn:
        cursor = conn.execute("DELETE FROM appointments WHERE id = ?", (appointment_id,))
        conn.commit()
    if cursor.rowcount == 0:
        raise NotFoundError("Appointment not found")


def get_appointment_by_external_id(external_id: str, source: str) -> Optional[Appointment]:
    with get_connection() as conn:
        row = conn.execute(
            "SELECT * FROM appointments WHERE external_calendar_id = ? AND source = ? LIMIT 1",
            (external_id, source),
        ).fetchone()
    return _row_to_appointment(row) if row else None


# ---------------------------------------------------------------------------
# Community
# ---------------------------------------------------------------------------

_GROUP_COLUMNS = (
    "name",
    "description",
    "type",
    "zip_code",
    "city",
    "state",
    "address",
    "topic",
    "is_private",
    "created_by",
    "website",
    "contact_email",
    "contact_phone",
    "google_place_id",
    "rating",
    "is_external",
)


def _row_to_group(row) -> Group:
    return Group.model_validate(_row_to_dict(row))


def _join_group(conn: sqlite3.Connection, user_id: int, group_id: int, role: str = "member") -> bool:
    cursor = conn.execute(
        """
        INSERT OR IGNORE INTO memberships (user_id, group_id, role, joined_at)
        VALUES (?, ?, ?, ?)
        """,
        (user_id, group_id, role, to_iso(utc_now())),
    )
    if cursor.rowcount:
        conn.execute("UPDATE groups SET member_count = member_count + 1 WHERE id = ?", (group_id,))
        return True
    return False


def create_group(data: Dict[str, Any]) -> Group:
    values = {key: value for key, value in data.items() if key in _GROUP_COLUMNS}
    for key in ("is_private", "is_external"):
        if key in values:
            values[key] = int(bool(values[key]))
    values["created_at"] = to_iso(utc_now())
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    with get_connection() as conn:
        cursor = conn.execute(
            f"INSERT INTO groups ({columns}) VALUES ({placeholders})",
            tuple(values.values()),
        )
        group_id = cursor.lastrowid
        if values.get("created_by"):
            _join_group(conn, values["created_by"], group_id, role="admin")
        conn.commit()
        row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
    return _row_to_group(row)


def get_group(group_id: int) -> Group:
    with get_connection() as conn:
        row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
    if not row:
        raise NotFoundError("Group not found")
    return _row_to_group(row)


def find_group_by_place_id(place_id: str) -> Optional[Group]:
    with get_connection() as conn:
        row = conn.execute("SELECT * FROM groups WHERE google_place_id = ?", (place_id,)).fetchone()
    return _row_to_group(row) if row else None


def list_groups() -> List[Group]:
    with get_connection() as conn:
        rows = conn.execute("SELECT * FROM groups ORDER BY name ASC").fetchall()
    return [_row_to_group(row) for row in rows]


def list_user_group_ids(user_id: int) -> set[int]:
    with get_connection() as conn:
        rows = conn.execute("SELECT group_id FROM memberships WHERE user_id = ?", (user_id,)).fetchall()
    return {row["group_id"] for row in rows}


def list_user_groups(user_id: int) -> List[Group]:
    with get_connection() as conn:
        rows = conn.execute(
            """
            SELECT g.* FROM groups g
            JOIN memberships m ON m.group_id = g.id
            WHERE m.user_id = ?
            ORDER BY g.created_at ASC
            """,
            (user_id,),
        ).fetchall()
    return [_row_to_group(row) for row in rows]


def join_group(user_id: int, group_id: int) -> bool:
    get_group(group_id)
    with get_connection() as conn:
        joined = _join_group(conn, user_id, group_id)
        conn.commit()
    return joined


def leave_group(user_id: int, group_id: int) -> bool:
    with get_connection() as conn:
        cursor = conn.execute(
            "DELETE FROM memberships WHERE user_id = ? AND group_id = ?",
            (user_id, group_id),
        )
        if cursor.rowcount:
            conn.execute(
                "UPDATE groups SET member_count = MAX(member_count - 1, 0) WHERE id = ?",
                (group_id,),
            )
        conn.commit()
    return bool(cursor.rowcount)


def list_group_messages(group_id: int) -> List[GroupMessage]:
    with get_connection() as conn:
        rows = conn.execute(
            """
            SELECT gm.*, COALESCE(u.first_name, u.name) AS user_name
            FROM group_messages gm
            JOIN users u ON u.id = gm.user_id
            WHERE gm.group_id = ?
            ORDER BY gm.created_at ASC, gm.id ASC
            """,
            (group_id,),
        ).fetchall()
    return [GroupMessage.model_validate(_row_to_dict(row)) for row in rows]


def create_group_message(*, group_id: int, user_id: int, content: str, reply_to: Optional[int] = None) -> GroupMessage:
    with get_connection() as conn:
        cursor = conn.execute(
            """
            INSERT INTO group_messages (group_id, user_id, content, reply_to, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (group_id, user_id, content, reply_to, to_iso(utc_now())),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM group_messages WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return GroupMessage.model_validate(_row_to_dict(row))


def add_favorite(user_id: int, group_id: int) -> Favorite:
    with get_connection() as conn:
        conn.execute(
            "INSERT OR IGNORE INTO favorites (user_id, group_id, created_at) VALUES (?, ?, ?)",
            (user_id, group_id, to_iso(utc_now())),
        )
        conn.commit()
        row = conn.execute(
            "SELECT * FROM favorites WHERE user_id = ? AND group_id = ?", (user_id, group_id)
        ).fetchone()
    return Favorite.model_validate(_row_to_dict(row))


def remove_favorite(user_id: int, group_id: int) -> None:
    with get_connection() as conn:
        conn.execute("DELETE FROM favorites WHERE user_id = ? AND group_id = ?", (user_id, group_id))
        conn.commit()


def list_favorite_groups(user_id: int) -> List[Group]:
    with get_connection() as conn:
        rows = conn.execute(
            """
            SELECT g.* FROM groups g
            JOIN favorites f ON f.group_id = g.id
            WHERE f.user_id = ?
            ORDER BY g.name ASC
            """,
            (user_id,),
        ).fetchall()
    return [_row_to_group(row) for row in rows]


def is_favorited(user_id: int, group_id: int) -> bool:
    with get_connection() as conn:
        row = conn.execute(
            "SELECT 1 FROM favorites WHERE user_id = ? AND group_id = ? LIMIT 1",
            (user_id, group_id),
        ).fetchone()
    return bool(row)


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


def list_affirmations(pregnancy_stage: Optional[str] = None) -> List[Affirmation]:
    sql = "SELECT * FROM affirmations WHERE is_active = 1"
    params: list = []
    if pregnancy_stage:
        sql += " AND pregnancy_stage = ?"
        params.append(pregnancy_stage)
    sql += " ORDER BY id ASC"
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [Affirmation.model_validate(_row_to_dict(row)) for row in rows]


def list_experts(specialty: Optional[str] = None) -> List[Expert]:
    sql = "SELECT * FROM experts WHERE is_available = 1"
    params: list = []
    if specialty:
        sql += " AND specialty = ?"
        params.append(specialty)
    sql += " ORDER BY rating DESC, id ASC"
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [Expert.model_validate(_decode_json(_row_to_dict(row), "contact_info")) for row in rows]


def list_resources(
    *, pregnancy_stage: Optional[str] = None, category: Optional[str] = None, popular: bool = False
) -> List[Resource]:
    sql = "SELECT * FROM resources"
    clauses: List[str] = []
    params: list = []
    if popular:
        clauses.append("is_popular = 1")
    elif category:
        clauses.append("category = ?")
        params.append(category)
    elif pregnancy_stage:
        clauses.append("(pregnancy_stage = ? OR pregnancy_stage IS NULL)")
        params.append(pregnancy_stage)
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY id ASC"
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [Resource.model_validate(_row_to_dict(row)) for row in rows]


def list_partner_resources(category: Optional[str] = None) -> List[PartnerResource]:
    sql = "SELECT * FROM partner_resources"
    params: list = []
    if category:
        sql += " WHERE category = ?"
        params.append(category)
    sql += " ORDER BY sort_order ASC, id ASC"
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [PartnerResource.model_validate(_row_to_dict(row)) for row in rows]


def create_partner_progress(*, partner_id: int, resource_id: int) -> PartnerProgress:
    with get_connection() as conn:
        resource = conn.execute("SELECT 1 FROM partner_resources WHERE id = ?", (resource_id,)).fetchone()
        if not resource:
            raise NotFoundError("Partner resource not found")
        cursor = conn.execute(
            "INSERT INTO partner_progress (partner_id, resource_id, completed_at) VALUES (?, ?, ?)",
            (partner_id, resource_id, to_iso(utc_now())),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM partner_progress WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return PartnerProgress.model_validate(_row_to_dict(row))


def list_partner_progress(partner_id: int) -> List[PartnerProgress]:
    with get_connection() as conn:
        rows = conn.execute(
            "SELECT * FROM partner_progress WHERE partner_id = ? ORDER BY completed_at ASC",
            (partner_id,),
        ).fetchall()
    return [PartnerProgress.model_validate(_row_to_dict(row)) for row in rows]


# ---------------------------------------------------------------------------
# Partnerships
# ---------------------------------------------------------------------------

_PARTNERSHIP_MUTABLE = (
    "partner_id",
    "status",
    "invite_code",
    "expires_at",
    "redeemed_at",
    "accepted_at",
    "can_view_check_ins",
    "can_view_journal",
    "can_view_appointments",
    "can_view_resources",
)


def _row_to_partnership(row) -> Partnership:
    return Partnership.model_validate(_row_to_dict(row))


def insert_partnership(
    conn: sqlite3.Connection,
    *,
    mother_id: int,
    relationship_type: str,
    invite_code: str,
    expires_at: datetime,
    nickname: Optional[str] = None,
    can_view_check_ins: bool = True,
    can_view_journal: bool = False,
    can_view_appointments: bool = True,
    can_view_resources: bool = True,
) -> Partnership:
    cursor = conn.execute(
        """
        INSERT INTO partnerships (
            mother_id,
            relationship_type,
            nickname,
            status,
            invite_code,
            expires_at,
            can_view_check_ins,
            can_view_journal,
            can_view_appointments,
            can_view_resources,
            created_at
        )
        VALUES (?, ?, ?, 'pending', ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            mother_id,
            relationship_type,
            nickname,
            invite_code,
            to_iso(expires_at),
            int(can_view_check_ins),
            int(can_view_journal),
            int(can_view_appointments),
            int(can_view_resources),
            to_iso(utc_now()),
        ),
    )
    return fetch_partnership(conn, cursor.lastrowid)


def fetch_partnership(conn: sqlite3.Connection, partnership_id: int) -> Partnership:
    row = conn.execute("SELECT * FROM partnerships WHERE id = ?", (partnership_id,)).fetchone()
    if not row:
        raise NotFoundError("Partnership not found")
    return _row_to_partnership(row)


def fetch_partnership_by_code(conn: sqlite3.Connection, invite_code: str) -> Optional[Partnership]:
    row = conn.execute(
        "SELECT * FROM partnerships WHERE invite_code = ?", (invite_code.strip().upper(),)
    ).fetchone()
    return _row_to_partnership(row) if row else None


def invite_code_exists(conn: sqlite3.Connection, invite_code: str) -> bool:
    row = conn.execute("SELECT 1 FROM partnerships WHERE invite_code = ? LIMIT 1", (invite_code,)).fetchone()
    return bool(row)


def fetch_active_partnership_for_partner(conn: sqlite3.Connection, partner_id: int) -> Optional[Partnership]:
    row = conn.execute(
        """
        SELECT * FROM partnerships
        WHERE partner_id = ? AND status = ?
        ORDER BY accepted_at DESC, id DESC
        LIMIT 1
        """,
        (partner_id, PartnershipStatus.ACTIVE.value),
    ).fetchone()
    return _row_to_partnership(row) if row else None


def list_active_partnerships_for_mother(conn: sqlite3.Connection, mother_id: int) -> List[Partnership]:
    rows = conn.execute(
        "SELECT * FROM partnerships WHERE mother_id = ? AND status = ? ORDER BY id ASC",
        (mother_id, PartnershipStatus.ACTIVE.value),
    ).fetchall()
    return [_row_to_partnership(row) for row in rows]


def update_partnership(conn: sqlite3.Connection, partnership_id: int, updates: Dict[str, Any]) -> Partnership:
    values: Dict[str, Any] = {}
    for key, value in updates.items():
        if isinstance(value, datetime):
            value = to_iso(value)
        elif isinstance(value, PartnershipStatus):
            value = value.value
        elif isinstance(value, bool):
            value = int(value)
        values[key] = value
    if values:
        sql, params = _build_update("partnerships", partnership_id, values, _PARTNERSHIP_MUTABLE)
        conn.execute(sql, params)
    return fetch_partnership(conn, partnership_id)


def list_partnerships(*, mother_id: Optional[int] = None, partner_id: Optional[int] = None) -> List[Partnership]:
    clauses: List[str] = []
    params: list = []
    if mother_id is not None:
        clauses.append("mother_id = ?")
        params.append(mother_id)
    if partner_id is not None:
        clauses.append("partner_id = ?")
        params.append(partner_id)
    sql = "SELECT * FROM partnerships"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY created_at DESC, id DESC"
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_partnership(row) for row in rows]


# ---------------------------------------------------------------------------
# Partner updates
# ---------------------------------------------------------------------------


def _row_to_partner_update(row) -> PartnerUpdate:
    return PartnerUpdate.model_validate(_decode_json(_row_to_dict(row), "payload"))


def insert_partner_update(
    conn: sqlite3.Connection,
    *,
    partnership: Partnership,
    update_type: str,
    title: str,
    payload: Dict[str, Any],
    source_id: Optional[int] = None,
) -> PartnerUpdate:
    cursor = conn.execute(
        """
        INSERT INTO partner_updates (
            partnership_id, partner_id, mother_id, update_type, source_id, title, payload, is_read, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)
        """,
        (
            partnership.id,
            partnership.partner_id,
            partnership.mother_id,
            update_type,
            source_id,
            title,
            json.dumps(payload, default=str),
            to_iso(utc_now()),
        ),
    )
    row = conn.execute("SELECT * FROM partner_updates WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return _row_to_partner_update(row)


def list_partner_updates(partner_id: int) -> List[PartnerUpdate]:
    """Updates visible to the partner: only those whose partnership is still active."""
    with get_connection() as conn:
        rows = conn.execute(
            """
            SELECT pu.* FROM partner_updates pu
            JOIN partnerships p ON p.id = pu.partnership_id
            WHERE pu.partner_id = ? AND p.status = ? AND p.partner_id = pu.partner_id
            ORDER BY pu.created_at DESC, pu.id DESC
            """,
            (partner_id, PartnershipStatus.ACTIVE.value),
        ).fetchall()
    return [_row_to_partner_update(row) for row in rows]


def mark_partner_update_read(update_id: int) -> PartnerUpdate:
    with get_connection() as conn:
        conn.execute("UPDATE partner_updates SET is_read = 1 WHERE id = ?", (update_id,))
        conn.commit()
        row = conn.execute("SELECT * FROM partner_updates WHERE id = ?", (update_id,)).fetchone()
    if not row:
        raise NotFoundError("Partner update not found")
    return _row_to_partner_update(row)


# ---------------------------------------------------------------------------
# Notification outbox
# ---------------------------------------------------------------------------


def _row_to_notification(row) -> NotificationIntent:
    return NotificationIntent.model_validate(_row_to_dict(row))


def insert_notification(
    conn: sqlite3.Connection,
    *,
    kind: str,
    recipient: str,
    subject: str,
    html: str,
    text: Optional[str] = None,
    provider_role: Optional[str] = None,
    check_in_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> NotificationIntent:
    cursor = conn.execute(
        """
        INSERT INTO notification_outbox (
            kind, recipient, provider_role, subject, html, text, check_in_id, user_id,
            status, attempts, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', 0, ?)
        """,
        (kind, recipient, provider_role, subject, html, text, check_in_id, user_id, to_iso(utc_now())),
    )
    row = conn.execute("SELECT * FROM notification_outbox WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return _row_to_notification(row)


def fetch_drainable_notifications(conn: sqlite3.Connection, *, limit: int, max_attempts: int) -> List[NotificationIntent]:
    rows = conn.execute(
        """
        SELECT * FROM notification_outbox
        WHERE status = ? OR (status = ? AND attempts < ?)
        ORDER BY id ASC
        LIMIT ?
        """,
        (NotificationStatus.PENDING.value, NotificationStatus.FAILED.value, max_attempts, limit),
    ).fetchall()
    return [_row_to_notification(row) for row in rows]


def claim_notification(conn: sqlite3.Connection, notification_id: int, *, max_attempts: int) -> bool:
    """Move a drainable intent to `sending` and count the attempt.

    Returns False when another drain already claimed the row or it is no longer
    drainable. Only the caller that gets True may send it.
    """
    cursor = conn.execute(
        """
        UPDATE notification_outbox
        SET status = ?, attempts = attempts + 1
        WHERE id = ? AND (status = ? OR (status = ? AND attempts < ?))
        """,
        (
            NotificationStatus.SENDING.value,
            notification_id,
            NotificationStatus.PENDING.value,
            NotificationStatus.FAILED.value,
            max_attempts,
        ),
    )
    return cursor.rowcount == 1


def record_notification_attempt(
    conn: sqlite3.Connection, notification_id: int, *, sent: bool, error: Optional[str] = None
) -> None:
    status = NotificationStatus.SENT if sent else NotificationStatus.FAILED
    conn.execute(
        """
        UPDATE notification_outbox
        SET status = ?, last_error = ?, sent_at = ?
        WHERE id = ? AND status = ?
        """,
        (
            status.value,
            error,
            to_iso(utc_now()) if sent else None,
            notification_id,
            NotificationStatus.SENDING.value,
        ),
    )


def list_notifications(*, check_in_id: Optional[int] = None, user_id: Optional[int] = None) -> List[NotificationIntent]:
    clauses: List[str] = []
    params: list = []
    if check_in_id is not None:
        clauses.append("check_in_id = ?")
        params.append(check_in_id)
    if user_id is not None:
        clauses.append("user_id = ?")
        params.append(user_id)
    sql = "SELECT * FROM notification_outbox"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY id ASC"
    with get_connection() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_notification(row) for row in rows]


# ---------------------------------------------------------------------------
# Signups + admin
# ---------------------------------------------------------------------------


def create_email_signup(
    *,
    email: str,
    name: Optional[str] = None,
    user_type: Optional[str] = None,
    due_date: Optional[str] = None,
    source: str = "landing_page",
) -> EmailSignup:
    with get_connection() as conn:
        try:
            cursor = conn.execute(
                """
                INSERT INTO email_signups (email, name, user_type, due_date, source, signup_date)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (email.strip().lower(), name, user_type, due_date, source, to_iso(utc_now())),
            )
        except sqlite3.IntegrityError as exc:
            raise ConflictError("Email already registered") from exc
        conn.commit()
        row = conn.execute("SELECT * FROM email_signups WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return EmailSignup.model_validate(_row_to_dict(row))


def list_email_signups() -> List[EmailSignup]:
    with get_connection() as conn:
        rows = conn.execute("SELECT * FROM email_signups ORDER BY signup_date DESC, id DESC").fetchall()
    return [EmailSignup.model_validate(_row_to_dict(row)) for row in rows]


def admin_counts() -> dict:
    with get_connection() as conn:
        total_users = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
        active_pregnancies = conn.execute(
            """
            SELECT COUNT(*) FROM users
            WHERE user_type = 'mother' AND is_postpartum = 0 AND pregnancy_stage IS NOT NULL
            """
        ).fetchone()[0]
        waitlist_count = conn.execute("SELECT COUNT(*) FROM users WHERE waitlist_user = 1").fetchone()[0]
        red_flags = conn.execute(
            """
            SELECT COUNT(DISTINCT check_in_id) FROM notification_outbox
            WHERE kind IN ('red_flag_alert', 'pain_alert') AND check_in_id IS NOT NULL
            """
        ).fetchone()[0]
    return {
        "total_users": total_users,
        "active_pregnancies": active_pregnancies,
        "red_flags": red_flags,
        "waitlist_count": waitlist_count,
    }
