"""Default content loaded once at deploy time.

Each table is filled only when it is empty, so running this repeatedly is safe.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List

from .db import get_connection, initialize_db, to_iso, utc_now

logger = logging.getLogger(__name__)

DEFAULT_AFFIRMATIONS = [
    ("I am exactly where I need to be in my journey. I trust in divine timing.", "trying_to_conceive"),
    ("My body is capable and wise. I honor my journey with patience and self-love.", "trying_to_conceive"),
    ("I release worry and embrace hope. Each day is a gift of possibility.", "trying_to_conceive"),
    ("I am creating a beautiful life for myself right now. My body knows how to nurture and protect my baby.", "first"),
    ("I am strong, capable, and surrounded by love. My body knows how to nurture and protect my baby.", "second"),
    ("I trust my body and my instincts. I am prepared for this beautiful journey.", "third"),
    ("Each day brings me closer to meeting my baby. I am excited and ready.", "third"),
    ("I am healing and growing stronger every day. My body is amazing.", "postpartum"),
]

DEFAULT_EXPERTS: List[Dict[str, Any]] = [
    {
        "name": "Dr. Sarah Johnson",
        "title": "Certified Doula",
        "specialty": "doula",
        "rating": 5,
        "review_count": 127,
        "bio": "Experienced doula with over 10 years supporting families through pregnancy and birth.",
        "contact_info": {"email": "sarah@example.com", "phone": "+1-555-0123"},
    },
    {
        "name": "Lisa Martinez",
        "title": "Lactation Consultant",
        "specialty": "lactation",
        "rating": 5,
        "review_count": 89,
        "bio": "Certified lactation consultant helping new mothers with breastfeeding challenges.",
        "contact_info": {"email": "lisa@example.com", "phone": "+1-555-0456"},
    },
]

DEFAULT_RESOURCES: List[Dict[str, Any]] = [
    {
        "title": "Preparing for Labor",
        "description": "Everything you need to know about labor and delivery",
        "type": "video",
        "duration": "12 min",
        "pregnancy_stage": "second",
        "category": "labor",
        "is_popular": True,
    },
    {
        "title": "Nutrition During Pregnancy",
        "description": "Essential nutrition guidelines for expecting mothers",
        "type": "article",
        "duration": "5 min read",
        "pregnancy_stage": "second",
        "category": "nutrition",
        "is_popular": True,
    },
    {
        "title": "Sleep Tips for Pregnancy",
        "description": "How to get better sleep during pregnancy",
        "type": "guide",
        "duration": "8 min read",
        "pregnancy_stage": "second",
        "category": "sleep",
        "is_popular": False,
    },
]

DEFAULT_PARTNER_RESOURCES = [
    (
        "Understanding Pregnancy: A Partner's Guide",
        "Essential information for partners supporting their pregnant loved one",
        "understanding_pregnancy",
    ),
    ("Supporting Your Partner During Labor", "Practical tips for being the best birth partner", "supporting_labor"),
    (
        "Effective Communication During Pregnancy",
        "How to communicate effectively during this emotional time",
        "communication",
    ),
    (
        "Postpartum Support: What Partners Need to Know",
        "Supporting your partner through the fourth trimester",
        "postpartum_support",
    ),
]

DEFAULT_GROUPS: List[Dict[str, Any]] = [
    {
        "name": "The Mom Wellness Cave",
        "description": "Detroit community supporting mothers' mental, emotional and spiritual wellbeing.",
        "zip_code": "48228",
        "topic": "wellness",
        "website": "https://www.themomwellnesscave.com",
    },
    {
        "name": "Black Mothers Breastfeeding Association",
        "description": "Breastfeeding support, community doulas and peer counselors for Black families.",
        "topic": "breastfeeding",
        "website": "https://blackmothersbreastfeeding.org",
        "contact_phone": "(800) 313-6141",
    },
    {
        "name": "Brilliant Detroit",
        "description": "Neighborhood hubs offering free programs for families with children ages 0-8.",
        "zip_code": "48228",
        "topic": "wellness",
        "website": "https://brilliantdetroit.org",
        "contact_phone": "(313) 406-3275",
    },
    {
        "name": "Birth Detroit",
        "description": "Community birth center providing midwifery-led prenatal and postpartum care.",
        "topic": "birth_center",
        "website": "https://www.birthdetroit.com",
        "contact_phone": "(313) 977-0962",
    },
    {
        "name": "The Luke Clinic",
        "description": "Free prenatal and infant care for uninsured and underinsured families.",
        "topic": "healthcare",
        "website": "https://www.thelukeclinic.org",
        "contact_phone": "(313) 789-7862",
    },
    {
        "name": "Remembering Cherubs",
        "description": "Pregnancy and infant loss support with a care concierge service.",
        "topic": "loss_support",
        "website": "https://www.rememberingcherubs.org",
        "contact_phone": "(313) 617-9254",
    },
]


def _is_empty(conn: sqlite3.Connection, table: str) -> bool:
    return conn.execute(f"SELECT 1 FROM {table} LIMIT 1").fetchone() is None


def seed_defaults() -> Dict[str, int]:
    """Insert default content into empty tables; returns rows inserted per table."""
    inserted = {"affirmations": 0, "experts": 0, "resources": 0, "partner_resources": 0, "groups": 0}
    with get_connection() as conn:
        if _is_empty(conn, "affirmations"):
            conn.executemany(
                "INSERT INTO affirmations (content, pregnancy_stage, is_active) VALUES (?, ?, 1)",
                DEFAULT_AFFIRMATIONS,
            )
            inserted["affirmations"] = len(DEFAULT_AFFIRMATIONS)

        if _is_empty(conn, "experts"):
            conn.executemany(
                """
                INSERT INTO experts (name, title, specialty, rating, review_count, bio, contact_info, is_available)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1)
                """,
                [
                    (
                        expert["name"],
                        expert["title"],
                        expert["specialty"],
                        expert["rating"],
                        expert["review_count"],
                        expert["bio"],
                        json.dumps(expert["contact_info"]),
                    )
                    for expert in DEFAULT_EXPERTS
                ],
            )
            inserted["experts"] = len(DEFAULT_EXPERTS)

        if _is_empty(conn, "resources"):
            conn.executemany(
                """
                INSERT INTO resources (title, description, type, duration, pregnancy_stage, category, url, is_popular)
                VALUES (?, ?, ?, ?, ?, ?, '#', ?)
                """,
                [
                    (
                        item["title"],
                        item["description"],
                        item["type"],
                        item["duration"],
                        item["pregnancy_stage"],
                        item["category"],
                        int(item["is_popular"]),
                    )
                    for item in DEFAULT_RESOURCES
                ],
            )
            inserted["resources"] = len(DEFAULT_RESOURCES)

        if _is_empty(conn, "partner_resources"):
            conn.executemany(
                "INSERT INTO partner_resources (title, description, category, sort_order) VALUES (?, ?, ?, ?)",
                [
                    (title, description, category, index)
                    for index, (title, description, category) in enumerate(DEFAULT_PARTNER_RESOURCES, start=1)
                ],
            )
            inserted["partner_resources"] = len(DEFAULT_PARTNER_RESOURCES)

        if _is_empty(conn, "groups"):
            created_at = to_iso(utc_now())
            conn.executemany(
                """
                INSERT INTO groups (
                    name, description, type, zip_code, city, state, topic, website, contact_phone,
                    is_private, member_count, is_external, created_at
                )
                VALUES (?, ?, 'resource', ?, 'Detroit', 'MI', ?, ?, ?, 0, 0, 1, ?)
                """,
                [
                    (
                        group["name"],
                        group["description"],
                        group.get("zip_code"),
                        group["topic"],
                        group.get("website"),
                        group.get("contact_phone"),
                        created_at,
                    )
                    for group in DEFAULT_GROUPS
                ],
            )
            inserted["groups"] = len(DEFAULT_GROUPS)

        conn.commit()
    logger.info("seed complete", extra=inserted)
    return inserted


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    initialize_db()
    counts = seed_defaults()
    print(", ".join(f"{table}={count}" for table, count in counts.items()))


if __name__ == "__main__":
    main()
