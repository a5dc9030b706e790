from __future__ import annotations

from typing import List

from fastapi import APIRouter, BackgroundTasks, Query

from ..db import admin_counts, list_users
from ..outbox import DEFAULT_DRAIN_LIMIT, drain_outbox
from ..red_flags import queue_weekly_summaries
from ..schemas import AdminStats, AdminUser, OutboxDrainResult, WeeklySummaryResult

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStats)
async def admin_stats_endpoint() -> AdminStats:
    return AdminStats(**admin_counts())


@router.get("/users", response_model=List[AdminUser])
async def admin_users_endpoint() -> List[AdminUser]:
    return [
        AdminUser(
            id=user.id,
            name=user.name,
            email=user.email,
            pregnancy_stage=user.pregnancy_stage,
            user_type=user.user_type,
            created_at=user.created_at,
            waitlist_user=user.waitlist_user,
        )
        for user in list_users()
    ]


@router.post("/outbox/drain", response_model=OutboxDrainResult)
def drain_outbox_endpoint(limit: int = Query(DEFAULT_DRAIN_LIMIT, ge=1, le=500)) -> OutboxDrainResult:
    return drain_outbox(limit=limit)


@router.post("/weekly-summaries", response_model=WeeklySummaryResult)
async def weekly_summaries_endpoint(background_tasks: BackgroundTasks) -> WeeklySummaryResult:
    queued = queue_weekly_summaries()
    background_tasks.add_task(drain_outbox)
    return WeeklySummaryResult(queued=queued)
