from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks

from ..checkins import check_in_trends, record_check_in
from ..db import get_todays_check_in, list_check_ins
from ..outbox import drain_outbox
from ..schemas import CheckIn, CreateCheckInPayload

router = APIRouter(prefix="/api", tags=["check-ins"])


@router.get("/checkin/{user_id}", response_model=List[CheckIn])
async def list_check_ins_endpoint(user_id: int) -> List[CheckIn]:
    return list_check_ins(user_id, newest_first=True)


@router.get("/checkin/today/{user_id}", response_model=Optional[CheckIn])
async def todays_check_in_endpoint(user_id: int) -> Optional[CheckIn]:
    return get_todays_check_in(user_id)


@router.post("/checkin", response_model=CheckIn)
async def create_check_in_endpoint(payload: CreateCheckInPayload, background_tasks: BackgroundTasks) -> CheckIn:
    check_in = record_check_in(payload)
    # Alerts are sent after the response; delivery problems never fail the check-in.
    background_tasks.add_task(drain_outbox)
    return check_in


@router.get("/checkins/trends/{user_id}", response_model=List[CheckIn])
async def check_in_trends_endpoint(user_id: int) -> List[CheckIn]:
    return check_in_trends(user_id)
