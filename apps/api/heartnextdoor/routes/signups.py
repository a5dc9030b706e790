from __future__ import annotations

from typing import List

from fastapi import APIRouter

from ..db import create_email_signup, list_email_signups
from ..schemas import CreateEmailSignupPayload, EmailSignup

router = APIRouter(prefix="/api", tags=["signups"])


@router.post("/email-signups", response_model=EmailSignup)
async def create_signup_endpoint(payload: CreateEmailSignupPayload) -> EmailSignup:
    return create_email_signup(
        email=payload.email,
        name=payload.name,
        user_type=payload.user_type,
        due_date=payload.due_date,
        source=payload.source or "landing_page",
    )


@router.get("/email-signups", response_model=List[EmailSignup])
async def list_signups_endpoint() -> List[EmailSignup]:
    return list_email_signups()
