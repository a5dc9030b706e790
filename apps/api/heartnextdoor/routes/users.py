from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from ..auth import issue_access_token
from ..db import get_user, get_user_by_email
from ..errors import NotFoundError
from ..schemas import CreateUserPayload, TokenRequest, TokenResponse, UpdateUserPayload, User
from ..users import register_user, update_profile

router = APIRouter(prefix="/api", tags=["users"])
logger = logging.getLogger(__name__)


@router.post("/users", response_model=User)
async def create_user_endpoint(payload: CreateUserPayload) -> User:
    return register_user(payload)


@router.get("/users/email/{email}", response_model=User)
async def get_user_by_email_endpoint(email: str) -> User:
    user = get_user_by_email(email)
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("/users/{user_id}", response_model=User)
async def get_user_endpoint(user_id: int) -> User:
    return get_user(user_id)


@router.put("/users/{user_id}", response_model=User)
async def update_user_endpoint(user_id: int, payload: UpdateUserPayload) -> User:
    if not payload.model_fields_set:
        raise HTTPException(status_code=400, detail="No update data provided")
    return update_profile(user_id, payload)


@router.post("/auth/token", response_model=TokenResponse)
async def issue_token_endpoint(payload: TokenRequest) -> TokenResponse:
    """Exchange a known user id + email for a bearer token."""
    try:
        user = get_user(payload.user_id)
    except NotFoundError:
        user = None
    if not user or user.email.lower() != payload.email.strip().lower():
        raise HTTPException(status_code=401, detail="Unknown user or email.")
    token, expires_at = issue_access_token(user.id, user.email)
    logger.info("access token issued", extra={"user_id": user.id})
    return TokenResponse(access_token=token, expires_at=expires_at)
