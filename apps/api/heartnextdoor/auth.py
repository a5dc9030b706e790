from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Header, HTTPException

from .config import CONFIG

_ALGORITHM = "HS256"


@dataclass
class AuthContext:
    user_id: int
    email: Optional[str]
    token: str


def _parse_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization token.")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization token.")
    return parts[1]


def issue_access_token(user_id: int, email: Optional[str] = None) -> tuple[str, datetime]:
    expires_at = datetime.now(tz=timezone.utc) + timedelta(minutes=CONFIG.access_token_ttl_minutes)
    claims: Dict[str, Any] = {"sub": str(user_id), "exp": expires_at}
    if email:
        claims["email"] = email
    token = jwt.encode(claims, CONFIG.jwt_secret, algorithm=_ALGORITHM)
    return token, expires_at


def _verify_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, CONFIG.jwt_secret, algorithms=[_ALGORITHM])
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid or expired token.") from exc


async def get_auth_context(
    authorization: Optional[str] = Header(default=None),
) -> AuthContext:
    token = _parse_bearer_token(authorization)
    claims = _verify_access_token(token)
    subject = claims.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Token missing user id.") from exc
    return AuthContext(user_id=user_id, email=claims.get("email"), token=token)
