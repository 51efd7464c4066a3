from __future__ import annotations
import uuid
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..db import get_db
from ..models import User
from ..repos import users as users_repo
from .jwt import verify_jwt

S = get_settings()


def _cookie_opts(request: Request) -> dict:
    host = request.url.hostname or ""
    on_localhost = host in {"localhost", "127.0.0.1", "::1"}
    return {
        "key": S.SESSION_COOKIE_NAME,
        "httponly": True,
        "secure": S.is_production and not on_localhost,
        "samesite": "lax",
        "max_age": S.JWT_EXPIRE_MINUTES * 60,
        "path": "/",
    }


def extract_token(request: Request) -> Optional[str]:
    """Bearer header (or raw token), ?token= query param, then the session cookie."""
    raw = request.headers.get("authorization") or request.query_params.get("token")
    if raw:
        return raw[7:].strip() if raw.startswith("Bearer ") else raw.strip()
    return request.cookies.get(S.SESSION_COOKIE_NAME)


def _user_id_from_token(token: str) -> uuid.UUID:
    try:
        claims = verify_jwt(token)
        return uuid.UUID(str(claims["sub"]))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    token = extract_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization required")

    user = await users_repo.get_by_id(db, _user_id_from_token(token))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def get_optional_user(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[User]:
    # anonymous callers are allowed; a bad token just means anonymous
    token = extract_token(request)
    if not token:
        return None
    try:
        user_id = _user_id_from_token(token)
    except HTTPException:
        return None
    return await users_repo.get_by_id(db, user_id)
