from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.passwords import verify_password
from ..config import get_settings
from ..models import USER_TYPES, User
from ..observability.metrics import USERS_CREATED
from ..repos import users as users_repo
from .errors import Conflict, InvalidInput
from .otp_workflow import is_email, is_non_empty, normalize_email
from .uploads import IMAGE_TYPES, has_file, save_upload

S = get_settings()
log = logging.getLogger("alumnet.accounts")


async def register(
    db: AsyncSession,
    *,
    username: Any,
    email: Any,
    password: Any,
    user_type: Any,
) -> User:
    """Direct sign-up without an OTP round trip."""
    if not (is_non_empty(username) and is_email(email) and is_non_empty(password) and is_non_empty(user_type)):
        raise InvalidInput("Missing or invalid fields")
    if user_type not in USER_TYPES:
        raise InvalidInput("Invalid userType")

    email_norm = normalize_email(email)
    if await users_repo.get_by_email(db, email_norm):
        raise Conflict("Email already in use")

    try:
        user = await users_repo.create_user(
            db, username=username, email=email_norm, password=password, user_type=user_type
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Email already in use")

    USERS_CREATED.labels(via="direct").inc()
    log.info("user_created", extra={"user_id": str(user.id), "user_type": user.user_type})
    return user


async def authenticate(db: AsyncSession, *, email: Any, password: Any) -> User:
    if not is_email(email) or not is_non_empty(password):
        raise InvalidInput("Missing credentials")

    user = await users_repo.get_by_email(db, normalize_email(email))
    if not user or not verify_password(password, user.password_hash):
        raise InvalidInput("Invalid credentials")
    return user


async def _store_avatar(user: User, file: Optional[UploadFile]) -> Optional[str]:
    if not has_file(file):
        return None
    stored = await save_upload(
        file,
        owner=str(user.id),
        allowed_prefixes=IMAGE_TYPES,
        max_bytes=S.AVATAR_MAX_BYTES,
        rejected_message="Only image files allowed",
    )
    return stored.url


async def complete_onboarding(
    db: AsyncSession,
    user: User,
    *,
    profile_pic: Optional[UploadFile] = None,
    current_company: Optional[str] = None,
    current_position: Optional[str] = None,
    about: Optional[str] = None,
    batch: Optional[str] = None,
    department: Optional[str] = None,
) -> User:
    # role decides which fields are accepted; the others are ignored
    pic_url = await _store_avatar(user, profile_pic)
    if pic_url:
        user.profile_pic = pic_url

    if user.user_type == "alumni":
        await users_repo.update_profile(
            db, user, current_company=current_company, current_position=current_position, about=about
        )
    elif user.user_type == "student":
        await users_repo.update_profile(db, user, batch=batch, department=department)

    user.onboarded = True
    await db.commit()
    log.info("onboarding_completed", extra={"user_id": str(user.id)})
    return user


async def update_profile(
    db: AsyncSession,
    user: User,
    *,
    avatar: Optional[UploadFile] = None,
    name: Optional[str] = None,
    role: Optional[str] = None,
    batch: Optional[str] = None,
    location: Optional[str] = None,
    bio: Optional[str] = None,
) -> User:
    await users_repo.update_profile(
        db, user, username=name, current_position=role, batch=batch, location=location, about=bio
    )
    pic_url = await _store_avatar(user, avatar)
    if pic_url:
        user.profile_pic = pic_url
    await db.commit()
    return user
