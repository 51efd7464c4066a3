from __future__ import annotations
import uuid
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ..models import User
from ..auth.passwords import hash_password


async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    res = await db.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()


async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
    # callers pass the normalized (trimmed, lower-cased) address
    res = await db.execute(select(User).where(User.email == email))
    return res.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
    user_type: str,
) -> User:
    user = User(
        username=username.strip(),
        email=email,
        password_hash=hash_password(password),
        user_type=user_type,
    )
    db.add(user)
    await db.flush()
    return user


async def update_profile(db: AsyncSession, user: User, **fields: Optional[str]) -> User:
    """Set only the non-empty fields; values are trimmed."""
    changed = False
    for name, value in fields.items():
        if value is None:
            continue
        value = str(value).strip()
        if value and getattr(user, name) != value:
            setattr(user, name, value)
            changed = True
    if changed:
        await db.flush()
    return user
