from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import OtpVerification


async def delete_for_email(db: AsyncSession, email: str) -> int:
    res = await db.execute(delete(OtpVerification).where(OtpVerification.email == email))
    return res.rowcount or 0


async def insert(db: AsyncSession, *, email: str, code: str, expires_at: datetime) -> OtpVerification:
    rec = OtpVerification(email=email, code=code, expires_at=expires_at, attempts=0)
    db.add(rec)
    await db.flush()
    return rec


async def latest_for_email(db: AsyncSession, email: str) -> Optional[OtpVerification]:
    # most recently created wins; id breaks created_at ties
    res = await db.execute(
        select(OtpVerification)
        .where(OtpVerification.email == email)
        .order_by(OtpVerification.created_at.desc(), OtpVerification.id.desc())
        .limit(1)
    )
    return res.scalar_one_or_none()


async def increment_attempts(db: AsyncSession, otp_id: int) -> Optional[int]:
    """Atomic attempts += 1; returns the new count, or None if the row is gone."""
    res = await db.execute(
        update(OtpVerification)
        .where(OtpVerification.id == otp_id)
        .values(attempts=OtpVerification.attempts + 1)
        .returning(OtpVerification.attempts)
        .execution_options(synchronize_session=False)
    )
    return res.scalar_one_or_none()


async def delete_by_id(db: AsyncSession, otp_id: int) -> bool:
    res = await db.execute(delete(OtpVerification).where(OtpVerification.id == otp_id))
    return bool(res.rowcount)


async def purge_expired(db: AsyncSession, *, now: datetime, batch: int = 500) -> int:
    ids = (
        await db.execute(
            select(OtpVerification.id)
            .where(OtpVerification.expires_at <= now)
            .order_by(OtpVerification.expires_at.asc())
            .limit(batch)
        )
    ).scalars().all()
    if not ids:
        return 0
    res = await db.execute(delete(OtpVerification).where(OtpVerification.id.in_(ids)))
    return res.rowcount or 0
