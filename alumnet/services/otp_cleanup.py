from __future__ import annotations
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession

from ..repos import otps as otps_repo
from ..observability.metrics import OTP_SWEPT


async def purge_expired_otps(db: AsyncSession, *, batch: int = 500, now: datetime | None = None) -> int:
    """
    Delete at most `batch` OTP records whose expires_at <= now, oldest expiry
    first. Plays the part of a TTL index; verification still checks expiry on
    its own. Returns the number of rows removed.
    """
    now = now or datetime.now(timezone.utc)
    removed = await otps_repo.purge_expired(db, now=now, batch=batch)
    await db.commit()
    if removed:
        OTP_SWEPT.inc(removed)
    return removed
