from __future__ import annotations
import asyncio
import logging

from ..config import get_settings
from ..db import SessionLocal
from ..redis_client import redis
from ..services.otp_cleanup import purge_expired_otps
from ..observability.heartbeat import beat
from ..observability.logging import setup_logging

S = get_settings()
log = logging.getLogger("worker.otp_sweeper")

def _lock_key() -> str: return "lock:otp_sweeper"

async def _acquire_lock() -> bool:
    # Only one instance performs the sweep; others idle
    return await redis.set(_lock_key(), "1", ex=S.OTP_SWEEP_LOCK_TTL_SEC, nx=True) is True

async def run_once() -> int:
    # Acquire short lock; if taken, just skip this tick
    if not await _acquire_lock():
        return 0
    async with SessionLocal() as db:
        removed = await purge_expired_otps(db, batch=S.OTP_SWEEP_BATCH)
    if removed:
        log.info("purged %d expired otp records", removed)
    return removed

async def run_forever():
    # heartbeat for ops
    asyncio.create_task(beat("hb:otp_sweeper"))
    while True:
        try:
            await run_once()
        except Exception as e:
            log.exception("otp_sweeper error: %s", e)
        await asyncio.sleep(S.OTP_SWEEP_INTERVAL_SEC)

def main():
    setup_logging()
    asyncio.run(run_forever())

if __name__ == "__main__":
    main()
