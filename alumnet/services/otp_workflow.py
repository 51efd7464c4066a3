"""
Email OTP issuance and verification.

A code is issued per normalized address (any earlier codes for that address
are deleted in the same transaction), then verified at most
``OTP_MAX_ATTEMPTS`` times before it is burned. Each record ends in exactly one
terminal state: expired, rate-limited, or consumed. A successful verification
optionally creates the account in the same call.
"""
from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import issue_user_token
from ..config import get_settings
from ..models import USER_TYPES, User
from ..observability.metrics import OTP_DELIVERY_FAILURES, OTP_ISSUED, OTP_VERIFY, USERS_CREATED
from ..repos import otps as otps_repo
from ..repos import users as users_repo
from .errors import Conflict, Expired, InternalError, InvalidCode, InvalidInput, RateLimited, WorkflowError

S = get_settings()
log = logging.getLogger("alumnet.otp")

MAX_EMAIL_LEN = 320


class Notifier(Protocol):
    async def send_otp_email(self, to: str, code: str, *, expire_minutes: int) -> bool: ...


@dataclass
class IssueResult:
    delivered: bool
    # only set outside production when delivery failed
    dev_code: Optional[str] = None


@dataclass
class VerifyResult:
    user: Optional[User] = None
    token: Optional[str] = None

    @property
    def registered(self) -> bool:
        return self.user is not None


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    # sqlite hands back naive datetimes
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def is_email(value: Any) -> bool:
    return isinstance(value, str) and "@" in value and len(value) < MAX_EMAIL_LEN


def is_non_empty(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def normalize_email(value: str) -> str:
    return value.strip().lower()


def generate_code() -> str:
    # uniform over [100000, 999999]
    return str(100000 + secrets.randbelow(900000))


async def issue_code(db: AsyncSession, email: Any, *, notifier: Notifier) -> IssueResult:
    if not is_email(email):
        raise InvalidInput("Invalid email")
    email_norm = normalize_email(email)
    code = generate_code()
    expires_at = _now_utc() + timedelta(minutes=S.OTP_EXPIRE_MIN)

    try:
        # replace-on-issue: earlier codes for this address die with the new insert
        await otps_repo.delete_for_email(db, email_norm)
        await otps_repo.insert(db, email=email_norm, code=code, expires_at=expires_at)
        await db.commit()
    except Exception as e:
        await db.rollback()
        log.exception("otp_issue_failed", extra={"email": email_norm})
        raise InternalError("Failed to generate OTP") from e

    OTP_ISSUED.inc()
    log.info("otp_issued", extra={"email": email_norm, "expires_at": expires_at.isoformat()})

    delivered = False
    try:
        delivered = await notifier.send_otp_email(email_norm, code, expire_minutes=S.OTP_EXPIRE_MIN)
    except Exception:
        log.exception("otp_delivery_error", extra={"email": email_norm})

    if delivered:
        return IssueResult(delivered=True)

    OTP_DELIVERY_FAILURES.inc()
    log.warning("otp_not_delivered", extra={"email": email_norm})
    if S.is_production:
        return IssueResult(delivered=False)
    return IssueResult(delivered=False, dev_code=code)


async def verify_code(
    db: AsyncSession,
    email: Any,
    otp: Any,
    *,
    username: Any = None,
    password: Any = None,
    user_type: Any = None,
) -> VerifyResult:
    submitted = "" if otp is None else str(otp).strip()
    if not is_email(email) or not submitted:
        raise InvalidInput("Missing email or otp")
    email_norm = normalize_email(email)

    try:
        await _consume(db, email_norm, submitted)
        return await _resolve_account(db, email_norm, username, password, user_type)
    except WorkflowError:
        raise
    except Exception as e:
        await db.rollback()
        log.exception("otp_verify_failed", extra={"email": email_norm})
        raise InternalError("OTP verification failed") from e


async def _consume(db: AsyncSession, email: str, submitted: str) -> None:
    entry = await otps_repo.latest_for_email(db, email)
    if entry is None:
        OTP_VERIFY.labels(outcome="not_found").inc()
        raise InvalidCode("Invalid or expired OTP")

    # the TTL sweeper may lag; expiry is always re-checked here
    if _as_utc(entry.expires_at) <= _now_utc():
        await otps_repo.delete_by_id(db, entry.id)
        await db.commit()
        OTP_VERIFY.labels(outcome="expired").inc()
        raise Expired("OTP expired")

    # count the attempt durably before looking at the code
    attempts = await otps_repo.increment_attempts(db, entry.id)
    await db.commit()
    if attempts is None:
        OTP_VERIFY.labels(outcome="not_found").inc()
        raise InvalidCode("Invalid or expired OTP")

    if attempts > S.OTP_MAX_ATTEMPTS:
        await otps_repo.delete_by_id(db, entry.id)
        await db.commit()
        OTP_VERIFY.labels(outcome="rate_limited").inc()
        log.warning("otp_attempts_exceeded", extra={"email": email, "attempts": attempts})
        raise RateLimited("Too many attempts")

    if not hmac.compare_digest(entry.code.encode(), submitted.encode()):
        OTP_VERIFY.labels(outcome="mismatch").inc()
        raise InvalidCode("Invalid OTP")

    # one-time use; a concurrent request that deleted it first wins
    consumed = await otps_repo.delete_by_id(db, entry.id)
    await db.commit()
    if not consumed:
        OTP_VERIFY.labels(outcome="not_found").inc()
        raise InvalidCode("Invalid or expired OTP")
    OTP_VERIFY.labels(outcome="verified").inc()


async def _resolve_account(
    db: AsyncSession,
    email: str,
    username: Any,
    password: Any,
    user_type: Any,
) -> VerifyResult:
    if not (username and password and user_type):
        # verify-only: caller registers in a second step
        return VerifyResult()

    if not all(is_non_empty(v) for v in (username, password, user_type)):
        raise InvalidInput("Missing registration fields")
    if user_type not in USER_TYPES:
        raise InvalidInput("Invalid userType")

    if await users_repo.get_by_email(db, email):
        raise Conflict("Email already registered")

    try:
        user = await users_repo.create_user(
            db, username=username, email=email, password=password, user_type=user_type
        )
        await db.commit()
    except IntegrityError:
        # lost a race with another registration for the same address
        await db.rollback()
        raise Conflict("Email already registered")

    USERS_CREATED.labels(via="otp").inc()
    log.info("user_created", extra={"user_id": str(user.id), "user_type": user.user_type})
    return VerifyResult(user=user, token=issue_user_token(user))
