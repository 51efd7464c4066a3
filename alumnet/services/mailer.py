from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Optional

import resend

from ..config import get_settings

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Your verification code"

OTP_HTML = """
<div style="font-family:Inter,Arial,sans-serif">
  <h3 style="margin-bottom:6px">Your verification code</h3>
  <div style="font-size:22px;font-weight:700;padding:10px 14px;background:#f4f6ff;border-radius:8px;display:inline-block">{code}</div>
  <p style="color:#666;margin-top:12px">This code will expire in {minutes} minutes.</p>
  <p style="color:#999;font-size:13px">If you didn't request this, you can ignore this email.</p>
</div>
"""


class ResendMailer:
    """Thin wrapper around the blocking Resend SDK with an async-friendly send."""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self._from_email = from_email or settings.MAIL_FROM
        if not self._api_key:
            logger.info("Email delivery disabled; RESEND_API_KEY is not set")

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _send_blocking(self, to: str, subject: str, html: str) -> dict:
        resend.api_key = self._api_key
        return resend.Emails.send({
            "from": self._from_email,
            "to": [to],
            "subject": subject,
            "html": html,
        })

    async def send_otp_email(self, to: str, code: str, *, expire_minutes: int) -> bool:
        """Returns True when the provider accepted the message, False if skipped or failed."""
        if not self.enabled:
            logger.warning("No mail transport configured, skipping OTP email for %s", to)
            return False

        html = OTP_HTML.format(code=code, minutes=expire_minutes)
        loop = asyncio.get_running_loop()
        try:
            resp = await loop.run_in_executor(None, partial(self._send_blocking, to, OTP_SUBJECT, html))
        except Exception as exc:
            # the SDK raises its own error types plus transport errors
            logger.warning("OTP email to %s failed: %s", to, exc)
            return False
        logger.info("OTP email accepted for %s", to, extra={"provider_id": (resp or {}).get("id")})
        return True


mailer = ResendMailer()


def get_notifier() -> ResendMailer:
    return mailer
