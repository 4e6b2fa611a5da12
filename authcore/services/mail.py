"""Transactional email over SMTP: verification and password reset links.

``send`` never raises; it returns False on failure so callers decide whether a
failed delivery matters. When SMTP is not configured the message is logged
instead (dev mode) and counted as sent.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from authcore.config import Settings, settings

logger = logging.getLogger(__name__)


def _redact_email(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class MailService:
    def __init__(self, config: Settings = settings) -> None:
        self.config = config

    @property
    def from_email(self) -> str:
        return self.config.mail_from or self.config.smtp_user

    @property
    def is_configured(self) -> bool:
        return bool(self.config.smtp_host and self.from_email)

    def _send_sync(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.config.mail_from_name} <{self.from_email}>"
        msg["To"] = to
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        timeout = self.config.smtp_timeout_seconds
        if self.config.smtp_use_tls:
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=timeout) as server:
                server.starttls(context=context)
                if self.config.smtp_user and self.config.smtp_password:
                    server.login(self.config.smtp_user, self.config.smtp_password)
                server.sendmail(self.from_email, to, msg.as_string())
        else:
            with smtplib.SMTP_SSL(
                self.config.smtp_host, self.config.smtp_port, context=context, timeout=timeout
            ) as server:
                if self.config.smtp_user and self.config.smtp_password:
                    server.login(self.config.smtp_user, self.config.smtp_password)
                server.sendmail(self.from_email, to, msg.as_string())

    async def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> bool:
        """Deliver one message. Returns True on success, False on any SMTP/network failure."""
        if not self.is_configured:
            logger.info("Mail (dev mode, not sent) to=%s subject=%s body=%s", _redact_email(to), subject, body[:200])
            return True
        try:
            await asyncio.to_thread(self._send_sync, to, subject, html_body or f"<pre>{escape(body)}</pre>", body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Mail send failed to=%s subject=%s: %s", _redact_email(to), subject, e)
            return False
        logger.info("Mail sent to=%s subject=%s", _redact_email(to), subject)
        return True

    async def send_email_verification(self, to: str, first_name: str, token: str) -> bool:
        link = f"{self.config.client_url.rstrip('/')}/auth/verify-email?token={token}"
        hours = self.config.email_verification_expire_hours
        body = (
            f"Hi {first_name},\n\n"
            f"Please verify your email address by opening the link below:\n{link}\n\n"
            f"This link expires in {hours} hours."
        )
        html = (
            f"<p>Hi <strong>{escape(first_name)}</strong>,</p>"
            f"<p>Please verify your email address:</p>"
            f'<p><a href="{escape(link)}">Verify email</a></p>'
            f"<p>This link expires in {hours} hours.</p>"
        )
        return await self.send(to, "Verify your email address", body, html)

    async def send_password_reset(self, to: str, first_name: str, token: str) -> bool:
        link = f"{self.config.client_url.rstrip('/')}/auth/reset-password?token={token}"
        hours = self.config.password_reset_expire_hours
        body = (
            f"Hi {first_name},\n\n"
            f"We received a request to reset your password. Open the link below to choose a new one:\n{link}\n\n"
            f"This link expires in {hours} hour(s). If you did not request this, ignore this email."
        )
        html = (
            f"<p>Hi <strong>{escape(first_name)}</strong>,</p>"
            f"<p>We received a request to reset your password.</p>"
            f'<p><a href="{escape(link)}">Reset password</a></p>'
            f"<p>This link expires in {hours} hour(s). If you did not request this, ignore this email.</p>"
        )
        return await self.send(to, "Reset your password", body, html)
