"""Unit tests for MailService (SMTP transport mocked)."""

import logging
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from authcore.config import Settings
from authcore.services.mail import MailService


def _configured() -> Settings:
    return Settings(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_user="mailer@example.com",
        smtp_password="secret",
        mail_from="no-reply@example.com",
        client_url="https://app.example.com/",
    )


@pytest.mark.asyncio
async def test_dev_mode_logs_instead_of_sending(caplog):
    caplog.set_level(logging.INFO)
    mailer = MailService(Settings(smtp_host=""))
    assert mailer.is_configured is False
    with patch("authcore.services.mail.smtplib.SMTP") as smtp:
        assert await mailer.send("someone@example.com", "Hello", "body") is True
    smtp.assert_not_called()
    assert "dev mode" in caplog.text
    assert "someone@example.com" not in caplog.text


@pytest.mark.asyncio
async def test_send_uses_starttls_and_login():
    mailer = MailService(_configured())
    server = MagicMock()
    with patch("authcore.services.mail.smtplib.SMTP") as smtp:
        smtp.return_value.__enter__.return_value = server
        ok = await mailer.send_password_reset("user@example.com", "Ann", "ab" * 32)
    assert ok is True
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("mailer@example.com", "secret")
    from_addr, to_addr, raw = server.sendmail.call_args.args
    assert from_addr == "no-reply@example.com"
    assert to_addr == "user@example.com"
    assert "https://app.example.com/auth/reset-password?token=" + "ab" * 32 in raw


@pytest.mark.asyncio
async def test_send_failure_returns_false():
    mailer = MailService(_configured())
    with patch("authcore.services.mail.smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, "busy")):
        assert await mailer.send_email_verification("user@example.com", "Ann", "cd" * 32) is False
