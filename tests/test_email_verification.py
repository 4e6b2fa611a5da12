"""Tests for verify-email and resend-verification."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from authcore.core.auth import utcnow
from authcore.db.session import async_session_maker
from authcore.models.user import User
from authcore.services.mail import MailService
from conftest import bearer, register

VERIFY_URL = "/api/v1/auth/verify-email"
RESEND_URL = "/api/v1/auth/resend-verification"


async def _user_row(email: str) -> User:
    async with async_session_maker() as session:
        return (await session.execute(select(User).where(User.email == email))).scalar_one()


@pytest.mark.asyncio
async def test_verify_email_is_idempotent(client: AsyncClient, clean_db):
    await register(client, email="verify@example.com")
    token = (await _user_row("verify@example.com")).email_verification_token

    first = await client.post(VERIFY_URL, json={"token": token})
    assert first.status_code == 200
    assert first.json()["message"] == "Email verified successfully"
    user = await _user_row("verify@example.com")
    assert user.is_email_verified is True
    assert user.email_verification_expires is None

    second = await client.post(VERIFY_URL, json={"token": token})
    assert second.status_code == 200
    assert second.json()["message"] == "Email is already verified"


@pytest.mark.asyncio
async def test_verify_email_expired_token(client: AsyncClient, clean_db):
    await register(client, email="stale@example.com")
    token = (await _user_row("stale@example.com")).email_verification_token
    async with async_session_maker() as session:
        await session.execute(
            update(User)
            .where(User.email == "stale@example.com")
            .values(email_verification_expires=utcnow() - timedelta(hours=1))
        )
        await session.commit()

    resp = await client.post(VERIFY_URL, json={"token": token})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Verification token has expired. Please request a new verification email."
    assert (await _user_row("stale@example.com")).is_email_verified is False


@pytest.mark.asyncio
async def test_verify_email_unknown_token(client: AsyncClient, clean_db):
    resp = await client.post(VERIFY_URL, json={"token": "cd" * 32})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid or expired verification token"


@pytest.mark.asyncio
async def test_register_succeeds_when_verification_mail_fails(client: AsyncClient, clean_db):
    with patch.object(MailService, "send", new=AsyncMock(return_value=False)):
        resp = await register(client, email="offline@example.com")
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_resend_verification_issues_new_token(client: AsyncClient, clean_db):
    reg = (await register(client, email="resend@example.com")).json()["data"]
    old_token = (await _user_row("resend@example.com")).email_verification_token

    with patch.object(MailService, "send", new=AsyncMock(return_value=True)) as send:
        resp = await client.post(RESEND_URL, headers=bearer(reg["accessToken"]))
    assert resp.status_code == 200
    assert resp.json()["message"] == "Verification email sent successfully"

    new_token = (await _user_row("resend@example.com")).email_verification_token
    assert new_token != old_token
    assert f"/auth/verify-email?token={new_token}" in send.await_args.args[2]

    # Only the newest token verifies
    stale = await client.post(VERIFY_URL, json={"token": old_token})
    assert stale.status_code == 400
    fresh = await client.post(VERIFY_URL, json={"token": new_token})
    assert fresh.status_code == 200


@pytest.mark.asyncio
async def test_resend_verification_when_already_verified(client: AsyncClient, clean_db):
    reg = (await register(client, email="done@example.com")).json()["data"]
    token = (await _user_row("done@example.com")).email_verification_token
    await client.post(VERIFY_URL, json={"token": token})

    resp = await client.post(RESEND_URL, headers=bearer(reg["accessToken"]))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Email is already verified"


@pytest.mark.asyncio
async def test_resend_verification_requires_authentication(client: AsyncClient, clean_db):
    resp = await client.post(RESEND_URL)
    assert resp.status_code == 401
