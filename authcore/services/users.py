"""Credential store: User rows keyed by id, email or one-time token. Passwords are hashed on write."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.auth import hash_password
from authcore.models.user import User


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: str) -> User | None:
        r = await self.session.execute(select(User).where(User.id == user_id))
        return r.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        r = await self.session.execute(select(User).where(User.email == normalize_email(email)))
        return r.scalar_one_or_none()

    async def get_by_verification_token(self, token: str) -> User | None:
        r = await self.session.execute(select(User).where(User.email_verification_token == token))
        return r.scalar_one_or_none()

    async def get_by_reset_token(self, token: str) -> User | None:
        r = await self.session.execute(select(User).where(User.password_reset_token == token))
        return r.scalar_one_or_none()

    async def create(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
        verification_token: str,
        verification_expires: datetime,
    ) -> User:
        """Insert a user. Raises IntegrityError when the email is already taken."""
        user = User(
            email=normalize_email(email),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            password_hash=hash_password(password),
            is_active=True,
            is_email_verified=False,
            email_verification_token=verification_token,
            email_verification_expires=verification_expires,
        )
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def set_password(self, user: User, password: str) -> None:
        user.password_hash = hash_password(password)
        await self.session.flush()

    async def set_verification_token(self, user: User, token: str, expires: datetime) -> None:
        user.email_verification_token = token
        user.email_verification_expires = expires
        await self.session.flush()

    async def mark_email_verified(self, user: User) -> None:
        # Token value is kept so a repeated verify hits the "already verified" branch
        user.is_email_verified = True
        user.email_verification_expires = None
        await self.session.flush()

    async def set_reset_token(self, user: User, token: str, expires: datetime) -> None:
        user.password_reset_token = token
        user.password_reset_expires = expires
        await self.session.flush()

    async def clear_reset_token(self, user: User) -> None:
        user.password_reset_token = None
        user.password_reset_expires = None
        await self.session.flush()
