"""Auth orchestrator: register, login, logout, refresh, password reset and email verification.

Collaborators are passed in by the caller (see ``build_auth_service`` in
``authcore.api.deps``); every store shares the request's ``AsyncSession`` so an
operation commits or rolls back as one unit.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.config import Settings, settings
from authcore.core.auth import (
    TokenCodec,
    as_utc,
    generate_one_time_token,
    hash_password,
    utcnow,
    verify_password,
)
from authcore.core.errors import AuthError, AuthErrorKind
from authcore.core.metrics import AUTH_EVENTS
from authcore.models.user import User
from authcore.services.mail import MailService
from authcore.services.refresh_tokens import RefreshTokenLedger
from authcore.services.sessions import SessionRegistry
from authcore.services.token_blacklist import TokenBlacklistStore
from authcore.services.users import UserStore, normalize_email

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
DUPLICATE_EMAIL_MESSAGE = "User with this email already exists"
# Verified against for unknown emails
DUMMY_PASSWORD_HASH = hash_password(secrets.token_urlsafe(16))


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    refresh_token: str
    session_id: str


@dataclass(frozen=True)
class AuthResult:
    user: User
    tokens: IssuedTokens


class AuthService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        users: UserStore,
        ledger: RefreshTokenLedger,
        blacklist: TokenBlacklistStore,
        sessions: SessionRegistry,
        mailer: MailService,
        codec: TokenCodec,
        config: Settings = settings,
    ) -> None:
        self.session = session
        self.users = users
        self.ledger = ledger
        self.blacklist = blacklist
        self.sessions = sessions
        self.mailer = mailer
        self.codec = codec
        self.config = config

    async def _issue_tokens(self, user: User, client: ClientInfo) -> IssuedTokens:
        """Create refresh token + session (same expiry) and an access token bound to the session."""
        expires_at = utcnow() + self.codec.refresh_ttl
        refresh_plain, row = await self.ledger.issue(
            user.id,
            expires_at,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        user_session = await self.sessions.create(
            user_id=user.id,
            refresh_token_hash=row.token_hash,
            expires_at=expires_at,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        access = self.codec.issue_access_token(user.id, user.email, user_session.id)
        return IssuedTokens(access_token=access, refresh_token=refresh_plain, session_id=user_session.id)

    def _verification_expiry(self):
        return utcnow() + timedelta(hours=self.config.email_verification_expire_hours)

    async def register(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
        client: ClientInfo,
    ) -> AuthResult:
        email = normalize_email(email)
        logger.info("Registering new user: %s", email)
        if await self.users.get_by_email(email) is not None:
            raise AuthError(AuthErrorKind.CONFLICT, DUPLICATE_EMAIL_MESSAGE)

        verification_token = generate_one_time_token()
        try:
            user = await self.users.create(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password=password,
                verification_token=verification_token,
                verification_expires=self._verification_expiry(),
            )
        except IntegrityError as e:
            # Lost the unique-constraint race against a concurrent registration
            logger.warning("Register IntegrityError for %s: %s", email, e)
            raise AuthError(AuthErrorKind.CONFLICT, DUPLICATE_EMAIL_MESSAGE) from e

        tokens = await self._issue_tokens(user, client)

        sent = await self.mailer.send_email_verification(user.email, user.first_name, verification_token)
        if not sent:
            logger.error("Failed to send verification email for user_id=%s; registration continues", user.id)

        AUTH_EVENTS.labels(event="register").inc()
        logger.info("User registered successfully: %s", user.id)
        return AuthResult(user=user, tokens=tokens)

    async def login(self, *, email: str, password: str, client: ClientInfo) -> AuthResult:
        email = normalize_email(email)
        logger.info("Login attempt for user: %s", email)
        user = await self.users.get_by_email(email)
        password_hash = user.password_hash if user is not None else DUMMY_PASSWORD_HASH
        if not verify_password(password, password_hash) or user is None:
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)
        if not user.is_active:
            raise AuthError(
                AuthErrorKind.ACCOUNT_DISABLED,
                "Your account has been deactivated. Please contact support.",
            )

        tokens = await self._issue_tokens(user, client)
        AUTH_EVENTS.labels(event="login").inc()
        logger.info("User logged in successfully: %s", user.id)
        return AuthResult(user=user, tokens=tokens)

    async def logout(self, access_token: str, user_id: str) -> int:
        """Blacklist the presented access token and revoke every refresh token of the user."""
        logger.info("Logout request for user: %s", user_id)
        expires_at = self.codec.expiry_of(access_token)
        await self.blacklist.add(access_token, user_id, expires_at, reason="logout")
        revoked = await self.ledger.revoke_all_for_user(user_id)
        await self.sessions.deactivate_all_for_user(user_id)
        AUTH_EVENTS.labels(event="logout").inc()
        logger.info("User logged out successfully: %s (refresh tokens revoked: %s)", user_id, revoked)
        return revoked

    async def refresh_access_token(self, refresh_token: str, client: ClientInfo) -> tuple[User, IssuedTokens]:
        """Rotate a refresh token: the presented token is single-use."""
        row = await self.ledger.find(refresh_token)
        if row is None:
            raise AuthError(AuthErrorKind.INVALID_TOKEN, "Invalid refresh token")
        if row.is_revoked:
            raise AuthError(AuthErrorKind.TOKEN_REVOKED, "Refresh token has been revoked")
        if utcnow() > as_utc(row.expires_at):
            raise AuthError(AuthErrorKind.TOKEN_EXPIRED, "Refresh token has expired")
        user = await self.users.get_by_id(row.user_id)
        if user is None or not user.is_active:
            raise AuthError(AuthErrorKind.ACCOUNT_DISABLED, "User account is inactive")

        # Mark-and-check in one statement; a concurrent replay sees zero rows
        if not await self.ledger.consume(row.token_hash):
            logger.warning("Refresh token replay detected for user_id=%s", row.user_id)
            raise AuthError(AuthErrorKind.TOKEN_REVOKED, "Refresh token has been revoked")
        await self.sessions.deactivate_by_refresh_token(row.token_hash)

        tokens = await self._issue_tokens(user, client)
        AUTH_EVENTS.labels(event="refresh").inc()
        logger.info("Access token refreshed successfully for user: %s", user.id)
        return user, tokens

    async def forgot_password(self, email: str) -> None:
        """Silent for unknown emails. Raises SYSTEM_ERROR only if the reset email cannot be sent."""
        email = normalize_email(email)
        user = await self.users.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for non-existent email")
            return

        token = generate_one_time_token()
        expires = utcnow() + timedelta(hours=self.config.password_reset_expire_hours)
        await self.users.set_reset_token(user, token, expires)

        if not await self.mailer.send_password_reset(user.email, user.first_name, token):
            raise AuthError(
                AuthErrorKind.SYSTEM_ERROR,
                "Failed to send password reset email. Please try again.",
            )
        AUTH_EVENTS.labels(event="forgot_password").inc()
        logger.info("Password reset email sent for user_id=%s", user.id)

    async def reset_password(self, token: str, new_password: str) -> User:
        user = await self.users.get_by_reset_token(token)
        if user is None or user.password_reset_expires is None:
            raise AuthError(AuthErrorKind.INVALID_OR_EXPIRED_TOKEN, "Invalid or expired password reset token")
        if utcnow() > as_utc(user.password_reset_expires):
            raise AuthError(
                AuthErrorKind.INVALID_OR_EXPIRED_TOKEN,
                "Password reset token has expired. Please request a new one.",
            )

        await self.users.set_password(user, new_password)
        await self.users.clear_reset_token(user)
        revoked = await self.ledger.revoke_all_for_user(user.id)
        await self.sessions.deactivate_all_for_user(user.id)
        AUTH_EVENTS.labels(event="reset_password").inc()
        logger.info("Password reset successfully for user: %s (refresh tokens revoked: %s)", user.id, revoked)
        return user

    async def verify_email(self, token: str) -> bool:
        """Return True if the email was already verified (idempotent short-circuit), False if verified now."""
        user = await self.users.get_by_verification_token(token)
        if user is None:
            raise AuthError(AuthErrorKind.INVALID_OR_EXPIRED_TOKEN, "Invalid or expired verification token")
        if user.is_email_verified:
            return True
        expires = as_utc(user.email_verification_expires)
        if expires is None or utcnow() > expires:
            raise AuthError(
                AuthErrorKind.TOKEN_EXPIRED,
                "Verification token has expired. Please request a new verification email.",
                status_code=400,
            )

        await self.users.mark_email_verified(user)
        AUTH_EVENTS.labels(event="verify_email").inc()
        logger.info("Email verified successfully for user: %s", user.id)
        return False

    async def resend_verification_email(self, user_id: str) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise AuthError(AuthErrorKind.NOT_FOUND, "User not found")
        if user.is_email_verified:
            raise AuthError(AuthErrorKind.ALREADY_VERIFIED, "Email is already verified")

        token = generate_one_time_token()
        await self.users.set_verification_token(user, token, self._verification_expiry())
        if not await self.mailer.send_email_verification(user.email, user.first_name, token):
            logger.error("Failed to resend verification email for user_id=%s", user.id)
        logger.info("Verification email reissued for user_id=%s", user.id)
        return user

    async def get_profile(self, user_id: str) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise AuthError(AuthErrorKind.NOT_FOUND, "User not found")
        return user
