"""FastAPI dependencies: service assembly and bearer-token validation."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.auth import TokenCodec, token_codec
from authcore.core.errors import AuthError, AuthErrorKind
from authcore.db.session import get_db
from authcore.services.auth_service import AuthService, ClientInfo
from authcore.services.mail import MailService
from authcore.services.refresh_tokens import RefreshTokenLedger
from authcore.services.sessions import SessionRegistry
from authcore.services.token_blacklist import TokenBlacklistStore
from authcore.services.users import UserStore


@dataclass(frozen=True)
class Identity:
    """Authenticated caller attached to request.state.identity."""

    subject: str
    email: str
    session_id: str | None
    token: str


def get_token_codec() -> TokenCodec:
    return token_codec


def get_mail_service() -> MailService:
    return MailService()


def build_auth_service(
    session: AsyncSession,
    codec: TokenCodec,
    mailer: MailService,
) -> AuthService:
    """Wire stores around one DB session into an AuthService."""
    ledger = RefreshTokenLedger(session)
    return AuthService(
        session,
        users=UserStore(session),
        ledger=ledger,
        blacklist=TokenBlacklistStore(session),
        sessions=SessionRegistry(session, ledger),
        mailer=mailer,
        codec=codec,
    )


async def get_auth_service(
    session: Annotated[AsyncSession, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    mailer: Annotated[MailService, Depends(get_mail_service)],
) -> AuthService:
    return build_auth_service(session, codec, mailer)


async def get_session_registry(
    session: Annotated[AsyncSession, Depends(get_db)],
) -> SessionRegistry:
    return SessionRegistry(session, RefreshTokenLedger(session))


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
    )


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthError(AuthErrorKind.UNAUTHORIZED, "Not authenticated")
    token = auth_header[7:].strip()
    if not token:
        raise AuthError(AuthErrorKind.UNAUTHORIZED, "Not authenticated")
    return token


async def get_current_identity(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
) -> Identity:
    """Verify the bearer token, reject blacklisted tokens and inactive users. No caching across requests."""
    token = _bearer_token(request)
    try:
        payload = codec.verify(token)
    except AuthError as e:
        # Expired vs tampered are logged apart but answered with one message
        raise AuthError(e.kind, "Invalid or expired token") from e

    if await TokenBlacklistStore(session).is_revoked(token):
        raise AuthError(AuthErrorKind.TOKEN_REVOKED, "Token has been revoked")

    user = await UserStore(session).get_by_id(payload["sub"])
    if user is None:
        raise AuthError(AuthErrorKind.UNAUTHORIZED, "User not found")
    if not user.is_active:
        raise AuthError(AuthErrorKind.ACCOUNT_DISABLED, "User account is inactive")

    if payload.get("sid"):
        await SessionRegistry(session, RefreshTokenLedger(session)).touch(payload["sid"])

    identity = Identity(
        subject=user.id,
        email=payload.get("email") or user.email,
        session_id=payload.get("sid"),
        token=token,
    )
    request.state.identity = identity
    return identity


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
