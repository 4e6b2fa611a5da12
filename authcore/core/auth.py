"""Password hashing, JWT access tokens and opaque refresh / one-time tokens."""

import hashlib
import secrets
import uuid
from datetime import datetime, timezone, timedelta
from typing import Any

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from authcore.config import Settings, settings
from authcore.core.errors import AuthError, AuthErrorKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the DB (SQLite drops tzinfo)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def hash_password(password: str) -> str:
    """Hash password with bcrypt. Bytes truncated to 72 (bcrypt limit); no passlib re-encoding."""
    pwd_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(pwd_bytes, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify password with bcrypt. Plain password truncated to 72 bytes."""
    plain_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.checkpw(plain_bytes, password_hash.encode("utf-8"))


def create_refresh_token() -> str:
    """Generate a new refresh token (plain string; caller must hash and store)."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """SHA256 hash of an opaque or signed token for storage and lookup."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


hash_refresh_token = hash_token


def generate_one_time_token() -> str:
    """32 random bytes as hex, used for email verification and password reset links."""
    return secrets.token_hex(32)


class TokenCodec:
    """Signs and verifies access tokens carrying ``sub`` (user id) and ``email``."""

    def __init__(self, config: Settings = settings) -> None:
        self.config = config

    @property
    def access_ttl(self) -> timedelta:
        return timedelta(minutes=self.config.access_token_expire_minutes)

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self.config.refresh_token_expire_days)

    def _signing_key_and_algorithm(self) -> tuple[str, str]:
        if self.config.use_rs256:
            return self.config.jwt_private_key.strip(), "RS256"
        return self.config.secret_key, self.config.jwt_algorithm

    def _verification_key_and_algorithms(self) -> tuple[str, list[str]]:
        if self.config.use_rs256:
            return self.config.jwt_public_key.strip(), ["RS256"]
        return self.config.secret_key, [self.config.jwt_algorithm]

    def issue(self, claims: dict[str, Any], ttl: timedelta) -> str:
        now = utcnow()
        payload = {
            **claims,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + ttl,
        }
        key, algorithm = self._signing_key_and_algorithm()
        result = jwt.encode(payload, key, algorithm=algorithm)
        return result if isinstance(result, str) else result.decode("utf-8")

    def issue_access_token(self, user_id: str, email: str, session_id: str | None = None) -> str:
        claims: dict[str, Any] = {"sub": str(user_id), "email": email}
        if session_id:
            claims["sid"] = session_id
        return self.issue(claims, self.access_ttl)

    def verify(self, token: str) -> dict[str, Any]:
        """Return claims or raise AuthError(TOKEN_EXPIRED | TOKEN_INVALID)."""
        key, algorithms = self._verification_key_and_algorithms()
        try:
            payload = jwt.decode(token, key, algorithms=algorithms)
        except ExpiredSignatureError as e:
            raise AuthError(AuthErrorKind.TOKEN_EXPIRED, "Token has expired") from e
        except JWTError as e:
            raise AuthError(AuthErrorKind.TOKEN_INVALID, "Invalid token") from e
        if not payload.get("sub"):
            raise AuthError(AuthErrorKind.TOKEN_INVALID, "Invalid token")
        return payload

    def expiry_of(self, token: str) -> datetime:
        """Expiry of a token that was already verified upstream (signature not re-checked)."""
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise AuthError(AuthErrorKind.TOKEN_INVALID, "Invalid token") from e
        exp = claims.get("exp")
        if exp is None:
            raise AuthError(AuthErrorKind.TOKEN_INVALID, "Invalid token")
        return datetime.fromtimestamp(int(exp), tz=timezone.utc)


token_codec = TokenCodec()


def create_access_token(user_id: str, email: str, session_id: str | None = None) -> str:
    return token_codec.issue_access_token(user_id, email, session_id)
