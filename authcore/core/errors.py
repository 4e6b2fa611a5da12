"""Auth error kinds and their HTTP status mapping.

Every expected failure of the auth subsystem is raised as ``AuthError`` carrying
one ``AuthErrorKind``. The exception handlers in ``authcore.api.responses`` turn
it into the standard error envelope using ``STATUS_BY_KIND``.
"""

from __future__ import annotations

from enum import Enum


class AuthErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    CONFLICT = "conflict"
    ACCOUNT_DISABLED = "account_disabled"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    TOKEN_REVOKED = "token_revoked"
    INVALID_TOKEN = "invalid_token"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    ALREADY_VERIFIED = "already_verified"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION = "validation_error"
    SYSTEM_ERROR = "system_error"


STATUS_BY_KIND: dict[AuthErrorKind, int] = {
    AuthErrorKind.INVALID_CREDENTIALS: 401,
    AuthErrorKind.CONFLICT: 409,
    AuthErrorKind.ACCOUNT_DISABLED: 401,
    AuthErrorKind.TOKEN_EXPIRED: 401,
    AuthErrorKind.TOKEN_INVALID: 401,
    AuthErrorKind.TOKEN_REVOKED: 401,
    AuthErrorKind.INVALID_TOKEN: 401,
    AuthErrorKind.INVALID_OR_EXPIRED_TOKEN: 400,
    AuthErrorKind.ALREADY_VERIFIED: 400,
    AuthErrorKind.UNAUTHORIZED: 401,
    AuthErrorKind.NOT_FOUND: 404,
    AuthErrorKind.VALIDATION: 400,
    AuthErrorKind.SYSTEM_ERROR: 500,
}

DEFAULT_MESSAGES: dict[AuthErrorKind, str] = {
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    AuthErrorKind.CONFLICT: "Resource already exists",
    AuthErrorKind.ACCOUNT_DISABLED: "Your account has been deactivated. Please contact support.",
    AuthErrorKind.TOKEN_EXPIRED: "Token has expired",
    AuthErrorKind.TOKEN_INVALID: "Invalid token",
    AuthErrorKind.TOKEN_REVOKED: "Token has been revoked",
    AuthErrorKind.INVALID_TOKEN: "Invalid token",
    AuthErrorKind.INVALID_OR_EXPIRED_TOKEN: "Invalid or expired token",
    AuthErrorKind.ALREADY_VERIFIED: "Email is already verified",
    AuthErrorKind.UNAUTHORIZED: "Not authenticated",
    AuthErrorKind.NOT_FOUND: "Not found",
    AuthErrorKind.VALIDATION: "Validation failed",
    AuthErrorKind.SYSTEM_ERROR: "Internal server error",
}


class AuthError(Exception):
    """Expected auth failure. ``status_code`` overrides the kind's default status when set."""

    def __init__(
        self,
        kind: AuthErrorKind,
        message: str | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        self.status_code = status_code or STATUS_BY_KIND[kind]
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value!r}, status_code={self.status_code}, message={self.message!r})"
