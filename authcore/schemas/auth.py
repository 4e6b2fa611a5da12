"""Request and response bodies for auth and session endpoints (camelCase on the wire)."""

from __future__ import annotations

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

NAME_RE = re.compile(r"^[a-zA-Z]+([\s\-'][a-zA-Z]+)*$")
TOKEN_RE = re.compile(r"^[A-Za-z0-9]+$")
SPECIAL_CHARS = "@$!%*?&"

DISPOSABLE_EMAIL_DOMAINS = frozenset({
    "tempmail.com",
    "throwaway.email",
    "guerrillamail.com",
    "10minutemail.com",
    "mailinator.com",
    "trashmail.com",
    "maildrop.cc",
    "temp-mail.org",
})

WEAK_PASSWORDS = frozenset({
    "password",
    "12345678",
    "qwerty",
    "abc123",
    "password123",
    "admin123",
    "letmein",
    "welcome",
    "monkey123",
    "dragon123",
})

PASSWORD_RULES_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "one number, and one special character"
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _reject_disposable(value: str) -> str:
    if value.rsplit("@", 1)[1].lower() in DISPOSABLE_EMAIL_DOMAINS:
        raise ValueError("Disposable email addresses are not allowed")
    return value


def _validate_strong_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if len(value) > 100:
        raise ValueError("Password must not exceed 100 characters")
    if (
        not re.search(r"[a-z]", value)
        or not re.search(r"[A-Z]", value)
        or not re.search(r"\d", value)
        or not any(c in SPECIAL_CHARS for c in value)
    ):
        raise ValueError(PASSWORD_RULES_MESSAGE)
    if value.lower() in WEAK_PASSWORDS:
        raise ValueError("Password is too common")
    return value


def _validate_one_time_token(value: str) -> str:
    value = (value or "").strip()
    if not 32 <= len(value) <= 128 or not TOKEN_RE.match(value):
        raise ValueError("Invalid token format")
    return value


class RegisterBody(CamelModel):
    email: EmailStr
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _reject_disposable(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def check_name(cls, v: str) -> str:
        v = v.strip()
        if not NAME_RE.match(v):
            raise ValueError(
                "Name can only contain letters, spaces, hyphens, and apostrophes, and must start with a letter"
            )
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _validate_strong_password(v)


class LoginBody(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshBody(CamelModel):
    refresh_token: str = Field(min_length=1)


class ForgotPasswordBody(CamelModel):
    email: EmailStr


class ResetPasswordBody(CamelModel):
    token: str
    new_password: str

    @field_validator("token")
    @classmethod
    def check_token(cls, v: str) -> str:
        return _validate_one_time_token(v)

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _validate_strong_password(v)


class VerifyEmailBody(CamelModel):
    token: str

    @field_validator("token")
    @classmethod
    def check_token(cls, v: str) -> str:
        return _validate_one_time_token(v)


class RevokeSessionBody(CamelModel):
    session_id: UUID


class RevokeOtherSessionsBody(CamelModel):
    current_session_id: UUID | None = None


class UserOut(CamelModel):
    """Public user fields; password hash and one-time tokens are never serialized."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    email: str
    first_name: str
    last_name: str
    is_active: bool
    is_email_verified: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AuthData(CamelModel):
    user: UserOut
    access_token: str
    refresh_token: str
    session_id: str


class TokenPairData(CamelModel):
    access_token: str
    refresh_token: str
    session_id: str


class SessionOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    device_name: str | None = None
    device_type: str | None = None
    ip_address: str | None = None
    last_activity_at: datetime | None = None
    created_at: datetime | None = None
    expires_at: datetime | None = None
    is_current: bool = False
