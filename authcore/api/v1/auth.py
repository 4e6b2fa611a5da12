"""Auth: register, login, logout, refresh, password reset, email verification, me."""

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from authcore.api.deps import CurrentIdentity, get_auth_service, get_client_info
from authcore.api.responses import success_response
from authcore.core.rate_limit import (
    FORGOT_PASSWORD_LIMIT,
    LOGIN_LIMIT,
    REFRESH_LIMIT,
    REGISTER_LIMIT,
    RESEND_VERIFICATION_LIMIT,
    RESET_PASSWORD_LIMIT,
    VERIFY_EMAIL_LIMIT,
    limiter,
)
from authcore.schemas.auth import (
    AuthData,
    ForgotPasswordBody,
    LoginBody,
    RefreshBody,
    RegisterBody,
    ResetPasswordBody,
    TokenPairData,
    UserOut,
    VerifyEmailBody,
)
from authcore.services.auth_service import AuthResult, AuthService, ClientInfo

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
ClientDep = Annotated[ClientInfo, Depends(get_client_info)]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _auth_data(result: AuthResult) -> dict:
    return AuthData(
        user=UserOut.model_validate(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        session_id=result.tokens.session_id,
    ).model_dump(by_alias=True, mode="json")


@router.post(
    "/register",
    status_code=201,
    summary="Register a new user",
    responses={
        400: {"description": "Validation failed"},
        409: {"description": "User with this email already exists"},
        429: {"description": "Too many requests"},
    },
)
@limiter.limit(REGISTER_LIMIT)
async def register(
    request: Request,
    body: RegisterBody,
    service: AuthServiceDep,
    client: ClientDep,
):
    result = await service.register(
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        password=body.password,
        client=client,
    )
    return success_response(
        request,
        status_code=201,
        message="Registration successful. Please check your email to verify your account.",
        data=_auth_data(result),
        meta={
            "user_id": result.user.id,
            "created_at": result.user.created_at,
            "email_verification_required": True,
        },
    )


@router.post(
    "/login",
    summary="Login with email and password",
    responses={
        401: {"description": "Invalid email or password, or account deactivated"},
        429: {"description": "Too many requests"},
    },
)
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    body: LoginBody,
    service: AuthServiceDep,
    client: ClientDep,
):
    result = await service.login(email=body.email, password=body.password, client=client)
    return success_response(
        request,
        message="Login successful",
        data=_auth_data(result),
        meta={
            "user_id": result.user.id,
            "is_email_verified": result.user.is_email_verified,
        },
    )


@router.post(
    "/logout",
    summary="Revoke the current access token and all refresh tokens",
    responses={401: {"description": "Not authenticated or token revoked"}},
)
async def logout(
    request: Request,
    identity: CurrentIdentity,
    service: AuthServiceDep,
):
    await service.logout(identity.token, identity.subject)
    return success_response(
        request,
        message="Logout successful",
        data=None,
        meta={"user_id": identity.subject, "logged_out_at": _now()},
    )


@router.post(
    "/refresh",
    summary="Exchange refresh token for new access and refresh tokens",
    responses={
        401: {"description": "Refresh token invalid, revoked or expired, or account inactive"},
        429: {"description": "Too many requests"},
    },
)
@limiter.limit(REFRESH_LIMIT)
async def refresh_tokens(
    request: Request,
    body: RefreshBody,
    service: AuthServiceDep,
    client: ClientDep,
):
    """Exchange refreshToken for a new pair (rotation); the presented token becomes unusable."""
    user, tokens = await service.refresh_access_token(body.refresh_token.strip(), client)
    data = TokenPairData(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        session_id=tokens.session_id,
    ).model_dump(by_alias=True)
    return success_response(
        request,
        message="Token refreshed successfully",
        data=data,
        meta={"user_id": user.id, "refreshed_at": _now()},
    )


@router.post(
    "/forgot-password",
    summary="Request a password reset email",
    responses={
        429: {"description": "Too many requests"},
        500: {"description": "Reset email could not be sent"},
    },
)
@limiter.limit(FORGOT_PASSWORD_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordBody,
    service: AuthServiceDep,
):
    await service.forgot_password(body.email)
    return success_response(request, message=FORGOT_PASSWORD_MESSAGE, data=None)


@router.post(
    "/reset-password",
    summary="Set a new password with a reset token",
    responses={
        400: {"description": "Invalid or expired password reset token"},
        429: {"description": "Too many requests"},
    },
)
@limiter.limit(RESET_PASSWORD_LIMIT)
async def reset_password(
    request: Request,
    body: ResetPasswordBody,
    service: AuthServiceDep,
):
    user = await service.reset_password(body.token, body.new_password)
    return success_response(
        request,
        message="Password reset successful. Please login with your new password.",
        data=None,
        meta={"user_id": user.id, "password_reset_at": _now()},
    )


@router.post(
    "/verify-email",
    summary="Verify email address with a verification token",
    responses={
        400: {"description": "Invalid or expired verification token"},
        429: {"description": "Too many requests"},
    },
)
@limiter.limit(VERIFY_EMAIL_LIMIT)
async def verify_email(
    request: Request,
    body: VerifyEmailBody,
    service: AuthServiceDep,
):
    already_verified = await service.verify_email(body.token)
    if already_verified:
        return success_response(request, message="Email is already verified", data=None)
    return success_response(
        request,
        message="Email verified successfully",
        data=None,
        meta={"verified_at": _now()},
    )


@router.post(
    "/resend-verification",
    summary="Send a new email verification link",
    responses={
        400: {"description": "Email is already verified"},
        401: {"description": "Not authenticated"},
        404: {"description": "User not found"},
        429: {"description": "Too many requests"},
    },
)
@limiter.limit(RESEND_VERIFICATION_LIMIT)
async def resend_verification(
    request: Request,
    identity: CurrentIdentity,
    service: AuthServiceDep,
):
    await service.resend_verification_email(identity.subject)
    return success_response(
        request,
        message="Verification email sent successfully",
        data=None,
        meta={"email_sent_at": _now()},
    )


@router.get(
    "/me",
    summary="Get current authenticated user",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def me(
    request: Request,
    identity: CurrentIdentity,
    service: AuthServiceDep,
):
    user = await service.get_profile(identity.subject)
    return success_response(
        request,
        message="User profile retrieved successfully",
        data=UserOut.model_validate(user).model_dump(by_alias=True, mode="json"),
    )
