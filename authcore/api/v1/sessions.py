"""Session management: list active sessions, revoke one, revoke others, logout everywhere."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from authcore.api.deps import CurrentIdentity, get_session_registry
from authcore.api.responses import error_response, success_response
from authcore.schemas.auth import RevokeOtherSessionsBody, RevokeSessionBody, SessionOut
from authcore.services.sessions import SessionRegistry

router = APIRouter(prefix="/auth/sessions", tags=["sessions"])

RegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]


@router.get(
    "",
    summary="List active sessions of the current user",
    responses={401: {"description": "Not authenticated"}},
)
async def list_sessions(
    request: Request,
    identity: CurrentIdentity,
    registry: RegistryDep,
):
    sessions = await registry.list_active(identity.subject)
    data = [
        SessionOut.model_validate(s)
        .model_copy(update={"is_current": s.id == identity.session_id})
        .model_dump(by_alias=True, mode="json")
        for s in sessions
    ]
    return success_response(
        request,
        message="Sessions retrieved successfully",
        data=data,
        meta={"total_sessions": len(data)},
    )


@router.delete(
    "/revoke",
    summary="Revoke a specific session",
    responses={
        400: {"description": "Session not found or already revoked"},
        401: {"description": "Not authenticated"},
    },
)
async def revoke_session(
    request: Request,
    body: RevokeSessionBody,
    identity: CurrentIdentity,
    registry: RegistryDep,
):
    revoked = await registry.revoke(identity.subject, str(body.session_id))
    if not revoked:
        return error_response(request, status_code=400, message="Session not found or already revoked")
    return success_response(request, message="Session revoked successfully", data=None)


@router.delete(
    "/revoke-others",
    summary="Revoke all sessions except the current one",
    responses={401: {"description": "Not authenticated"}},
)
async def revoke_other_sessions(
    request: Request,
    identity: CurrentIdentity,
    registry: RegistryDep,
    body: RevokeOtherSessionsBody | None = None,
):
    keep = str(body.current_session_id) if body and body.current_session_id else identity.session_id
    revoked_count = await registry.revoke_others(identity.subject, keep)
    return success_response(
        request,
        message="All other sessions revoked successfully",
        data={"revoked_count": revoked_count},
    )


@router.delete(
    "/logout-all",
    summary="Logout from all devices",
    responses={401: {"description": "Not authenticated"}},
)
async def logout_all_devices(
    request: Request,
    identity: CurrentIdentity,
    registry: RegistryDep,
):
    revoked_count = await registry.revoke_all(identity.subject)
    return success_response(
        request,
        message="Logged out from all devices successfully",
        data={"revoked_count": revoked_count},
    )
