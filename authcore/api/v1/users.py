"""
User endpoints untuk API v1.
Profile, ganti password, password status, security preferences, dan security events.
"""

from dataclasses import asdict
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from authcore.api.dependencies.auth import (
    get_current_device_id,
    get_current_user,
    get_orchestrator,
    require_admin,
)
from authcore.repositories.records import UserRecord
from authcore.schemas.auth import PasswordChangeRequest, PasswordStatusResponse
from authcore.schemas.response import ERROR_RESPONSES, MessageResponse
from authcore.schemas.user import (
    SecurityEventResponse,
    SecurityPreferencesResponse,
    SecurityPreferencesUpdate,
    SecuritySummaryResponse,
    UserResponse,
)
from authcore.services.auth import AuthOrchestrator

router = APIRouter(prefix="/users", tags=["users"], responses=ERROR_RESPONSES)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[UserRecord, Depends(get_current_user)]
) -> UserResponse:
    return UserResponse.from_record(current_user)


@router.put("/me/password", response_model=MessageResponse)
async def change_password(
    request: Request,
    payload: PasswordChangeRequest,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    """
    Ganti password. Device lain di-logout; device sekarang tetap login.

    Raises:
        InvalidCredentialsError: Password sekarang salah
        WeakPasswordError / PasswordReuseError: 422 dengan violations
    """
    removed = await orchestrator.change_password(
        current_user,
        payload.current_password,
        payload.new_password,
        keep_device_id=get_current_device_id(request)
    )
    return MessageResponse(
        message="Password changed successfully",
        details={"devices_logged_out": removed}
    )


@router.get("/me/password-status", response_model=PasswordStatusResponse)
async def password_status(
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> PasswordStatusResponse:
    status = await orchestrator.password_status(current_user)
    return PasswordStatusResponse(**asdict(status))


@router.get("/me/security-preferences", response_model=SecurityPreferencesResponse)
async def get_security_preferences(
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> SecurityPreferencesResponse:
    preferences = await orchestrator.get_security_preferences(current_user)
    return SecurityPreferencesResponse(**preferences.model_dump())


@router.patch("/me/security-preferences", response_model=SecurityPreferencesResponse)
async def update_security_preferences(
    payload: SecurityPreferencesUpdate,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> SecurityPreferencesResponse:
    preferences = await orchestrator.update_security_preferences(
        current_user,
        payload.model_dump(exclude_none=True)
    )
    return SecurityPreferencesResponse(**preferences.model_dump())


@router.get("/me/security-events", response_model=List[SecurityEventResponse])
async def security_events(
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)],
    limit: int = Query(50, ge=1, le=500)
) -> List[SecurityEventResponse]:
    events = await orchestrator.security_events(current_user, limit=limit)
    return [SecurityEventResponse.from_record(e) for e in events]


@router.get("/me/security-summary", response_model=SecuritySummaryResponse)
async def security_summary(
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)],
    days: int = Query(30, ge=1, le=365)
) -> SecuritySummaryResponse:
    return SecuritySummaryResponse(**await orchestrator.security_summary(current_user, days=days))


@router.post("/{user_id}/force-password-change", response_model=MessageResponse)
async def force_password_change(
    user_id: UUID,
    admin: Annotated[UserRecord, Depends(require_admin)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    """
    Admin: paksa user mengganti password di login berikutnya.
    """
    await orchestrator.force_password_change(user_id)
    return MessageResponse(message="Password change required on next login", details={"user_id": str(user_id)})
