"""
Device session endpoints untuk API v1.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from authcore.api.dependencies.auth import get_current_device_id, get_current_user, get_orchestrator
from authcore.repositories.records import UserRecord
from authcore.schemas.response import ERROR_RESPONSES, MessageResponse
from authcore.schemas.user import (
    DeviceLimitResponse,
    DeviceListResponse,
    DeviceRenameRequest,
    DeviceSessionResponse,
    DeviceTrustRequest,
)
from authcore.services.auth import AuthOrchestrator

router = APIRouter(prefix="/devices", tags=["devices"], responses=ERROR_RESPONSES)


@router.get("", response_model=DeviceListResponse)
async def list_devices(
    request: Request,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> DeviceListResponse:
    """
    Device session aktif milik user, paling baru dipakai lebih dulu.
    """
    current_device_id = get_current_device_id(request)
    sessions = await orchestrator.list_devices(current_user)
    return DeviceListResponse(
        devices=[DeviceSessionResponse.from_record(s, current_device_id) for s in sessions],
        total=len(sessions),
        max_devices=orchestrator.devices.cap
    )


@router.get("/limit", response_model=DeviceLimitResponse)
async def device_limit(
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> DeviceLimitResponse:
    return DeviceLimitResponse(**await orchestrator.device_limit_info(current_user))


@router.delete("/{device_id}", response_model=MessageResponse)
async def remove_device(
    device_id: str,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    """
    Hapus device; semua token yang terikat ke device tersebut di-revoke.
    """
    await orchestrator.remove_device(current_user, device_id)
    return MessageResponse(message="Device removed", details={"device_id": device_id})


@router.patch("/{device_id}", response_model=DeviceSessionResponse)
async def rename_device(
    request: Request,
    device_id: str,
    payload: DeviceRenameRequest,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> DeviceSessionResponse:
    session = await orchestrator.rename_device(current_user, device_id, payload.device_name)
    return DeviceSessionResponse.from_record(session, get_current_device_id(request))


@router.put("/{device_id}/trust", response_model=DeviceSessionResponse)
async def set_device_trust(
    request: Request,
    device_id: str,
    payload: DeviceTrustRequest,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> DeviceSessionResponse:
    session = await orchestrator.set_device_trusted(current_user, device_id, payload.trusted)
    return DeviceSessionResponse.from_record(session, get_current_device_id(request))
