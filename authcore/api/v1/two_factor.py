"""
Two-factor authentication endpoints untuk API v1.
Setup, enable, disable, regenerate backup codes, dan status.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from authcore.api.dependencies.auth import client_device, get_current_user, get_orchestrator
from authcore.repositories.records import UserRecord
from authcore.schemas.response import ERROR_RESPONSES, MessageResponse
from authcore.schemas.two_factor import (
    BackupCodesResponse,
    TwoFactorCodeRequest,
    TwoFactorEnableRequest,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
)
from authcore.services.auth import AuthOrchestrator

router = APIRouter(prefix="/2fa", tags=["two-factor"], responses=ERROR_RESPONSES)


@router.post("/setup", response_model=TwoFactorSetupResponse)
async def setup_two_factor(
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> TwoFactorSetupResponse:
    """
    Mulai setup 2FA. 2FA belum aktif sampai /enable dipanggil dengan code valid.

    Returns:
        Secret, provisioning URI, QR code, dan backup codes (ditampilkan sekali)
    """
    setup = await orchestrator.setup_two_factor(current_user)
    return TwoFactorSetupResponse(
        secret=setup.secret,
        provisioning_uri=setup.provisioning_uri,
        qr_code=setup.qr_code,
        backup_codes=setup.backup_codes,
        manual_entry_key=setup.secret
    )


@router.post("/enable", response_model=MessageResponse)
async def enable_two_factor(
    payload: TwoFactorEnableRequest,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    await orchestrator.enable_two_factor(current_user, payload.verification_code)
    return MessageResponse(message="Two-factor authentication enabled")


@router.post("/disable", response_model=MessageResponse)
async def disable_two_factor(
    request: Request,
    payload: TwoFactorCodeRequest,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    await orchestrator.disable_two_factor(current_user, payload.code, device=client_device(request))
    return MessageResponse(message="Two-factor authentication disabled")


@router.post("/backup-codes", response_model=BackupCodesResponse)
async def regenerate_backup_codes(
    payload: TwoFactorCodeRequest,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> BackupCodesResponse:
    codes = await orchestrator.regenerate_backup_codes(current_user, payload.code)
    return BackupCodesResponse(backup_codes=codes)


@router.get("/status", response_model=TwoFactorStatusResponse)
async def two_factor_status(
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> TwoFactorStatusResponse:
    status = await orchestrator.two_factor_status(current_user)
    return TwoFactorStatusResponse(
        state=status.state.value,
        enabled=status.enabled,
        backup_codes_remaining=status.backup_codes_remaining
    )
