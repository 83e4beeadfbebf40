"""
Authentication endpoints untuk API v1.
Menangani register, login, 2FA challenge, refresh, logout, reset password, dan verifikasi email.

Endpoint di sini tipis: semua keputusan ada di AuthOrchestrator dan error
diteruskan apa adanya ke exception handlers.
"""

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from authcore.api.dependencies.auth import (
    client_device,
    get_current_device_id,
    get_current_user,
    get_orchestrator,
)
from authcore.core.exceptions import TwoFactorRequiredError
from authcore.repositories.records import UserRecord
from authcore.schemas.auth import (
    EmailVerificationRequest,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    PasswordStatusResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    TwoFactorLoginRequest,
)
from authcore.schemas.response import ERROR_RESPONSES, MessageResponse
from authcore.schemas.user import UserResponse
from authcore.services.auth import AuthOrchestrator, LoginOutcome
from authcore.services.tokens import AuthTokens

router = APIRouter(prefix="/auth", tags=["authentication"], responses=ERROR_RESPONSES)

RESET_REQUESTED_MESSAGE = "If the email is registered, a password reset link has been sent"


def _token_response(tokens: AuthTokens) -> TokenResponse:
    return TokenResponse(**tokens.to_dict())


def _login_response(outcome: LoginOutcome) -> LoginResponse:
    password_status = None
    if outcome.password_status is not None:
        password_status = PasswordStatusResponse(**asdict(outcome.password_status))
    return LoginResponse(
        **outcome.tokens.to_dict(),
        user_id=str(outcome.user.id),
        password_status=password_status
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> UserResponse:
    """
    Register user baru.

    Raises:
        WeakPasswordError: 422 dengan daftar violations
        EmailAlreadyRegisteredError: 409
    """
    user = await orchestrator.register(payload.email, payload.password)
    return UserResponse.from_record(user)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    payload: LoginRequest,
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> LoginResponse:
    """
    Login endpoint.

    Proses login:
    1. Check lockout
    2. Verifikasi kredensial
    3. Check 2FA requirement (401 dengan challenge_token jika enabled)
    4. Admit device dan generate tokens

    Returns:
        LoginResponse dengan access token dan refresh token
    """
    outcome = await orchestrator.login(
        payload.email,
        payload.password,
        device=client_device(request, payload.device_info)
    )
    if outcome.requires_two_factor:
        raise TwoFactorRequiredError(challenge=outcome.challenge.value)
    return _login_response(outcome)


@router.post("/login/2fa", response_model=LoginResponse)
async def complete_two_factor_login(
    request: Request,
    payload: TwoFactorLoginRequest,
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> LoginResponse:
    """
    Selesaikan login dengan TOTP atau backup code.
    Challenge token hanya berlaku sekali.
    """
    outcome = await orchestrator.complete_two_factor(
        payload.challenge_token,
        payload.code,
        device=client_device(request, payload.device_info)
    )
    return _login_response(outcome)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    request: Request,
    payload: RefreshTokenRequest,
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> TokenResponse:
    """
    Tukar refresh token dengan pasangan token baru. Refresh token lama langsung tidak berlaku.
    """
    tokens = await orchestrator.refresh(
        payload.refresh_token,
        device=client_device(request, payload.device_info)
    )
    return _token_response(tokens)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    payload: LogoutRequest,
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    await orchestrator.logout(payload.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all_other_devices(
    request: Request,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    """
    Logout dari semua device kecuali device yang sedang dipakai.
    """
    count = await orchestrator.logout_all_other_devices(
        current_user,
        keep_device_id=get_current_device_id(request)
    )
    return MessageResponse(
        message="Logged out from all other devices",
        details={"devices_removed": count}
    )


@router.post("/password-reset/request", response_model=MessageResponse)
async def request_password_reset(
    request: Request,
    payload: PasswordResetRequest,
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    """
    Minta reset password. Response selalu sama supaya email tidak bisa di-enumerate.
    Token dikirim oleh email collaborator; dalam DEBUG mode token ikut di response.
    """
    token = await orchestrator.request_password_reset(payload.email)

    details = None
    if token and request.app.state.settings.DEBUG:
        details = {"reset_token": token}
    return MessageResponse(message=RESET_REQUESTED_MESSAGE, details=details)


@router.post("/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    payload: PasswordResetConfirm,
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    await orchestrator.reset_password(payload.token, payload.new_password)
    return MessageResponse(message="Password has been reset. Please log in again.")


@router.post("/verify-email/send", response_model=MessageResponse)
async def send_email_verification(
    request: Request,
    current_user: Annotated[UserRecord, Depends(get_current_user)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    if current_user.is_email_verified:
        return MessageResponse(message="Email already verified")

    token = await orchestrator.issue_email_verification(current_user)

    details = None
    if request.app.state.settings.DEBUG:
        details = {"verification_token": token}
    return MessageResponse(message="Verification email sent", details=details)


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    payload: EmailVerificationRequest,
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> MessageResponse:
    await orchestrator.verify_email(payload.token)
    return MessageResponse(message="Email verified successfully")
