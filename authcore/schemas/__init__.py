"""
Schemas module untuk AuthCore.
Berisi semua Pydantic schemas untuk request/response validation.
"""

from authcore.schemas.auth import (
    DeviceInfoSchema,
    EmailVerificationRequest,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    PasswordChangeRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    PasswordStatusResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    TwoFactorLoginRequest,
)
from authcore.schemas.response import ErrorResponse, HealthCheckResponse, MessageResponse
from authcore.schemas.two_factor import (
    BackupCodesResponse,
    TwoFactorCodeRequest,
    TwoFactorEnableRequest,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
)
from authcore.schemas.user import (
    DeviceLimitResponse,
    DeviceListResponse,
    DeviceRenameRequest,
    DeviceSessionResponse,
    DeviceTrustRequest,
    SecurityEventResponse,
    SecurityPreferencesResponse,
    SecurityPreferencesUpdate,
    SecuritySummaryResponse,
    UserResponse,
)

__all__ = [
    # Auth schemas
    "DeviceInfoSchema",
    "RegisterRequest",
    "LoginRequest",
    "LoginResponse",
    "TokenResponse",
    "TwoFactorLoginRequest",
    "RefreshTokenRequest",
    "LogoutRequest",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "PasswordChangeRequest",
    "PasswordStatusResponse",
    "EmailVerificationRequest",

    # Two factor schemas
    "TwoFactorSetupResponse",
    "TwoFactorEnableRequest",
    "TwoFactorCodeRequest",
    "TwoFactorStatusResponse",
    "BackupCodesResponse",

    # User schemas
    "UserResponse",
    "SecurityPreferencesUpdate",
    "SecurityPreferencesResponse",
    "DeviceSessionResponse",
    "DeviceListResponse",
    "DeviceLimitResponse",
    "DeviceRenameRequest",
    "DeviceTrustRequest",
    "SecurityEventResponse",
    "SecuritySummaryResponse",

    # Response schemas
    "MessageResponse",
    "ErrorResponse",
    "HealthCheckResponse"
]
