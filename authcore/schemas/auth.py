"""
Authentication schemas untuk AuthCore.
Menangani validasi untuk register, login, 2FA challenge, refresh, logout, dan reset password.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from authcore.repositories.records import DeviceInfo


class DeviceInfoSchema(BaseModel):
    """
    Device information yang dikirim client.
    device_id kosong berarti device baru; server akan generate UUID.
    """
    device_id: Optional[str] = Field(
        None,
        min_length=1,
        max_length=255,
        description="Unique device identifier/fingerprint"
    )
    device_name: Optional[str] = Field(
        None,
        max_length=255,
        description="Human-readable device name"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "device_id": "550e8400-e29b-41d4-a716-446655440000",
                "device_name": "John's iPhone"
            }
        }
    )

    def to_device(self, ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> DeviceInfo:
        return DeviceInfo(
            device_id=self.device_id,
            device_name=self.device_name,
            ip_address=ip_address,
            user_agent=user_agent,
        )


class RegisterRequest(BaseModel):
    """
    Register request schema.
    Kekuatan password divalidasi oleh password policy, bukan di sini.
    """
    email: EmailStr = Field(
        ...,
        description="User email address"
    )
    password: Annotated[str, Field(min_length=1, max_length=128)] = Field(
        ...,
        description="User password"
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "SecurePassword123!"
            }
        }
    )


class LoginRequest(BaseModel):
    """
    Login request schema.
    """
    email: EmailStr = Field(
        ...,
        description="User email address"
    )
    password: Annotated[str, Field(min_length=1)] = Field(
        ...,
        description="User password"
    )
    device_info: Optional[DeviceInfoSchema] = Field(
        None,
        description="Device information for session tracking"
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "SecurePassword123!",
                "device_info": {"device_name": "Chrome on Windows"}
            }
        }
    )


class TokenResponse(BaseModel):
    """
    Token pair response schema.
    """
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field("bearer", description="Token type (always 'bearer')")
    access_token_expires: datetime = Field(..., description="Access token expiry")
    refresh_token_expires: datetime = Field(..., description="Refresh token expiry")
    device_id: str = Field(..., description="Device session bound to the refresh token")


class PasswordStatusResponse(BaseModel):
    """
    Password expiry status.
    """
    expired: bool
    days_remaining: int
    expires_at: Optional[datetime] = None
    needs_change: bool
    force_change: bool
    password_changed_at: Optional[datetime] = None


class LoginResponse(TokenResponse):
    """
    Login response schema extending TokenResponse.
    """
    user_id: str = Field(..., description="User ID")
    password_status: Optional[PasswordStatusResponse] = Field(
        None,
        description="Password expiry status; clients should prompt when needs_change"
    )


class TwoFactorLoginRequest(BaseModel):
    """
    Menyelesaikan login dengan second factor.
    """
    challenge_token: str = Field(
        ...,
        description="Single-use challenge token dari login response"
    )
    code: Annotated[str, Field(min_length=6, max_length=20)] = Field(
        ...,
        description="6-digit TOTP code or backup code (XXXX-XXXX format)"
    )
    device_info: Optional[DeviceInfoSchema] = Field(
        None,
        description="Device information for session tracking"
    )

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        """Normalize code format."""
        return v.replace(" ", "").upper()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "challenge_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "code": "123456"
            }
        }
    )


class RefreshTokenRequest(BaseModel):
    """
    Refresh token request schema.
    """
    refresh_token: str = Field(..., description="JWT refresh token")
    device_info: Optional[DeviceInfoSchema] = Field(None, description="Updated device information")


class LogoutRequest(BaseModel):
    """
    Logout request schema.
    """
    refresh_token: str = Field(..., description="Refresh token of the session to end")


class PasswordResetRequest(BaseModel):
    email: EmailStr = Field(..., description="Email of the account to reset")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class PasswordResetConfirm(BaseModel):
    token: str = Field(..., description="Password reset token")
    new_password: Annotated[str, Field(min_length=1, max_length=128)] = Field(
        ...,
        description="New password"
    )


class PasswordChangeRequest(BaseModel):
    current_password: Annotated[str, Field(min_length=1)] = Field(..., description="Current password")
    new_password: Annotated[str, Field(min_length=1, max_length=128)] = Field(..., description="New password")


class EmailVerificationRequest(BaseModel):
    token: str = Field(..., description="Email verification token")
