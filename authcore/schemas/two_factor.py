"""
Two-factor schemas untuk AuthCore.
"""

from typing import Annotated, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TwoFactorSetupResponse(BaseModel):
    """
    Two-factor authentication setup response.
    Secret dan backup codes hanya ditampilkan sekali.
    """
    secret: str = Field(..., description="Base32 encoded secret for TOTP")
    provisioning_uri: str = Field(..., description="otpauth:// URI")
    qr_code: str = Field(..., description="QR code as data URI for scanning")
    backup_codes: List[str] = Field(..., description="List of backup codes")
    manual_entry_key: str = Field(..., description="Manual entry key for TOTP apps")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "secret": "JBSWY3DPEHPK3PXP",
                "provisioning_uri": "otpauth://totp/AuthCore:user%40example.com?secret=JBSWY3DPEHPK3PXP&issuer=AuthCore",
                "qr_code": "data:image/png;base64,iVBORw0KGgoAAAANS...",
                "backup_codes": ["ABCD-2345", "EFGH-6789"],
                "manual_entry_key": "JBSWY3DPEHPK3PXP"
            }
        }
    )


class TwoFactorEnableRequest(BaseModel):
    """
    Request to enable two-factor authentication.
    """
    verification_code: Annotated[str, Field(pattern=r"^\d{6}$")] = Field(
        ...,
        description="TOTP code from the authenticator app"
    )


class TwoFactorCodeRequest(BaseModel):
    """
    Second factor untuk disable dan regenerate backup codes.
    """
    code: Annotated[str, Field(min_length=6, max_length=20)] = Field(
        ...,
        description="6-digit TOTP code or backup code (XXXX-XXXX format)"
    )

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.replace(" ", "").upper()


class TwoFactorStatusResponse(BaseModel):
    state: str
    enabled: bool
    backup_codes_remaining: int


class BackupCodesResponse(BaseModel):
    backup_codes: List[str] = Field(..., description="New backup codes (shown once)")
