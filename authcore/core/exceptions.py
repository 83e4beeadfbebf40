"""
Custom exceptions untuk AuthCore.
Semua custom exceptions harus inherit dari AuthCoreError.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List


class AuthCoreError(Exception):
    """Base exception untuk semua custom exceptions di AuthCore."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code
            details: Additional error details
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AuthCoreError):
    """Exception untuk error autentikasi."""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class AuthorizationError(AuthCoreError):
    """Exception untuk error otorisasi (permission denied)."""

    def __init__(self, message: str = "Permission denied", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=403, details=details)


class ValidationError(AuthCoreError):
    """Exception untuk error validasi data."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


class NotFoundError(AuthCoreError):
    """Exception untuk resource tidak ditemukan."""

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=404, details=details)


class ConflictError(AuthCoreError):
    """Exception untuk konflik data (misal: duplicate entry)."""

    def __init__(self, message: str = "Resource conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=409, details=details)


class TokenError(AuthCoreError):
    """Exception untuk error terkait token."""

    def __init__(self, message: str = "Invalid token", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


# Authentication

class InvalidCredentialsError(AuthenticationError):
    """Email tidak dikenal atau password salah. Sengaja tidak dibedakan."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class AccountLockedError(AuthenticationError):
    """Exception untuk akun yang terkunci (lockout atau administrative lock)."""

    def __init__(self, until: Optional[datetime] = None, message: str = "Account is locked"):
        self.until = until
        details = {"locked_until": until.isoformat()} if until else {"locked_until": None}
        super().__init__(message, details=details)
        self.status_code = 423


class AccountDisabledError(AuthenticationError):
    """Exception untuk akun yang dinonaktifkan."""

    def __init__(self, message: str = "Account is disabled"):
        super().__init__(message)
        self.status_code = 403


class TwoFactorRequiredError(AuthenticationError):
    """Login butuh second factor; membawa challenge token untuk step berikutnya."""

    def __init__(self, challenge: str, message: str = "Two-factor authentication required"):
        self.challenge = challenge
        super().__init__(message, details={"requires_2fa": True, "challenge_token": challenge})


class InvalidTwoFactorCodeError(AuthenticationError):
    """Exception untuk kode TOTP / backup code yang salah."""

    def __init__(self, message: str = "Invalid two-factor code"):
        super().__init__(message)


# Token

class InvalidTokenError(TokenError):
    """Signature, format, tipe, atau record token tidak valid."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpiredError(TokenError):
    """Exception untuk token yang sudah expired."""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message, details={"expired": True})


class RevokedTokenError(TokenError):
    """Exception untuk token yang sudah di-blacklist."""

    def __init__(self, message: str = "Token has been revoked"):
        super().__init__(message, details={"revoked": True})


# Validation

class WeakPasswordError(ValidationError):
    """Exception untuk password yang tidak memenuhi policy."""

    def __init__(self, violations: List[str], message: str = "Password does not meet requirements"):
        self.violations = list(violations)
        super().__init__(message, details={"violations": self.violations})


class PasswordReuseError(ValidationError):
    """Exception untuk password yang sudah pernah digunakan."""

    def __init__(self, violations: Optional[List[str]] = None, message: str = "Password has been used recently"):
        self.violations = list(violations or [message])
        super().__init__(message, details={"violations": self.violations, "password_reuse": True})


class TwoFactorStateError(ValidationError):
    """Operasi 2FA tidak valid untuk state enrollment saat ini."""

    def __init__(self, message: str = "Invalid two-factor state", state: Optional[str] = None):
        super().__init__(message, details={"state": state} if state else None)
        self.status_code = 409


# Conflict

class DeviceLimitExceededError(ConflictError):
    """Exception untuk limit device terlampaui (policy reject)."""

    def __init__(self, max_devices: int, message: Optional[str] = None):
        self.max_devices = max_devices
        super().__init__(
            message or f"Maximum {max_devices} devices allowed",
            details={"max_devices": max_devices}
        )


class EmailAlreadyRegisteredError(ConflictError):
    """Exception untuk email yang sudah terdaftar."""

    def __init__(self, message: str = "Email already registered"):
        super().__init__(message)


# Not found

class DeviceSessionNotFoundError(NotFoundError):
    """Exception untuk device session yang tidak ditemukan."""

    def __init__(self, device_id: Optional[str] = None, message: str = "Device session not found"):
        super().__init__(message, details={"device_id": device_id} if device_id else None)


class UserNotFoundError(NotFoundError):
    """Exception untuk user yang tidak ditemukan."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message)
