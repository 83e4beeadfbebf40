"""
Konstanta yang digunakan di seluruh AuthCore.
"""

from enum import Enum


class UserRole(str, Enum):
    """Role user dalam sistem."""
    USER = "user"
    ADMIN = "admin"


class TokenType(str, Enum):
    """Tipe-tipe token yang diterbitkan TokenManager."""
    ACCESS = "ACCESS"
    REFRESH = "REFRESH"
    RESET_PASSWORD = "RESET_PASSWORD"
    VERIFY_EMAIL = "VERIFY_EMAIL"
    TWO_FACTOR = "TWO_FACTOR"


class TwoFactorState(str, Enum):
    """State machine enrollment 2FA."""
    NOT_SETUP = "NOT_SETUP"
    PENDING = "PENDING"
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"


class SecurityEventType(str, Enum):
    """Tipe-tipe security event yang di-emit."""
    # Authentication events
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"

    # Two factor events
    TWO_FACTOR_ENABLED = "TWO_FACTOR_ENABLED"
    TWO_FACTOR_DISABLED = "TWO_FACTOR_DISABLED"
    TWO_FACTOR_VERIFIED = "TWO_FACTOR_VERIFIED"

    # Password events
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"

    # Device events
    DEVICE_ADDED = "DEVICE_ADDED"
    DEVICE_REMOVED = "DEVICE_REMOVED"

    # Anomalies
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


class SecurityLevel(str, Enum):
    """Severity security event."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EventOutcome(str, Enum):
    """Hasil dari action yang di-log."""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class DeviceLimitPolicy(str, Enum):
    """Perilaku saat user mencapai limit device."""
    EVICT_OLDEST = "evict_oldest"
    REJECT = "reject"


class LoginFailureReason(str, Enum):
    """Alasan kegagalan login (dicatat di metadata event)."""
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    UNKNOWN_ACCOUNT = "UNKNOWN_ACCOUNT"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    TWO_FACTOR_FAILED = "TWO_FACTOR_FAILED"


# Backup codes
BACKUP_CODE_LENGTH = 8
# Tanpa 0/O dan 1/I/L supaya tidak tertukar saat diketik
BACKUP_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
BACKUP_CODE_LETTERS = "ABCDEFGHJKMNPQRSTUVWXYZ"

# TOTP
TOTP_DIGITS = 6

# Preferences default
DEFAULT_SECURITY_PREFERENCES = {
    "login_alerts": True,
    "new_device_alerts": True,
    "password_expiry_reminders": True,
}

# HTTP headers
REQUEST_ID_HEADER = "X-Request-ID"
RETRY_AFTER_HEADER = "Retry-After"
