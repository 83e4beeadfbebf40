"""
Core module untuk AuthCore.
Berisi komponen inti seperti konfigurasi, keamanan, exceptions, dan konstanta.
"""

from authcore.core.config import Settings, get_settings
from authcore.core.exceptions import (
    AuthCoreError,
    AuthenticationError,
    AuthorizationError,
    ValidationError,
    NotFoundError,
    ConflictError,
    TokenError
)
from authcore.core.security import Security, utc_now

__all__ = [
    "Settings",
    "get_settings",
    "AuthCoreError",
    "AuthenticationError",
    "AuthorizationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TokenError",
    "Security",
    "utc_now"
]
