"""
Models module untuk AuthCore.
Berisi semua SQLAlchemy models untuk database.
"""

from authcore.models.user import User
from authcore.models.password_history import PasswordHistory
from authcore.models.token import AuthToken
from authcore.models.device import DeviceSession
from authcore.models.security_event import SecurityEvent

__all__ = [
    "User",
    "PasswordHistory",
    "AuthToken",
    "DeviceSession",
    "SecurityEvent"
]
