"""
Repositories module untuk AuthCore.
CredentialStore interfaces, domain records, dan dua backend (SQLAlchemy dan in-memory).
"""

from authcore.repositories.base import (
    CredentialStore,
    DeviceSessionRepository,
    SecurityEventRepository,
    TokenRepository,
    UserRepository,
)
from authcore.repositories.memory import InMemoryStore
from authcore.repositories.records import (
    DeviceInfo,
    DeviceSessionRecord,
    SecurityEventRecord,
    SecurityPreferences,
    TokenRecord,
    TwoFactorEnrollment,
    UserRecord,
)
from authcore.repositories.sql import SqlCredentialStore

__all__ = [
    "CredentialStore",
    "UserRepository",
    "TokenRepository",
    "DeviceSessionRepository",
    "SecurityEventRepository",
    "InMemoryStore",
    "SqlCredentialStore",
    "DeviceInfo",
    "DeviceSessionRecord",
    "SecurityEventRecord",
    "SecurityPreferences",
    "TokenRecord",
    "TwoFactorEnrollment",
    "UserRecord",
]
