"""
Domain records yang dipertukarkan antara services dan CredentialStore.
Records ini bebas dari ORM sehingga services bisa jalan di atas backend apa pun.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict

from authcore.core.constants import (
    EventOutcome,
    SecurityEventType,
    SecurityLevel,
    TokenType,
    TwoFactorState,
    UserRole,
)

logger = logging.getLogger(__name__)


class SecurityPreferences(BaseModel):
    """Preferensi notifikasi keamanan milik user."""

    model_config = ConfigDict(extra="forbid")

    login_alerts: bool = True
    new_device_alerts: bool = True
    password_expiry_reminders: bool = True

    @classmethod
    def from_stored(cls, raw: Union[None, str, Dict[str, Any]]) -> "SecurityPreferences":
        """
        Parse preferences dari storage.
        Row lama bisa menyimpan JSON string, row baru menyimpan dict.
        Key yang tidak dikenal diabaikan; JSON rusak jatuh ke default.
        """
        if raw is None or raw == "":
            return cls()
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning(f"Malformed stored security preferences, using defaults: {e}")
                return cls()
        if not isinstance(raw, dict):
            logger.warning(f"Stored security preferences is not an object, using defaults: {type(raw).__name__}")
            return cls()
        return cls.model_validate({k: v for k, v in raw.items() if k in cls.model_fields})


@dataclass(frozen=True)
class TwoFactorEnrollment:
    """
    State enrollment 2FA beserta secret terenkripsinya.

    Secret hanya ada saat PENDING atau ENABLED; kombinasi lain ditolak.
    """

    state: TwoFactorState = TwoFactorState.NOT_SETUP
    secret: Optional[str] = None

    def __post_init__(self):
        has_secret = self.secret is not None
        needs_secret = self.state in (TwoFactorState.PENDING, TwoFactorState.ENABLED)
        if has_secret != needs_secret:
            raise ValueError(
                f"Two-factor state {self.state.value} "
                f"{'requires' if needs_secret else 'forbids'} a secret"
            )

    @classmethod
    def not_setup(cls) -> "TwoFactorEnrollment":
        return cls(TwoFactorState.NOT_SETUP)

    @classmethod
    def pending(cls, secret: str) -> "TwoFactorEnrollment":
        return cls(TwoFactorState.PENDING, secret)

    @classmethod
    def enabled(cls, secret: str) -> "TwoFactorEnrollment":
        return cls(TwoFactorState.ENABLED, secret)

    @classmethod
    def disabled(cls) -> "TwoFactorEnrollment":
        return cls(TwoFactorState.DISABLED)

    @property
    def is_enabled(self) -> bool:
        return self.state == TwoFactorState.ENABLED


@dataclass
class DeviceInfo:
    """Informasi device yang dikirim client saat login."""

    device_id: Optional[str] = None
    device_name: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class UserRecord:
    """Snapshot state user."""

    email: str
    password_hash: str
    id: UUID = field(default_factory=uuid4)
    role: UserRole = UserRole.USER
    failed_login_attempts: int = 0
    lockout_until: Optional[datetime] = None
    two_factor: TwoFactorEnrollment = field(default_factory=TwoFactorEnrollment.not_setup)
    backup_code_hashes: List[str] = field(default_factory=list)
    password_changed_at: Optional[datetime] = None
    force_password_change: bool = False
    is_active: bool = True
    is_locked: bool = False
    is_email_verified: bool = False
    last_login_at: Optional[datetime] = None
    security_preferences: SecurityPreferences = field(default_factory=SecurityPreferences)
    created_at: Optional[datetime] = None

    def copy(self) -> "UserRecord":
        return replace(
            self,
            backup_code_hashes=list(self.backup_code_hashes),
            security_preferences=self.security_preferences.model_copy(),
        )


@dataclass
class TokenRecord:
    """Record token yang diterbitkan. Nilai mentah token tidak pernah disimpan."""

    user_id: UUID
    token_hash: str
    type: TokenType
    expires: datetime
    id: UUID = field(default_factory=uuid4)
    blacklisted: bool = False
    device_id: Optional[str] = None
    device_name: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires

    def is_valid(self, now: datetime) -> bool:
        return not self.blacklisted and not self.is_expired(now)


@dataclass
class DeviceSessionRecord:
    """Satu device session aktif milik user."""

    user_id: UUID
    device_id: str
    id: UUID = field(default_factory=uuid4)
    device_name: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    is_trusted: bool = False
    last_used: Optional[datetime] = None
    created_at: Optional[datetime] = None
    refresh_token_id: Optional[UUID] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "device_id": self.device_id,
            "device_name": self.device_name,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "is_trusted": self.is_trusted,
            "last_used": self.last_used.isoformat() if self.last_used else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class SecurityEventRecord:
    """Security event yang sudah ditulis. Append-only."""

    event_type: SecurityEventType
    level: SecurityLevel
    outcome: EventOutcome
    timestamp: datetime
    id: UUID = field(default_factory=uuid4)
    user_id: Optional[UUID] = None
    email: Optional[str] = None
    description: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "event_type": self.event_type.value,
            "level": self.level.value,
            "outcome": self.outcome.value,
            "timestamp": self.timestamp.isoformat(),
            "user_id": str(self.user_id) if self.user_id else None,
            "email": self.email,
            "description": self.description,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "metadata": self.metadata,
        }
