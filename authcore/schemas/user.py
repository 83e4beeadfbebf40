"""
User schemas untuk AuthCore.
Menangani responses untuk profile, devices, preferences, dan security events.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from authcore.repositories.records import DeviceSessionRecord, SecurityEventRecord, UserRecord


class UserResponse(BaseModel):
    """
    User response schema.
    """
    id: str = Field(..., description="User ID")
    email: str = Field(..., description="User email address")
    role: str = Field(..., description="User role")
    is_active: bool
    is_email_verified: bool
    two_factor_enabled: bool
    force_password_change: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        return cls(
            id=str(user.id),
            email=user.email,
            role=user.role.value,
            is_active=user.is_active,
            is_email_verified=user.is_email_verified,
            two_factor_enabled=user.two_factor.is_enabled,
            force_password_change=user.force_password_change,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )


class SecurityPreferencesUpdate(BaseModel):
    """
    Partial update untuk security preferences. Key yang tidak dikenal ditolak.
    """
    login_alerts: Optional[bool] = None
    new_device_alerts: Optional[bool] = None
    password_expiry_reminders: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class SecurityPreferencesResponse(BaseModel):
    login_alerts: bool
    new_device_alerts: bool
    password_expiry_reminders: bool


class DeviceSessionResponse(BaseModel):
    """
    Device session response schema.
    """
    id: str = Field(..., description="Session ID")
    device_id: str = Field(..., description="Device identifier")
    device_name: Optional[str] = Field(None, description="Device name")
    ip_address: Optional[str] = Field(None, description="Last IP address")
    user_agent: Optional[str] = Field(None, description="Last user agent")
    is_trusted: bool = Field(False, description="Whether device is trusted")
    last_used: Optional[datetime] = Field(None, description="Last used timestamp")
    created_at: Optional[datetime] = Field(None, description="First seen timestamp")
    is_current: bool = Field(False, description="Whether this is the current device")

    @classmethod
    def from_record(cls, session: DeviceSessionRecord, current_device_id: Optional[str] = None) -> "DeviceSessionResponse":
        return cls(
            id=str(session.id),
            device_id=session.device_id,
            device_name=session.device_name,
            ip_address=session.ip_address,
            user_agent=session.user_agent,
            is_trusted=session.is_trusted,
            last_used=session.last_used,
            created_at=session.created_at,
            is_current=session.device_id == current_device_id,
        )


class DeviceListResponse(BaseModel):
    devices: List[DeviceSessionResponse]
    total: int
    max_devices: int


class DeviceLimitResponse(BaseModel):
    current_devices: int
    max_devices: int
    remaining: int
    limit_reached: bool
    policy: str


class DeviceRenameRequest(BaseModel):
    device_name: Annotated[str, Field(min_length=1, max_length=255)] = Field(..., description="New device name")


class DeviceTrustRequest(BaseModel):
    trusted: bool = Field(..., description="Mark device as trusted")


class SecurityEventResponse(BaseModel):
    """
    Security event response schema.
    """
    id: str
    event_type: str
    level: str
    outcome: str
    timestamp: datetime
    description: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, event: SecurityEventRecord) -> "SecurityEventResponse":
        return cls(
            id=str(event.id),
            event_type=event.event_type.value,
            level=event.level.value,
            outcome=event.outcome.value,
            timestamp=event.timestamp,
            description=event.description,
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            metadata=event.metadata,
        )


class SecuritySummaryResponse(BaseModel):
    period_days: int
    total_events: int
    by_type: Dict[str, int]
    by_level: Dict[str, int]
    recent_activity: List[Dict[str, Any]]
