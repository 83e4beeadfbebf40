"""
Device session model untuk AuthCore.
Satu row per device aktif; terikat ke satu REFRESH token.
"""

import uuid

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, String, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID

from authcore.db.base import BaseModel


class DeviceSession(BaseModel):
    """
    Device session untuk enforcement limit device.

    Attributes:
        ds_id: Session ID (UUID)
        ds_user_id: Pemilik session
        ds_device_id: Identifier device dari client (atau UUID4 generated)
        ds_device_name: Nama device yang bisa dibaca manusia
        ds_is_trusted: Ditandai trusted oleh user
        ds_last_used_at: Terakhir dipakai login/refresh
        ds_refresh_token_id: REFRESH token yang sedang terikat
        created_at: Kapan device pertama kali di-admit (urutan eviction)
    """

    __tablename__ = "device_sessions"

    ds_id = Column(
        PostgresUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )
    ds_user_id = Column(
        PostgresUUID(as_uuid=True),
        ForeignKey("users.u_id", ondelete="CASCADE"),
        nullable=False
    )
    ds_device_id = Column(
        String(255),
        nullable=False
    )
    ds_device_name = Column(String(255), nullable=True)
    ds_ip_address = Column(String(45), nullable=True)
    ds_user_agent = Column(String, nullable=True)
    ds_is_trusted = Column(
        Boolean,
        default=False,
        nullable=False
    )
    ds_last_used_at = Column(
        DateTime(timezone=True),
        nullable=True
    )
    # Soft reference: session di-admit sebelum refresh token-nya ditulis
    ds_refresh_token_id = Column(
        PostgresUUID(as_uuid=True),
        nullable=True
    )

    __table_args__ = (
        UniqueConstraint("ds_user_id", "ds_device_id", name="uq_device_sessions_user_device"),
        Index("idx_device_sessions_user_created", "ds_user_id", "created_at"),
    )
