"""
Security event model untuk AuthCore.
Append-only; referensi ke user bersifat weak (tanpa FK) supaya event tetap ada setelah user dihapus.
"""

import uuid

from sqlalchemy import Column, DateTime, Index, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID

from authcore.db.base import Base


class SecurityEvent(Base):
    """
    Security event untuk audit dan monitoring.

    Attributes:
        se_id: Event ID
        se_event_type: Tipe event (LOGIN_SUCCESS, ACCOUNT_LOCKED, ...)
        se_level: INFO, WARNING, ERROR, CRITICAL
        se_outcome: SUCCESS atau FAILURE
        se_timestamp: Kapan event terjadi
        se_user_id: User terkait (weak reference)
        se_email: Email user saat event (denormalized)
    """

    __tablename__ = "security_events"

    se_id = Column(
        PostgresUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )
    se_event_type = Column(String(50), nullable=False)
    se_level = Column(String(20), nullable=False)
    se_outcome = Column(String(20), nullable=False)
    se_timestamp = Column(
        DateTime(timezone=True),
        nullable=False,
        index=True
    )
    se_user_id = Column(PostgresUUID(as_uuid=True), nullable=True)
    se_email = Column(String(255), nullable=True)
    se_description = Column(Text, nullable=True)
    se_ip_address = Column(String(45), nullable=True)
    se_user_agent = Column(Text, nullable=True)
    se_metadata = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_security_events_user_time", "se_user_id", "se_timestamp"),
    )
