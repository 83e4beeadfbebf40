"""
Token model untuk AuthCore.
Satu row per token yang diterbitkan; hanya hash dari nilai token yang disimpan.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID

from authcore.db.base import BaseModel


class AuthToken(BaseModel):
    """
    Token record (ACCESS, REFRESH, RESET_PASSWORD, VERIFY_EMAIL, TWO_FACTOR).

    Attributes:
        t_id: Token ID, sama dengan JWT `jti`
        t_user_id: Pemilik token
        t_token_hash: SHA-256 dari signed value
        t_type: Tipe token
        t_expires_at: Expiry timestamp
        t_blacklisted: Sudah di-revoke; tidak pernah di-unset
        t_device_id: Device yang terikat (opsional)
    """

    __tablename__ = "auth_tokens"

    t_id = Column(
        PostgresUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )
    t_user_id = Column(
        PostgresUUID(as_uuid=True),
        ForeignKey("users.u_id", ondelete="CASCADE"),
        nullable=False
    )
    t_token_hash = Column(
        String(64),
        unique=True,
        nullable=False
    )
    t_type = Column(
        String(32),
        nullable=False
    )
    t_expires_at = Column(
        DateTime(timezone=True),
        nullable=False,
        index=True
    )
    t_blacklisted = Column(
        Boolean,
        default=False,
        nullable=False
    )

    # Device binding
    t_device_id = Column(String(255), nullable=True)
    t_device_name = Column(String(255), nullable=True)
    t_ip_address = Column(String(45), nullable=True)
    t_user_agent = Column(String, nullable=True)

    __table_args__ = (
        Index("idx_auth_tokens_user_type", "t_user_id", "t_type"),
        Index("idx_auth_tokens_user_device", "t_user_id", "t_device_id"),
    )
