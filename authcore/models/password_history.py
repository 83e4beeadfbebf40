"""
Password history model untuk AuthCore.
Melacak hash password lama untuk mencegah penggunaan ulang.
"""

from sqlalchemy import BigInteger, Column, ForeignKey, Identity, Index, String
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID

from authcore.db.base import BaseModel


class PasswordHistory(BaseModel):
    """
    Password history, most-recent-first berdasarkan ph_id.

    Attributes:
        ph_id: Sequence ID (urutan insert)
        ph_user_id: Pemilik password
        ph_password_hash: Hash dari password lama
    """

    __tablename__ = "password_history"

    ph_id = Column(
        BigInteger,
        Identity(),
        primary_key=True
    )
    ph_user_id = Column(
        PostgresUUID(as_uuid=True),
        ForeignKey("users.u_id", ondelete="CASCADE"),
        nullable=False
    )
    ph_password_hash = Column(
        String(255),
        nullable=False
    )

    __table_args__ = (
        Index("idx_password_history_user_id", "ph_user_id", "ph_id"),
    )
