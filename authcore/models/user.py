"""
User model untuk AuthCore.
Menyimpan credential, lockout counter, enrollment 2FA, dan password policy state.
"""

import uuid

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Integer, JSON, String
)
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID

from authcore.core.constants import TwoFactorState, UserRole
from authcore.db.base import BaseModel


class User(BaseModel):
    """
    User model untuk authentication.

    Attributes:
        u_id: Unique user ID (UUID)
        u_email: Email user, lower-case dan unique
        u_password_hash: Argon2 hash password sekarang
        u_role: user atau admin
        u_failed_login_attempts: Jumlah login gagal berturut-turut
        u_lockout_until: Akun terkunci sampai timestamp ini
        u_two_factor_state: State enrollment 2FA
        u_two_factor_secret: TOTP secret terenkripsi (hanya PENDING/ENABLED)
        u_backup_code_hashes: SHA-256 digest backup codes yang belum dipakai
        u_password_changed_at: Kapan password terakhir diganti
        u_force_password_change: Paksa ganti password di login berikutnya
        u_is_active: Akun aktif
        u_is_locked: Administrative lock
        u_is_email_verified: Email sudah diverifikasi
        u_last_login_at: Login sukses terakhir
        u_security_preferences: Preferensi notifikasi keamanan (JSON)
        created_at: Account creation timestamp
    """

    __tablename__ = "users"

    # Primary key
    u_id = Column(
        PostgresUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )

    # Authentication fields
    u_email = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True
    )
    u_password_hash = Column(
        String(255),
        nullable=False
    )
    u_role = Column(
        String(20),
        default=UserRole.USER.value,
        nullable=False
    )

    # Lockout
    u_failed_login_attempts = Column(
        Integer,
        default=0,
        nullable=False
    )
    u_lockout_until = Column(
        DateTime(timezone=True),
        nullable=True
    )

    # Two factor
    u_two_factor_state = Column(
        String(20),
        default=TwoFactorState.NOT_SETUP.value,
        nullable=False
    )
    u_two_factor_secret = Column(
        String(512),
        nullable=True
    )
    u_backup_code_hashes = Column(
        JSON,
        nullable=False,
        default=list
    )

    # Password policy
    u_password_changed_at = Column(
        DateTime(timezone=True),
        nullable=True
    )
    u_force_password_change = Column(
        Boolean,
        default=False,
        nullable=False
    )

    # Status fields
    u_is_active = Column(
        Boolean,
        default=True,
        nullable=False
    )
    u_is_locked = Column(
        Boolean,
        default=False,
        nullable=False
    )
    u_is_email_verified = Column(
        Boolean,
        default=False,
        nullable=False
    )
    u_last_login_at = Column(
        DateTime(timezone=True),
        nullable=True
    )

    u_security_preferences = Column(
        JSON,
        nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "u_failed_login_attempts >= 0",
            name="check_failed_attempts_non_negative"
        ),
        CheckConstraint(
            "(u_two_factor_state IN ('PENDING', 'ENABLED')) = (u_two_factor_secret IS NOT NULL)",
            name="check_two_factor_secret_matches_state"
        ),
    )
