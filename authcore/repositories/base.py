"""
Repository interfaces untuk CredentialStore.

Services hanya bergantung pada protocol di sini. Setiap method yang disebut
"atomic" harus berupa satu operasi read-modify-write di backend (satu statement
SQL atau satu critical section) supaya aman dipanggil concurrent.
"""

from datetime import datetime
from typing import AsyncContextManager, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from authcore.core.constants import TokenType
from authcore.repositories.records import (
    DeviceSessionRecord,
    SecurityEventRecord,
    SecurityPreferences,
    TokenRecord,
    TwoFactorEnrollment,
    UserRecord,
)


class UserRepository(Protocol):
    async def get(self, user_id: UUID) -> Optional[UserRecord]: ...

    async def get_by_email(self, email: str) -> Optional[UserRecord]: ...

    async def create(self, user: UserRecord) -> UserRecord: ...

    async def increment_failed_attempts(
        self,
        user_id: UUID,
        threshold: int,
        lockout_until: datetime,
    ) -> Tuple[int, Optional[datetime]]:
        """
        Atomic increment counter gagal.
        Jika counter baru >= threshold, lockout_until di-set dalam operasi yang sama.

        Returns:
            Tuple (new_count, lockout_until setelah update)
        """
        ...

    async def record_login_success(self, user_id: UUID, at: datetime) -> None:
        """Reset counter, hapus lockout, stamp last_login_at."""
        ...

    async def reset_lockout(self, user_id: UUID) -> None: ...

    async def get_password_history(self, user_id: UUID) -> List[str]:
        """Hash password sebelumnya, most-recent-first."""
        ...

    async def update_password(
        self,
        user_id: UUID,
        password_hash: str,
        changed_at: datetime,
        history_depth: int,
    ) -> None:
        """
        Ganti password hash, push hash lama ke history (dipotong ke history_depth),
        set password_changed_at dan clear force_password_change.
        """
        ...

    async def set_force_password_change(self, user_id: UUID, force: bool) -> None: ...

    async def set_two_factor(
        self,
        user_id: UUID,
        enrollment: TwoFactorEnrollment,
        backup_code_hashes: Sequence[str],
    ) -> None:
        """Ganti enrollment dan seluruh backup codes sekaligus."""
        ...

    async def consume_backup_code(self, user_id: UUID, code_hash: str) -> bool:
        """Atomic remove-if-present. True hanya untuk satu caller per code."""
        ...

    async def mark_email_verified(self, user_id: UUID) -> None: ...

    async def update_security_preferences(
        self,
        user_id: UUID,
        preferences: SecurityPreferences,
    ) -> None: ...


class TokenRepository(Protocol):
    async def add(self, token: TokenRecord) -> TokenRecord: ...

    async def get(self, token_id: UUID) -> Optional[TokenRecord]: ...

    async def blacklist_if_active(self, token_id: UUID) -> bool:
        """Compare-and-set blacklist. True hanya untuk caller yang membalik flag."""
        ...

    async def blacklist_for_user(
        self,
        user_id: UUID,
        types: Optional[Sequence[TokenType]] = None,
    ) -> int: ...

    async def blacklist_for_device(self, user_id: UUID, device_id: str) -> int: ...

    async def delete_expired(self, now: datetime) -> int: ...


class DeviceSessionRepository(Protocol):
    def admission_lock(self, user_id: UUID) -> AsyncContextManager[None]:
        """Serialisasi admission per user sampai transaksi selesai."""
        ...

    async def get(self, user_id: UUID, device_id: str) -> Optional[DeviceSessionRecord]: ...

    async def get_by_refresh_token(self, token_id: UUID) -> Optional[DeviceSessionRecord]: ...

    async def list_for_user(self, user_id: UUID) -> List[DeviceSessionRecord]:
        """Sessions milik user, oldest-first (created_at)."""
        ...

    async def add(self, session: DeviceSessionRecord) -> DeviceSessionRecord: ...

    async def update(self, session: DeviceSessionRecord) -> DeviceSessionRecord: ...

    async def delete(self, session_id: UUID) -> bool:
        """True hanya untuk caller yang benar-benar menghapus row."""
        ...

    async def delete_all_for_user(self, user_id: UUID) -> int: ...

    async def delete_stale(self, now: datetime) -> int:
        """Hapus sessions yang refresh token-nya sudah tidak valid."""
        ...


class SecurityEventRepository(Protocol):
    async def add(self, event: SecurityEventRecord) -> SecurityEventRecord: ...

    async def list_for_user(
        self,
        user_id: UUID,
        limit: int = 50,
        since: Optional[datetime] = None,
    ) -> List[SecurityEventRecord]:
        """Events milik user, newest-first."""
        ...

    async def delete_older_than(self, cutoff: datetime) -> int: ...


class CredentialStore(Protocol):
    """Agregat repository dengan satu unit-of-work."""

    users: UserRepository
    tokens: TokenRepository
    devices: DeviceSessionRepository
    events: SecurityEventRepository

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...
