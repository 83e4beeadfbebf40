"""
Lockout guard untuk AuthCore.
Menghitung login gagal berturut-turut dan mengunci akun sementara.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from authcore.core.config import Settings
from authcore.core.constants import EventOutcome, SecurityEventType
from authcore.core.exceptions import AccountLockedError
from authcore.core.security import Clock, utc_now
from authcore.repositories.base import CredentialStore
from authcore.repositories.records import DeviceInfo, UserRecord
from authcore.services.audit import SecurityEventService

logger = logging.getLogger(__name__)


@dataclass
class LockoutStatus:
    """Hasil pengecekan lockout."""

    locked: bool
    until: Optional[datetime] = None
    administrative: bool = False

    def retry_after_seconds(self, now: datetime) -> Optional[int]:
        if not self.locked or self.until is None:
            return None
        return max(0, math.ceil((self.until - now).total_seconds()))


class LockoutGuard:
    """
    Enforce temporary lockout setelah MAX_LOGIN_ATTEMPTS kegagalan berturut-turut.

    Tidak pernah raise untuk alasan bisnis kecuali ensure_not_locked;
    error storage dibiarkan propagate (fail closed).
    """

    def __init__(
        self,
        store: CredentialStore,
        events: SecurityEventService,
        settings: Settings,
        clock: Clock = utc_now
    ):
        self.store = store
        self.events = events
        self.settings = settings
        self.clock = clock

    def check_lockout(self, user: UserRecord) -> LockoutStatus:
        """
        Cek apakah akun sedang terkunci.

        Administrative lock (is_locked) dilaporkan locked tanpa batas waktu.
        """
        if user.is_locked:
            return LockoutStatus(locked=True, until=None, administrative=True)
        if user.lockout_until is not None and user.lockout_until > self.clock():
            return LockoutStatus(locked=True, until=user.lockout_until)
        return LockoutStatus(locked=False)

    def ensure_not_locked(self, user: UserRecord) -> None:
        """
        Raises:
            AccountLockedError: Jika akun terkunci
        """
        status = self.check_lockout(user)
        if status.locked:
            raise AccountLockedError(until=status.until)

    async def record_failure(self, user: UserRecord, device: Optional[DeviceInfo] = None) -> int:
        """
        Catat satu kegagalan login secara atomic.

        Args:
            user: User yang gagal login
            device: Device info untuk security event

        Returns:
            Jumlah kegagalan berturut-turut setelah increment
        """
        lockout_until = self.clock() + self.settings.account_lockout_timedelta
        count, until = await self.store.users.increment_failed_attempts(
            user.id,
            threshold=self.settings.MAX_LOGIN_ATTEMPTS,
            lockout_until=lockout_until
        )
        user.failed_login_attempts = count
        user.lockout_until = until

        if count >= self.settings.MAX_LOGIN_ATTEMPTS:
            logger.warning(f"Account {user.id} locked until {until.isoformat()} after {count} failed attempts")
            await self.events.emit(
                SecurityEventType.ACCOUNT_LOCKED,
                user=user,
                outcome=EventOutcome.SUCCESS,
                description=f"Account locked after {count} failed login attempts",
                device=device,
                metadata={"failed_attempts": count, "locked_until": until.isoformat()}
            )
        return count

    async def record_success(self, user: UserRecord) -> None:
        """
        Reset counter dan stamp last_login_at.
        Dipanggil di dalam transaksi login yang sama; caller yang commit.
        """
        now = self.clock()
        await self.store.users.record_login_success(user.id, now)
        user.failed_login_attempts = 0
        user.lockout_until = None
        user.last_login_at = now

    async def clear(self, user: UserRecord) -> None:
        """Hapus lockout tanpa menyentuh last_login_at (dipakai saat reset password)."""
        await self.store.users.reset_lockout(user.id)
        user.failed_login_attempts = 0
        user.lockout_until = None
