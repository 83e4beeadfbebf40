"""
Password policy engine untuk AuthCore.
Validasi kekuatan password, pencegahan reuse, dan password expiry.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from authcore.core.config import Settings
from authcore.core.constants import SecurityEventType
from authcore.core.exceptions import PasswordReuseError, WeakPasswordError
from authcore.core.security import Clock, Security, utc_now
from authcore.repositories.base import CredentialStore
from authcore.repositories.records import UserRecord
from authcore.services.audit import SecurityEventService

logger = logging.getLogger(__name__)

REUSE_VIOLATION = "Password has been used recently"


@dataclass
class PolicyResult:
    ok: bool
    violations: List[str] = field(default_factory=list)


@dataclass
class ExpiryStatus:
    expired: bool
    days_remaining: int
    expires_at: Optional[datetime]
    needs_change: bool
    force_change: bool
    password_changed_at: Optional[datetime] = None


class PasswordPolicyEngine:
    """
    Service class untuk password policy.

    History depth termasuk password sekarang: dengan depth 5, password sekarang
    dan 4 password sebelumnya tidak boleh dipakai ulang.
    """

    def __init__(
        self,
        store: CredentialStore,
        events: SecurityEventService,
        security: Security,
        settings: Settings,
        clock: Clock = utc_now
    ):
        self.store = store
        self.events = events
        self.security = security
        self.settings = settings
        self.clock = clock

    def check_strength(self, candidate: str) -> PolicyResult:
        """
        Validasi kekuatan password. Semua pelanggaran dikumpulkan.

        Args:
            candidate: Password yang akan divalidasi

        Returns:
            PolicyResult (ok, violations)
        """
        violations = []

        if len(candidate) < self.settings.PASSWORD_MIN_LENGTH:
            violations.append(f"Password must be at least {self.settings.PASSWORD_MIN_LENGTH} characters long")

        if not re.search(r"[A-Z]", candidate):
            violations.append("Password must contain at least one uppercase letter")

        if not re.search(r"[a-z]", candidate):
            violations.append("Password must contain at least one lowercase letter")

        if not re.search(r"\d", candidate):
            violations.append("Password must contain at least one number")

        if not re.search(r"[^A-Za-z0-9\s]", candidate):
            violations.append("Password must contain at least one special character")

        return PolicyResult(ok=not violations, violations=violations)

    async def check_history(self, user: UserRecord, candidate: str) -> bool:
        """
        Cek apakah candidate sama dengan password sekarang atau salah satu password terakhir.

        Returns:
            True jika candidate sudah pernah dipakai
        """
        history = await self.store.users.get_password_history(user.id)
        hashes = [user.password_hash] + history[:self.settings.PASSWORD_HISTORY_DEPTH - 1]
        return any(self.security.verify_password(candidate, h) for h in hashes)

    async def validate_for_change(self, user: UserRecord, candidate: str) -> PolicyResult:
        result = self.check_strength(candidate)
        if await self.check_history(user, candidate):
            result.violations.append(REUSE_VIOLATION)
            result.ok = False
        return result

    async def ensure_acceptable(self, user: UserRecord, candidate: str) -> None:
        """
        Raises:
            WeakPasswordError: Password lemah (violations termasuk reuse jika keduanya berlaku)
            PasswordReuseError: Password kuat tapi pernah dipakai
        """
        strength = self.check_strength(candidate)
        reused = await self.check_history(user, candidate)

        if not strength.ok:
            violations = strength.violations + ([REUSE_VIOLATION] if reused else [])
            raise WeakPasswordError(violations)
        if reused:
            raise PasswordReuseError([REUSE_VIOLATION])

    async def commit(self, user: UserRecord, candidate: str, reason: str = "change") -> None:
        """
        Simpan password baru: hash lama masuk history, password_changed_at = now,
        force_password_change di-clear.
        """
        now = self.clock()
        new_hash = self.security.hash_password(candidate)
        await self.store.users.update_password(
            user.id,
            password_hash=new_hash,
            changed_at=now,
            history_depth=self.settings.PASSWORD_HISTORY_DEPTH
        )
        user.password_hash = new_hash
        user.password_changed_at = now
        user.force_password_change = False

        await self.events.emit(
            SecurityEventType.PASSWORD_CHANGE,
            user=user,
            metadata={"reason": reason}
        )

    def expiry_status(self, user: UserRecord) -> ExpiryStatus:
        """
        Status umur password.
        User yang belum pernah ganti password dianggap fresh.
        """
        max_age = self.settings.PASSWORD_EXPIRY_DAYS

        if user.password_changed_at is None:
            return ExpiryStatus(
                expired=False,
                days_remaining=max_age,
                expires_at=None,
                needs_change=user.force_password_change,
                force_change=user.force_password_change,
            )

        now = self.clock()
        expires_at = user.password_changed_at + timedelta(days=max_age)
        expired = now > expires_at
        days_remaining = 0 if expired else math.ceil((expires_at - now) / timedelta(days=1))

        return ExpiryStatus(
            expired=expired,
            days_remaining=days_remaining,
            expires_at=expires_at,
            needs_change=user.force_password_change or expired,
            force_change=user.force_password_change,
            password_changed_at=user.password_changed_at,
        )

    async def force_change(self, user: UserRecord) -> None:
        """Paksa user mengganti password di login berikutnya."""
        await self.store.users.set_force_password_change(user.id, True)
        user.force_password_change = True
        logger.info(f"Password change forced for user {user.id}")
