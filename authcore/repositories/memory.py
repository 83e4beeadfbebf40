"""
In-memory CredentialStore.

Dipakai untuk unit tests dan local runs tanpa PostgreSQL. Semua write langsung
terlihat (tidak ada rollback); operasi atomic dijaga dengan asyncio.Lock.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from authcore.core.constants import TokenType
from authcore.core.exceptions import EmailAlreadyRegisteredError
from authcore.core.security import utc_now
from authcore.repositories.records import (
    DeviceSessionRecord,
    SecurityEventRecord,
    SecurityPreferences,
    TokenRecord,
    TwoFactorEnrollment,
    UserRecord,
)


class InMemoryStore:
    """Backing store in-process dengan satu lock untuk semua critical section."""

    def __init__(self):
        self.users_by_id: Dict[UUID, UserRecord] = {}
        self.password_history: Dict[UUID, List[str]] = defaultdict(list)
        self.tokens_by_id: Dict[UUID, TokenRecord] = {}
        self.sessions_by_id: Dict[UUID, DeviceSessionRecord] = {}
        self.event_log: List[SecurityEventRecord] = []
        self.lock = asyncio.Lock()
        self._admission_locks: Dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.admission_owners: Dict[UUID, Optional[asyncio.Task]] = {}

        self.users = InMemoryUserRepository(self)
        self.tokens = InMemoryTokenRepository(self)
        self.devices = InMemoryDeviceSessionRepository(self)
        self.events = InMemorySecurityEventRepository(self)

    async def commit(self) -> None:
        return None

    async def rollback(self) -> None:
        return None

    def admission_lock_for(self, user_id: UUID) -> asyncio.Lock:
        return self._admission_locks[user_id]


class InMemoryUserRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _require(self, user_id: UUID) -> UserRecord:
        user = self.store.users_by_id.get(user_id)
        if user is None:
            raise KeyError(f"Unknown user {user_id}")
        return user

    async def get(self, user_id: UUID) -> Optional[UserRecord]:
        user = self.store.users_by_id.get(user_id)
        return user.copy() if user else None

    async def get_by_email(self, email: str) -> Optional[UserRecord]:
        email = email.strip().lower()
        for user in self.store.users_by_id.values():
            if user.email == email:
                return user.copy()
        return None

    async def create(self, user: UserRecord) -> UserRecord:
        async with self.store.lock:
            if any(u.email == user.email for u in self.store.users_by_id.values()):
                raise EmailAlreadyRegisteredError()
            stored = user.copy()
            if stored.created_at is None:
                stored.created_at = utc_now()
            self.store.users_by_id[stored.id] = stored
            return stored.copy()

    async def increment_failed_attempts(
        self,
        user_id: UUID,
        threshold: int,
        lockout_until: datetime,
    ) -> Tuple[int, Optional[datetime]]:
        async with self.store.lock:
            user = self._require(user_id)
            user.failed_login_attempts += 1
            if user.failed_login_attempts >= threshold:
                user.lockout_until = lockout_until
            return user.failed_login_attempts, user.lockout_until

    async def record_login_success(self, user_id: UUID, at: datetime) -> None:
        async with self.store.lock:
            user = self._require(user_id)
            user.failed_login_attempts = 0
            user.lockout_until = None
            user.last_login_at = at

    async def reset_lockout(self, user_id: UUID) -> None:
        async with self.store.lock:
            user = self._require(user_id)
            user.failed_login_attempts = 0
            user.lockout_until = None

    async def get_password_history(self, user_id: UUID) -> List[str]:
        return list(self.store.password_history.get(user_id, []))

    async def update_password(
        self,
        user_id: UUID,
        password_hash: str,
        changed_at: datetime,
        history_depth: int,
    ) -> None:
        async with self.store.lock:
            user = self._require(user_id)
            history = [user.password_hash] + self.store.password_history[user_id]
            self.store.password_history[user_id] = history[:history_depth]
            user.password_hash = password_hash
            user.password_changed_at = changed_at
            user.force_password_change = False

    async def set_force_password_change(self, user_id: UUID, force: bool) -> None:
        async with self.store.lock:
            self._require(user_id).force_password_change = force

    async def set_two_factor(
        self,
        user_id: UUID,
        enrollment: TwoFactorEnrollment,
        backup_code_hashes: Sequence[str],
    ) -> None:
        async with self.store.lock:
            user = self._require(user_id)
            user.two_factor = enrollment
            user.backup_code_hashes = list(backup_code_hashes)

    async def consume_backup_code(self, user_id: UUID, code_hash: str) -> bool:
        async with self.store.lock:
            user = self._require(user_id)
            if code_hash not in user.backup_code_hashes:
                return False
            user.backup_code_hashes.remove(code_hash)
            return True

    async def mark_email_verified(self, user_id: UUID) -> None:
        async with self.store.lock:
            self._require(user_id).is_email_verified = True

    async def update_security_preferences(
        self,
        user_id: UUID,
        preferences: SecurityPreferences,
    ) -> None:
        async with self.store.lock:
            self._require(user_id).security_preferences = preferences.model_copy()


class InMemoryTokenRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def add(self, token: TokenRecord) -> TokenRecord:
        async with self.store.lock:
            stored = replace(token)
            if stored.created_at is None:
                stored.created_at = utc_now()
            self.store.tokens_by_id[stored.id] = stored
            return replace(stored)

    async def get(self, token_id: UUID) -> Optional[TokenRecord]:
        token = self.store.tokens_by_id.get(token_id)
        return replace(token) if token else None

    async def blacklist_if_active(self, token_id: UUID) -> bool:
        async with self.store.lock:
            token = self.store.tokens_by_id.get(token_id)
            if token is None or token.blacklisted:
                return False
            token.blacklisted = True
            return True

    async def blacklist_for_user(
        self,
        user_id: UUID,
        types: Optional[Sequence[TokenType]] = None,
    ) -> int:
        async with self.store.lock:
            count = 0
            for token in self.store.tokens_by_id.values():
                if token.user_id != user_id or token.blacklisted:
                    continue
                if types is not None and token.type not in types:
                    continue
                token.blacklisted = True
                count += 1
            return count

    async def blacklist_for_device(self, user_id: UUID, device_id: str) -> int:
        async with self.store.lock:
            count = 0
            for token in self.store.tokens_by_id.values():
                if token.user_id == user_id and token.device_id == device_id and not token.blacklisted:
                    token.blacklisted = True
                    count += 1
            return count

    async def delete_expired(self, now: datetime) -> int:
        async with self.store.lock:
            expired = [tid for tid, t in self.store.tokens_by_id.items() if t.is_expired(now)]
            for token_id in expired:
                del self.store.tokens_by_id[token_id]
            return len(expired)


class InMemoryDeviceSessionRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    @asynccontextmanager
    async def admission_lock(self, user_id: UUID) -> AsyncIterator[None]:
        # Re-entrant per task, seperti row lock yang diambil ulang dalam transaksi yang sama
        task = asyncio.current_task()
        if self.store.admission_owners.get(user_id) is task:
            yield
            return
        async with self.store.admission_lock_for(user_id):
            self.store.admission_owners[user_id] = task
            try:
                yield
            finally:
                self.store.admission_owners.pop(user_id, None)

    async def get(self, user_id: UUID, device_id: str) -> Optional[DeviceSessionRecord]:
        for session in self.store.sessions_by_id.values():
            if session.user_id == user_id and session.device_id == device_id:
                return replace(session)
        return None

    async def get_by_refresh_token(self, token_id: UUID) -> Optional[DeviceSessionRecord]:
        for session in self.store.sessions_by_id.values():
            if session.refresh_token_id == token_id:
                return replace(session)
        return None

    async def list_for_user(self, user_id: UUID) -> List[DeviceSessionRecord]:
        sessions = [replace(s) for s in self.store.sessions_by_id.values() if s.user_id == user_id]
        sessions.sort(key=lambda s: s.created_at)
        return sessions

    async def add(self, session: DeviceSessionRecord) -> DeviceSessionRecord:
        async with self.store.lock:
            stored = replace(session)
            if stored.created_at is None:
                stored.created_at = utc_now()
            if stored.last_used is None:
                stored.last_used = stored.created_at
            self.store.sessions_by_id[stored.id] = stored
            return replace(stored)

    async def update(self, session: DeviceSessionRecord) -> DeviceSessionRecord:
        async with self.store.lock:
            if session.id not in self.store.sessions_by_id:
                raise KeyError(f"Unknown device session {session.id}")
            self.store.sessions_by_id[session.id] = replace(session)
            return replace(session)

    async def delete(self, session_id: UUID) -> bool:
        async with self.store.lock:
            return self.store.sessions_by_id.pop(session_id, None) is not None

    async def delete_all_for_user(self, user_id: UUID) -> int:
        async with self.store.lock:
            doomed = [sid for sid, s in self.store.sessions_by_id.items() if s.user_id == user_id]
            for session_id in doomed:
                del self.store.sessions_by_id[session_id]
            return len(doomed)

    async def delete_stale(self, now: datetime) -> int:
        async with self.store.lock:
            doomed = []
            for session_id, session in self.store.sessions_by_id.items():
                token = self.store.tokens_by_id.get(session.refresh_token_id)
                if token is None or not token.is_valid(now):
                    doomed.append(session_id)
            for session_id in doomed:
                del self.store.sessions_by_id[session_id]
            return len(doomed)


class InMemorySecurityEventRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def add(self, event: SecurityEventRecord) -> SecurityEventRecord:
        async with self.store.lock:
            self.store.event_log.append(replace(event))
            return event

    async def list_for_user(
        self,
        user_id: UUID,
        limit: int = 50,
        since: Optional[datetime] = None,
    ) -> List[SecurityEventRecord]:
        events = [
            replace(e) for e in self.store.event_log
            if e.user_id == user_id and (since is None or e.timestamp >= since)
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self.store.lock:
            before = len(self.store.event_log)
            self.store.event_log = [e for e in self.store.event_log if e.timestamp >= cutoff]
            return before - len(self.store.event_log)
