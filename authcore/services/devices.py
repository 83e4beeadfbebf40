"""
Device session guard untuk AuthCore.
Membatasi jumlah device session aktif per user, dengan eviction device tertua.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from authcore.core.config import Settings
from authcore.core.constants import DeviceLimitPolicy, SecurityEventType
from authcore.core.exceptions import DeviceLimitExceededError, DeviceSessionNotFoundError
from authcore.core.security import Clock, utc_now
from authcore.repositories.base import CredentialStore
from authcore.repositories.records import DeviceInfo, DeviceSessionRecord, UserRecord
from authcore.services.audit import SecurityEventService

logger = logging.getLogger(__name__)


class DeviceSessionGuard:
    """
    Service class untuk device session management.

    Admission diserialisasi per user (row lock di SQL, lock per user di memory)
    sehingga dua login bersamaan di cap tidak pernah evict lebih dari yang perlu.
    """

    def __init__(
        self,
        store: CredentialStore,
        events: SecurityEventService,
        settings: Settings,
        clock: Clock = utc_now
    ):
        """
        Initialize device guard.

        Args:
            store: Credential store
            events: Security event service
            settings: Device cap dan device-limit policy
            clock: Sumber waktu
        """
        self.store = store
        self.events = events
        self.settings = settings
        self.clock = clock

    @property
    def cap(self) -> int:
        return self.settings.MAX_DEVICES_PER_USER

    @property
    def policy(self) -> DeviceLimitPolicy:
        return DeviceLimitPolicy(self.settings.DEVICE_LIMIT_POLICY)

    def admission(self, user: UserRecord):
        """Context manager yang menserialisasi admission untuk user."""
        return self.store.devices.admission_lock(user.id)

    async def _is_live(self, session: DeviceSessionRecord) -> bool:
        if session.refresh_token_id is None:
            return False
        token = await self.store.tokens.get(session.refresh_token_id)
        return token is not None and token.is_valid(self.clock())

    async def _live_sessions(self, user: UserRecord) -> List[DeviceSessionRecord]:
        sessions = await self.store.devices.list_for_user(user.id)
        return [s for s in sessions if await self._is_live(s)]

    async def admit(
        self,
        user: UserRecord,
        device: DeviceInfo,
        refresh_token_id: UUID
    ) -> DeviceSessionRecord:
        """
        Admit device untuk user dan ikat ke refresh token.

        Device yang sudah dikenal di-update dan di-rebind; refresh token lama di-revoke.
        Device baru: sessions yang sudah mati dibersihkan, lalu policy limit diterapkan.

        Args:
            user: User yang login
            device: Device info dari client
            refresh_token_id: ID REFRESH token yang akan terikat

        Returns:
            Device session yang aktif

        Raises:
            DeviceLimitExceededError: Jika cap tercapai dan policy = reject
        """
        device_id = device.device_id or str(uuid4())

        async with self.admission(user):
            now = self.clock()
            existing = await self.store.devices.get(user.id, device_id)

            if existing:
                previous_token_id = existing.refresh_token_id
                existing.device_name = device.device_name or existing.device_name
                existing.ip_address = device.ip_address or existing.ip_address
                existing.user_agent = device.user_agent or existing.user_agent
                existing.last_used = now
                existing.refresh_token_id = refresh_token_id
                await self.store.devices.update(existing)

                if previous_token_id and previous_token_id != refresh_token_id:
                    await self.store.tokens.blacklist_if_active(previous_token_id)
                return existing

            sessions = await self.store.devices.list_for_user(user.id)
            live = []
            for session in sessions:
                if await self._is_live(session):
                    live.append(session)
                else:
                    await self.store.devices.delete(session.id)

            if len(live) >= self.cap:
                if self.policy == DeviceLimitPolicy.REJECT:
                    raise DeviceLimitExceededError(self.cap)
                for victim in live[:len(live) - self.cap + 1]:
                    await self._evict(user, victim)

            session = DeviceSessionRecord(
                user_id=user.id,
                device_id=device_id,
                device_name=device.device_name,
                ip_address=device.ip_address,
                user_agent=device.user_agent,
                last_used=now,
                created_at=now,
                refresh_token_id=refresh_token_id
            )
            session = await self.store.devices.add(session)

        await self.events.emit(
            SecurityEventType.DEVICE_ADDED,
            user=user,
            device=replace(device, device_id=device_id),
            metadata={"device_name": device.device_name}
        )
        return session

    async def _evict(self, user: UserRecord, session: DeviceSessionRecord, reason: str = "eviction") -> bool:
        # Hanya caller yang berhasil delete yang revoke dan emit
        if not await self.store.devices.delete(session.id):
            return False
        if session.refresh_token_id:
            await self.store.tokens.blacklist_if_active(session.refresh_token_id)
        await self.store.tokens.blacklist_for_device(user.id, session.device_id)

        logger.info(f"Device {session.device_id} removed for user {user.id} ({reason})")
        await self.events.emit(
            SecurityEventType.DEVICE_REMOVED,
            user=user,
            metadata={"device_id": session.device_id, "reason": reason}
        )
        return True

    async def evict_oldest(self, user: UserRecord) -> Optional[DeviceSessionRecord]:
        """
        Evict session tertua (FIFO berdasarkan created_at).

        Returns:
            Session yang di-evict, atau None jika tidak ada / sudah di-evict caller lain
        """
        sessions = await self.store.devices.list_for_user(user.id)
        if not sessions:
            return None
        victim = sessions[0]
        if await self._evict(user, victim):
            return victim
        return None

    async def remove(self, user: UserRecord, device_id: str, reason: str = "user_removed") -> None:
        """
        Hapus device atas permintaan user; semua token yang terikat di-revoke.

        Raises:
            DeviceSessionNotFoundError: Jika device tidak ada
        """
        session = await self.store.devices.get(user.id, device_id)
        if session is None or not await self._evict(user, session, reason=reason):
            raise DeviceSessionNotFoundError(device_id)

    async def remove_all_except(self, user: UserRecord, keep_device_id: Optional[str]) -> int:
        """
        Logout semua device lain.

        Returns:
            Jumlah device yang dihapus
        """
        count = 0
        for session in await self.store.devices.list_for_user(user.id):
            if session.device_id == keep_device_id:
                continue
            if await self._evict(user, session, reason="logout_other_devices"):
                count += 1
        return count

    async def remove_all(self, user: UserRecord) -> int:
        """Hapus semua device session user (token di-revoke terpisah oleh caller)."""
        count = await self.store.devices.delete_all_for_user(user.id)
        if count:
            logger.info(f"Removed {count} device sessions for user {user.id}")
        return count

    async def has_reached_limit(self, user: UserRecord, cap: Optional[int] = None) -> bool:
        """Query murni: apakah user sudah punya cap session aktif."""
        return len(await self._live_sessions(user)) >= (self.cap if cap is None else cap)

    async def limit_info(self, user: UserRecord) -> Dict[str, Any]:
        current = len(await self._live_sessions(user))
        return {
            "current_devices": current,
            "max_devices": self.cap,
            "remaining": max(0, self.cap - current),
            "limit_reached": current >= self.cap,
            "policy": self.policy.value,
        }

    async def list_sessions(self, user: UserRecord) -> List[DeviceSessionRecord]:
        """Session aktif milik user, paling baru dipakai lebih dulu."""
        sessions = await self._live_sessions(user)
        sessions.sort(key=lambda s: s.last_used or s.created_at, reverse=True)
        return sessions

    async def _require(self, user: UserRecord, device_id: str) -> DeviceSessionRecord:
        session = await self.store.devices.get(user.id, device_id)
        if session is None:
            raise DeviceSessionNotFoundError(device_id)
        return session

    async def rename(self, user: UserRecord, device_id: str, name: str) -> DeviceSessionRecord:
        session = await self._require(user, device_id)
        session.device_name = name
        return await self.store.devices.update(session)

    async def set_trusted(self, user: UserRecord, device_id: str, trusted: bool) -> DeviceSessionRecord:
        """Tandai device trusted. Trusted device tetap wajib 2FA."""
        session = await self._require(user, device_id)
        session.is_trusted = trusted
        return await self.store.devices.update(session)
