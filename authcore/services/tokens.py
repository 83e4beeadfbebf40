"""
Token manager untuk AuthCore.
Menerbitkan, memverifikasi, me-rotate, dan me-revoke signed tokens (JWT).
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence
from uuid import UUID, uuid4

from authcore.core.config import Settings
from authcore.core.constants import EventOutcome, SecurityEventType, TokenType
from authcore.core.exceptions import (
    AccountDisabledError,
    AccountLockedError,
    InvalidTokenError,
    RevokedTokenError,
    TokenExpiredError,
)
from authcore.core.security import Clock, Security, utc_now
from authcore.repositories.base import CredentialStore
from authcore.repositories.records import DeviceInfo, DeviceSessionRecord, TokenRecord, UserRecord
from authcore.services.audit import SecurityEventService
from authcore.services.devices import DeviceSessionGuard

logger = logging.getLogger(__name__)


@dataclass
class IssuedToken:
    """Signed value beserta record-nya. Value hanya ada di memori, tidak pernah disimpan."""

    value: str
    expires: datetime
    record: TokenRecord


@dataclass
class AuthTokens:
    access: IssuedToken
    refresh: IssuedToken
    device_session: DeviceSessionRecord

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access.value,
            "access_token_expires": self.access.expires.isoformat(),
            "refresh_token": self.refresh.value,
            "refresh_token_expires": self.refresh.expires.isoformat(),
            "token_type": "bearer",
            "device_id": self.device_session.device_id,
        }


class TokenManager:
    """
    Service class untuk token lifecycle.

    Payload: sub (user id), iat, exp (epoch seconds), type, jti (= token record id).
    Setiap verifikasi mengambil ulang record dari store sehingga revocation langsung terlihat.
    """

    def __init__(
        self,
        store: CredentialStore,
        events: SecurityEventService,
        device_guard: DeviceSessionGuard,
        security: Security,
        settings: Settings,
        clock: Clock = utc_now
    ):
        self.store = store
        self.events = events
        self.device_guard = device_guard
        self.security = security
        self.settings = settings
        self.clock = clock

    def default_ttl(self, token_type: TokenType) -> timedelta:
        return {
            TokenType.ACCESS: self.settings.access_token_expire_timedelta,
            TokenType.REFRESH: self.settings.refresh_token_expire_timedelta,
            TokenType.RESET_PASSWORD: self.settings.password_reset_expire_timedelta,
            TokenType.VERIFY_EMAIL: self.settings.email_verification_expire_timedelta,
            TokenType.TWO_FACTOR: self.settings.two_factor_challenge_expire_timedelta,
        }[token_type]

    async def issue(
        self,
        user: UserRecord,
        token_type: TokenType,
        ttl: Optional[timedelta] = None,
        device: Optional[DeviceInfo] = None,
        token_id: Optional[UUID] = None
    ) -> IssuedToken:
        """
        Terbitkan satu signed token dan simpan record-nya.

        Args:
            user: Pemilik token
            token_type: Tipe token
            ttl: Masa berlaku (default dari settings per tipe)
            device: Device binding (opsional)
            token_id: ID yang sudah dialokasikan sebelumnya (opsional)

        Returns:
            IssuedToken
        """
        now = self.clock()
        issued_at = int(now.timestamp())
        expires_at = int((now + (ttl or self.default_ttl(token_type))).timestamp())
        token_id = token_id or uuid4()

        value = self.security.encode_token({
            "sub": str(user.id),
            "iat": issued_at,
            "exp": expires_at,
            "type": token_type.value,
            "jti": str(token_id),
        })

        device = device or DeviceInfo()
        record = TokenRecord(
            id=token_id,
            user_id=user.id,
            token_hash=self.security.hash_token(value),
            type=token_type,
            expires=datetime.fromtimestamp(expires_at, tz=timezone.utc),
            device_id=device.device_id,
            device_name=device.device_name,
            ip_address=device.ip_address,
            user_agent=device.user_agent,
            created_at=now,
        )
        record = await self.store.tokens.add(record)
        return IssuedToken(value=value, expires=record.expires, record=record)

    async def issue_auth_pair(self, user: UserRecord, device: Optional[DeviceInfo] = None) -> AuthTokens:
        """
        Terbitkan ACCESS + REFRESH dan admit device untuk refresh token tersebut.

        Raises:
            DeviceLimitExceededError: Jika policy reject dan cap tercapai (belum ada token ditulis)
        """
        device = device or DeviceInfo()
        device = replace(device, device_id=device.device_id or str(uuid4()))
        refresh_id = uuid4()

        async with self.device_guard.admission(user):
            session = await self.device_guard.admit(user, device, refresh_id)
            access = await self.issue(user, TokenType.ACCESS, device=device)
            refresh = await self.issue(user, TokenType.REFRESH, device=device, token_id=refresh_id)

        return AuthTokens(access=access, refresh=refresh, device_session=session)

    async def _load(self, value: str, expected_type: TokenType) -> TokenRecord:
        claims = self.security.decode_token(value)

        if claims.get("type") != expected_type.value:
            raise InvalidTokenError(f"Invalid token type. Expected {expected_type.value}")

        try:
            token_id = UUID(str(claims["jti"]))
            expires_at = int(claims["exp"])
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError("Invalid token claims")

        if self.clock().timestamp() >= expires_at:
            raise TokenExpiredError()

        record = await self.store.tokens.get(token_id)
        if (
            record is None
            or record.type != expected_type
            or str(record.user_id) != claims.get("sub")
            or not self.security.constant_time_equals(record.token_hash, self.security.hash_token(value))
        ):
            raise InvalidTokenError()

        if record.is_expired(self.clock()):
            raise TokenExpiredError()
        return record

    async def verify(self, value: str, expected_type: TokenType) -> TokenRecord:
        """
        Verifikasi token.

        Urutan pengecekan: signature/format/tipe/record -> expiry -> blacklist.

        Raises:
            InvalidTokenError: Signature, algoritma, format, tipe, atau record tidak cocok
            TokenExpiredError: Sudah lewat expiry
            RevokedTokenError: Sudah di-blacklist
        """
        record = await self._load(value, expected_type)
        if record.blacklisted:
            raise RevokedTokenError()
        return record

    async def revoke(self, token_id: UUID) -> bool:
        """
        Blacklist token (compare-and-set). Token tidak pernah dihapus di sini.

        Returns:
            True jika call ini yang me-revoke
        """
        return await self.store.tokens.blacklist_if_active(token_id)

    async def revoke_all_for_user(
        self,
        user: UserRecord,
        types: Optional[Sequence[TokenType]] = None
    ) -> int:
        count = await self.store.tokens.blacklist_for_user(user.id, types)
        logger.info(f"Revoked {count} tokens for user {user.id}")
        return count

    async def rotate_refresh(self, old_value: str, device: Optional[DeviceInfo] = None) -> AuthTokens:
        """
        Tukar refresh token dengan pasangan baru (single-use).

        Dua rotasi bersamaan atas token yang sama: hanya satu yang menang,
        yang lain mendapat RevokedTokenError. Token yang sudah di-revoke
        dan dipakai lagi dicatat sebagai SUSPICIOUS_ACTIVITY.

        Raises:
            InvalidTokenError, TokenExpiredError, RevokedTokenError
        """
        record = await self._load(old_value, TokenType.REFRESH)
        user = await self.store.users.get(record.user_id)
        if user is None:
            raise InvalidTokenError()

        if record.blacklisted or not await self.store.tokens.blacklist_if_active(record.id):
            await self.events.emit(
                SecurityEventType.SUSPICIOUS_ACTIVITY,
                user=user,
                outcome=EventOutcome.FAILURE,
                description="Revoked refresh token presented",
                device=device,
                metadata={"token_id": str(record.id), "token_device_id": record.device_id}
            )
            raise RevokedTokenError()

        if not user.is_active:
            raise AccountDisabledError()
        if user.is_locked:
            raise AccountLockedError()

        device = device or DeviceInfo()
        device = replace(
            device,
            device_id=record.device_id or device.device_id,
            device_name=device.device_name or record.device_name,
            ip_address=device.ip_address or record.ip_address,
            user_agent=device.user_agent or record.user_agent,
        )
        return await self.issue_auth_pair(user, device)

    async def sweep_expired(self) -> int:
        """
        Hapus token yang sudah lewat expiry (terlepas dari status blacklist).
        Error di-log dan tidak fatal; sweep berikutnya akan mencoba lagi.

        Returns:
            Jumlah token yang dihapus
        """
        try:
            count = await self.store.tokens.delete_expired(self.clock())
            await self.store.commit()
        except Exception as e:
            logger.exception(f"Expired token sweep failed: {e}")
            await self.store.rollback()
            return 0

        logger.info(f"Expired token sweep removed {count} tokens")
        return count
