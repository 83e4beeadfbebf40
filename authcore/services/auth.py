"""
Authentication orchestrator untuk AuthCore.
Menyusun lockout, credential check, 2FA, token issuance, dan device admission menjadi flows.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from authcore.core.config import Settings
from authcore.core.constants import (
    EventOutcome,
    LoginFailureReason,
    SecurityEventType,
    TokenType,
)
from authcore.core.exceptions import (
    AccountDisabledError,
    AccountLockedError,
    AuthCoreError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidTokenError,
    InvalidTwoFactorCodeError,
    RevokedTokenError,
    UserNotFoundError,
    ValidationError,
    WeakPasswordError,
)
from authcore.core.security import Clock, Security, utc_now
from authcore.repositories.base import CredentialStore
from authcore.repositories.records import (
    DeviceInfo,
    DeviceSessionRecord,
    SecurityEventRecord,
    SecurityPreferences,
    TokenRecord,
    UserRecord,
)
from authcore.services.audit import SecurityEventService
from authcore.services.devices import DeviceSessionGuard
from authcore.services.lockout import LockoutGuard
from authcore.services.password_policy import ExpiryStatus, PasswordPolicyEngine
from authcore.services.tokens import AuthTokens, IssuedToken, TokenManager
from authcore.services.two_factor import TwoFactorEngine, TwoFactorSetup, TwoFactorStatus

logger = logging.getLogger(__name__)


@dataclass
class LoginOutcome:
    """
    Hasil login: tokens, atau challenge 2FA yang harus diselesaikan dulu.
    """

    user: UserRecord
    tokens: Optional[AuthTokens] = None
    challenge: Optional[IssuedToken] = None
    password_status: Optional[ExpiryStatus] = None

    @property
    def requires_two_factor(self) -> bool:
        return self.challenge is not None


class AuthOrchestrator:
    """
    Service class untuk authentication flows.

    Login: LOCKOUT_CHECK -> CREDENTIAL_CHECK -> (TWO_FACTOR_REQUIRED | TOKEN_ISSUANCE).
    Setiap flow berjalan dalam satu unit-of-work: jalur gagal commit bookkeeping-nya
    (counter, events) sebelum error diteruskan; jalur sukses commit sekali di akhir.
    """

    def __init__(
        self,
        store: CredentialStore,
        security: Security,
        settings: Settings,
        clock: Clock = utc_now
    ):
        """
        Initialize orchestrator beserta semua komponen.

        Args:
            store: Credential store (satu per request)
            security: Password hashing, JWT, enkripsi
            settings: Policy constants
            clock: Sumber waktu
        """
        self.store = store
        self.security = security
        self.settings = settings
        self.clock = clock

        self.events = SecurityEventService(store, clock)
        self.lockout = LockoutGuard(store, self.events, settings, clock)
        self.two_factor = TwoFactorEngine(store, self.events, security, settings, clock)
        self.devices = DeviceSessionGuard(store, self.events, settings, clock)
        self.tokens = TokenManager(store, self.events, self.devices, security, settings, clock)
        self.passwords = PasswordPolicyEngine(store, self.events, security, settings, clock)

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        try:
            yield
        except AuthCoreError:
            await self.store.commit()
            raise
        await self.store.commit()

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    async def _get_user(self, user_id: UUID) -> UserRecord:
        user = await self.store.users.get(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    # Registration
    async def register(self, email: str, password: str) -> UserRecord:
        """
        Daftarkan user baru.

        Raises:
            WeakPasswordError: Password tidak memenuhi policy
            EmailAlreadyRegisteredError: Email sudah dipakai
        """
        email = self._normalize_email(email)
        async with self._transaction():
            strength = self.passwords.check_strength(password)
            if not strength.ok:
                raise WeakPasswordError(strength.violations)

            if await self.store.users.get_by_email(email):
                raise EmailAlreadyRegisteredError()

            now = self.clock()
            user = await self.store.users.create(UserRecord(
                email=email,
                password_hash=self.security.hash_password(password),
                password_changed_at=now,
                created_at=now,
            ))
            logger.info(f"User registered: {user.id}")
        return user

    # Login
    async def _login_failed(
        self,
        reason: LoginFailureReason,
        email: str,
        user: Optional[UserRecord] = None,
        device: Optional[DeviceInfo] = None,
        **metadata: Any
    ) -> None:
        await self.events.emit(
            SecurityEventType.LOGIN_FAILED,
            user=user,
            email=email,
            outcome=EventOutcome.FAILURE,
            description=f"Failed login attempt for {email}",
            device=device,
            metadata={"reason": reason.value, **metadata}
        )

    async def _complete_login(self, user: UserRecord, device: DeviceInfo, method: str) -> LoginOutcome:
        tokens = await self.tokens.issue_auth_pair(user, device)
        await self.lockout.record_success(user)
        await self.events.emit(
            SecurityEventType.LOGIN_SUCCESS,
            user=user,
            description=f"Successful login for {user.email}",
            device=DeviceInfo(
                device_id=tokens.device_session.device_id,
                device_name=device.device_name,
                ip_address=device.ip_address,
                user_agent=device.user_agent,
            ),
            metadata={"method": method}
        )
        return LoginOutcome(
            user=user,
            tokens=tokens,
            password_status=self.passwords.expiry_status(user)
        )

    async def login(self, email: str, password: str, device: Optional[DeviceInfo] = None) -> LoginOutcome:
        """
        Login dengan email dan password.

        Returns:
            LoginOutcome dengan tokens, atau challenge jika 2FA enabled

        Raises:
            InvalidCredentialsError: Email tidak dikenal atau password salah
            AccountLockedError: Akun terkunci (lockout atau administrative)
            AccountDisabledError: Akun dinonaktifkan
            DeviceLimitExceededError: Cap device tercapai dengan policy reject
        """
        email = self._normalize_email(email)
        device = device or DeviceInfo()

        async with self._transaction():
            user = await self.store.users.get_by_email(email)
            if user is None:
                self.security.verify_dummy_password(password)
                await self._login_failed(LoginFailureReason.UNKNOWN_ACCOUNT, email, device=device)
                raise InvalidCredentialsError()

            status = self.lockout.check_lockout(user)
            if status.locked:
                await self._login_failed(LoginFailureReason.ACCOUNT_LOCKED, email, user, device)
                raise AccountLockedError(until=status.until)

            if not self.security.verify_password(password, user.password_hash):
                attempts = await self.lockout.record_failure(user, device)
                await self._login_failed(
                    LoginFailureReason.INVALID_CREDENTIALS, email, user, device,
                    failed_attempts=attempts
                )
                raise InvalidCredentialsError()

            if not user.is_active:
                await self._login_failed(LoginFailureReason.ACCOUNT_DISABLED, email, user, device)
                raise AccountDisabledError()

            if user.two_factor.is_enabled:
                challenge = await self.tokens.issue(user, TokenType.TWO_FACTOR, device=device)
                logger.info(f"Two-factor challenge issued for user {user.id}")
                return LoginOutcome(user=user, challenge=challenge)

            return await self._complete_login(user, device, method="password")

    async def complete_two_factor(
        self,
        challenge: str,
        code: str,
        device: Optional[DeviceInfo] = None
    ) -> LoginOutcome:
        """
        Selesaikan login dengan TOTP atau backup code.

        Challenge hanya bisa dipakai sekali; code salah dihitung sebagai login gagal.

        Raises:
            InvalidTokenError, TokenExpiredError, RevokedTokenError: Challenge tidak valid
            AccountLockedError: Akun terkunci
            InvalidTwoFactorCodeError: TOTP dan backup code sama-sama salah
        """
        async with self._transaction():
            record = await self.tokens.verify(challenge, TokenType.TWO_FACTOR)
            if not await self.tokens.revoke(record.id):
                raise RevokedTokenError()

            user = await self.store.users.get(record.user_id)
            if user is None:
                raise InvalidTokenError()

            device = device or DeviceInfo()
            if device.device_id is None:
                device = DeviceInfo(
                    device_id=record.device_id,
                    device_name=device.device_name or record.device_name,
                    ip_address=device.ip_address or record.ip_address,
                    user_agent=device.user_agent or record.user_agent,
                )

            status = self.lockout.check_lockout(user)
            if status.locked:
                await self._login_failed(LoginFailureReason.ACCOUNT_LOCKED, user.email, user, device)
                raise AccountLockedError(until=status.until)
            if not user.is_active:
                raise AccountDisabledError()

            if not await self.two_factor.verify(user, code, device):
                attempts = await self.lockout.record_failure(user, device)
                await self._login_failed(
                    LoginFailureReason.TWO_FACTOR_FAILED, user.email, user, device,
                    failed_attempts=attempts
                )
                raise InvalidTwoFactorCodeError()

            return await self._complete_login(user, device, method="two_factor")

    # Tokens
    async def refresh(self, refresh_token: str, device: Optional[DeviceInfo] = None) -> AuthTokens:
        """
        Rotate refresh token.

        Raises:
            InvalidTokenError, TokenExpiredError, RevokedTokenError
        """
        async with self._transaction():
            return await self.tokens.rotate_refresh(refresh_token, device)

    async def logout(self, refresh_token: str) -> None:
        """
        Revoke refresh token dan hapus device session yang terikat.
        """
        async with self._transaction():
            record = await self.tokens.verify(refresh_token, TokenType.REFRESH)
            user = await self._get_user(record.user_id)

            await self.tokens.revoke(record.id)
            session = await self.store.devices.get_by_refresh_token(record.id)
            if session is not None:
                await self.devices.remove(user, session.device_id, reason="logout")

            await self.events.emit(
                SecurityEventType.LOGOUT,
                user=user,
                device=DeviceInfo(device_id=record.device_id)
            )

    async def logout_all_other_devices(self, user: UserRecord, keep_device_id: Optional[str]) -> int:
        async with self._transaction():
            count = await self.devices.remove_all_except(user, keep_device_id)
            await self.events.emit(
                SecurityEventType.LOGOUT,
                user=user,
                description="Logged out from all other devices",
                metadata={"devices_removed": count, "kept_device_id": keep_device_id}
            )
        return count

    async def authenticate_access_token(self, token: str) -> Tuple[UserRecord, TokenRecord]:
        """
        Verifikasi ACCESS token dan muat user-nya.

        Raises:
            InvalidTokenError, TokenExpiredError, RevokedTokenError
            AccountDisabledError, AccountLockedError
        """
        record = await self.tokens.verify(token, TokenType.ACCESS)
        user = await self.store.users.get(record.user_id)
        if user is None:
            raise InvalidTokenError()
        if not user.is_active:
            raise AccountDisabledError()
        if user.is_locked:
            raise AccountLockedError()
        return user, record

    async def authenticate_access(self, token: str) -> UserRecord:
        user, _ = await self.authenticate_access_token(token)
        return user

    # Passwords
    async def change_password(
        self,
        user: UserRecord,
        current_password: str,
        new_password: str,
        keep_device_id: Optional[str] = None
    ) -> int:
        """
        Ganti password; semua device lain di-logout.

        Returns:
            Jumlah device lain yang di-logout

        Raises:
            InvalidCredentialsError: Password sekarang salah
            WeakPasswordError / PasswordReuseError
        """
        async with self._transaction():
            if not self.security.verify_password(current_password, user.password_hash):
                await self.events.emit(
                    SecurityEventType.PASSWORD_CHANGE,
                    user=user,
                    outcome=EventOutcome.FAILURE,
                    description="Password change rejected: wrong current password"
                )
                raise InvalidCredentialsError("Current password is incorrect")

            await self.passwords.ensure_acceptable(user, new_password)
            await self.passwords.commit(user, new_password, reason="change")
            removed = await self.devices.remove_all_except(user, keep_device_id)
        return removed

    async def request_password_reset(self, email: str) -> Optional[str]:
        """
        Terbitkan reset token. Tidak pernah mengungkap apakah email terdaftar.

        Returns:
            Reset token untuk dikirim oleh collaborator email, atau None
        """
        email = self._normalize_email(email)
        async with self._transaction():
            user = await self.store.users.get_by_email(email)
            if user is None:
                logger.info("Password reset requested for unknown email")
                return None

            await self.tokens.revoke_all_for_user(user, [TokenType.RESET_PASSWORD])
            issued = await self.tokens.issue(user, TokenType.RESET_PASSWORD)
            await self.events.emit(SecurityEventType.PASSWORD_RESET_REQUESTED, user=user)
        return issued.value

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        Reset password dengan token. Lockout di-clear, semua token dan device di-revoke.

        Raises:
            InvalidTokenError, TokenExpiredError, RevokedTokenError
            WeakPasswordError / PasswordReuseError
        """
        async with self._transaction():
            record = await self.tokens.verify(token, TokenType.RESET_PASSWORD)
            user = await self._get_user(record.user_id)

            await self.passwords.ensure_acceptable(user, new_password)
            if not await self.tokens.revoke(record.id):
                raise RevokedTokenError()

            await self.passwords.commit(user, new_password, reason="reset")
            await self.lockout.clear(user)
            await self.tokens.revoke_all_for_user(user)
            await self.devices.remove_all(user)

    async def password_status(self, user: UserRecord) -> ExpiryStatus:
        return self.passwords.expiry_status(user)

    async def force_password_change(self, user_id: UUID) -> UserRecord:
        async with self._transaction():
            user = await self._get_user(user_id)
            await self.passwords.force_change(user)
        return user

    # Email verification
    async def issue_email_verification(self, user: UserRecord) -> str:
        async with self._transaction():
            await self.tokens.revoke_all_for_user(user, [TokenType.VERIFY_EMAIL])
            issued = await self.tokens.issue(user, TokenType.VERIFY_EMAIL)
        return issued.value

    async def verify_email(self, token: str) -> UserRecord:
        """
        Raises:
            InvalidTokenError, TokenExpiredError, RevokedTokenError
        """
        async with self._transaction():
            record = await self.tokens.verify(token, TokenType.VERIFY_EMAIL)
            if not await self.tokens.revoke(record.id):
                raise RevokedTokenError()
            user = await self._get_user(record.user_id)
            await self.store.users.mark_email_verified(user.id)
            user.is_email_verified = True
        return user

    # Two factor
    async def setup_two_factor(self, user: UserRecord) -> TwoFactorSetup:
        async with self._transaction():
            return await self.two_factor.begin_setup(user)

    async def enable_two_factor(self, user: UserRecord, code: str) -> None:
        async with self._transaction():
            await self.two_factor.enable(user, code)

    async def disable_two_factor(self, user: UserRecord, code: str, device: Optional[DeviceInfo] = None) -> None:
        async with self._transaction():
            await self.two_factor.disable(user, code, device)

    async def regenerate_backup_codes(self, user: UserRecord, code: str) -> List[str]:
        async with self._transaction():
            return await self.two_factor.regenerate_backup_codes(user, code)

    async def two_factor_status(self, user: UserRecord) -> TwoFactorStatus:
        return self.two_factor.status(user)

    # Devices
    async def list_devices(self, user: UserRecord) -> List[DeviceSessionRecord]:
        return await self.devices.list_sessions(user)

    async def device_limit_info(self, user: UserRecord) -> Dict[str, Any]:
        return await self.devices.limit_info(user)

    async def remove_device(self, user: UserRecord, device_id: str) -> None:
        async with self._transaction():
            await self.devices.remove(user, device_id)

    async def rename_device(self, user: UserRecord, device_id: str, name: str) -> DeviceSessionRecord:
        async with self._transaction():
            return await self.devices.rename(user, device_id, name)

    async def set_device_trusted(self, user: UserRecord, device_id: str, trusted: bool) -> DeviceSessionRecord:
        async with self._transaction():
            return await self.devices.set_trusted(user, device_id, trusted)

    # Preferences & events
    async def get_security_preferences(self, user: UserRecord) -> SecurityPreferences:
        return user.security_preferences

    async def update_security_preferences(
        self,
        user: UserRecord,
        changes: Dict[str, Any]
    ) -> SecurityPreferences:
        """
        Raises:
            ValidationError: Key tidak dikenal atau nilai bukan boolean
        """
        try:
            preferences = SecurityPreferences.model_validate(
                {**user.security_preferences.model_dump(), **changes}
            )
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid security preferences",
                details={"errors": [err["msg"] for err in e.errors()]}
            )

        async with self._transaction():
            await self.store.users.update_security_preferences(user.id, preferences)
            user.security_preferences = preferences
        return preferences

    async def security_events(self, user: UserRecord, limit: int = 50) -> List[SecurityEventRecord]:
        return await self.events.list_events(user.id, limit=limit)

    async def security_summary(self, user: UserRecord, days: int = 30) -> Dict[str, Any]:
        return await self.events.summary(user.id, days=days)
