"""
Two-factor authentication engine untuk AuthCore.
Menangani TOTP secret, backup codes, dan state machine enrollment.
"""

import base64
import io
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import pyotp
import qrcode

from authcore.core.config import Settings
from authcore.core.constants import (
    BACKUP_CODE_ALPHABET,
    BACKUP_CODE_LENGTH,
    BACKUP_CODE_LETTERS,
    TOTP_DIGITS,
    EventOutcome,
    SecurityEventType,
    TwoFactorState,
)
from authcore.core.exceptions import InvalidTwoFactorCodeError, TwoFactorStateError
from authcore.core.security import Clock, Security, utc_now
from authcore.repositories.base import CredentialStore
from authcore.repositories.records import DeviceInfo, TwoFactorEnrollment, UserRecord
from authcore.services.audit import SecurityEventService

logger = logging.getLogger(__name__)


@dataclass
class TwoFactorSetup:
    """Data yang ditampilkan sekali ke user saat setup 2FA."""

    secret: str
    provisioning_uri: str
    qr_code: str
    backup_codes: List[str]


@dataclass
class TwoFactorStatus:
    state: TwoFactorState
    enabled: bool
    backup_codes_remaining: int


class TwoFactorEngine:
    """
    Engine untuk TOTP (RFC 6238, SHA-1, 6 digit) dan backup codes.

    Secret disimpan terenkripsi (Fernet); backup codes hanya disimpan sebagai SHA-256.
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

    # Secrets & provisioning
    @staticmethod
    def generate_secret() -> str:
        """Generate random base32 TOTP secret."""
        return pyotp.random_base32()

    def provisioning_uri(self, secret: str, account_label: str) -> str:
        """
        Build otpauth:// URI untuk authenticator app.

        Args:
            secret: Plain base32 secret
            account_label: Biasanya email user

        Returns:
            Provisioning URI
        """
        return self._totp(secret).provisioning_uri(
            name=account_label,
            issuer_name=self.settings.TWO_FACTOR_ISSUER_NAME
        )

    @staticmethod
    def qr_code_data_uri(data: str) -> str:
        """
        Generate QR code as base64 data URI.

        Args:
            data: Data to encode in QR

        Returns:
            Base64 encoded PNG data URI
        """
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        img_str = base64.b64encode(buffer.getvalue()).decode()

        return f"data:image/png;base64,{img_str}"

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=self.settings.TOTP_INTERVAL_SECONDS)

    # Backup codes
    def generate_backup_codes(self) -> List[str]:
        """
        Generate backup codes unik, format XXXX-XXXX.

        Setiap code berisi minimal satu huruf sehingga tidak pernah
        tertukar dengan TOTP numerik.
        """
        codes = set()
        while len(codes) < self.settings.TWO_FACTOR_BACKUP_CODES_COUNT:
            code = "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
            if not any(char in BACKUP_CODE_LETTERS for char in code):
                continue
            codes.add(code)
        return [f"{code[:4]}-{code[4:]}" for code in sorted(codes)]

    @staticmethod
    def normalize_backup_code(code: str) -> str:
        return code.replace("-", "").replace(" ", "").strip().upper()

    def hash_backup_code(self, code: str) -> str:
        return self.security.hash_token(self.normalize_backup_code(code))

    # Verification
    def verify_totp(self, secret: str, code: str, at: Optional[datetime] = None) -> bool:
        """
        Verify TOTP code terhadap step sekarang dan step di kiri/kanannya.

        Args:
            secret: Plain base32 secret
            code: Code dari user
            at: Waktu verifikasi (default clock sekarang)

        Returns:
            True jika valid
        """
        if not secret or not code:
            return False

        code = code.replace(" ", "").strip()
        if not code.isdigit() or len(code) != TOTP_DIGITS:
            return False

        return self._totp(secret).verify(
            code,
            for_time=at or self.clock(),
            valid_window=self.settings.TOTP_VALID_WINDOW
        )

    async def verify_backup_code(self, user: UserRecord, code: str) -> bool:
        """
        Redeem backup code (atomic remove-if-present).

        Returns:
            True hanya untuk caller yang berhasil mengkonsumsi code
        """
        normalized = self.normalize_backup_code(code or "")
        if len(normalized) != BACKUP_CODE_LENGTH:
            return False

        consumed = await self.store.users.consume_backup_code(
            user.id, self.security.hash_token(normalized)
        )
        if consumed:
            code_hash = self.security.hash_token(normalized)
            if code_hash in user.backup_code_hashes:
                user.backup_code_hashes.remove(code_hash)
            logger.info(f"Backup code consumed for user {user.id}")
        return consumed

    def _plain_secret(self, user: UserRecord) -> str:
        return self.security.decrypt(user.two_factor.secret)

    async def verify(self, user: UserRecord, code: str, device: Optional[DeviceInfo] = None) -> bool:
        """
        Verify second factor: TOTP dulu, lalu backup code.

        Args:
            user: User dengan 2FA ENABLED
            code: TOTP atau backup code
            device: Device info untuk security event

        Returns:
            True jika salah satu valid

        Raises:
            TwoFactorStateError: Jika 2FA tidak enabled
        """
        if not user.two_factor.is_enabled:
            raise TwoFactorStateError("Two-factor authentication is not enabled", state=user.two_factor.state.value)

        method = "totp"
        valid = self.verify_totp(self._plain_secret(user), code)
        if not valid:
            method = "backup_code"
            valid = await self.verify_backup_code(user, code)

        await self.events.emit(
            SecurityEventType.TWO_FACTOR_VERIFIED,
            user=user,
            outcome=EventOutcome.SUCCESS if valid else EventOutcome.FAILURE,
            device=device,
            metadata={"method": method} if valid else {}
        )
        return valid

    # Enrollment state machine
    async def begin_setup(self, user: UserRecord) -> TwoFactorSetup:
        """
        NOT_SETUP/PENDING/DISABLED -> PENDING.
        Menyimpan secret dan backup codes baru; 2FA belum aktif.

        Raises:
            TwoFactorStateError: Jika 2FA sudah ENABLED
        """
        if user.two_factor.is_enabled:
            raise TwoFactorStateError("Two-factor authentication is already enabled", state=user.two_factor.state.value)

        secret = self.generate_secret()
        backup_codes = self.generate_backup_codes()
        enrollment = TwoFactorEnrollment.pending(self.security.encrypt(secret))
        code_hashes = [self.hash_backup_code(code) for code in backup_codes]

        await self.store.users.set_two_factor(user.id, enrollment, code_hashes)
        user.two_factor = enrollment
        user.backup_code_hashes = code_hashes

        uri = self.provisioning_uri(secret, user.email)
        return TwoFactorSetup(
            secret=secret,
            provisioning_uri=uri,
            qr_code=self.qr_code_data_uri(uri),
            backup_codes=backup_codes
        )

    async def enable(self, user: UserRecord, code: str) -> None:
        """
        PENDING -> ENABLED setelah satu TOTP valid terhadap pending secret.

        Raises:
            TwoFactorStateError: Jika belum ada setup pending
            InvalidTwoFactorCodeError: Jika code salah
        """
        if user.two_factor.state != TwoFactorState.PENDING:
            raise TwoFactorStateError("Two-factor setup has not been started", state=user.two_factor.state.value)

        if not self.verify_totp(self._plain_secret(user), code):
            raise InvalidTwoFactorCodeError("Invalid verification code")

        enrollment = TwoFactorEnrollment.enabled(user.two_factor.secret)
        await self.store.users.set_two_factor(user.id, enrollment, user.backup_code_hashes)
        user.two_factor = enrollment

        await self.events.emit(SecurityEventType.TWO_FACTOR_ENABLED, user=user)

    async def disable(self, user: UserRecord, code: str, device: Optional[DeviceInfo] = None) -> None:
        """
        ENABLED -> DISABLED. Butuh second factor valid; secret dan backup codes dihapus.

        Raises:
            TwoFactorStateError: Jika 2FA tidak enabled
            InvalidTwoFactorCodeError: Jika code salah
        """
        if not await self.verify(user, code, device=device):
            raise InvalidTwoFactorCodeError()

        enrollment = TwoFactorEnrollment.disabled()
        await self.store.users.set_two_factor(user.id, enrollment, [])
        user.two_factor = enrollment
        user.backup_code_hashes = []

        await self.events.emit(SecurityEventType.TWO_FACTOR_DISABLED, user=user, device=device)

    async def regenerate_backup_codes(self, user: UserRecord, code: str) -> List[str]:
        """
        Ganti seluruh backup codes. Butuh second factor valid.

        Returns:
            Backup codes baru (plain, ditampilkan sekali)
        """
        if not await self.verify(user, code):
            raise InvalidTwoFactorCodeError()

        backup_codes = self.generate_backup_codes()
        code_hashes = [self.hash_backup_code(c) for c in backup_codes]
        await self.store.users.set_two_factor(user.id, user.two_factor, code_hashes)
        user.backup_code_hashes = code_hashes

        logger.info(f"Backup codes regenerated for user {user.id}")
        return backup_codes

    def status(self, user: UserRecord) -> TwoFactorStatus:
        return TwoFactorStatus(
            state=user.two_factor.state,
            enabled=user.two_factor.is_enabled,
            backup_codes_remaining=len(user.backup_code_hashes)
        )
