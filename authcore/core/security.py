"""
Modul keamanan terpusat untuk AuthCore.
Menangani password hashing, JWT encode/decode, enkripsi secret 2FA, dan hashing token.
"""

import base64
import secrets
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from jose import JWTError, jwt
from passlib.context import CryptContext

from authcore.core.config import Settings
from authcore.core.exceptions import InvalidTokenError, ValidationError


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Clock default: waktu sekarang dalam UTC (timezone-aware)."""
    return datetime.now(timezone.utc)


def create_password_context(memory_cost: int = 65536) -> CryptContext:
    """
    Membuat password hashing context dengan Argon2.

    Args:
        memory_cost: Argon2 memory cost dalam KiB

    Returns:
        Configured CryptContext
    """
    return CryptContext(
        schemes=["argon2"],
        deprecated="auto",
        argon2__rounds=4,
        argon2__memory_cost=memory_cost,
        argon2__parallelism=2,
        argon2__hash_len=32,
        argon2__salt_len=16
    )


class Security:
    """
    Kelas untuk operasi keamanan.
    Satu instance per aplikasi, dibangun dari Settings.
    """

    def __init__(self, settings: Settings):
        """
        Inisialisasi security dengan settings aplikasi.

        Args:
            settings: Application settings (SECRET_KEY, ENCRYPTION_KEY, ALGORITHM)
        """
        self.settings = settings
        self.pwd_context = create_password_context(settings.ARGON2_MEMORY_COST)
        self._fernet = self._create_fernet()
        self._dummy_hash: Optional[str] = None

    def _create_fernet(self) -> Fernet:
        """
        Membuat Fernet instance untuk enkripsi.
        Menggunakan PBKDF2 untuk derive key dari ENCRYPTION_KEY.
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=self.settings.SECRET_KEY.encode()[:16],
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(
            kdf.derive(self.settings.ENCRYPTION_KEY.encode())
        )
        return Fernet(key)

    # Password Operations
    def hash_password(self, password: str) -> str:
        """
        Hash password menggunakan Argon2.

        Args:
            password: Plain text password

        Returns:
            Hashed password
        """
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verifikasi password terhadap hash.

        Args:
            plain_password: Plain text password
            hashed_password: Hashed password

        Returns:
            True jika password cocok, False jika tidak
        """
        return self.pwd_context.verify(plain_password, hashed_password)

    def verify_dummy_password(self, plain_password: str) -> None:
        """
        Jalankan verifikasi terhadap hash dummy.
        Dipakai saat email tidak dikenal supaya waktu respons setara dengan password salah.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash_password(secrets.token_urlsafe(16))
        self.pwd_context.verify(plain_password, self._dummy_hash)

    # JWT Operations
    def encode_token(self, claims: Dict[str, Any]) -> str:
        """
        Sign JWT dengan key dan algoritma yang dikonfigurasi.

        Args:
            claims: JWT claims (sub, iat, exp, type, jti)

        Returns:
            Encoded JWT
        """
        return jwt.encode(
            claims,
            self.settings.SECRET_KEY,
            algorithm=self.settings.ALGORITHM
        )

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode JWT dan validasi signature.

        Expiry tidak dicek di sini; TokenManager membandingkan `exp`
        dengan clock-nya sendiri supaya urutan error konsisten.

        Args:
            token: Encoded JWT

        Returns:
            Decoded payload

        Raises:
            InvalidTokenError: Signature salah, algoritma tidak cocok, atau format rusak
        """
        try:
            return jwt.decode(
                token,
                self.settings.SECRET_KEY,
                algorithms=[self.settings.ALGORITHM],
                options={"verify_exp": False}
            )
        except JWTError:
            raise InvalidTokenError("Invalid token")

    # Encryption Operations
    def encrypt(self, data: str) -> str:
        """
        Enkripsi data menggunakan Fernet.

        Args:
            data: Data yang akan dienkripsi

        Returns:
            Encrypted data (base64 encoded)
        """
        return self._fernet.encrypt(data.encode()).decode()

    def decrypt(self, encrypted_data: str) -> str:
        """
        Dekripsi data menggunakan Fernet.

        Args:
            encrypted_data: Data terenkripsi (base64 encoded)

        Returns:
            Decrypted data

        Raises:
            ValidationError: Jika dekripsi gagal
        """
        try:
            return self._fernet.decrypt(encrypted_data.encode()).decode()
        except InvalidToken:
            raise ValidationError("Failed to decrypt data")

    # Hash Operations untuk Token Storage
    @staticmethod
    def hash_token(token: str) -> str:
        """
        Hash token untuk penyimpanan aman di database.
        Menggunakan SHA256 karena tidak perlu verifikasi seperti password.

        Args:
            token: Token yang akan di-hash

        Returns:
            Hashed token (hex)
        """
        digest = hashes.Hash(hashes.SHA256())
        digest.update(token.encode())
        return digest.finalize().hex()

    @staticmethod
    def constant_time_equals(a: str, b: str) -> bool:
        """Bandingkan dua digest tanpa timing leak."""
        return secrets.compare_digest(a.encode(), b.encode())
