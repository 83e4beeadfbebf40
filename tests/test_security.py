"""
Tests for security functionality.
"""

import base64
import json
import logging

import pytest
from jose import jwt
from pydantic import ValidationError as PydanticValidationError

from authcore.core.exceptions import InvalidTokenError, ValidationError
from authcore.core.constants import TwoFactorState
from authcore.core.security import Security
from authcore.repositories.records import SecurityPreferences, TwoFactorEnrollment


@pytest.mark.unit
@pytest.mark.security
class TestPasswordHashing:
    """Test password hashing functionality."""

    def test_hash_password(self, security):
        """Test password hashing."""
        password = "TestPassword123!"
        hashed = security.hash_password(password)

        assert hashed != password
        assert hashed.startswith("$argon2")

    def test_verify_password(self, security):
        """Test verifying correct and incorrect password."""
        hashed = security.hash_password("TestPassword123!")

        assert security.verify_password("TestPassword123!", hashed) is True
        assert security.verify_password("WrongPassword123!", hashed) is False

    def test_same_password_different_hashes(self, security):
        """Salt acak: hash berbeda untuk password yang sama."""
        assert security.hash_password("TestPassword123!") != security.hash_password("TestPassword123!")


@pytest.mark.unit
@pytest.mark.security
class TestJWTTokens:
    """Test JWT signing and decoding."""

    def test_encode_decode(self, security):
        """Test claims survive signing."""
        claims = {"sub": "user-1", "type": "ACCESS", "jti": "abc", "iat": 1, "exp": 2}
        token = security.encode_token(claims)

        assert security.decode_token(token) == claims

    def test_decode_does_not_check_expiry(self, security):
        """Expiry dicek oleh TokenManager, bukan oleh decode."""
        token = security.encode_token({"sub": "user-1", "exp": 1})

        assert security.decode_token(token)["exp"] == 1

    def test_wrong_key_rejected(self, security, settings_factory):
        """Test token signed with another key."""
        other = Security(settings_factory(SECRET_KEY="another-secret-key-that-is-long-enough-000"))
        token = other.encode_token({"sub": "user-1"})

        with pytest.raises(InvalidTokenError):
            security.decode_token(token)

    def test_unexpected_algorithm_rejected(self, security, settings):
        """Test token signed with an algorithm other than the configured one."""
        token = jwt.encode({"sub": "user-1"}, settings.SECRET_KEY, algorithm="HS512")

        with pytest.raises(InvalidTokenError):
            security.decode_token(token)

    def test_unsigned_token_rejected(self, security):
        """Test alg=none token."""
        def b64(data: dict) -> str:
            return base64.urlsafe_b64encode(json.dumps(data).encode()).decode().rstrip("=")

        token = f"{b64({'alg': 'none', 'typ': 'JWT'})}.{b64({'sub': 'user-1'})}."

        with pytest.raises(InvalidTokenError):
            security.decode_token(token)

    def test_garbage_rejected(self, security):
        with pytest.raises(InvalidTokenError):
            security.decode_token("not.a.jwt")


@pytest.mark.unit
@pytest.mark.security
class TestEncryption:
    """Test encryption of two-factor secrets."""

    def test_encrypt_decrypt(self, security):
        """Test encryption round trip and that ciphertext differs from plaintext."""
        encrypted = security.encrypt("JBSWY3DPEHPK3PXP")

        assert encrypted != "JBSWY3DPEHPK3PXP"
        assert security.decrypt(encrypted) == "JBSWY3DPEHPK3PXP"

    def test_decrypt_with_other_key_fails(self, security, settings_factory):
        """Test ciphertext from another ENCRYPTION_KEY."""
        other = Security(settings_factory(ENCRYPTION_KEY="another-encryption-key"))

        with pytest.raises(ValidationError):
            security.decrypt(other.encrypt("JBSWY3DPEHPK3PXP"))

    def test_hash_token_deterministic(self, security):
        assert security.hash_token("abc") == security.hash_token("abc")
        assert security.hash_token("abc") != security.hash_token("abd")
        assert len(security.hash_token("abc")) == 64


@pytest.mark.unit
class TestTwoFactorEnrollment:
    """State enrollment 2FA tidak bisa berada di kombinasi ilegal."""

    def test_valid_states(self):
        assert TwoFactorEnrollment.not_setup().secret is None
        assert TwoFactorEnrollment.pending("enc").state == TwoFactorState.PENDING
        assert TwoFactorEnrollment.enabled("enc").is_enabled is True
        assert TwoFactorEnrollment.disabled().is_enabled is False

    def test_enabled_without_secret_rejected(self):
        with pytest.raises(ValueError):
            TwoFactorEnrollment(TwoFactorState.ENABLED, None)

    def test_disabled_with_secret_rejected(self):
        with pytest.raises(ValueError):
            TwoFactorEnrollment(TwoFactorState.DISABLED, "enc")


@pytest.mark.unit
class TestSecurityPreferences:
    """Test parsing preferences dari storage."""

    def test_defaults(self):
        preferences = SecurityPreferences.from_stored(None)

        assert preferences.login_alerts is True
        assert preferences.new_device_alerts is True
        assert preferences.password_expiry_reminders is True

    def test_json_string(self):
        """Row lama menyimpan JSON string."""
        preferences = SecurityPreferences.from_stored('{"login_alerts": false}')

        assert preferences.login_alerts is False
        assert preferences.new_device_alerts is True

    def test_dict(self):
        preferences = SecurityPreferences.from_stored({"new_device_alerts": False})

        assert preferences.new_device_alerts is False

    def test_legacy_keys_ignored(self):
        """Row lama bisa berisi key yang sudah tidak dipakai."""
        preferences = SecurityPreferences.from_stored(
            '{"login_alerts": false, "emailNotifications": true, "securityUpdates": false}'
        )

        assert preferences.login_alerts is False
        assert preferences.new_device_alerts is True

    def test_malformed_json_uses_defaults(self, caplog):
        with caplog.at_level(logging.WARNING, logger="authcore.repositories.records"):
            preferences = SecurityPreferences.from_stored("{not json")

        assert preferences == SecurityPreferences()
        assert "Malformed stored security preferences" in caplog.text

    def test_unknown_key_rejected_on_update(self):
        """Input user tetap strict: key tidak dikenal ditolak."""
        with pytest.raises(PydanticValidationError):
            SecurityPreferences.model_validate({"sms_alerts": True})
