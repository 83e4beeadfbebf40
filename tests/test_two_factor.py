"""
Tests for two-factor authentication.
"""

import asyncio
import re
from datetime import timedelta

import pyotp
import pytest

from authcore.core.constants import SecurityEventType, TwoFactorState
from authcore.core.exceptions import InvalidTwoFactorCodeError, TwoFactorStateError

from conftest import START_TIME, totp_now


@pytest.mark.unit
@pytest.mark.security
class TestTotpWindow:
    """Code untuk step T diterima di [T-30s, T+60s) dan ditolak di luar itu."""

    @pytest.fixture
    def secret(self):
        return pyotp.random_base32()

    @pytest.fixture
    def code(self, secret):
        return pyotp.TOTP(secret).at(START_TIME)

    @pytest.mark.parametrize("offset", [-30, -1, 0, 29, 30, 59])
    def test_accepted_inside_window(self, orchestrator, secret, code, offset):
        at = START_TIME + timedelta(seconds=offset)
        assert orchestrator.two_factor.verify_totp(secret, code, at=at) is True

    @pytest.mark.parametrize("offset", [-90, -31, 60, 90])
    def test_rejected_outside_window(self, orchestrator, secret, code, offset):
        at = START_TIME + timedelta(seconds=offset)
        assert orchestrator.two_factor.verify_totp(secret, code, at=at) is False

    def test_malformed_codes_rejected(self, orchestrator, secret):
        assert orchestrator.two_factor.verify_totp(secret, "") is False
        assert orchestrator.two_factor.verify_totp(secret, "12345") is False
        assert orchestrator.two_factor.verify_totp(secret, "abcdef") is False

    def test_uses_engine_clock(self, orchestrator, secret, clock):
        """Tanpa argumen `at`, engine memakai clock-nya sendiri."""
        code = pyotp.TOTP(secret).at(clock())
        assert orchestrator.two_factor.verify_totp(secret, code) is True

        clock.advance(minutes=5)
        assert orchestrator.two_factor.verify_totp(secret, code) is False


@pytest.mark.unit
class TestBackupCodeGeneration:
    """Test backup code format."""

    def test_format(self, orchestrator, settings):
        codes = orchestrator.two_factor.generate_backup_codes()

        assert len(codes) == settings.TWO_FACTOR_BACKUP_CODES_COUNT
        assert len(set(codes)) == len(codes)
        for code in codes:
            assert re.fullmatch(r"[A-Z0-9]{4}-[A-Z0-9]{4}", code)
            # Minimal satu huruf supaya tidak pernah mirip TOTP
            assert re.search(r"[A-Z]", code)

    def test_normalize(self, orchestrator):
        assert orchestrator.two_factor.normalize_backup_code(" abcd-efgh ") == "ABCDEFGH"


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.security
class TestEnrollment:
    """Test the enrollment state machine."""

    async def test_setup_is_pending(self, orchestrator, store, test_user):
        """Test setup stores an encrypted secret and leaves 2FA off."""
        setup = await orchestrator.setup_two_factor(test_user)

        stored = store.users_by_id[test_user.id]
        assert stored.two_factor.state == TwoFactorState.PENDING
        assert stored.two_factor.secret != setup.secret
        assert orchestrator.security.decrypt(stored.two_factor.secret) == setup.secret
        assert len(stored.backup_code_hashes) == len(setup.backup_codes)
        assert setup.provisioning_uri.startswith("otpauth://totp/")
        assert setup.qr_code.startswith("data:image/png;base64,")

    async def test_enable_with_valid_code(self, orchestrator, store, clock, test_user):
        setup = await orchestrator.setup_two_factor(test_user)

        await orchestrator.enable_two_factor(test_user, totp_now(setup.secret, clock))

        assert store.users_by_id[test_user.id].two_factor.state == TwoFactorState.ENABLED
        assert any(e.event_type == SecurityEventType.TWO_FACTOR_ENABLED for e in store.event_log)

    async def test_enable_with_wrong_code(self, orchestrator, store, clock, test_user):
        setup = await orchestrator.setup_two_factor(test_user)
        wrong = pyotp.TOTP(setup.secret).at(clock() + timedelta(minutes=10))

        with pytest.raises(InvalidTwoFactorCodeError):
            await orchestrator.enable_two_factor(test_user, wrong)

        assert store.users_by_id[test_user.id].two_factor.state == TwoFactorState.PENDING

    async def test_enable_without_setup(self, orchestrator, test_user):
        with pytest.raises(TwoFactorStateError):
            await orchestrator.enable_two_factor(test_user, "123456")

    async def test_setup_while_enabled(self, orchestrator, enable_two_factor, test_user):
        await enable_two_factor(test_user)

        with pytest.raises(TwoFactorStateError) as exc_info:
            await orchestrator.setup_two_factor(test_user)

        assert exc_info.value.status_code == 409

    async def test_setup_again_replaces_pending_secret(self, orchestrator, store, test_user):
        first = await orchestrator.setup_two_factor(test_user)
        second = await orchestrator.setup_two_factor(test_user)

        assert first.secret != second.secret
        assert orchestrator.security.decrypt(store.users_by_id[test_user.id].two_factor.secret) == second.secret

    async def test_disable_with_totp(self, orchestrator, store, clock, enable_two_factor, test_user):
        """Test disable clears secret and backup codes."""
        setup = await enable_two_factor(test_user)

        await orchestrator.disable_two_factor(test_user, totp_now(setup.secret, clock))

        stored = store.users_by_id[test_user.id]
        assert stored.two_factor.state == TwoFactorState.DISABLED
        assert stored.two_factor.secret is None
        assert stored.backup_code_hashes == []

    async def test_disable_with_wrong_code(self, orchestrator, store, enable_two_factor, test_user):
        await enable_two_factor(test_user)

        with pytest.raises(InvalidTwoFactorCodeError):
            await orchestrator.disable_two_factor(test_user, "ZZZZ-ZZZZ")

        assert store.users_by_id[test_user.id].two_factor.state == TwoFactorState.ENABLED

    async def test_re_enroll_after_disable(self, orchestrator, clock, enable_two_factor, test_user):
        setup = await enable_two_factor(test_user)
        await orchestrator.disable_two_factor(test_user, setup.backup_codes[0])

        again = await enable_two_factor(test_user)

        assert again.secret != setup.secret
        assert test_user.two_factor.is_enabled is True

    async def test_regenerate_backup_codes(self, orchestrator, store, clock, enable_two_factor, test_user):
        setup = await enable_two_factor(test_user)

        codes = await orchestrator.regenerate_backup_codes(test_user, totp_now(setup.secret, clock))

        assert set(codes).isdisjoint(setup.backup_codes)
        assert not await orchestrator.two_factor.verify_backup_code(test_user, setup.backup_codes[1])

    async def test_status(self, orchestrator, enable_two_factor, test_user):
        setup = await enable_two_factor(test_user)
        await orchestrator.two_factor.verify_backup_code(test_user, setup.backup_codes[0])

        status = await orchestrator.two_factor_status(test_user)

        assert status.state == TwoFactorState.ENABLED
        assert status.enabled is True
        assert status.backup_codes_remaining == len(setup.backup_codes) - 1


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.security
class TestBackupCodes:
    """Backup codes hanya bisa dipakai sekali."""

    async def test_single_use(self, orchestrator, store, enable_two_factor, test_user):
        setup = await enable_two_factor(test_user)
        code = setup.backup_codes[0]

        assert await orchestrator.two_factor.verify(test_user, code) is True
        assert await orchestrator.two_factor.verify(test_user, code) is False

        code_hash = orchestrator.two_factor.hash_backup_code(code)
        assert code_hash not in store.users_by_id[test_user.id].backup_code_hashes

    async def test_lowercase_without_dash_accepted(self, orchestrator, enable_two_factor, test_user):
        setup = await enable_two_factor(test_user)
        code = setup.backup_codes[0].replace("-", "").lower()

        assert await orchestrator.two_factor.verify(test_user, code) is True

    async def test_concurrent_redemption_single_winner(self, orchestrator, store, enable_two_factor, test_user):
        """Dua verifikasi bersamaan atas code yang sama: tepat satu berhasil."""
        setup = await enable_two_factor(test_user)
        code = setup.backup_codes[0]
        first = await store.users.get(test_user.id)
        second = await store.users.get(test_user.id)

        results = await asyncio.gather(
            orchestrator.two_factor.verify_backup_code(first, code),
            orchestrator.two_factor.verify_backup_code(second, code),
        )

        assert sorted(results) == [False, True]
        code_hash = orchestrator.two_factor.hash_backup_code(code)
        assert code_hash not in store.users_by_id[test_user.id].backup_code_hashes

    async def test_verify_requires_enabled(self, orchestrator, test_user):
        with pytest.raises(TwoFactorStateError):
            await orchestrator.two_factor.verify(test_user, "123456")
