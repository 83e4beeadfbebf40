"""
Tests for account lockout.
"""

import asyncio
from datetime import timedelta

import pytest

from authcore.core.constants import LoginFailureReason, SecurityEventType, SecurityLevel
from authcore.core.exceptions import AccountLockedError, InvalidCredentialsError

from conftest import TEST_EMAIL, TEST_PASSWORD


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.security
class TestLockoutGuard:
    """Test LockoutGuard counting and locking."""

    async def test_four_failures_do_not_lock(self, orchestrator, test_user):
        """Test the counter below the threshold."""
        for _ in range(4):
            await orchestrator.lockout.record_failure(test_user)

        assert test_user.failed_login_attempts == 4
        assert orchestrator.lockout.check_lockout(test_user).locked is False

    async def test_fifth_failure_locks(self, orchestrator, store, clock, test_user):
        """Test the 5th consecutive failure sets lockout_until = now + 15 min."""
        for _ in range(5):
            await orchestrator.lockout.record_failure(test_user)

        stored = store.users_by_id[test_user.id]
        assert stored.failed_login_attempts == 5
        assert stored.lockout_until == clock() + timedelta(minutes=15)

        status = orchestrator.lockout.check_lockout(test_user)
        assert status.locked is True
        assert status.retry_after_seconds(clock()) == 900

        locked_events = [e for e in store.event_log if e.event_type == SecurityEventType.ACCOUNT_LOCKED]
        assert len(locked_events) == 1
        assert locked_events[0].level == SecurityLevel.ERROR

    async def test_lock_expires(self, orchestrator, clock, test_user):
        """Test automatic unlock once now > lockout_until."""
        for _ in range(5):
            await orchestrator.lockout.record_failure(test_user)

        clock.advance(minutes=14, seconds=59)
        assert orchestrator.lockout.check_lockout(test_user).locked is True

        clock.advance(seconds=2)
        assert orchestrator.lockout.check_lockout(test_user).locked is False

    async def test_success_resets_counter(self, orchestrator, store, clock, test_user):
        """Test record_success clears counter and stamps last_login_at."""
        for _ in range(3):
            await orchestrator.lockout.record_failure(test_user)

        await orchestrator.lockout.record_success(test_user)

        stored = store.users_by_id[test_user.id]
        assert stored.failed_login_attempts == 0
        assert stored.lockout_until is None
        assert stored.last_login_at == clock()

    async def test_administrative_lock(self, orchestrator, test_user):
        """Test is_locked reports locked without an expiry."""
        test_user.is_locked = True

        status = orchestrator.lockout.check_lockout(test_user)
        assert status.locked is True
        assert status.administrative is True
        assert status.until is None

        with pytest.raises(AccountLockedError):
            orchestrator.lockout.ensure_not_locked(test_user)

    async def test_concurrent_failures_are_all_counted(self, orchestrator, store, test_user):
        """Increment atomic: kegagalan bersamaan tidak hilang."""
        copies = [await store.users.get(test_user.id) for _ in range(5)]

        await asyncio.gather(*(orchestrator.lockout.record_failure(u) for u in copies))

        stored = store.users_by_id[test_user.id]
        assert stored.failed_login_attempts == 5
        assert stored.lockout_until is not None


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.security
class TestLoginLockout:
    """Test lockout as seen through the login flow."""

    async def test_fourth_failure_then_wrong_password(self, orchestrator, store, clock, test_user):
        """
        User dengan 4 kegagalan memasukkan password salah: InvalidCredentialsError,
        counter jadi 5, dan login berikutnya (walau password benar) AccountLockedError.
        """
        store.users_by_id[test_user.id].failed_login_attempts = 4

        with pytest.raises(InvalidCredentialsError):
            await orchestrator.login(TEST_EMAIL, "WrongPassword123!")

        stored = store.users_by_id[test_user.id]
        assert stored.failed_login_attempts == 5
        assert stored.lockout_until == clock() + timedelta(minutes=15)

        clock.advance(minutes=1)
        with pytest.raises(AccountLockedError) as exc_info:
            await orchestrator.login(TEST_EMAIL, TEST_PASSWORD)

        assert exc_info.value.until == stored.lockout_until
        assert exc_info.value.status_code == 423

    async def test_locked_attempt_does_not_increment(self, orchestrator, store, test_user):
        """Test attempts during lockout are rejected before the credential check."""
        for _ in range(5):
            with pytest.raises(InvalidCredentialsError):
                await orchestrator.login(TEST_EMAIL, "WrongPassword123!")

        with pytest.raises(AccountLockedError):
            await orchestrator.login(TEST_EMAIL, "WrongPassword123!")

        assert store.users_by_id[test_user.id].failed_login_attempts == 5
        failed = [e for e in store.event_log if e.event_type == SecurityEventType.LOGIN_FAILED]
        assert failed[-1].metadata["reason"] == LoginFailureReason.ACCOUNT_LOCKED.value

    async def test_login_after_lockout_expires(self, orchestrator, store, clock, test_user):
        """Test successful login after the lockout window resets the counter."""
        for _ in range(5):
            with pytest.raises(InvalidCredentialsError):
                await orchestrator.login(TEST_EMAIL, "WrongPassword123!")

        clock.advance(minutes=15, seconds=1)
        outcome = await orchestrator.login(TEST_EMAIL, TEST_PASSWORD)

        assert outcome.tokens is not None
        stored = store.users_by_id[test_user.id]
        assert stored.failed_login_attempts == 0
        assert stored.lockout_until is None

    async def test_failure_after_expiry_relocks(self, orchestrator, clock, test_user):
        """Counter tidak di-reset oleh unlock otomatis; kegagalan berikutnya mengunci lagi."""
        for _ in range(5):
            with pytest.raises(InvalidCredentialsError):
                await orchestrator.login(TEST_EMAIL, "WrongPassword123!")

        clock.advance(minutes=16)
        with pytest.raises(InvalidCredentialsError):
            await orchestrator.login(TEST_EMAIL, "WrongPassword123!")

        with pytest.raises(AccountLockedError):
            await orchestrator.login(TEST_EMAIL, TEST_PASSWORD)
