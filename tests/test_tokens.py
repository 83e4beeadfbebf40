"""
Tests for token issuance, verification, rotation, and revocation.
"""

import asyncio
from datetime import timedelta
from uuid import UUID

import pytest

from authcore.core.constants import EventOutcome, SecurityEventType, SecurityLevel, TokenType
from authcore.core.exceptions import (
    AccountDisabledError,
    InvalidTokenError,
    RevokedTokenError,
    TokenExpiredError,
)
from authcore.core.security import Security
from authcore.repositories.records import DeviceInfo
from authcore.services.tokens import AuthTokens


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.security
class TestIssueAndVerify:
    """Test TokenManager.issue and verify."""

    async def test_claims(self, orchestrator, security, clock, test_user):
        """Payload berisi sub, iat, exp, type, dan jti = record id."""
        issued = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)

        claims = security.decode_token(issued.value)
        assert claims["sub"] == str(test_user.id)
        assert claims["type"] == "ACCESS"
        assert UUID(claims["jti"]) == issued.record.id
        assert claims["iat"] == int(clock().timestamp())
        assert claims["exp"] == int((clock() + timedelta(minutes=15)).timestamp())

    async def test_raw_value_not_stored(self, orchestrator, store, test_user):
        issued = await orchestrator.tokens.issue(test_user, TokenType.REFRESH)

        record = store.tokens_by_id[issued.record.id]
        assert record.token_hash == Security.hash_token(issued.value)
        assert issued.value not in vars(record).values()

    @pytest.mark.parametrize("token_type, ttl", [
        (TokenType.ACCESS, timedelta(minutes=15)),
        (TokenType.REFRESH, timedelta(days=30)),
        (TokenType.RESET_PASSWORD, timedelta(hours=1)),
        (TokenType.VERIFY_EMAIL, timedelta(hours=24)),
        (TokenType.TWO_FACTOR, timedelta(minutes=5)),
    ])
    async def test_default_ttls(self, orchestrator, clock, test_user, token_type, ttl):
        issued = await orchestrator.tokens.issue(test_user, token_type)

        assert issued.expires == clock() + ttl

    async def test_verify_valid(self, orchestrator, test_user):
        issued = await orchestrator.tokens.issue(test_user, TokenType.ACCESS, device=DeviceInfo(device_id="A"))

        record = await orchestrator.tokens.verify(issued.value, TokenType.ACCESS)

        assert record.id == issued.record.id
        assert record.device_id == "A"

    async def test_wrong_type(self, orchestrator, test_user):
        issued = await orchestrator.tokens.issue(test_user, TokenType.REFRESH)

        with pytest.raises(InvalidTokenError):
            await orchestrator.tokens.verify(issued.value, TokenType.ACCESS)

    async def test_wrong_signature(self, orchestrator, settings_factory, test_user):
        issued = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)
        other = Security(settings_factory(SECRET_KEY="another-secret-key-that-is-long-enough-000"))
        forged = other.encode_token(orchestrator.security.decode_token(issued.value))

        with pytest.raises(InvalidTokenError):
            await orchestrator.tokens.verify(forged, TokenType.ACCESS)

    async def test_unknown_record(self, orchestrator, store, test_user):
        issued = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)
        del store.tokens_by_id[issued.record.id]

        with pytest.raises(InvalidTokenError):
            await orchestrator.tokens.verify(issued.value, TokenType.ACCESS)

    async def test_expired_at_boundary(self, orchestrator, clock, test_user):
        issued = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)

        clock.advance(minutes=14, seconds=59)
        await orchestrator.tokens.verify(issued.value, TokenType.ACCESS)

        clock.advance(seconds=1)
        with pytest.raises(TokenExpiredError):
            await orchestrator.tokens.verify(issued.value, TokenType.ACCESS)

    async def test_revoked(self, orchestrator, test_user):
        issued = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)

        assert await orchestrator.tokens.revoke(issued.record.id) is True
        assert await orchestrator.tokens.revoke(issued.record.id) is False

        with pytest.raises(RevokedTokenError):
            await orchestrator.tokens.verify(issued.value, TokenType.ACCESS)

    async def test_expired_checked_before_revoked(self, orchestrator, clock, test_user):
        """Token yang expired dan revoked dilaporkan sebagai expired."""
        issued = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)
        await orchestrator.tokens.revoke(issued.record.id)
        clock.advance(minutes=20)

        with pytest.raises(TokenExpiredError):
            await orchestrator.tokens.verify(issued.value, TokenType.ACCESS)

    async def test_revoke_all_for_user_by_type(self, orchestrator, test_user):
        access = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)
        reset = await orchestrator.tokens.issue(test_user, TokenType.RESET_PASSWORD)

        count = await orchestrator.tokens.revoke_all_for_user(test_user, [TokenType.RESET_PASSWORD])

        assert count == 1
        await orchestrator.tokens.verify(access.value, TokenType.ACCESS)
        with pytest.raises(RevokedTokenError):
            await orchestrator.tokens.verify(reset.value, TokenType.RESET_PASSWORD)


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.security
class TestRefreshRotation:
    """Refresh tokens are single use."""

    async def test_rotation_issues_new_pair(self, orchestrator, test_user):
        tokens = await orchestrator.tokens.issue_auth_pair(test_user, DeviceInfo(device_id="A"))

        rotated = await orchestrator.refresh(tokens.refresh.value)

        assert rotated.refresh.value != tokens.refresh.value
        assert rotated.device_session.device_id == "A"
        assert rotated.device_session.refresh_token_id == rotated.refresh.record.id
        assert len(await orchestrator.list_devices(test_user)) == 1

    async def test_reuse_is_revoked_and_suspicious(self, orchestrator, store, test_user):
        """Refresh token dipakai dua kali: RevokedTokenError walau belum expired."""
        tokens = await orchestrator.tokens.issue_auth_pair(test_user, DeviceInfo(device_id="A"))
        await orchestrator.refresh(tokens.refresh.value)

        with pytest.raises(RevokedTokenError):
            await orchestrator.refresh(tokens.refresh.value)

        suspicious = [e for e in store.event_log if e.event_type == SecurityEventType.SUSPICIOUS_ACTIVITY]
        assert len(suspicious) == 1
        assert suspicious[0].level == SecurityLevel.CRITICAL
        assert suspicious[0].outcome == EventOutcome.FAILURE
        assert suspicious[0].user_id == test_user.id

    async def test_concurrent_rotation_single_winner(self, orchestrator, test_user):
        tokens = await orchestrator.tokens.issue_auth_pair(test_user, DeviceInfo(device_id="A"))

        results = await asyncio.gather(
            orchestrator.refresh(tokens.refresh.value),
            orchestrator.refresh(tokens.refresh.value),
            return_exceptions=True
        )

        winners = [r for r in results if isinstance(r, AuthTokens)]
        losers = [r for r in results if isinstance(r, RevokedTokenError)]
        assert len(winners) == 1
        assert len(losers) == 1

    async def test_expired_refresh(self, orchestrator, clock, test_user):
        tokens = await orchestrator.tokens.issue_auth_pair(test_user)
        clock.advance(days=30)

        with pytest.raises(TokenExpiredError):
            await orchestrator.refresh(tokens.refresh.value)

    async def test_access_token_cannot_refresh(self, orchestrator, test_user):
        tokens = await orchestrator.tokens.issue_auth_pair(test_user)

        with pytest.raises(InvalidTokenError):
            await orchestrator.refresh(tokens.access.value)

    async def test_disabled_user_cannot_refresh(self, orchestrator, store, test_user):
        tokens = await orchestrator.tokens.issue_auth_pair(test_user)
        store.users_by_id[test_user.id].is_active = False

        with pytest.raises(AccountDisabledError):
            await orchestrator.refresh(tokens.refresh.value)


@pytest.mark.asyncio
@pytest.mark.unit
class TestTokenSweep:
    """Test sweeping expired tokens."""

    async def test_sweep_removes_only_expired(self, orchestrator, store, clock, test_user):
        access = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)
        revoked = await orchestrator.tokens.issue(test_user, TokenType.ACCESS)
        await orchestrator.tokens.revoke(revoked.record.id)
        refresh = await orchestrator.tokens.issue(test_user, TokenType.REFRESH)
        clock.advance(hours=1)

        removed = await orchestrator.tokens.sweep_expired()

        assert removed == 2
        assert set(store.tokens_by_id) == {refresh.record.id}
        assert access.record.id not in store.tokens_by_id
