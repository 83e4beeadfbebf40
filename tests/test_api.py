"""
Tests for the HTTP layer: status codes, error format, and endpoint wiring.
"""

import pyotp
import pytest
from fastapi import status
from httpx import AsyncClient

from authcore.core.constants import UserRole

from conftest import TEST_EMAIL, TEST_PASSWORD


@pytest.mark.integration
class TestHealth:
    """Test health and root endpoints."""

    def test_root(self, client, settings):
        response = client.get("/")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == settings.APP_NAME

    def test_health(self, client, api_prefix):
        response = client.get(f"{api_prefix}/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["details"]["storage_backend"] == "memory"

    def test_ready(self, client, api_prefix):
        response = client.get(f"{api_prefix}/health/ready")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["checks"]["memory_store"]["connected"] is True

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_openapi_documents_error_envelope(self, client, api_prefix):
        schema = client.get("/openapi.json").json()

        login_responses = schema["paths"][f"{api_prefix}/auth/login"]["post"]["responses"]
        assert login_responses["423"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
        assert "ErrorResponse" in schema["components"]["schemas"]


@pytest.mark.asyncio
@pytest.mark.integration
class TestRegisterAndLogin:
    """Test register and login endpoints."""

    async def test_register(self, async_client: AsyncClient, api_prefix):
        response = await async_client.post(
            f"{api_prefix}/auth/register",
            json={"email": "New@Example.com", "password": TEST_PASSWORD}
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["email"] == "new@example.com"
        assert data["two_factor_enabled"] is False
        assert "password_hash" not in data

    async def test_register_duplicate(self, async_client: AsyncClient, api_prefix, test_user):
        """Test error envelope for a conflict."""
        response = await async_client.post(
            f"{api_prefix}/auth/register",
            json={"email": TEST_EMAIL, "password": TEST_PASSWORD},
            headers={"X-Request-ID": "req-dup"}
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        error = response.json()["error"]
        assert error["message"] == "Email already registered"
        assert error["type"] == "EmailAlreadyRegisteredError"
        assert error["request_id"] == "req-dup"
        assert "timestamp" in error

    async def test_register_weak_password(self, async_client: AsyncClient, api_prefix):
        response = await async_client.post(
            f"{api_prefix}/auth/register",
            json={"email": "weak@example.com", "password": "weak"}
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        error = response.json()["error"]
        assert error["type"] == "WeakPasswordError"
        assert error["details"]["violations"]

    async def test_request_validation_error(self, async_client: AsyncClient, api_prefix):
        response = await async_client.post(f"{api_prefix}/auth/login", json={"email": "not-an-email"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        error = response.json()["error"]
        assert error["message"] == "Validation failed"
        fields = {e["field"] for e in error["details"]["validation_errors"]}
        assert "body -> email" in fields
        assert "body -> password" in fields

    async def test_login(self, async_client: AsyncClient, api_prefix, test_user):
        response = await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": TEST_PASSWORD, "device_info": {"device_id": "laptop"}}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["device_id"] == "laptop"
        assert data["user_id"] == str(test_user.id)
        assert data["password_status"]["expired"] is False

    async def test_login_invalid_credentials(self, async_client: AsyncClient, api_prefix, test_user):
        response = await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": "WrongPassword123!"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["type"] == "InvalidCredentialsError"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_lockout_returns_423_with_retry_after(self, async_client: AsyncClient, api_prefix, test_user):
        for _ in range(5):
            response = await async_client.post(
                f"{api_prefix}/auth/login",
                json={"email": TEST_EMAIL, "password": "WrongPassword123!"}
            )
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

        response = await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": TEST_PASSWORD}
        )

        assert response.status_code == status.HTTP_423_LOCKED
        assert response.headers["Retry-After"] == "900"
        assert response.json()["error"]["details"]["locked_until"]


@pytest.mark.asyncio
@pytest.mark.integration
class TestAuthenticatedEndpoints:
    """Test endpoints behind the bearer token."""

    async def test_me(self, async_client: AsyncClient, api_prefix, auth_headers):
        response = await async_client.get(f"{api_prefix}/users/me", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["email"] == TEST_EMAIL

    async def test_me_without_token(self, async_client: AsyncClient, api_prefix):
        response = await async_client.get(f"{api_prefix}/users/me")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["message"] == "Not authenticated"

    async def test_me_with_expired_token(self, async_client: AsyncClient, api_prefix, auth_headers, clock):
        clock.advance(minutes=15)

        response = await async_client.get(f"{api_prefix}/users/me", headers=auth_headers)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"]["type"] == "TokenExpiredError"

    async def test_refresh_rotation(self, async_client: AsyncClient, api_prefix, test_user):
        login = await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": TEST_PASSWORD}
        )
        refresh_token = login.json()["refresh_token"]

        first = await async_client.post(f"{api_prefix}/auth/refresh", json={"refresh_token": refresh_token})
        second = await async_client.post(f"{api_prefix}/auth/refresh", json={"refresh_token": refresh_token})

        assert first.status_code == status.HTTP_200_OK
        assert first.json()["device_id"] == login.json()["device_id"]
        assert second.status_code == status.HTTP_401_UNAUTHORIZED
        assert second.json()["error"]["type"] == "RevokedTokenError"

    async def test_logout(self, async_client: AsyncClient, api_prefix, test_user):
        login = await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": TEST_PASSWORD}
        )
        tokens = login.json()

        response = await async_client.post(f"{api_prefix}/auth/logout", json={"refresh_token": tokens["refresh_token"]})
        me = await async_client.get(
            f"{api_prefix}/users/me",
            headers={"Authorization": f"Bearer {tokens['access_token']}"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert me.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_devices(self, async_client: AsyncClient, api_prefix, auth_headers, test_user):
        await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": TEST_PASSWORD, "device_info": {"device_id": "phone"}}
        )

        response = await async_client.get(f"{api_prefix}/devices", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 2
        assert data["max_devices"] == 3
        current = {d["device_id"]: d["is_current"] for d in data["devices"]}
        assert current == {"laptop": True, "phone": False}

        removed = await async_client.delete(f"{api_prefix}/devices/phone", headers=auth_headers)
        missing = await async_client.delete(f"{api_prefix}/devices/phone", headers=auth_headers)

        assert removed.status_code == status.HTTP_200_OK
        assert missing.status_code == status.HTTP_404_NOT_FOUND

    async def test_logout_all_keeps_current_device(self, async_client: AsyncClient, api_prefix, auth_headers, test_user):
        await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": TEST_PASSWORD, "device_info": {"device_id": "phone"}}
        )

        response = await async_client.post(f"{api_prefix}/auth/logout-all", headers=auth_headers)
        me = await async_client.get(f"{api_prefix}/users/me", headers=auth_headers)

        assert response.json()["details"]["devices_removed"] == 1
        assert me.status_code == status.HTTP_200_OK

    async def test_change_password(self, async_client: AsyncClient, api_prefix, auth_headers):
        reused = await async_client.put(
            f"{api_prefix}/users/me/password",
            headers=auth_headers,
            json={"current_password": TEST_PASSWORD, "new_password": TEST_PASSWORD}
        )
        changed = await async_client.put(
            f"{api_prefix}/users/me/password",
            headers=auth_headers,
            json={"current_password": TEST_PASSWORD, "new_password": "BrandNewPass123!"}
        )

        assert reused.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert reused.json()["error"]["details"]["password_reuse"] is True
        assert changed.status_code == status.HTTP_200_OK

    async def test_security_preferences(self, async_client: AsyncClient, api_prefix, auth_headers):
        updated = await async_client.patch(
            f"{api_prefix}/users/me/security-preferences",
            headers=auth_headers,
            json={"login_alerts": False}
        )
        unknown = await async_client.patch(
            f"{api_prefix}/users/me/security-preferences",
            headers=auth_headers,
            json={"sms_alerts": True}
        )

        assert updated.status_code == status.HTTP_200_OK
        assert updated.json() == {
            "login_alerts": False,
            "new_device_alerts": True,
            "password_expiry_reminders": True,
        }
        assert unknown.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_security_events(self, async_client: AsyncClient, api_prefix, auth_headers):
        response = await async_client.get(f"{api_prefix}/users/me/security-events?limit=10", headers=auth_headers)
        summary = await async_client.get(f"{api_prefix}/users/me/security-summary?days=7", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert {e["event_type"] for e in response.json()} >= {"LOGIN_SUCCESS", "DEVICE_ADDED"}
        assert summary.json()["by_type"]["LOGIN_SUCCESS"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.security
class TestTwoFactorEndpoints:
    """Test the 2FA enrollment and challenge flow over HTTP."""

    async def test_full_flow(self, async_client: AsyncClient, api_prefix, auth_headers, clock):
        setup = await async_client.post(f"{api_prefix}/2fa/setup", headers=auth_headers)
        assert setup.status_code == status.HTTP_200_OK
        secret = setup.json()["secret"]
        backup_codes = setup.json()["backup_codes"]

        enable = await async_client.post(
            f"{api_prefix}/2fa/enable",
            headers=auth_headers,
            json={"verification_code": pyotp.TOTP(secret).at(clock())}
        )
        assert enable.status_code == status.HTTP_200_OK

        login = await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": TEST_PASSWORD}
        )
        assert login.status_code == status.HTTP_401_UNAUTHORIZED
        details = login.json()["error"]["details"]
        assert details["requires_2fa"] is True

        completed = await async_client.post(
            f"{api_prefix}/auth/login/2fa",
            json={"challenge_token": details["challenge_token"], "code": backup_codes[0].lower()}
        )
        assert completed.status_code == status.HTTP_200_OK
        assert "access_token" in completed.json()

        reused = await async_client.post(
            f"{api_prefix}/auth/login/2fa",
            json={"challenge_token": details["challenge_token"], "code": pyotp.TOTP(secret).at(clock())}
        )
        assert reused.status_code == status.HTTP_401_UNAUTHORIZED

        state = await async_client.get(f"{api_prefix}/2fa/status", headers=auth_headers)
        assert state.json() == {
            "state": "ENABLED",
            "enabled": True,
            "backup_codes_remaining": len(backup_codes) - 1,
        }

    async def test_enable_without_setup(self, async_client: AsyncClient, api_prefix, auth_headers):
        response = await async_client.post(
            f"{api_prefix}/2fa/enable",
            headers=auth_headers,
            json={"verification_code": "123456"}
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"]["details"]["state"] == "NOT_SETUP"


@pytest.mark.asyncio
@pytest.mark.integration
class TestPasswordResetAndVerification:
    """Test reset and email verification endpoints (DEBUG mode returns tokens)."""

    async def test_password_reset(self, async_client: AsyncClient, api_prefix, test_user):
        unknown = await async_client.post(
            f"{api_prefix}/auth/password-reset/request",
            json={"email": "nobody@example.com"}
        )
        known = await async_client.post(
            f"{api_prefix}/auth/password-reset/request",
            json={"email": TEST_EMAIL}
        )

        assert unknown.json()["message"] == known.json()["message"]
        assert unknown.json()["details"] is None

        confirm = await async_client.post(
            f"{api_prefix}/auth/password-reset/confirm",
            json={"token": known.json()["details"]["reset_token"], "new_password": "BrandNewPass123!"}
        )
        login = await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": TEST_EMAIL, "password": "BrandNewPass123!"}
        )

        assert confirm.status_code == status.HTTP_200_OK
        assert login.status_code == status.HTTP_200_OK

    async def test_email_verification(self, async_client: AsyncClient, api_prefix, auth_headers):
        sent = await async_client.post(f"{api_prefix}/auth/verify-email/send", headers=auth_headers)
        token = sent.json()["details"]["verification_token"]

        verified = await async_client.post(f"{api_prefix}/auth/verify-email", json={"token": token})
        me = await async_client.get(f"{api_prefix}/users/me", headers=auth_headers)

        assert verified.status_code == status.HTTP_200_OK
        assert me.json()["is_email_verified"] is True


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.security
class TestAdminEndpoints:
    """Test admin-only endpoints."""

    async def test_non_admin_forbidden(self, async_client: AsyncClient, api_prefix, auth_headers, test_user):
        response = await async_client.post(
            f"{api_prefix}/users/{test_user.id}/force-password-change",
            headers=auth_headers
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"]["type"] == "AuthorizationError"

    async def test_admin_forces_password_change(
        self,
        async_client: AsyncClient,
        api_prefix,
        orchestrator,
        store,
        test_user
    ):
        admin = await orchestrator.register("admin@example.com", "AdminPassword123!")
        store.users_by_id[admin.id].role = UserRole.ADMIN
        login = await async_client.post(
            f"{api_prefix}/auth/login",
            json={"email": "admin@example.com", "password": "AdminPassword123!"}
        )
        headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

        response = await async_client.post(
            f"{api_prefix}/users/{test_user.id}/force-password-change",
            headers=headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert store.users_by_id[test_user.id].force_password_change is True
