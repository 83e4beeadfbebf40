"""
Pytest configuration and fixtures for AuthCore tests.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict

import pyotp
import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from authcore.core.config import Settings
from authcore.core.security import Security
from authcore.main import create_application
from authcore.repositories.memory import InMemoryStore
from authcore.repositories.records import UserRecord
from authcore.services.auth import AuthOrchestrator
from authcore.services.two_factor import TwoFactorSetup

# Kelipatan 30 detik, jadi awal TOTP step
START_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)

TEST_PASSWORD = "TestPassword123!"
TEST_EMAIL = "test@example.com"


class FrozenClock:
    """Clock yang hanya bergerak saat di-advance."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def build_settings(**overrides) -> Settings:
    values = {
        "SECRET_KEY": "test-secret-key-for-authcore-0123456789abcdef",
        "ENCRYPTION_KEY": "test-encryption-key",
        "ARGON2_MEMORY_COST": 1024,
        "ENVIRONMENT": "test",
        "STORAGE_BACKEND": "memory",
        "DEBUG": True,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def totp_now(secret: str, clock: FrozenClock) -> str:
    return pyotp.TOTP(secret).at(clock())


@pytest.fixture
def settings() -> Settings:
    """Settings untuk test: memory backend, argon2 ringan, DEBUG on."""
    return build_settings()


@pytest.fixture
def settings_factory():
    """Factory fixture untuk settings dengan override policy."""
    return build_settings


@pytest.fixture
def security(settings: Settings) -> Security:
    return Security(settings)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def orchestrator(store, security, settings, clock) -> AuthOrchestrator:
    """Orchestrator di atas in-memory store dan frozen clock."""
    return AuthOrchestrator(store, security, settings, clock)


@pytest_asyncio.fixture
async def test_user(orchestrator: AuthOrchestrator) -> UserRecord:
    """Create a test user."""
    return await orchestrator.register(TEST_EMAIL, TEST_PASSWORD)


@pytest.fixture
def enable_two_factor(orchestrator: AuthOrchestrator, clock: FrozenClock):
    """Factory fixture: setup + enable 2FA, return setup (secret dan backup codes)."""
    async def _enable(user: UserRecord) -> TwoFactorSetup:
        setup = await orchestrator.setup_two_factor(user)
        await orchestrator.enable_two_factor(user, totp_now(setup.secret, clock))
        return setup
    return _enable


@pytest.fixture
def app(settings: Settings, store: InMemoryStore, clock: FrozenClock) -> FastAPI:
    return create_application(settings, store=store, clock=clock)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create a test client (lifespan ikut dijalankan)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def api_prefix(settings: Settings) -> str:
    return settings.API_V1_STR


@pytest_asyncio.fixture
async def auth_headers(async_client: AsyncClient, api_prefix: str, test_user: UserRecord) -> Dict[str, str]:
    """Login test_user lewat API dan return Authorization header."""
    response = await async_client.post(
        f"{api_prefix}/auth/login",
        json={
            "email": TEST_EMAIL,
            "password": TEST_PASSWORD,
            "device_info": {"device_id": "laptop", "device_name": "Test Laptop"}
        }
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
