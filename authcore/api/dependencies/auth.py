"""
Authentication dependencies untuk FastAPI.
Menyediakan dependency injection untuk orchestrator, autentikasi, dan otorisasi.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authcore.api.dependencies.database import get_store
from authcore.core.constants import UserRole
from authcore.core.exceptions import AuthenticationError, AuthorizationError
from authcore.repositories.base import CredentialStore
from authcore.repositories.records import DeviceInfo, UserRecord
from authcore.schemas.auth import DeviceInfoSchema
from authcore.services.auth import AuthOrchestrator

# Bearer scheme untuk access token
bearer_scheme = HTTPBearer(auto_error=False)


def get_orchestrator(
    request: Request,
    store: Annotated[CredentialStore, Depends(get_store)]
) -> AuthOrchestrator:
    """
    Build orchestrator untuk request ini.

    Args:
        request: FastAPI request (settings, security, clock dari app.state)
        store: Credential store request ini

    Returns:
        AuthOrchestrator
    """
    state = request.app.state
    return AuthOrchestrator(store, state.security, state.settings, state.clock)


def get_client_ip(request: Request) -> Optional[str]:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


def client_device(request: Request, device_info: Optional[DeviceInfoSchema] = None) -> DeviceInfo:
    """Gabungkan device info dari body dengan network metadata request."""
    device_info = device_info or DeviceInfoSchema()
    return device_info.to_device(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent")
    )


async def get_current_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    orchestrator: Annotated[AuthOrchestrator, Depends(get_orchestrator)]
) -> UserRecord:
    """
    Get current user dari access token.

    Args:
        request: FastAPI request; user_id dan device_id disimpan di request.state
        credentials: Bearer token dari Authorization header
        orchestrator: Auth orchestrator

    Returns:
        Current user

    Raises:
        AuthenticationError: Jika tidak ada token
        TokenError: Jika token invalid, expired, atau revoked
        AccountDisabledError / AccountLockedError
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    user, token = await orchestrator.authenticate_access_token(credentials.credentials)
    request.state.user_id = user.id
    request.state.device_id = token.device_id
    return user


async def require_admin(
    current_user: Annotated[UserRecord, Depends(get_current_user)]
) -> UserRecord:
    """
    Raises:
        AuthorizationError: Jika user bukan admin
    """
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin privileges required")
    return current_user


def get_current_device_id(request: Request) -> Optional[str]:
    return getattr(request.state, "device_id", None)
