"""
Services module untuk AuthCore.
Berisi business logic layer yang terpisah dari presentation dan data layers.
"""

from authcore.services.audit import SecurityEventService
from authcore.services.auth import AuthOrchestrator, LoginOutcome
from authcore.services.devices import DeviceSessionGuard
from authcore.services.lockout import LockoutGuard, LockoutStatus
from authcore.services.maintenance import MaintenanceService
from authcore.services.password_policy import ExpiryStatus, PasswordPolicyEngine, PolicyResult
from authcore.services.tokens import AuthTokens, IssuedToken, TokenManager
from authcore.services.two_factor import TwoFactorEngine, TwoFactorSetup, TwoFactorStatus

__all__ = [
    "SecurityEventService",
    "AuthOrchestrator",
    "LoginOutcome",
    "DeviceSessionGuard",
    "LockoutGuard",
    "LockoutStatus",
    "MaintenanceService",
    "PasswordPolicyEngine",
    "PolicyResult",
    "ExpiryStatus",
    "TokenManager",
    "IssuedToken",
    "AuthTokens",
    "TwoFactorEngine",
    "TwoFactorSetup",
    "TwoFactorStatus"
]
