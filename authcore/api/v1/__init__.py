"""
API v1 module.
Berisi semua endpoints untuk API versi 1.
"""

from authcore.api.v1.auth import router as auth_router
from authcore.api.v1.devices import router as devices_router
from authcore.api.v1.health import router as health_router
from authcore.api.v1.two_factor import router as two_factor_router
from authcore.api.v1.users import router as users_router

__all__ = ["auth_router", "devices_router", "health_router", "two_factor_router", "users_router"]
