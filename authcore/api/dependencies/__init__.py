"""
API dependencies module.
Berisi reusable dependencies untuk FastAPI endpoints.
"""

from authcore.api.dependencies.auth import (
    client_device,
    get_client_ip,
    get_current_device_id,
    get_current_user,
    get_orchestrator,
    require_admin
)
from authcore.api.dependencies.database import get_store

__all__ = [
    "client_device",
    "get_client_ip",
    "get_current_device_id",
    "get_current_user",
    "get_orchestrator",
    "require_admin",
    "get_store"
]
