"""
API module untuk AuthCore.
Berisi endpoints dan dependencies untuk API.
"""

from authcore.api.v1 import auth, devices, health, two_factor, users

__all__ = ["auth", "devices", "health", "two_factor", "users"]
