"""
AuthCore - account-security core untuk multi-tenant web API.

Package ini menyediakan:
- Failed-login lockout tracking
- TOTP two-factor authentication dan backup codes
- Device session cap dengan oldest-eviction
- Signed, typed token lifecycle (issue, verify, rotate, revoke)
- Password policy (strength, history, expiry)
- Security event stream untuk audit

Built with FastAPI, SQLAlchemy, dan PostgreSQL.
"""

__version__ = "1.0.0"
__author__ = "AuthCore Team"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__author__",
    "__license__",
]
