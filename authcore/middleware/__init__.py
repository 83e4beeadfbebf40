"""
Middleware module untuk AuthCore.
Request logging dan exception handlers.
"""

from authcore.middleware.error_handler import create_error_response, register_exception_handlers
from authcore.middleware.logging import LoggingMiddleware

__all__ = [
    "create_error_response",
    "register_exception_handlers",
    "LoggingMiddleware"
]
