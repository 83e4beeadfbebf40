"""
Global error handlers untuk AuthCore.
Mengubah exceptions menjadi response yang konsisten:
{"error": {"message", "type", "timestamp", "request_id", "details"}}.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from authcore.core.constants import RETRY_AFTER_HEADER
from authcore.core.exceptions import AccountLockedError, AuthCoreError, AuthenticationError, TokenError

logger = logging.getLogger("authcore.error")


def create_error_response(
    request: Request,
    status_code: int,
    message: str,
    error_type: str = "Error",
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """
    Create standardized error response.

    Args:
        request: Request object
        status_code: HTTP status code
        message: Error message
        error_type: Nama tipe error
        details: Additional error details
        headers: Extra response headers

    Returns:
        JSON error response
    """
    error: Dict[str, Any] = {
        "message": message,
        "type": error_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    request_id = getattr(request.state, "request_id", None)
    if request_id:
        error["request_id"] = request_id
    if details:
        error["details"] = details

    response_headers = {
        "X-Content-Type-Options": "nosniff",
        "Cache-Control": "no-store",
    }
    response_headers.update(headers or {})

    return JSONResponse(status_code=status_code, content={"error": error}, headers=response_headers)


def _log_error(request: Request, exc: Exception, status_code: int) -> None:
    message = (
        f"{request.method} {request.url.path} -> {status_code} "
        f"{type(exc).__name__}: {exc} "
        f"request_id={getattr(request.state, 'request_id', '-')}"
    )
    if status_code >= 500:
        logger.error(message, exc_info=exc)
    else:
        logger.warning(message)


async def authcore_error_handler(request: Request, exc: AuthCoreError) -> JSONResponse:
    """Handle semua AuthCoreError, 1:1 ke status code masing-masing."""
    _log_error(request, exc, exc.status_code)

    headers: Dict[str, str] = {}
    if isinstance(exc, AccountLockedError) and exc.until is not None:
        now = request.app.state.clock()
        retry_after = max(0, math.ceil((exc.until - now).total_seconds()))
        headers[RETRY_AFTER_HEADER] = str(retry_after)
    elif isinstance(exc, (AuthenticationError, TokenError)) and exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"

    return create_error_response(
        request,
        status_code=exc.status_code,
        message=exc.message,
        error_type=type(exc).__name__,
        details=exc.details,
        headers=headers
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors dari FastAPI."""
    _log_error(request, exc, 422)

    errors = []
    for error in exc.errors():
        errors.append({
            "field": " -> ".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return create_error_response(
        request,
        status_code=422,
        message="Validation failed",
        error_type="ValidationError",
        details={"validation_errors": errors}
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    _log_error(request, exc, exc.status_code)
    return create_error_response(
        request,
        status_code=exc.status_code,
        message=str(exc.detail),
        error_type="HTTPException",
        headers=getattr(exc, "headers", None)
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    _log_error(request, exc, 500)

    debug = request.app.state.settings.DEBUG
    return create_error_response(
        request,
        status_code=500,
        message=str(exc) if debug else "An internal server error occurred",
        error_type="InternalServerError"
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Pasang semua exception handlers ke aplikasi.

    Args:
        app: FastAPI application
    """
    app.add_exception_handler(AuthCoreError, authcore_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
