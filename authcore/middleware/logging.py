"""
Request logging middleware untuk AuthCore.
Memberi setiap request sebuah request ID dan menulis satu access log per request.
"""

import json
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from authcore.core.constants import REQUEST_ID_HEADER

# Configure logger
logger = logging.getLogger("authcore.access")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Access log middleware.

    Features:
    - Request ID (diambil dari header X-Request-ID atau di-generate)
    - Request timing
    - Structured JSON log line
    """

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[List[str]] = None
    ):
        """
        Initialize logging middleware.

        Args:
            app: FastAPI/Starlette application
            exclude_paths: Paths to exclude from logging
        """
        super().__init__(app)
        self.exclude_paths = exclude_paths or []

    def should_log_path(self, path: str) -> bool:
        return not any(path.startswith(excluded) for excluded in self.exclude_paths)

    @staticmethod
    def get_client_ip(request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def create_log_entry(
        self,
        request: Request,
        response: Optional[Response],
        duration_ms: float,
        error: Optional[Exception] = None
    ) -> Dict[str, Any]:
        """
        Create structured log entry.

        Returns:
            Log entry dictionary
        """
        log_entry: Dict[str, Any] = {
            "request_id": getattr(request.state, "request_id", "unknown"),
            "method": request.method,
            "path": request.url.path,
            "client_ip": self.get_client_ip(request),
            "user_agent": request.headers.get("user-agent", "unknown"),
            "duration_ms": round(duration_ms, 2),
        }

        # Add authenticated user if available
        if hasattr(request.state, "user_id"):
            log_entry["user_id"] = str(request.state.user_id)

        if response is not None:
            log_entry["status_code"] = response.status_code

        if error is not None:
            log_entry["error"] = {"type": type(error).__name__, "message": str(error)}

        return log_entry

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request with logging.

        Args:
            request: Incoming request
            call_next: Next middleware/endpoint

        Returns:
            Response
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        if not self.should_log_path(request.url.path):
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        start_time = time.time()
        response = None
        error = None

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        except Exception as e:
            error = e
            raise

        finally:
            duration_ms = (time.time() - start_time) * 1000
            log_entry = self.create_log_entry(request, response, duration_ms, error)

            if error or (response is not None and response.status_code >= 500):
                logger.error(json.dumps(log_entry))
            elif response is not None and response.status_code >= 400:
                logger.warning(json.dumps(log_entry))
            else:
                logger.info(json.dumps(log_entry))
