"""
Health check endpoints untuk API v1.
Menyediakan status aplikasi dan dependency checks.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from authcore.schemas.response import HealthCheckResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthCheckResponse)
async def health_check(request: Request) -> HealthCheckResponse:
    """
    Basic health check endpoint.

    Returns:
        Basic health status
    """
    settings = request.app.state.settings
    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.APP_VERSION,
        service=settings.APP_NAME,
        details={"storage_backend": settings.STORAGE_BACKEND}
    )


@router.get("/ready", response_model=Dict[str, Any])
async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check dengan dependency validation.

    Returns:
        Detailed readiness status (503 jika database tidak bisa dihubungi)
    """
    state = request.app.state
    checks: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": state.settings.APP_VERSION,
        "checks": {},
    }

    if state.settings.STORAGE_BACKEND == "sqlalchemy":
        database = await state.database.check_health()
        checks["checks"]["database"] = database
        if not database["connected"]:
            checks["status"] = "unhealthy"
    else:
        checks["checks"]["memory_store"] = {"connected": True}

    status_code = 200 if checks["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=checks)
