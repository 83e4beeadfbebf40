"""
Main application entry point untuk AuthCore API.
Mengkonfigurasi FastAPI application dengan middleware, routers, dan exception handlers.

Jalankan dengan:
    uvicorn authcore.main:create_application --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authcore.api.v1 import auth, devices, health, two_factor, users
from authcore.core.config import Settings, get_settings
from authcore.core.constants import REQUEST_ID_HEADER, RETRY_AFTER_HEADER
from authcore.core.security import Clock, Security, utc_now
from authcore.db.session import Database
from authcore.middleware.error_handler import register_exception_handlers
from authcore.middleware.logging import LoggingMiddleware
from authcore.repositories.memory import InMemoryStore

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format=settings.LOG_FORMAT
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    settings = app.state.settings
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.STORAGE_BACKEND} storage)")

    if app.state.database is not None:
        health = await app.state.database.check_health()
        if not health["connected"]:
            logger.error(f"Failed to connect to database: {health['error']}")
            raise RuntimeError("Database is not reachable")
        logger.info("Database connection verified")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    if app.state.database is not None:
        await app.state.database.close()
    logger.info("Application shutdown complete")


def create_application(
    settings: Optional[Settings] = None,
    store: Optional[InMemoryStore] = None,
    clock: Optional[Clock] = None
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings (default dari environment)
        store: In-memory store untuk backend memory (default store baru)
        clock: Sumber waktu (default utc_now)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Account security core: tokens, device sessions, lockout, 2FA, password policy",
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.security = Security(settings)
    app.state.clock = clock or utc_now
    if settings.STORAGE_BACKEND == "memory":
        app.state.memory_store = store or InMemoryStore()
        app.state.database = None
    else:
        app.state.memory_store = None
        app.state.database = Database(settings)

    # Add middleware (order matters - executed in reverse order)
    app.add_middleware(
        LoggingMiddleware,
        exclude_paths=[f"{settings.API_V1_STR}/health"]
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, RETRY_AFTER_HEADER],
    )

    register_exception_handlers(app)

    # Include API routers
    app.include_router(health.router, prefix=settings.API_V1_STR)
    app.include_router(auth.router, prefix=settings.API_V1_STR)
    app.include_router(two_factor.router, prefix=settings.API_V1_STR)
    app.include_router(devices.router, prefix=settings.API_V1_STR)
    app.include_router(users.router, prefix=settings.API_V1_STR)

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "operational",
            "docs": "/docs" if settings.DEBUG else None
        }

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "authcore.main:create_application",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
