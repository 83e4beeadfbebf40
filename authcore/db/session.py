"""
Database session management untuk AuthCore.
Menggunakan SQLAlchemy dengan async support.

Engine dibuat per aplikasi (bukan global) supaya test dan worker bisa punya konfigurasi sendiri.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.pool import NullPool

from authcore.core.config import Settings

logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create async SQLAlchemy engine dari settings.

    Args:
        settings: Application settings

    Returns:
        Configured AsyncEngine
    """
    engine_args = {
        "echo": settings.DEBUG,
        "pool_pre_ping": settings.DB_POOL_PRE_PING,
    }

    if settings.ENVIRONMENT == "test":
        # NullPool untuk testing supaya tidak ada koneksi nyangkut antar event loop
        engine_args["poolclass"] = NullPool
    else:
        engine_args["pool_size"] = settings.DB_POOL_SIZE
        engine_args["max_overflow"] = settings.DB_MAX_OVERFLOW
        engine_args["pool_timeout"] = 30
        engine_args["pool_recycle"] = 3600
        engine_args["connect_args"] = {
            "server_settings": {
                "application_name": settings.APP_NAME,
                "jit": "off",
            },
            "command_timeout": 60,
        }

    engine = create_async_engine(settings.DATABASE_URL, **engine_args)

    if settings.DEBUG:
        @event.listens_for(engine.sync_engine, "connect")
        def receive_connect(dbapi_connection, connection_record):
            """Log new connections."""
            logger.debug(f"New database connection established: {connection_record}")

    return engine


class Database:
    """
    Pemilik engine dan session factory untuk satu aplikasi.
    """

    def __init__(self, settings: Settings, engine: Optional[AsyncEngine] = None):
        self.settings = settings
        self.engine = engine or create_engine(settings)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager untuk database session.
        Rollback otomatis jika terjadi exception; commit dilakukan eksplisit oleh caller.

        Example:
            async with database.session() as db:
                store = SqlCredentialStore(db)
        """
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Buat semua tabel (untuk local setup dan tests)."""
        from authcore.db.base import Base
        import authcore.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def drop_all(self) -> None:
        """Drop semua tabel."""
        from authcore.db.base import Base
        import authcore.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def check_health(self) -> dict:
        """
        Check database health.

        Returns:
            Dictionary dengan health metrics
        """
        health_info = {
            "connected": False,
            "response_time_ms": None,
            "error": None
        }

        try:
            start_time = time.time()
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()
            health_info["connected"] = True
            health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
        except (SQLAlchemyError, OSError) as e:
            health_info["error"] = str(e)
            logger.error(f"Database health check failed: {e}")

        return health_info

    async def close(self) -> None:
        """
        Close database connections.
        Should be called on application shutdown.
        """
        await self.engine.dispose()
        logger.info("Database connections closed")
