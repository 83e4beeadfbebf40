#!/usr/bin/env python
"""
Script untuk inisialisasi database AuthCore.
Membuat semua tabel dan memverifikasi hasilnya.
Usage: python scripts/init_db.py
"""

import asyncio
import logging
import sys

from sqlalchemy import text

from authcore.core.config import get_settings
from authcore.db.session import Database

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "users",
    "password_history",
    "auth_tokens",
    "device_sessions",
    "security_events",
]


async def verify_tables(database: Database) -> bool:
    """Verify that all required tables exist."""
    async with database.session() as session:
        result = await session.execute(
            text("""
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
                AND table_type = 'BASE TABLE'
            """)
        )
        existing_tables = {row[0] for row in result}

    missing_tables = set(REQUIRED_TABLES) - existing_tables
    if missing_tables:
        logger.warning(f"Missing tables: {missing_tables}")
        return False

    logger.info("All required tables exist")
    return True


async def main() -> None:
    """Main initialization function."""
    settings = get_settings()
    database = Database(settings)

    logger.info("=== AuthCore Database Initialization ===")
    try:
        logger.info("Step 1: Checking database connection...")
        health = await database.check_health()
        if not health["connected"]:
            raise RuntimeError(f"Database is not reachable: {health['error']}")

        logger.info("Step 2: Creating database tables...")
        await database.create_all()

        logger.info("Step 3: Verifying tables...")
        if not await verify_tables(database):
            raise RuntimeError("Table verification failed")

        logger.info("Database initialization completed successfully")
        logger.info("Next: python scripts/create_admin.py, then uvicorn authcore.main:create_application --factory")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)
    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
