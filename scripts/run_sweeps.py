#!/usr/bin/env python
"""
Script untuk menjalankan maintenance sweeps AuthCore (cron / scheduler).
Menghapus token expired, device session basi, dan security events yang melewati retention.
Usage: python scripts/run_sweeps.py
"""

import asyncio
import logging

from authcore.core.config import get_settings
from authcore.core.security import Security
from authcore.db.session import Database
from authcore.repositories.sql import SqlCredentialStore
from authcore.services.auth import AuthOrchestrator
from authcore.services.maintenance import MaintenanceService

logger = logging.getLogger(__name__)


async def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL), format=settings.LOG_FORMAT)

    database = Database(settings)
    try:
        async with database.session() as db:
            store = SqlCredentialStore(db)
            orchestrator = AuthOrchestrator(store, Security(settings), settings)
            maintenance = MaintenanceService(store, orchestrator.tokens, settings)
            results = await maintenance.run_all()
        logger.info(f"Maintenance sweeps finished: {results}")
    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
