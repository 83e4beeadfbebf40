"""
Background maintenance untuk AuthCore.
Sweep token expired, device session basi, dan retention security events.
"""

import logging
from datetime import timedelta
from typing import Dict

from authcore.core.config import Settings
from authcore.core.security import Clock, utc_now
from authcore.repositories.base import CredentialStore
from authcore.services.tokens import TokenManager

logger = logging.getLogger(__name__)


class MaintenanceService:
    """
    Sweeps periodik. Setiap sweep commit sendiri; kegagalan di-log dan tidak fatal.
    """

    def __init__(
        self,
        store: CredentialStore,
        tokens: TokenManager,
        settings: Settings,
        clock: Clock = utc_now
    ):
        self.store = store
        self.tokens = tokens
        self.settings = settings
        self.clock = clock

    async def sweep_tokens(self) -> int:
        return await self.tokens.sweep_expired()

    async def sweep_stale_devices(self) -> int:
        """
        Hapus device session yang refresh token-nya sudah tidak valid.

        Returns:
            Jumlah session yang dihapus
        """
        try:
            count = await self.store.devices.delete_stale(self.clock())
            await self.store.commit()
        except Exception as e:
            logger.exception(f"Stale device sweep failed: {e}")
            await self.store.rollback()
            return 0

        logger.info(f"Stale device sweep removed {count} sessions")
        return count

    async def sweep_security_events(self) -> int:
        """
        Hapus security events yang lebih tua dari retention period.

        Returns:
            Jumlah event yang dihapus
        """
        cutoff = self.clock() - timedelta(days=self.settings.SECURITY_EVENT_RETENTION_DAYS)
        try:
            count = await self.store.events.delete_older_than(cutoff)
            await self.store.commit()
        except Exception as e:
            logger.exception(f"Security event retention sweep failed: {e}")
            await self.store.rollback()
            return 0

        logger.info(f"Security event retention sweep removed {count} events")
        return count

    async def run_all(self) -> Dict[str, int]:
        """Jalankan semua sweep berurutan."""
        return {
            "expired_tokens": await self.sweep_tokens(),
            "stale_devices": await self.sweep_stale_devices(),
            "old_security_events": await self.sweep_security_events(),
        }
