"""
Security event service untuk AuthCore.
Menulis security events (append-only) dan me-log-nya untuk monitoring.
"""

import logging
from collections import Counter
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from authcore.core.constants import EventOutcome, SecurityEventType, SecurityLevel
from authcore.core.security import Clock, utc_now
from authcore.repositories.base import CredentialStore
from authcore.repositories.records import DeviceInfo, SecurityEventRecord, UserRecord

logger = logging.getLogger(__name__)


DEFAULT_LEVELS = {
    SecurityEventType.LOGIN_FAILED: SecurityLevel.WARNING,
    SecurityEventType.ACCOUNT_LOCKED: SecurityLevel.ERROR,
    SecurityEventType.SUSPICIOUS_ACTIVITY: SecurityLevel.CRITICAL,
    SecurityEventType.RATE_LIMIT_EXCEEDED: SecurityLevel.WARNING,
}

LOGGING_LEVELS = {
    SecurityLevel.INFO: logging.INFO,
    SecurityLevel.WARNING: logging.WARNING,
    SecurityLevel.ERROR: logging.ERROR,
    SecurityLevel.CRITICAL: logging.CRITICAL,
}

# Event yang memicu notifikasi ke user sesuai preferensinya
ALERT_PREFERENCES = {
    SecurityEventType.LOGIN_SUCCESS: "login_alerts",
    SecurityEventType.DEVICE_ADDED: "new_device_alerts",
}


class SecurityEventService:
    """
    Service class untuk security event stream.
    Event ditambahkan ke unit-of-work milik caller; commit dilakukan oleh caller.
    """

    def __init__(self, store: CredentialStore, clock: Clock = utc_now):
        """
        Initialize security event service.

        Args:
            store: Credential store
            clock: Sumber waktu
        """
        self.store = store
        self.clock = clock

    async def emit(
        self,
        event_type: SecurityEventType,
        user: Optional[UserRecord] = None,
        outcome: EventOutcome = EventOutcome.SUCCESS,
        level: Optional[SecurityLevel] = None,
        description: Optional[str] = None,
        email: Optional[str] = None,
        device: Optional[DeviceInfo] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> SecurityEventRecord:
        """
        Tulis satu security event.

        Args:
            event_type: Tipe event
            user: User terkait (None untuk event pre-authentication)
            outcome: SUCCESS atau FAILURE
            level: Severity; default ditentukan dari tipe event dan outcome
            description: Deskripsi singkat
            email: Actor tag jika user tidak diketahui
            device: Device dan network metadata
            metadata: Metadata tambahan

        Returns:
            Event yang ditulis
        """
        if level is None:
            level = DEFAULT_LEVELS.get(event_type, SecurityLevel.INFO)
            if outcome == EventOutcome.FAILURE and level == SecurityLevel.INFO:
                level = SecurityLevel.WARNING

        metadata = dict(metadata or {})
        if user is not None:
            preference = ALERT_PREFERENCES.get(event_type)
            if preference and getattr(user.security_preferences, preference):
                metadata["notify"] = True
        if device is not None and device.device_id:
            metadata.setdefault("device_id", device.device_id)

        event = SecurityEventRecord(
            event_type=event_type,
            level=level,
            outcome=outcome,
            timestamp=self.clock(),
            user_id=user.id if user else None,
            email=user.email if user else email,
            description=description or self._describe(event_type, outcome),
            ip_address=device.ip_address if device else None,
            user_agent=device.user_agent if device else None,
            metadata=metadata,
        )
        await self.store.events.add(event)

        logger.log(
            LOGGING_LEVELS[level],
            f"Security event {event_type.value} ({outcome.value}) "
            f"user={event.user_id or '-'} email={event.email or '-'}: {event.description}"
        )
        return event

    @staticmethod
    def _describe(event_type: SecurityEventType, outcome: EventOutcome) -> str:
        label = event_type.value.replace("_", " ").lower()
        if outcome == EventOutcome.FAILURE:
            return f"Failed {label}"
        return label.capitalize()

    async def list_events(self, user_id: UUID, limit: int = 50) -> List[SecurityEventRecord]:
        """
        Ambil security events milik user, newest-first.

        Args:
            user_id: User ID
            limit: Jumlah maksimal event

        Returns:
            List of events
        """
        return await self.store.events.list_for_user(user_id, limit=limit)

    async def summary(self, user_id: UUID, days: int = 30) -> Dict[str, Any]:
        """
        Ringkasan security events user dalam beberapa hari terakhir.

        Args:
            user_id: User ID
            days: Rentang hari ke belakang

        Returns:
            Dict dengan total_events, by_type, by_level, dan recent_activity
        """
        since = self.clock() - timedelta(days=days)
        events = await self.store.events.list_for_user(user_id, limit=10000, since=since)

        return {
            "period_days": days,
            "total_events": len(events),
            "by_type": dict(Counter(e.event_type.value for e in events)),
            "by_level": dict(Counter(e.level.value for e in events)),
            "recent_activity": [e.to_dict() for e in events[:10]],
        }
