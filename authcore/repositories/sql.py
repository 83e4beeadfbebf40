"""
SQLAlchemy CredentialStore untuk PostgreSQL.

Operasi atomic diterjemahkan ke satu statement (UPDATE ... RETURNING, conditional
UPDATE dengan rowcount) atau SELECT ... FOR UPDATE di dalam transaksi caller.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import case, delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.constants import (
    EventOutcome,
    SecurityEventType,
    SecurityLevel,
    TokenType,
    TwoFactorState,
    UserRole,
)
from authcore.core.exceptions import EmailAlreadyRegisteredError
from authcore.core.security import utc_now
from authcore.models.device import DeviceSession
from authcore.models.password_history import PasswordHistory
from authcore.models.security_event import SecurityEvent
from authcore.models.token import AuthToken
from authcore.models.user import User
from authcore.repositories.records import (
    DeviceSessionRecord,
    SecurityEventRecord,
    SecurityPreferences,
    TokenRecord,
    TwoFactorEnrollment,
    UserRecord,
)

logger = logging.getLogger(__name__)


def _user_to_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.u_id,
        email=row.u_email,
        password_hash=row.u_password_hash,
        role=UserRole(row.u_role),
        failed_login_attempts=row.u_failed_login_attempts,
        lockout_until=row.u_lockout_until,
        two_factor=TwoFactorEnrollment(
            TwoFactorState(row.u_two_factor_state),
            row.u_two_factor_secret
        ),
        backup_code_hashes=list(row.u_backup_code_hashes or []),
        password_changed_at=row.u_password_changed_at,
        force_password_change=row.u_force_password_change,
        is_active=row.u_is_active,
        is_locked=row.u_is_locked,
        is_email_verified=row.u_is_email_verified,
        last_login_at=row.u_last_login_at,
        security_preferences=SecurityPreferences.from_stored(row.u_security_preferences),
        created_at=row.created_at,
    )


def _token_to_record(row: AuthToken) -> TokenRecord:
    return TokenRecord(
        id=row.t_id,
        user_id=row.t_user_id,
        token_hash=row.t_token_hash,
        type=TokenType(row.t_type),
        expires=row.t_expires_at,
        blacklisted=row.t_blacklisted,
        device_id=row.t_device_id,
        device_name=row.t_device_name,
        ip_address=row.t_ip_address,
        user_agent=row.t_user_agent,
        created_at=row.created_at,
    )


def _session_to_record(row: DeviceSession) -> DeviceSessionRecord:
    return DeviceSessionRecord(
        id=row.ds_id,
        user_id=row.ds_user_id,
        device_id=row.ds_device_id,
        device_name=row.ds_device_name,
        ip_address=row.ds_ip_address,
        user_agent=row.ds_user_agent,
        is_trusted=row.ds_is_trusted,
        last_used=row.ds_last_used_at,
        created_at=row.created_at,
        refresh_token_id=row.ds_refresh_token_id,
    )


def _event_to_record(row: SecurityEvent) -> SecurityEventRecord:
    return SecurityEventRecord(
        id=row.se_id,
        event_type=SecurityEventType(row.se_event_type),
        level=SecurityLevel(row.se_level),
        outcome=EventOutcome(row.se_outcome),
        timestamp=row.se_timestamp,
        user_id=row.se_user_id,
        email=row.se_email,
        description=row.se_description,
        ip_address=row.se_ip_address,
        user_agent=row.se_user_agent,
        metadata=dict(row.se_metadata or {}),
    )


class SqlUserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: UUID) -> Optional[UserRecord]:
        row = await self.db.get(User, user_id, populate_existing=True)
        return _user_to_record(row) if row else None

    async def get_by_email(self, email: str) -> Optional[UserRecord]:
        result = await self.db.execute(
            select(User)
            .where(User.u_email == email.strip().lower())
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _user_to_record(row) if row else None

    async def create(self, user: UserRecord) -> UserRecord:
        row = User(
            u_id=user.id,
            u_email=user.email,
            u_password_hash=user.password_hash,
            u_role=user.role.value,
            u_failed_login_attempts=user.failed_login_attempts,
            u_lockout_until=user.lockout_until,
            u_two_factor_state=user.two_factor.state.value,
            u_two_factor_secret=user.two_factor.secret,
            u_backup_code_hashes=list(user.backup_code_hashes),
            u_password_changed_at=user.password_changed_at,
            u_force_password_change=user.force_password_change,
            u_is_active=user.is_active,
            u_is_locked=user.is_locked,
            u_is_email_verified=user.is_email_verified,
            u_security_preferences=user.security_preferences.model_dump(),
            created_at=user.created_at or utc_now(),
        )
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise EmailAlreadyRegisteredError()
        return _user_to_record(row)

    async def increment_failed_attempts(
        self,
        user_id: UUID,
        threshold: int,
        lockout_until: datetime,
    ) -> Tuple[int, Optional[datetime]]:
        new_count = User.u_failed_login_attempts + 1
        result = await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(
                u_failed_login_attempts=new_count,
                u_lockout_until=case(
                    (new_count >= threshold, lockout_until),
                    else_=User.u_lockout_until
                ),
            )
            .returning(User.u_failed_login_attempts, User.u_lockout_until)
            .execution_options(synchronize_session=False)
        )
        count, until = result.one()
        return count, until

    async def record_login_success(self, user_id: UUID, at: datetime) -> None:
        await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(u_failed_login_attempts=0, u_lockout_until=None, u_last_login_at=at)
            .execution_options(synchronize_session=False)
        )

    async def reset_lockout(self, user_id: UUID) -> None:
        await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(u_failed_login_attempts=0, u_lockout_until=None)
            .execution_options(synchronize_session=False)
        )

    async def get_password_history(self, user_id: UUID) -> List[str]:
        result = await self.db.execute(
            select(PasswordHistory.ph_password_hash)
            .where(PasswordHistory.ph_user_id == user_id)
            .order_by(PasswordHistory.ph_id.desc())
        )
        return list(result.scalars().all())

    async def update_password(
        self,
        user_id: UUID,
        password_hash: str,
        changed_at: datetime,
        history_depth: int,
    ) -> None:
        result = await self.db.execute(
            select(User.u_password_hash)
            .where(User.u_id == user_id)
            .with_for_update()
        )
        previous_hash = result.scalar_one()

        await self.db.execute(
            insert(PasswordHistory).values(
                ph_user_id=user_id,
                ph_password_hash=previous_hash,
                created_at=changed_at,
            )
        )
        keep = (
            select(PasswordHistory.ph_id)
            .where(PasswordHistory.ph_user_id == user_id)
            .order_by(PasswordHistory.ph_id.desc())
            .limit(history_depth)
        )
        await self.db.execute(
            delete(PasswordHistory)
            .where(PasswordHistory.ph_user_id == user_id)
            .where(PasswordHistory.ph_id.not_in(keep))
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(
                u_password_hash=password_hash,
                u_password_changed_at=changed_at,
                u_force_password_change=False,
            )
            .execution_options(synchronize_session=False)
        )

    async def set_force_password_change(self, user_id: UUID, force: bool) -> None:
        await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(u_force_password_change=force)
            .execution_options(synchronize_session=False)
        )

    async def set_two_factor(
        self,
        user_id: UUID,
        enrollment: TwoFactorEnrollment,
        backup_code_hashes: Sequence[str],
    ) -> None:
        await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(
                u_two_factor_state=enrollment.state.value,
                u_two_factor_secret=enrollment.secret,
                u_backup_code_hashes=list(backup_code_hashes),
            )
            .execution_options(synchronize_session=False)
        )

    async def consume_backup_code(self, user_id: UUID, code_hash: str) -> bool:
        result = await self.db.execute(
            select(User.u_backup_code_hashes)
            .where(User.u_id == user_id)
            .with_for_update()
        )
        codes = list(result.scalar_one() or [])
        if code_hash not in codes:
            return False
        codes.remove(code_hash)
        await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(u_backup_code_hashes=codes)
            .execution_options(synchronize_session=False)
        )
        return True

    async def mark_email_verified(self, user_id: UUID) -> None:
        await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(u_is_email_verified=True)
            .execution_options(synchronize_session=False)
        )

    async def update_security_preferences(
        self,
        user_id: UUID,
        preferences: SecurityPreferences,
    ) -> None:
        await self.db.execute(
            update(User)
            .where(User.u_id == user_id)
            .values(u_security_preferences=preferences.model_dump())
            .execution_options(synchronize_session=False)
        )


class SqlTokenRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, token: TokenRecord) -> TokenRecord:
        row = AuthToken(
            t_id=token.id,
            t_user_id=token.user_id,
            t_token_hash=token.token_hash,
            t_type=token.type.value,
            t_expires_at=token.expires,
            t_blacklisted=token.blacklisted,
            t_device_id=token.device_id,
            t_device_name=token.device_name,
            t_ip_address=token.ip_address,
            t_user_agent=token.user_agent,
            created_at=token.created_at or utc_now(),
        )
        self.db.add(row)
        await self.db.flush()
        return _token_to_record(row)

    async def get(self, token_id: UUID) -> Optional[TokenRecord]:
        row = await self.db.get(AuthToken, token_id, populate_existing=True)
        return _token_to_record(row) if row else None

    async def blacklist_if_active(self, token_id: UUID) -> bool:
        result = await self.db.execute(
            update(AuthToken)
            .where(AuthToken.t_id == token_id, AuthToken.t_blacklisted.is_(False))
            .values(t_blacklisted=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def blacklist_for_user(
        self,
        user_id: UUID,
        types: Optional[Sequence[TokenType]] = None,
    ) -> int:
        stmt = (
            update(AuthToken)
            .where(AuthToken.t_user_id == user_id, AuthToken.t_blacklisted.is_(False))
            .values(t_blacklisted=True)
            .execution_options(synchronize_session=False)
        )
        if types is not None:
            stmt = stmt.where(AuthToken.t_type.in_([t.value for t in types]))
        result = await self.db.execute(stmt)
        return result.rowcount

    async def blacklist_for_device(self, user_id: UUID, device_id: str) -> int:
        result = await self.db.execute(
            update(AuthToken)
            .where(
                AuthToken.t_user_id == user_id,
                AuthToken.t_device_id == device_id,
                AuthToken.t_blacklisted.is_(False),
            )
            .values(t_blacklisted=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_expired(self, now: datetime) -> int:
        result = await self.db.execute(
            delete(AuthToken)
            .where(AuthToken.t_expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class SqlDeviceSessionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def admission_lock(self, user_id: UUID) -> AsyncIterator[None]:
        # Row lock pada user; dilepas saat transaksi commit/rollback
        await self.db.execute(
            select(User.u_id).where(User.u_id == user_id).with_for_update()
        )
        yield

    async def get(self, user_id: UUID, device_id: str) -> Optional[DeviceSessionRecord]:
        result = await self.db.execute(
            select(DeviceSession)
            .where(DeviceSession.ds_user_id == user_id, DeviceSession.ds_device_id == device_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _session_to_record(row) if row else None

    async def get_by_refresh_token(self, token_id: UUID) -> Optional[DeviceSessionRecord]:
        result = await self.db.execute(
            select(DeviceSession)
            .where(DeviceSession.ds_refresh_token_id == token_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _session_to_record(row) if row else None

    async def list_for_user(self, user_id: UUID) -> List[DeviceSessionRecord]:
        result = await self.db.execute(
            select(DeviceSession)
            .where(DeviceSession.ds_user_id == user_id)
            .order_by(DeviceSession.created_at.asc(), DeviceSession.ds_id)
            .execution_options(populate_existing=True)
        )
        return [_session_to_record(row) for row in result.scalars().all()]

    async def add(self, session: DeviceSessionRecord) -> DeviceSessionRecord:
        row = DeviceSession(
            ds_id=session.id,
            ds_user_id=session.user_id,
            ds_device_id=session.device_id,
            ds_device_name=session.device_name,
            ds_ip_address=session.ip_address,
            ds_user_agent=session.user_agent,
            ds_is_trusted=session.is_trusted,
            ds_last_used_at=session.last_used or session.created_at,
            ds_refresh_token_id=session.refresh_token_id,
            created_at=session.created_at or utc_now(),
        )
        self.db.add(row)
        await self.db.flush()
        return _session_to_record(row)

    async def update(self, session: DeviceSessionRecord) -> DeviceSessionRecord:
        await self.db.execute(
            update(DeviceSession)
            .where(DeviceSession.ds_id == session.id)
            .values(
                ds_device_name=session.device_name,
                ds_ip_address=session.ip_address,
                ds_user_agent=session.user_agent,
                ds_is_trusted=session.is_trusted,
                ds_last_used_at=session.last_used,
                ds_refresh_token_id=session.refresh_token_id,
            )
            .execution_options(synchronize_session=False)
        )
        return session

    async def delete(self, session_id: UUID) -> bool:
        result = await self.db.execute(
            delete(DeviceSession)
            .where(DeviceSession.ds_id == session_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_all_for_user(self, user_id: UUID) -> int:
        result = await self.db.execute(
            delete(DeviceSession)
            .where(DeviceSession.ds_user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_stale(self, now: datetime) -> int:
        valid_token = (
            select(AuthToken.t_id)
            .where(
                AuthToken.t_id == DeviceSession.ds_refresh_token_id,
                AuthToken.t_blacklisted.is_(False),
                AuthToken.t_expires_at > now,
            )
        )
        result = await self.db.execute(
            delete(DeviceSession)
            .where(~valid_token.exists())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class SqlSecurityEventRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, event: SecurityEventRecord) -> SecurityEventRecord:
        self.db.add(SecurityEvent(
            se_id=event.id,
            se_event_type=event.event_type.value,
            se_level=event.level.value,
            se_outcome=event.outcome.value,
            se_timestamp=event.timestamp,
            se_user_id=event.user_id,
            se_email=event.email,
            se_description=event.description,
            se_ip_address=event.ip_address,
            se_user_agent=event.user_agent,
            se_metadata=event.metadata,
        ))
        return event

    async def list_for_user(
        self,
        user_id: UUID,
        limit: int = 50,
        since: Optional[datetime] = None,
    ) -> List[SecurityEventRecord]:
        stmt = select(SecurityEvent).where(SecurityEvent.se_user_id == user_id)
        if since is not None:
            stmt = stmt.where(SecurityEvent.se_timestamp >= since)
        result = await self.db.execute(
            stmt.order_by(SecurityEvent.se_timestamp.desc()).limit(limit)
        )
        return [_event_to_record(row) for row in result.scalars().all()]

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self.db.execute(
            delete(SecurityEvent)
            .where(SecurityEvent.se_timestamp < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class SqlCredentialStore:
    """CredentialStore di atas satu AsyncSession (satu unit-of-work per request)."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = SqlUserRepository(db)
        self.tokens = SqlTokenRepository(db)
        self.devices = SqlDeviceSessionRepository(db)
        self.events = SqlSecurityEventRepository(db)

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        logger.debug("Rolling back credential store transaction")
        await self.db.rollback()
