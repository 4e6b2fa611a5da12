"""Session registry: one row per login/device, listed and revoked by the owning user."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.auth import utcnow
from authcore.models.user_session import UserSession
from authcore.services.device import detect_device
from authcore.services.refresh_tokens import RefreshTokenLedger

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Revoking a session also revokes the refresh token it was created with."""

    def __init__(self, session: AsyncSession, ledger: RefreshTokenLedger) -> None:
        self.session = session
        self.ledger = ledger

    async def create(
        self,
        *,
        user_id: str,
        refresh_token_hash: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> UserSession:
        device = detect_device(user_agent)
        row = UserSession(
            user_id=user_id,
            refresh_token_hash=refresh_token_hash,
            device_name=device.device_name,
            device_type=device.device_type,
            ip_address=ip_address,
            user_agent=(user_agent or None) and user_agent[:512],
            last_activity_at=utcnow(),
            is_active=True,
            expires_at=expires_at,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_active(self, user_id: str) -> list[UserSession]:
        r = await self.session.execute(
            select(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .order_by(UserSession.last_activity_at.desc())
        )
        return list(r.scalars().all())

    async def touch(self, session_id: str) -> None:
        """Bump last_activity_at; inactive sessions are left untouched."""
        await self.session.execute(
            update(UserSession)
            .where(UserSession.id == session_id, UserSession.is_active.is_(True))
            .values(last_activity_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    async def _deactivate(self, *criteria) -> int:
        """Deactivate matching active sessions and revoke their refresh tokens."""
        r = await self.session.execute(
            select(UserSession.id, UserSession.refresh_token_hash).where(
                UserSession.is_active.is_(True), *criteria
            )
        )
        rows = r.all()
        if not rows:
            return 0
        await self.session.execute(
            update(UserSession)
            .where(UserSession.id.in_([row[0] for row in rows]), UserSession.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.ledger.revoke_by_hashes([row[1] for row in rows])
        return len(rows)

    async def revoke(self, user_id: str, session_id: str) -> bool:
        count = await self._deactivate(UserSession.id == session_id, UserSession.user_id == user_id)
        return count > 0

    async def revoke_others(self, user_id: str, keep_session_id: str | None) -> int:
        criteria = [UserSession.user_id == user_id]
        if keep_session_id:
            criteria.append(UserSession.id != keep_session_id)
        count = await self._deactivate(*criteria)
        logger.info("Revoked %s other sessions for user_id=%s", count, user_id)
        return count

    async def revoke_all(self, user_id: str) -> int:
        count = await self._deactivate(UserSession.user_id == user_id)
        logger.info("Revoked all %s sessions for user_id=%s", count, user_id)
        return count

    async def deactivate_by_refresh_token(self, refresh_token_hash: str) -> int:
        return await self._deactivate(UserSession.refresh_token_hash == refresh_token_hash)

    async def deactivate_all_for_user(self, user_id: str) -> int:
        """Flip sessions inactive without touching refresh tokens (caller already revoked them)."""
        result = await self.session.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_expired(self, now: datetime, batch_size: int) -> int:
        return await self._delete_batch(UserSession.expires_at < now, batch_size=batch_size)

    async def delete_inactive(self, older_than: datetime, batch_size: int) -> int:
        return await self._delete_batch(
            and_(UserSession.is_active.is_(False), UserSession.updated_at < older_than),
            batch_size=batch_size,
        )

    async def _delete_batch(self, criterion, *, batch_size: int) -> int:
        r = await self.session.execute(select(UserSession.id).where(criterion).limit(batch_size))
        ids = list(r.scalars().all())
        if not ids:
            return 0
        await self.session.execute(
            delete(UserSession)
            .where(UserSession.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return len(ids)
