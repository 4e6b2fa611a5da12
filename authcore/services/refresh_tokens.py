"""Refresh token ledger: issue, look up, consume (rotation) and revoke refresh tokens."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.auth import create_refresh_token, hash_refresh_token
from authcore.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


class RefreshTokenLedger:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def issue(
        self,
        user_id: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[str, RefreshToken]:
        """Create a ledger row; return (plain token for the client, stored row)."""
        plain = create_refresh_token()
        row = RefreshToken(
            user_id=user_id,
            token_hash=hash_refresh_token(plain),
            expires_at=expires_at,
            is_revoked=False,
            ip_address=ip_address,
            user_agent=(user_agent or None) and user_agent[:512],
        )
        self.session.add(row)
        await self.session.flush()
        return plain, row

    async def find(self, token: str) -> RefreshToken | None:
        r = await self.session.execute(
            select(RefreshToken).where(RefreshToken.token_hash == hash_refresh_token(token))
        )
        return r.scalar_one_or_none()

    async def consume(self, token_hash: str) -> bool:
        """Atomically revoke a live token. False means another request already used it."""
        result = await self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.token_hash == token_hash,
                RefreshToken.is_revoked.is_(False),
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def revoke_all_for_user(self, user_id: str) -> int:
        result = await self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked.is_(False),
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        logger.debug("Revoked %s refresh tokens for user_id=%s", count, user_id)
        return count

    async def revoke_by_hashes(self, token_hashes: list[str]) -> int:
        if not token_hashes:
            return 0
        result = await self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.token_hash.in_(token_hashes),
                RefreshToken.is_revoked.is_(False),
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_expired(self, now: datetime, batch_size: int) -> int:
        """Delete one batch of rows past expires_at (revoked or not). Returns rows deleted."""
        r = await self.session.execute(
            select(RefreshToken.id).where(RefreshToken.expires_at < now).limit(batch_size)
        )
        ids = list(r.scalars().all())
        if not ids:
            return 0
        await self.session.execute(
            delete(RefreshToken)
            .where(RefreshToken.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return len(ids)
