"""Access-token revocation list. Rows are keyed by SHA-256 of the token."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.auth import hash_token
from authcore.models.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)


class TokenBlacklistStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(
        self,
        token: str,
        user_id: str,
        expires_at: datetime,
        reason: str = "logout",
    ) -> TokenBlacklist:
        token_hash = hash_token(token)
        r = await self.session.execute(
            select(TokenBlacklist).where(TokenBlacklist.token_hash == token_hash)
        )
        existing = r.scalar_one_or_none()
        if existing is not None:
            return existing
        row = TokenBlacklist(
            token_hash=token_hash,
            user_id=user_id,
            expires_at=expires_at,
            reason=reason,
        )
        self.session.add(row)
        await self.session.flush()
        logger.debug("Blacklisted access token for user_id=%s reason=%s", user_id, reason)
        return row

    async def is_revoked(self, token: str) -> bool:
        r = await self.session.execute(
            select(TokenBlacklist.id).where(TokenBlacklist.token_hash == hash_token(token))
        )
        return r.first() is not None

    async def delete_expired(self, now: datetime, batch_size: int) -> int:
        r = await self.session.execute(
            select(TokenBlacklist.id).where(TokenBlacklist.expires_at < now).limit(batch_size)
        )
        ids = list(r.scalars().all())
        if not ids:
            return 0
        await self.session.execute(
            delete(TokenBlacklist)
            .where(TokenBlacklist.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return len(ids)
