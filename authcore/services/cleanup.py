"""Periodic sweeps deleting expired auth rows.

Two cron jobs run on the app's AsyncIOScheduler:
- ``expired_tokens``: blacklist, refresh token and session rows past ``expires_at``;
- ``inactive_sessions``: revoked sessions untouched for the retention window.

Each batch is deleted in its own short transaction. Failures are logged and
never propagate to the scheduler.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authcore.config import Settings, settings
from authcore.core.auth import utcnow
from authcore.core.metrics import CLEANUP_DELETED_ROWS
from authcore.services.refresh_tokens import RefreshTokenLedger
from authcore.services.sessions import SessionRegistry
from authcore.services.token_blacklist import TokenBlacklistStore

logger = logging.getLogger(__name__)

EXPIRED_TOKENS_JOB_ID = "expired_tokens"
INACTIVE_SESSIONS_JOB_ID = "inactive_sessions"

BatchDelete = Callable[[AsyncSession], Awaitable[int]]


class CleanupScheduler:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        config: Settings = settings,
    ) -> None:
        self.session_maker = session_maker
        self.config = config

    def register(self, scheduler: AsyncIOScheduler) -> None:
        """Add both sweeps as daily cron jobs at distinct hours."""
        scheduler.add_job(
            self.run_expired_tokens_sweep,
            "cron",
            id=EXPIRED_TOKENS_JOB_ID,
            hour=self.config.cleanup_tokens_hour,
            minute=0,
            replace_existing=True,
        )
        scheduler.add_job(
            self.run_inactive_sessions_sweep,
            "cron",
            id=INACTIVE_SESSIONS_JOB_ID,
            hour=self.config.cleanup_sessions_hour,
            minute=0,
            replace_existing=True,
        )

    async def _drain(self, table: str, delete_batch: BatchDelete) -> int:
        """Run delete_batch in separate transactions until a batch comes back short."""
        total = 0
        batch_size = self.config.cleanup_batch_size
        while True:
            async with self.session_maker() as session:
                deleted = await delete_batch(session)
                await session.commit()
            total += deleted
            if deleted < batch_size:
                break
        if total:
            CLEANUP_DELETED_ROWS.labels(table=table).inc(total)
        return total

    async def sweep_expired_tokens(self, now: datetime | None = None) -> dict[str, int]:
        now = now or utcnow()
        batch_size = self.config.cleanup_batch_size
        blacklist = await self._drain(
            "token_blacklist",
            lambda s: TokenBlacklistStore(s).delete_expired(now, batch_size),
        )
        refresh = await self._drain(
            "refresh_tokens",
            lambda s: RefreshTokenLedger(s).delete_expired(now, batch_size),
        )
        sessions = await self._drain(
            "user_sessions",
            lambda s: SessionRegistry(s, RefreshTokenLedger(s)).delete_expired(now, batch_size),
        )
        return {"token_blacklist": blacklist, "refresh_tokens": refresh, "user_sessions": sessions}

    async def sweep_inactive_sessions(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        cutoff = now - timedelta(days=self.config.inactive_session_retention_days)
        batch_size = self.config.cleanup_batch_size
        return await self._drain(
            "user_sessions",
            lambda s: SessionRegistry(s, RefreshTokenLedger(s)).delete_inactive(cutoff, batch_size),
        )

    async def run_expired_tokens_sweep(self) -> dict[str, int] | None:
        logger.info("Starting cleanup of expired tokens")
        try:
            counts = await self.sweep_expired_tokens()
        except Exception:
            logger.exception("Expired token cleanup failed")
            return None
        logger.info(
            "Cleanup complete. Deleted %s blacklist tokens, %s refresh tokens and %s expired sessions",
            counts["token_blacklist"],
            counts["refresh_tokens"],
            counts["user_sessions"],
        )
        return counts

    async def run_inactive_sessions_sweep(self) -> int | None:
        logger.info("Starting cleanup of inactive sessions")
        try:
            deleted = await self.sweep_inactive_sessions()
        except Exception:
            logger.exception("Inactive session cleanup failed")
            return None
        logger.info("Cleaned up %s inactive sessions", deleted)
        return deleted
