"""Access tokens revoked before their natural expiry (logout)."""

from __future__ import annotations

import uuid
from datetime import datetime
from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from authcore.core.auth import utcnow
from authcore.db.base import Base


class TokenBlacklist(Base):
    __tablename__ = "token_blacklist"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    # Expiry of the original token; the row is moot afterwards
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(50), nullable=False, default="logout")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
