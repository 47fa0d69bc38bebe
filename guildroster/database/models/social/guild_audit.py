"""
GuildAudit — append-only guild audit log.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from guildroster.core.database.base import AUTOINCREMENT_ARGS, Base, IdMixin, utcnow


class GuildAudit(Base, IdMixin):
    """
    Durable audit trail for guild-scoped commands.

    Schema-only:
    - guild_id (no FK, so entries outlive a deleted guild)
    - actor_user_id (nullable for system actions)
    - action (e.g. "member.kicked")
    - meta (JSON action details)
    - created_at

    Rows are never updated.
    """

    __tablename__ = "guild_audit"
    __table_args__ = (
        Index("ix_guild_audit_guild_created", "guild_id", "created_at"),
        AUTOINCREMENT_ARGS,
    )

    guild_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    meta: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )
