"""
Tag — a named sub-division of a guild that characters are filed under.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from guildroster.core.database.base import AUTOINCREMENT_ARGS, Base, IdMixin, TimestampMixin


class Tag(Base, IdMixin, TimestampMixin):
    """
    Guild tag.

    Schema-only:
    - guild_id (FK guilds)
    - name (unique within the guild)
    - is_reserve (reserve roster marker)
    """

    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("guild_id", "name", name="uq_tags_guild_name"),
        AUTOINCREMENT_ARGS,
    )

    guild_id: Mapped[int] = mapped_column(
        ForeignKey("guilds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(32), nullable=False)
    is_reserve: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
