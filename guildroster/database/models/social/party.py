"""
Party — a leader-run group of characters within one guild.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from guildroster.core.database.base import AUTOINCREMENT_ARGS, Base, IdMixin, TimestampMixin


class Party(Base, IdMixin, TimestampMixin):
    """
    Party row.

    Schema-only:
    - guild_id (FK guilds)
    - name (unique within the guild)
    - leader_id (FK users; a user leads at most one party system-wide)

    Member characters point here through `characters.party_id`.
    """

    __tablename__ = "parties"
    __table_args__ = (
        UniqueConstraint("guild_id", "name", name="uq_parties_guild_name"),
        UniqueConstraint("leader_id", name="uq_parties_leader_id"),
        AUTOINCREMENT_ARGS,
    )

    guild_id: Mapped[int] = mapped_column(
        ForeignKey("guilds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(48), nullable=False)
    leader_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
