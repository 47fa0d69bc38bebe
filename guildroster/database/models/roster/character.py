"""
Character — a playable character owned by a user and filed under a tag.
Pure schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from guildroster.core.database.base import AUTOINCREMENT_ARGS, Base, IdMixin, TimestampMixin


class Character(Base, IdMixin, TimestampMixin):
    """
    Character row.

    Schema-only:
    - name (globally unique)
    - owner_id (FK users)
    - tag_id (FK tags; the tag's guild is the character's guild)
    - party_id (FK parties, nullable; at most one party slot)
    """

    __tablename__ = "characters"
    __table_args__ = AUTOINCREMENT_ARGS

    name: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_id: Mapped[int] = mapped_column(
        ForeignKey("tags.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    party_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("parties.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
