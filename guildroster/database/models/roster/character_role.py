"""
CharacterRole — one activity role held by a character.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from guildroster.core.database.base import Base, utcnow
from guildroster.database.models.enums import CharacterRoleType


class CharacterRole(Base):
    """
    Role assignment; primary key (character_id, role) makes duplicates impossible.

    WOE / WOE_TE exclusivity is enforced by CharacterService under a lock on
    the character row.
    """

    __tablename__ = "character_roles"

    character_id: Mapped[int] = mapped_column(
        ForeignKey("characters.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role: Mapped[CharacterRoleType] = mapped_column(
        SAEnum(CharacterRoleType, native_enum=False, length=16, validate_strings=True),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
