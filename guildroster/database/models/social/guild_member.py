"""
GuildMember — association of users to guilds.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from guildroster.core.database.base import AUTOINCREMENT_ARGS, Base, IdMixin, TimestampMixin
from guildroster.database.models.enums import MemberRole, MemberStatus


class GuildMember(Base, IdMixin, TimestampMixin):
    """
    Guild membership row.

    Schema-only:
    - user_id (FK users)
    - guild_id (FK guilds)
    - role (MEMBER / OFFICER)
    - status (PENDING invite / ACTIVE member)

    At most one row per (user, guild), whatever its status.
    """

    __tablename__ = "guild_members"
    __table_args__ = (
        UniqueConstraint("user_id", "guild_id", name="uq_guild_members_user_guild"),
        Index("ix_guild_members_user_guild_status", "user_id", "guild_id", "status"),
        AUTOINCREMENT_ARGS,
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    guild_id: Mapped[int] = mapped_column(
        ForeignKey("guilds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[MemberRole] = mapped_column(
        SAEnum(MemberRole, native_enum=False, length=16, validate_strings=True),
        nullable=False,
        default=MemberRole.MEMBER,
    )
    status: Mapped[MemberStatus] = mapped_column(
        SAEnum(MemberStatus, native_enum=False, length=16, validate_strings=True),
        nullable=False,
        default=MemberStatus.PENDING,
    )

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    @property
    def is_officer(self) -> bool:
        return self.is_active and self.role == MemberRole.OFFICER
