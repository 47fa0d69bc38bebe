"""
Guild — a named community led by exactly one user.
Pure schema only.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from guildroster.core.database.base import AUTOINCREMENT_ARGS, Base, IdMixin, TimestampMixin


class Guild(Base, IdMixin, TimestampMixin):
    """
    Guild row.

    Schema-only:
    - name (globally unique)
    - leader_id (FK users; leader also holds an ACTIVE OFFICER membership)
    - created_at / updated_at (from TimestampMixin)
    """

    __tablename__ = "guilds"
    __table_args__ = AUTOINCREMENT_ARGS

    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    leader_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Guild id={self.id} name={self.name!r} leader_id={self.leader_id}>"
