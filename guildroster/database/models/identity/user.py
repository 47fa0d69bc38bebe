"""
User — a registered person, mirrored from the identity provider.
Pure schema only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from guildroster.core.database.base import AUTOINCREMENT_ARGS, Base, IdMixin, TimestampMixin


class User(Base, IdMixin, TimestampMixin):
    """
    Registered user.

    Schema-only:
    - external_id (stable id from the identity provider, unique)
    - name, age
    - email (optional, unique when present)
    - contact (unique handle)
    """

    __tablename__ = "users"
    __table_args__ = AUTOINCREMENT_ARGS

    external_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True, unique=True)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    contact: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} external_id={self.external_id!r}>"
