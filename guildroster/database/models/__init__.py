"""
Database Models Package
=======================

SQLAlchemy ORM models for the guild roster, organized by domain.

All models:
- Are schema-only, no business logic
- Use Mapped[] syntax with mapped_column()
- Inherit IdMixin / TimestampMixin where they have a surrogate key
- Declare uniqueness as database constraints, backing the service checks

Domain Organization:
--------------------
- identity: User
- social: Guild, GuildMember, Tag, Party, GuildAudit
- roster: Character, CharacterRole
- enums: MemberRole, MemberStatus, CharacterRoleType
"""

from guildroster.core.database.base import Base

from .enums import CharacterRoleType, MemberRole, MemberStatus
from .identity import User
from .roster import Character, CharacterRole
from .social import Guild, GuildAudit, GuildMember, Party, Tag

__all__ = [
    "Base",
    "User",
    "Guild",
    "GuildMember",
    "Tag",
    "Party",
    "GuildAudit",
    "Character",
    "CharacterRole",
    "MemberRole",
    "MemberStatus",
    "CharacterRoleType",
]
