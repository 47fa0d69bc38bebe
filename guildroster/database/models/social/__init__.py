"""
Social domain ORM models.

Exports:
- Guild
- GuildMember
- Tag
- Party
- GuildAudit
"""

from .guild import Guild
from .guild_audit import GuildAudit
from .guild_member import GuildMember
from .party import Party
from .tag import Tag

__all__ = [
    "Guild",
    "GuildMember",
    "Tag",
    "Party",
    "GuildAudit",
]
