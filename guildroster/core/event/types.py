"""
Core event types for the roster EventBus.

Priority Levels
---------------
- CRITICAL (0): sequential, awaited, timeout-protected.
- HIGH (10): sequential, awaited, timeout-protected.
- NORMAL (50): concurrent, awaited.
- LOW (100): fire-and-forget background tasks.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Should stay JSON-serializable so events can be logged verbatim.
EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """Lower value runs earlier."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(slots=True, frozen=True)
class EventListener:
    """
    A registered listener.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event payload.
    priority:
        Determines execution order and concurrency.
    identifier:
        Unique id used for deduplication and unsubscription.
    once:
        If True, the listener is removed before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """
        Build a listener, deriving the identifier from the callback when absent.

        >>> EventListener.from_callback("guild.created", audit, ListenerPriority.LOW, None, False).identifier
        'mymodule.audit@guild.created'
        """
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", getattr(callback, "__name__", "callback"))
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(callback=callback, priority=priority, identifier=identifier, once=once)


# Event names published by roster services.
GUILD_CREATED = "guild.created"
GUILD_DELETED = "guild.deleted"
GUILD_LEADERSHIP_TRANSFERRED = "guild.leadership_transferred"
GUILD_INVITE_CREATED = "guild.invite_created"
GUILD_INVITE_ACCEPTED = "guild.invite_accepted"
GUILD_INVITE_DECLINED = "guild.invite_declined"
GUILD_INVITE_REVOKED = "guild.invite_revoked"
GUILD_MEMBER_ROLE_CHANGED = "guild.member_role_changed"
GUILD_MEMBER_LEFT = "guild.member_left"
GUILD_MEMBER_KICKED = "guild.member_kicked"
TAG_CREATED = "tag.created"
TAG_UPDATED = "tag.updated"
TAG_DELETED = "tag.deleted"
CHARACTER_CREATED = "character.created"
CHARACTER_TAG_REASSIGNED = "character.tag_reassigned"
CHARACTER_ROLE_ASSIGNED = "character.role_assigned"
CHARACTER_ROLE_REMOVED = "character.role_removed"
CHARACTER_DELETED = "character.deleted"
PARTY_CREATED = "party.created"
PARTY_CHARACTER_ADDED = "party.character_added"
PARTY_CHARACTER_REMOVED = "party.character_removed"
PARTY_DISBANDED = "party.disbanded"
PARTY_LEADERSHIP_TRANSFERRED = "party.leadership_transferred"
USER_REGISTERED = "user.registered"
USER_UPDATED = "user.updated"
