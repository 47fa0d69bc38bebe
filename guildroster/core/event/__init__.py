"""
Event system for the roster engine.

Services publish domain events on an EventBus after their transaction
commits; listeners subscribe by exact name or wildcard pattern.
"""

from .bus import EventBus
from .router import EventRouter
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventRouter",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
