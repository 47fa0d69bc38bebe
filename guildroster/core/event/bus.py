"""
EventBus: async pub/sub with tiered listener execution.

Purpose
-------
Decouples roster services from whatever reacts to their state changes
(notifications, projections, analytics). Services publish only after their
transaction has committed.

Responsibilities
----------------
- Register/unregister listeners with priorities (exact names or wildcards)
- Publish events to all matching listeners
- Execute listeners by tier:
  * CRITICAL / HIGH: sequential, awaited, timeout-protected
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Error isolation: one failing listener never blocks the others or the
  publishing command

Design Decisions
----------------
- Instance-based, so tests get a fresh bus each.
- Listener timeout read from ConfigManager (`core.event.listener_timeout_seconds`).
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Optional

from guildroster.core.event.router import EventRouter
from guildroster.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from guildroster.core.logging.logger import get_logger

if TYPE_CHECKING:
    from guildroster.core.config.manager import ConfigManager

logger = get_logger(__name__)


class EventBus:
    """
    Roster EventBus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("guild.*", on_guild_event, priority=ListenerPriority.HIGH)
    >>> await bus.publish("guild.created", {"guild_id": 1})
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        *,
        router: Optional[EventRouter] = None,
        listener_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._router = router or EventRouter()
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._published: dict[str, int] = defaultdict(int)
        self._errors: dict[str, int] = defaultdict(int)

        self._timeout = self._load_timeout(listener_timeout_seconds, default=5.0)

        logger.debug("EventBus initialized", extra={"listener_timeout_seconds": self._timeout})

    def _load_timeout(self, override: Optional[float], default: float) -> float:
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return float(default)

        value = self._config_manager.get("core.event.listener_timeout_seconds", default)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                "Invalid listener timeout in config, using default",
                extra={"configured_value": value, "default_value": default},
            )
            return float(default)

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """
        Ensure the callback accepts exactly one positional parameter.

        Raises
        ------
        ValueError:
            If the signature is wrong.
        """
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        if len(sig.parameters) != 1:
            callback_name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(sig.parameters)} for '{callback_name}'"
            )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns the listener identifier. Subscribing the same identifier to
        the same pattern twice is ignored.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        bucket = self._listeners[event_name]
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        bucket.sort(key=lambda lst: lst.priority.value)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        bucket = self._listeners.get(event_name, [])
        remaining = [lst for lst in bucket if lst.identifier != identifier]
        removed = len(remaining) != len(bucket)

        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove every listener. Intended for tests and full reinitialization."""
        total = self.get_listener_count()
        self._listeners.clear()
        logger.info("EventBus: cleared all listeners", extra={"previous_listener_count": total})

    def _extract_listeners(self, event_name: str) -> list[EventListener]:
        matched: list[EventListener] = []
        for pattern in list(self._listeners):
            if not self._router.matches(event_name, pattern):
                continue
            bucket = self._listeners[pattern]
            matched.extend(bucket)
            # One-shot listeners leave the registry before they run.
            kept = [lst for lst in bucket if not lst.once]
            if kept:
                self._listeners[pattern] = kept
            else:
                self._listeners.pop(pattern, None)

        matched.sort(key=lambda lst: lst.priority.value)
        return matched

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to every matching listener.

        Returns
        -------
        list[Any]:
            Results from CRITICAL/HIGH/NORMAL listeners (None for a listener
            that failed or timed out). LOW-tier results are not collected.
        """
        self._published[event_name] += 1
        listeners = self._extract_listeners(event_name)

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": sorted(data.keys()),
                "listener_count": len(listeners),
            },
        )

        if not listeners:
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority in (ListenerPriority.CRITICAL, ListenerPriority.HIGH):
                results.append(await self._run_listener(listener, event_name, data, self._timeout))

        normal = [lst for lst in listeners if lst.priority == ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *(self._run_listener(lst, event_name, data, None) for lst in normal)
                )
            )

        for listener in listeners:
            if listener.priority == ListenerPriority.LOW:
                task = asyncio.get_running_loop().create_task(
                    self._run_listener(listener, event_name, data, None)
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_listener(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        timeout: Optional[float],
    ) -> Any:
        try:
            if inspect.iscoroutinefunction(listener.callback):
                call = listener.callback(payload)
            else:
                loop = asyncio.get_running_loop()
                call = loop.run_in_executor(None, listener.callback, payload)

            if timeout is not None:
                return await asyncio.wait_for(call, timeout=timeout)
            return await call

        except asyncio.TimeoutError:
            self._errors[event_name] += 1
            logger.error(
                "EventBus: listener timed out",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "timeout_seconds": timeout,
                },
            )
            return None

        except Exception as exc:
            self._errors[event_name] += 1
            logger.error(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    async def drain(self) -> None:
        """Wait for outstanding LOW-tier listener tasks."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks))

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(bucket) for bucket in self._listeners.values())
        return sum(
            len(bucket)
            for pattern, bucket in self._listeners.items()
            if self._router.matches(event_name, pattern)
        )

    def get_all_events(self) -> list[str]:
        return sorted(self._listeners)

    def get_metrics_summary(self) -> dict[str, Any]:
        total_published = sum(self._published.values())
        total_errors = sum(self._errors.values())
        return {
            "total_events_published": total_published,
            "events_by_type": dict(self._published),
            "total_errors": total_errors,
            "errors_by_event": dict(self._errors),
            "total_listeners": self.get_listener_count(),
            "listener_timeout_seconds": self._timeout,
        }
