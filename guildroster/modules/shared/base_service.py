"""
Base Service Foundation

Purpose
-------
Foundation class for every roster service. Services validate input,
run each command inside one DatabaseService transaction, enforce the
roster invariants and publish domain events after commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers

What this class does NOT do:
- Manage database transactions (that's DatabaseService's job)
- Contain roster rules

Usage
-----
    class TagService(BaseService):
        def __init__(self, config_manager, event_bus, logger, permissions):
            super().__init__(config_manager, event_bus, logger)
            self._permissions = permissions
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from guildroster.core.logging.logger import set_log_context
from guildroster.modules.shared.exceptions import (
    ErrorSeverity,
    get_error_severity,
    is_transient_error,
    should_alert,
)

if TYPE_CHECKING:
    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus


_SEVERITY_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class ConfigurationError(RuntimeError):
    """Raised when a required configuration key is missing."""


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Application configuration manager
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: logging.Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Publish a domain event.

        Call only after the command's transaction has committed. The payload
        carries its own `event_type` so wildcard listeners can tell events apart.
        """
        await self._events.publish(
            event_type, {"event_type": event_type, **data, **(context or {})}
        )

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation and bind it to the current log context."""
        set_log_context(
            operation=operation,
            user_id=context.get("user_id"),
            guild_id=context.get("guild_id"),
        )
        self.log.info(
            f"Service operation: {operation}",
            extra={"service_operation": operation, **context},
        )

    def log_rejection(self, operation: str, error: Exception, **context: Any) -> None:
        """
        Log a command rejected by a business rule.

        The level follows the error's severity; anything that should alert
        (unexpected or ERROR-level failures) is flagged with `alert=True`.
        """
        severity = get_error_severity(error)
        self.log.log(
            _SEVERITY_LEVELS[severity],
            f"Rejected {operation}: {error}",
            extra={
                "service_operation": operation,
                "error_code": getattr(error, "error_code", type(error).__name__),
                "severity": severity.value,
                "retryable": is_transient_error(error),
                "alert": should_alert(error),
                **context,
            },
        )

