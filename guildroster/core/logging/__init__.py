"""
Roster logging infrastructure.

- Structured JSON / colored console logging behind a queue listener
- Per-command context (user, guild, operation, correlation id) via ContextVars
- Setup and teardown helpers for the global logging system
"""

from guildroster.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    clear_log_context,
    dropped_record_count,
    get_logger,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "set_log_context",
    "clear_log_context",
    "dropped_record_count",
    "ContextFilter",
    "JSONFormatter",
]
