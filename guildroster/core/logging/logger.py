"""
Roster logging
==============

Structured, non-blocking logging for roster commands.

- Each record carries the acting user, guild, operation and a correlation
  id taken from a ContextVar that `BaseService.log_operation` fills in.
- Console output is JSON in production and colored text when attached to
  a terminal. A JSON file log rotates daily under `Config.LOGS_DIR`.
- Handlers sit behind a bounded QueueHandler/QueueListener pair; when the
  queue is full, records are dropped rather than stalling the event loop.

Nothing is configured at import time. `setup_logging()` is idempotent and
the ServiceContainer calls it once.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from typing import Any, Dict, List, Optional

from guildroster.core.config.config import Config

CONSOLE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)-40s | "
    "op=%(operation)s user=%(user_id)s guild=%(guild_id)s | %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FILE_NAME = "guild_roster.json.log"
QUEUE_MAX_SIZE = 10_000

# Fields every record gets from the current command context.
CONTEXT_FIELDS = ("user_id", "guild_id", "operation", "correlation_id")

_command_context: ContextVar[Dict[str, Any]] = ContextVar("roster_command_context", default={})

_listener: Optional[QueueListener] = None
_dropped_records = 0


# ============================================================================
# Command context
# ============================================================================


def set_log_context(
    user_id: Optional[int] = None,
    guild_id: Optional[int] = None,
    operation: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> None:
    """
    Bind command fields to every record logged from the current task.

    A correlation id is generated the first time a context is bound and
    kept until `clear_log_context()`.
    """
    context = dict(_command_context.get())
    updates = {"user_id": user_id, "guild_id": guild_id, "operation": operation}
    context.update({key: value for key, value in updates.items() if value is not None})
    context["correlation_id"] = (
        correlation_id or context.get("correlation_id") or uuid.uuid4().hex[:12]
    )
    _command_context.set(context)


def clear_log_context() -> None:
    _command_context.set({})


class ContextFilter(logging.Filter):
    """Copy the command context onto each record ("-" when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _command_context.get()
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, context.get(field, "-"))
        return True


# ============================================================================
# Formatters
# ============================================================================


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}{self.RESET}" if color else line


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Context fields sit at the top level; anything passed through `extra=`
    is grouped under "extra".
    """

    # Attributes every LogRecord has; everything else came from `extra=`.
    _RECORD_ATTRS = frozenset(
        logging.LogRecord("", 0, "", 0, "", None, None).__dict__
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, "-")
            if value != "-":
                payload[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RECORD_ATTRS
            and key not in CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:
        global _dropped_records
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _dropped_records += 1


def _level() -> int:
    return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    production = Config.ENVIRONMENT.lower() == "production"
    use_json = Config.LOG_JSON if Config.LOG_JSON is not None else production

    if use_json:
        handler.setFormatter(JSONFormatter())
    elif Config.LOG_COLORS and not production and sys.stdout.isatty():
        handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    return handler


def _file_handler() -> logging.Handler:
    logs_dir = Config.LOGS_DIR.resolve()
    logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        logs_dir / FILE_NAME, when="midnight", backupCount=7, encoding="utf-8", utc=True
    )
    handler.setFormatter(JSONFormatter())
    return handler


# ============================================================================
# Public API
# ============================================================================


def setup_logging(file_output: bool = True) -> None:
    """Route the root logger through the queue to console (and file) handlers."""
    global _listener

    if _listener is not None:
        return

    handlers: List[logging.Handler] = [_console_handler()]
    if file_output:
        handlers.append(_file_handler())

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(QUEUE_MAX_SIZE)
    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_level())
    root.addHandler(queue_handler)

    for noisy in ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _listener.start()

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT,
            "log_level": logging.getLevelName(_level()),
            "file_output": file_output,
        },
    )


def shutdown_logging() -> None:
    """Flush queued records and detach every root handler."""
    global _listener

    if _listener is None:
        return

    _listener.stop()
    _listener = None

    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)


def dropped_record_count() -> int:
    return _dropped_records


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)
