"""Structured logging configuration for remindkit.

Provides JSON and text formatters, a tick-context filter that injects
the running task and tick id into every log record, and a one-call
``configure_logging`` function driven by config settings.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from remindkit.logging.context import current_tick

if TYPE_CHECKING:
    from remindkit.config.settings import LoggingSettings

# Standard LogRecord attributes; everything else is "extra" and is
# included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        "tick_id",
        "task",
    }
)


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields, the tick context, and any *extra* attributes
    passed by the caller.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        tick_id = getattr(record, "tick_id", None)
        if tick_id and tick_id != "-":
            data["tick_id"] = tick_id
            data["task"] = getattr(record, "task", None)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development / console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(task)s %(tick_id)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


class TickContextFilter(logging.Filter):
    """Inject ``tick_id`` and ``task`` into every record (``"-"`` outside a tick)."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        tick = current_tick()
        record.tick_id = tick.tick_id if tick else "-"  # type: ignore[attr-defined]
        record.task = tick.task if tick else "-"  # type: ignore[attr-defined]
        return True


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``remindkit`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output and
    returns the root ``remindkit`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("remindkit")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(TickContextFilter())
    root.addHandler(console)

    for lib in ("psycopg", "psycopg.pool", "pypgkit"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
