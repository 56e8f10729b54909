"""Structured logging setup for the TRC server.

Modules log through ``logging.getLogger(__name__)`` and attach structured
fields with ``extra=``. This module only decides where records go and how
they are rendered:

- pretty: single human-readable line with trailing ``key=value`` fields
- JSON lines: one object per record with timestamp, level, logger, message,
  trace context and every extra field
- optional file: always JSON lines
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, Final, TextIO

from opentelemetry import trace

from trc.config.models import LoggingConfig, LogLevel

LEVELS: Final[dict[LogLevel, int]] = {
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
    "silent": logging.CRITICAL + 10,
}

# Loggers owned by this process; uvicorn logs with log_config=None have no handlers.
MANAGED_LOGGERS: Final = ("trc", "uvicorn")

_RESERVED_ATTRS: Final = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
    | {"message", "asctime", "taskName"}
)

# Set by RequestIdMiddleware for the lifetime of a request.
request_id_var: ContextVar[str | None] = ContextVar("trc_request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Stamp records logged during a request with its request id."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = request_id_var.get()
            if request_id is not None:
                record.request_id = request_id
        return True


def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the fields a caller attached to a record via ``extra=``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """JSON lines formatter with trace context and extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            entry["trace_id"] = format(span_context.trace_id, "032x")
            entry["span_id"] = format(span_context.span_id, "016x")

        for key, value in extra_fields(record).items():
            try:
                json.dumps(value)
                entry[key] = value
            except (TypeError, ValueError):
                entry[key] = str(value)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


class PrettyFormatter(logging.Formatter):
    """Human-readable formatter that appends extra fields as key=value."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = extra_fields(record)
        if not fields:
            return line
        suffix = " ".join(f"{key}={value}" for key, value in fields.items())
        head, sep, tail = line.partition("\n")
        return f"{head} {suffix}{sep}{tail}"


def configure_logging(config: LoggingConfig, *, stream: TextIO | None = None) -> None:
    """Install handlers on the process loggers according to config.

    Safe to call more than once; handlers from a previous call are replaced.

    Args:
        config: Resolved logging settings.
        stream: Console stream (defaults to stdout).
    """
    level = LEVELS[config.level]

    request_filter = RequestIdFilter()
    handlers: list[logging.Handler] = []
    if config.level != "silent":
        console = logging.StreamHandler(stream or sys.stdout)
        console.setFormatter(PrettyFormatter() if config.pretty else JsonFormatter())
        console.addFilter(request_filter)
        handlers.append(console)

        if config.file:
            file_handler = logging.FileHandler(config.file, encoding="utf-8")
            file_handler.setFormatter(JsonFormatter())
            file_handler.addFilter(request_filter)
            handlers.append(file_handler)
    else:
        handlers.append(logging.NullHandler())

    for name in MANAGED_LOGGERS:
        target = logging.getLogger(name)
        for existing in target.handlers[:]:
            target.removeHandler(existing)
            existing.close()
        for handler in handlers:
            target.addHandler(handler)
        target.setLevel(level)
        target.propagate = False

    # Request lines come from RequestLogMiddleware.
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.WARNING))
