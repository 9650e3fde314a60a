"""
Structured logging for emverify.

Two output formats:
- text: human-readable, optionally colored, for interactive use
- json: one JSON object per line, for log aggregation (ELK, Loki, ...)

Logs go to stderr so they never mix with progress output on stdout.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any


# Attributes every LogRecord has; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
    }
)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON objects.

    Output looks like:
        {"timestamp": "2024-01-15T10:30:00.123Z", "level": "INFO",
         "logger": "SyncEngine", "message": "...", "context": {...}}
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_location: bool = False,
        static_fields: dict[str, Any] | None = None,
    ):
        """
        Args:
            include_timestamp: Add an ISO8601 UTC timestamp
            include_level: Add the level name
            include_logger: Add the logger name
            include_location: Add file, line and function
            static_fields: Fields added to every record (e.g., service name)
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_location = include_location
        self.static_fields = static_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {}

        if self.include_timestamp:
            created = datetime.fromtimestamp(record.created, tz=timezone.utc)
            entry["timestamp"] = created.strftime("%Y-%m-%dT%H:%M:%S.") + (
                f"{int(record.msecs):03d}Z"
            )
        if self.include_level:
            entry["level"] = record.levelname
        if self.include_logger:
            entry["logger"] = record.name

        entry["message"] = record.getMessage()
        entry.update(self.static_fields)

        if self.include_location:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        context = _extra_fields(record)
        if context:
            entry["context"] = context

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter with optional colors and context."""

    COLORS = {
        "DEBUG": "\033[2m",
        "INFO": "\033[36m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_context: bool = False):
        super().__init__(fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        self.use_colors = use_colors
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)

        if self.include_context:
            context = _extra_fields(record)
            if context:
                text += " " + " ".join(f"{k}={v!r}" for k, v in sorted(context.items()))

        if self.use_colors:
            color = self.COLORS.get(record.levelname)
            if color:
                text = f"{color}{text}{self.RESET}"
        return text


def setup_logging(
    level: int = logging.INFO,
    log_format: str = "text",
    log_file: str | None = None,
    static_fields: dict[str, Any] | None = None,
) -> None:
    """
    Configure the root logger.

    Replaces any existing handlers so repeated calls do not duplicate output.

    Args:
        level: Minimum level to emit
        log_format: 'text' or 'json'
        log_file: Also write logs to this file (never colored)
        static_fields: Fields added to every JSON record
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(level)

    def make_formatter(use_colors: bool) -> logging.Formatter:
        if log_format == "json":
            return JSONFormatter(static_fields=static_fields)
        return TextFormatter(use_colors=use_colors)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(make_formatter(sys.stderr.isatty()))
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(make_formatter(False))
        root.addHandler(file_handler)

    # Keep HTTP libraries quiet unless something is wrong
    for noisy in ("urllib3", "requests", "aiohttp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
