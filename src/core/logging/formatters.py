"""Log formatters for JSON and console output."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Optional

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer

# Structured fields lifted from LogRecord extras, with an optional coercion.
# A value the coercion rejects is written as null.
STRUCTURED_FIELDS: Dict[str, Optional[Callable[[Any], Any]]] = {
    # Subscriber identity
    "subscriber_module": None,
    "otp_app": None,
    "source_name": None,
    "adapter": None,
    # Batch dispatch
    "batch_size": int,
    "message_index": int,
    "messages_processed": int,
    "duration_ms": float,
    # Errors
    "error_category": None,
    "error_message": None,
    "error_type": None,
    # Blueprint resolution
    "option_key": None,
    "ignored_keys": None,
    "resolved_keys": None,
    "config_path": None,
    # Transport metadata
    "message_topic": None,
    "message_partition": int,
    "message_offset": int,
    "group_id": None,
}

# Context variables injected into every entry when set
CONTEXT_FIELDS = ("subscriber_id", "source", "topic", "batch_id")


def _coerce(field: str, value: Any) -> Any:
    coerce = STRUCTURED_FIELDS[field]
    if coerce is None:
        return value
    try:
        return coerce(value)
    except (TypeError, ValueError):
        return None


def structured_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the known structured fields present on a record."""
    return {
        field: _coerce(field, getattr(record, field))
        for field in STRUCTURED_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line: timestamp, level, logger, message, the
    subscriber context, structured fields and exception details.

    Source location is added for DEBUG and ERROR and above.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        entry.update({k: v for k, v in get_log_context().items() if k in CONTEXT_FIELDS and v})

        if record.levelno == logging.DEBUG or record.levelno >= logging.ERROR:
            entry["file"] = f"{record.filename}:{record.lineno}"

        entry.update(structured_fields(record))

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Lines read `time - LEVEL - [subscriber] - [topic] - message`, followed by
    batch details (size, offset, error category) when the record carries
    them. Colors are auto-disabled when output is not a TTY.
    """

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    # Structured fields appended as key=value after the message
    DETAIL_FIELDS = ("batch_size", "message_index", "message_offset", "error_category")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno) if self._use_colors else None
        return f"{color}{record.levelname}{self.RESET}" if color else record.levelname

    def format(self, record: logging.LogRecord) -> str:
        log_context = get_log_context()
        parts = [self.formatTime(record, "%Y-%m-%d %H:%M:%S"), self._level(record)]
        parts.extend(f"[{log_context[key]}]" for key in ("subscriber_id", "topic") if log_context[key])
        parts.append(record.getMessage())
        message = " - ".join(parts)

        details = [
            f"{field}={getattr(record, field)}"
            for field in self.DETAIL_FIELDS
            if getattr(record, field, None) is not None
        ]
        if details:
            message = f"{message} ({', '.join(details)})"

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message
