"""Logging setup and configuration."""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Mapping

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_BACKUP_COUNT = 7

# Client libraries that log every poll and heartbeat at INFO
NOISY_LOGGERS = [
    "aiokafka",
    "kafka",
    "asyncio",
]


def setup_logging(
    name: str = "batchline",
    json_format: bool = False,
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    log_file: Path | None = None,
    file_level: int = DEFAULT_FILE_LEVEL,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    subscriber_id: str | None = None,
) -> logging.Logger:
    """
    Configure root logging for a subscriber process.

    Replaces any handlers on the root logger with a stdout handler
    (ConsoleFormatter, or JSONFormatter when json_format is set) and, if
    log_file is given, a JSON file handler rotated at midnight.

    Args:
        name: Name of the logger returned
        json_format: Use JSON on stdout (for log shippers)
        console_level: Stdout handler level
        log_file: Optional JSON log file; parent directories are created
        file_level: File handler level
        backup_count: Rotated files kept
        suppress_noisy: Raise NOISY_LOGGERS to WARNING
        subscriber_id: Put into the logging context of the calling task

    Returns:
        The logger called name
    """
    if subscriber_id:
        set_log_context(subscriber_id=subscriber_id)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_file,
            when=DEFAULT_ROTATION_WHEN,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug("Logging configured", extra={"config_path": str(log_file) if log_file else None})
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Use this instead of logging.getLogger() to ensure consistent naming.
    """
    return logging.getLogger(name)


def log_subscriber_startup(
    logger: logging.Logger,
    subscriber_id: Any,
    options: Mapping[str, Any],
) -> None:
    """
    Log a banner with the resolved options of a subscriber about to start.

    Call this right before starting the process so a misconfigured source
    or start option is visible at the top of the subscriber's log.
    """
    logger.info("=" * 70)
    logger.info("Starting subscriber %s", subscriber_id)
    logger.info("=" * 70)
    for key, value in options.items():
        logger.info("%s: %s", key, value)
    logger.info("=" * 70)
