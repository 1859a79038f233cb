"""Helpers for logging structured fields through the `extra` mechanism."""

import logging
from typing import Any, Dict

# Attributes every LogRecord already carries; passing one of them in `extra`
# makes logging raise KeyError, so they are filtered out.
_RESERVED_LOG_KEYS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Error context keys mapped onto the structured fields formatters know about
_ERROR_CONTEXT_FIELDS = {
    "topic": "message_topic",
    "message_index": "message_index",
    "error_type": "error_type",
    "key": "option_key",
}

MAX_ERROR_MESSAGE_LENGTH = 500


def _extra(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in _RESERVED_LOG_KEYS}


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Structured fields (batch_size, message_topic, ...).
                  exc_info is forwarded to the logger instead of `extra`.

    Example:
        log_with_context(
            logger, logging.DEBUG, "Batch handled",
            message_topic=topic,
            batch_size=len(batch),
        )
    """
    exc_info = kwargs.pop("exc_info", None)
    logger.log(level, msg, exc_info=exc_info, extra=_extra(kwargs))


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log an exception with its category, message and context.

    For SubscriberError subclasses the error category is added, and known
    keys of the error's context (topic, message_index, error_type, schema
    key) are copied onto their structured fields unless given explicitly.

    Example:
        try:
            subscriber.handle_batch(topic, batch, context)
        except HandlerError as e:
            log_exception(logger, e, "Batch failed", batch_size=len(batch))
    """
    category = getattr(exc, "category", None)
    if category is not None and "error_category" not in kwargs:
        kwargs["error_category"] = getattr(category, "value", str(category))

    context = getattr(exc, "context", None)
    if isinstance(context, dict):
        for key, field in _ERROR_CONTEXT_FIELDS.items():
            if key in context:
                kwargs.setdefault(field, context[key])

    error_msg = str(exc)
    if len(error_msg) > MAX_ERROR_MESSAGE_LENGTH:
        error_msg = error_msg[:MAX_ERROR_MESSAGE_LENGTH] + "..."
    kwargs["error_message"] = error_msg

    logger.log(level, msg, exc_info=exc if include_traceback else None, extra=_extra(kwargs))
