"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_subscriber_id: ContextVar[str] = ContextVar("subscriber_id", default="")
_source: ContextVar[str] = ContextVar("source", default="")
_topic: ContextVar[str] = ContextVar("topic", default="")
_batch_id: ContextVar[str] = ContextVar("batch_id", default="")


def set_log_context(
    subscriber_id: Optional[str] = None,
    source: Optional[str] = None,
    topic: Optional[str] = None,
    batch_id: Optional[str] = None,
) -> None:
    if subscriber_id is not None:
        _subscriber_id.set(str(subscriber_id))
    if source is not None:
        _source.set(str(source))
    if topic is not None:
        _topic.set(str(topic))
    if batch_id is not None:
        _batch_id.set(str(batch_id))


def get_log_context() -> Dict[str, str]:
    return {
        "subscriber_id": _subscriber_id.get(),
        "source": _source.get(),
        "topic": _topic.get(),
        "batch_id": _batch_id.get(),
    }


def clear_log_context() -> None:
    _subscriber_id.set("")
    _source.set("")
    _topic.set("")
    _batch_id.set("")
