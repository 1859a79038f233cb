"""Stateless batch subscribers.

A subscriber receives batches of (data, metadata) pairs for a topic and
either handles the whole batch or raises. The contract is three calls:

    config()                              -> Resolved(blueprint) | Raw(options)
    init(blueprint)                       -> context
    handle_batch(topic, batch, context)   -> None, raises HandlerError on failure

BaseSubscriber provides defaults for all of them. Concrete subscribers set
`options` and implement `handle_message`; `handle_error` may be overridden
to recover from a failed message.

Usage:
    >>> class OrderSubscriber(BaseSubscriber[dict]):
    ...     options = {"source": "orders", "subscriber_opts": {"table": "orders"}}
    ...
    ...     def handle_message(self, topic, data, metadata, context):
    ...         save(context["table"], data)
    ...
    ...     def handle_error(self, error, topic, data, metadata, context):
    ...         if not isinstance(error.reason, DuplicateOrder):
    ...             raise error
    >>>
    >>> spec = OrderSubscriber.child_spec(start_opts={"topics": ["orders.created"]})
"""

import logging
from typing import Any, ClassVar, Generic, Mapping, Optional, Protocol, Sequence, Tuple, TypeVar

from core.errors import HandlerError, wrap_handler_error
from core.logging import get_logger, log_exception, log_with_context
from core.types import ConfigProvider
from batchline.blueprint import Blueprint, ConfigResult, Raw, Resolved, build_blueprint
from batchline.child_spec import ChildSpec, child_spec_for

logger = get_logger(__name__)

T = TypeVar("T")

# A non-empty ordered sequence of (message data, message metadata) pairs
Batch = Sequence[Tuple[Any, Any]]


class Subscriber(Protocol):
    """Capabilities every subscriber implementation provides."""

    @classmethod
    def config(cls) -> ConfigResult:
        ...

    def init(self, blueprint: Blueprint) -> Any:
        ...

    def handle_batch(self, topic: str, batch: Batch, context: Any) -> None:
        ...


class BaseSubscriber(Generic[T]):
    """Default subscriber implementation.

    Subclasses override what they need:
    - options: authored configuration returned by config()
    - init(): build the context (default: subscriber_opts)
    - handle_message(): process one message (required unless
      handle_batch is overridden)
    - handle_error(): recover from a failed message (default: re-raise)
    """

    options: ClassVar[Mapping[str, Any]] = {}

    @classmethod
    def config(cls) -> ConfigResult:
        return Raw(dict(cls.options))

    @classmethod
    def blueprint(cls, provider: Optional[ConfigProvider] = None) -> Blueprint[T]:
        return build_blueprint(cls, provider)

    @classmethod
    def child_spec(cls, **overrides: Any) -> ChildSpec:
        return child_spec_for(cls, overrides)

    def init(self, blueprint: Blueprint[T]) -> Any:
        return blueprint.subscriber_opts

    def handle_batch(self, topic: str, batch: Batch, context: Any) -> None:
        """Dispatch a batch message by message, in order.

        Any iterable of (data, metadata) pairs is accepted and read once.
        A message whose handle_message raises is passed to handle_error. If
        handle_error returns, dispatch moves on to the next message; if it
        raises, dispatch stops and the error is raised from here. Remaining
        messages are not processed.

        Raises:
            HandlerError: The first failure handle_error did not recover
            ValueError: If the batch is empty
        """
        batch = list(batch)
        if not batch:
            raise ValueError("batch must contain at least one message")

        for index, (data, metadata) in enumerate(batch):
            try:
                self.handle_message(topic, data, metadata, context)
            except Exception as e:
                error = wrap_handler_error(e, {"topic": topic, "message_index": index})
                self._recover(error, topic, data, metadata, context, index, len(batch))

    def _recover(
        self,
        error: HandlerError,
        topic: str,
        data: Any,
        metadata: Any,
        context: Any,
        index: int,
        batch_size: int,
    ) -> None:
        try:
            self.handle_error(error, topic, data, metadata, context)
        except Exception as e:
            unhandled = wrap_handler_error(e, {"topic": topic, "message_index": index})
            log_exception(
                logger,
                unhandled,
                "Batch dispatch halted on unhandled error",
                level=logging.ERROR,
                include_traceback=False,
                message_topic=topic,
                message_index=index,
                batch_size=batch_size,
            )
            if unhandled is e:
                raise
            raise unhandled from e

        log_with_context(
            logger,
            logging.WARNING,
            "Recovered from message handler error",
            message_topic=topic,
            message_index=index,
            batch_size=batch_size,
            error_message=str(error.reason),
        )

    def handle_message(self, topic: str, data: Any, metadata: Any, context: Any) -> None:
        raise NotImplementedError(
            f"{type(self).__qualname__} must implement handle_message() or override handle_batch()"
        )

    def handle_error(
        self,
        error: HandlerError,
        topic: str,
        data: Any,
        metadata: Any,
        context: Any,
    ) -> None:
        raise error


__all__ = [
    "Batch",
    "BaseSubscriber",
    "ConfigResult",
    "Raw",
    "Resolved",
    "Subscriber",
]
