"""In-memory adapter.

Runs subscribers in the calling thread and lets tests or local tooling hand
batches to them directly. Outcomes are recorded per process.

Usage:
    >>> adapter = InMemoryAdapter()
    >>> register_source(Source(name="orders", adapter=adapter, otp_app="shop"))
    >>> OrderSubscriber.child_spec().start_child()
    >>> adapter.deliver("orders.created", [({"id": 1}, {"offset": 0})])
    [BatchOutcome(subscriber_id=..., topic='orders.created', size=1, error=None)]
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from core.errors import AdapterError, HandlerError, wrap_handler_error
from core.logging import get_logger, log_exception, log_with_context, set_log_context
from batchline.child_spec import ChildSpec

if TYPE_CHECKING:
    from batchline.blueprint import Blueprint
    from batchline.source import Source
    from batchline.subscriber import Batch

logger = get_logger(__name__)


@dataclass(frozen=True)
class BatchOutcome:
    """Result of handing one batch to one subscriber."""

    subscriber_id: Any
    topic: str
    size: int
    error: Optional[HandlerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class InMemorySubscriberProcess:
    """A started subscriber: its instance, its context and its outcomes."""

    def __init__(self, source: "Source", blueprint: "Blueprint"):
        self.source = source
        self.blueprint = blueprint
        self.subscriber = blueprint.module()
        self.context: Any = None
        self.outcomes: List[BatchOutcome] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def topics(self) -> Optional[List[str]]:
        topics = self.blueprint.start_opts.get("topics")
        return list(topics) if topics is not None else None

    def subscribes_to(self, topic: str) -> bool:
        topics = self.topics
        return topics is None or topic in topics

    def start(self) -> "InMemorySubscriberProcess":
        """Initialize the subscriber context.

        Raises:
            AdapterError: If the subscriber's init() fails
        """
        try:
            self.context = self.subscriber.init(self.blueprint)
        except Exception as e:
            raise AdapterError(
                f"Subscriber {self.blueprint.id!r} failed to initialize",
                cause=e,
                context={"source": self.source.name},
            ) from e

        self._running = True
        log_with_context(
            logger,
            logging.INFO,
            "Started in-memory subscriber",
            subscriber_module=self.blueprint.module.__qualname__,
            source_name=self.source.name,
        )
        return self

    def deliver(self, topic: str, batch: "Batch") -> BatchOutcome:
        """Hand a batch to the subscriber and record the outcome.

        Raises:
            AdapterError: If the process is not running
        """
        if not self._running:
            raise AdapterError(f"Subscriber {self.blueprint.id!r} is not running")

        batch = list(batch)
        set_log_context(subscriber_id=self.blueprint.id, topic=topic)
        start = time.perf_counter()
        error: Optional[HandlerError] = None
        try:
            self.subscriber.handle_batch(topic, batch, self.context)
        except Exception as e:
            error = wrap_handler_error(e, {"topic": topic})
            log_exception(
                logger,
                error,
                "Batch failed",
                level=logging.WARNING,
                include_traceback=False,
                message_topic=topic,
                batch_size=len(batch),
            )

        outcome = BatchOutcome(
            subscriber_id=self.blueprint.id,
            topic=topic,
            size=len(batch),
            error=error,
        )
        self.outcomes.append(outcome)
        log_with_context(
            logger,
            logging.DEBUG,
            "Batch delivered",
            message_topic=topic,
            batch_size=len(batch),
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        return outcome

    def stop(self) -> None:
        self._running = False


class InMemoryAdapter:
    """Adapter keeping subscriber processes in a dict keyed by subscriber id."""

    def __init__(self):
        self.processes: Dict[Any, InMemorySubscriberProcess] = {}

    def subscriber_child_spec(self, source: "Source", blueprint: "Blueprint") -> ChildSpec:
        return ChildSpec(
            id=blueprint.id,
            start=self.start_subscriber,
            args=(source, blueprint),
            shutdown_ms=int(blueprint.start_opts.get("shutdown_ms", 5000)),
        )

    def start_subscriber(self, source: "Source", blueprint: "Blueprint") -> InMemorySubscriberProcess:
        if blueprint.id in self.processes and self.processes[blueprint.id].is_running:
            raise AdapterError(f"Subscriber {blueprint.id!r} is already running")

        process = InMemorySubscriberProcess(source, blueprint).start()
        self.processes[blueprint.id] = process
        return process

    def stop_subscriber(self, subscriber_id: Any) -> None:
        process = self.processes.pop(subscriber_id, None)
        if process is not None:
            process.stop()

    def deliver(self, topic: str, batch: "Batch") -> List[BatchOutcome]:
        """Deliver a batch to every running subscriber of the topic."""
        if not batch:
            raise ValueError("batch must contain at least one message")

        return [
            process.deliver(topic, batch)
            for process in list(self.processes.values())
            if process.is_running and process.subscribes_to(topic)
        ]
