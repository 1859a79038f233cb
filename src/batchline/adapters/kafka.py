"""
Kafka adapter.

Runs a subscriber on top of an aiokafka consumer:
- Records are fetched with getmany() and handed over one partition batch at
  a time, in offset order
- Offsets are committed manually after the subscriber handles a batch
- A failed batch is not committed; the consumer seeks back to its first
  offset so the batch is delivered again on the next poll
- Graceful shutdown via stop()

Source adapter_opts carry connection settings (bootstrap_servers,
security_protocol, sasl_*). Blueprint start_opts carry the subscriber's
consumer settings:

    topics              list of topics (required)
    group_id            consumer group (default: "<otp_app>.<subscriber id>")
    auto_offset_reset   "earliest" | "latest" | "none" (default: earliest)
    max_poll_records    max records per poll (default: 100)
    poll_timeout_ms     getmany() timeout (default: 1000)
    retry_backoff_ms    pause after a failed batch (default: 1000)
    session_timeout_ms, heartbeat_interval_ms, max_poll_interval_ms,
    fetch_min_bytes, fetch_max_wait_ms   passed through when present
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from aiokafka import AIOKafkaConsumer
from aiokafka.structs import ConsumerRecord, TopicPartition

from core.errors import AdapterError, wrap_handler_error
from core.logging import get_logger, log_exception, log_with_context, set_log_context
from batchline.child_spec import ChildSpec

if TYPE_CHECKING:
    from batchline.blueprint import Blueprint
    from batchline.source import Source

logger = get_logger(__name__)

# Consumer settings copied from start_opts only when present
OPTIONAL_CONSUMER_SETTINGS = (
    "heartbeat_interval_ms",
    "session_timeout_ms",
    "max_poll_interval_ms",
    "fetch_min_bytes",
    "fetch_max_wait_ms",
)

# Connection settings copied from source adapter_opts only when present
CONNECTION_SETTINGS = (
    "security_protocol",
    "sasl_mechanism",
    "sasl_plain_username",
    "sasl_plain_password",
    "request_timeout_ms",
    "metadata_max_age_ms",
    "connections_max_idle_ms",
    "client_id",
)


@dataclass(frozen=True)
class KafkaMetadata:
    """Metadata of a Kafka record handed to subscribers alongside its value.

    All fields are immutable (frozen=True) so metadata can be shared safely
    between the consumer loop and handler threads.

    Attributes:
        topic: Topic the record was read from
        partition: Partition number
        offset: Offset within the partition
        timestamp: Record timestamp in milliseconds since Unix epoch
        key: Optional record key as raw bytes
        headers: Optional list of (name, value) header tuples
    """

    topic: str
    partition: int
    offset: int
    timestamp: int
    key: bytes | None = None
    headers: list[tuple[str, bytes]] | None = None


def from_consumer_record(record: ConsumerRecord) -> Tuple[Any, KafkaMetadata]:
    """Convert an aiokafka ConsumerRecord into a (data, metadata) batch entry."""
    headers = None
    if getattr(record, "headers", None):
        headers = [(k, v) for k, v in record.headers]

    metadata = KafkaMetadata(
        topic=record.topic,
        partition=record.partition,
        offset=record.offset,
        timestamp=record.timestamp,
        key=record.key,
        headers=headers,
    )
    return record.value, metadata


class KafkaSubscriberWorker:
    """
    Subscriber process reading batches from Kafka.

    Usage:
        >>> worker = KafkaAdapter().subscriber_child_spec(source, blueprint).start_child()
        >>> task = asyncio.create_task(worker.run())
        >>> ...
        >>> await worker.stop()
    """

    def __init__(
        self,
        source: "Source",
        blueprint: "Blueprint",
        consumer_factory: Callable[..., AIOKafkaConsumer] = AIOKafkaConsumer,
    ):
        start_opts = blueprint.start_opts
        topics = start_opts.get("topics")
        if isinstance(topics, str):
            topics = [topics]
        if not topics:
            raise ValueError("At least one topic must be specified in start_opts['topics']")

        bootstrap_servers = source.adapter_opts.get("bootstrap_servers")
        if not bootstrap_servers:
            raise ValueError(f"Source '{source.name}' has no bootstrap_servers in adapter_opts")

        self.source = source
        self.blueprint = blueprint
        self.topics = list(topics)
        self.group_id = start_opts.get("group_id") or f"{blueprint.otp_app}.{_id_name(blueprint.id)}"
        self.poll_timeout_ms = int(start_opts.get("poll_timeout_ms", 1000))
        self.retry_backoff_ms = int(start_opts.get("retry_backoff_ms", 1000))
        self.subscriber = blueprint.module()
        self.context: Any = None
        self.batches_handled = 0
        self.batches_failed = 0

        self._consumer_factory = consumer_factory
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._running = False

        log_with_context(
            logger,
            logging.INFO,
            "Initialized Kafka subscriber",
            subscriber_module=blueprint.module.__qualname__,
            source_name=source.name,
            topics=self.topics,
            group_id=self.group_id,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def consumer_config(self) -> Dict[str, Any]:
        """Build the aiokafka consumer configuration."""
        start_opts = self.blueprint.start_opts
        config: Dict[str, Any] = {
            "bootstrap_servers": self.source.adapter_opts["bootstrap_servers"],
            "group_id": self.group_id,
            "enable_auto_commit": False,
            "auto_offset_reset": start_opts.get("auto_offset_reset", "earliest"),
            "max_poll_records": int(start_opts.get("max_poll_records", 100)),
        }

        for key in OPTIONAL_CONSUMER_SETTINGS:
            if key in start_opts:
                config[key] = start_opts[key]

        for key in CONNECTION_SETTINGS:
            if key in self.source.adapter_opts:
                config[key] = self.source.adapter_opts[key]

        return config

    async def run(self) -> None:
        """
        Initialize the subscriber, connect, and consume until stop() is called.

        Raises:
            AdapterError: If init() fails or the consumer cannot start
        """
        if self._running:
            logger.warning("Subscriber already running, ignoring duplicate start call")
            return

        set_log_context(subscriber_id=self.blueprint.id, source=self.source.name)

        try:
            self.context = await asyncio.to_thread(self.subscriber.init, self.blueprint)
        except Exception as e:
            raise AdapterError(
                f"Subscriber {self.blueprint.id!r} failed to initialize", cause=e
            ) from e

        self._consumer = self._consumer_factory(*self.topics, **self.consumer_config())
        try:
            await self._consumer.start()
        except Exception as e:
            self._consumer = None
            raise AdapterError("Kafka consumer failed to start", cause=e) from e

        self._running = True
        log_with_context(
            logger,
            logging.INFO,
            "Kafka subscriber started",
            topics=self.topics,
            group_id=self.group_id,
        )

        try:
            await self._consume_loop()
        except asyncio.CancelledError:
            logger.info("Consumer loop cancelled, shutting down")
            raise
        finally:
            self._running = False
            await self._close_consumer()

    async def stop(self) -> None:
        """Stop consuming. The current batch is finished first. Safe to call multiple times."""
        if not self._running:
            logger.debug("Subscriber not running or already stopped")
            return
        logger.info("Stopping Kafka subscriber")
        self._running = False

    async def _close_consumer(self) -> None:
        if self._consumer is None:
            return
        try:
            await self._consumer.stop()
            logger.info("Kafka subscriber stopped successfully")
        except Exception as e:
            log_exception(logger, e, "Error stopping Kafka consumer")
            raise
        finally:
            self._consumer = None

    async def _consume_loop(self) -> None:
        while self._running and self._consumer is not None:
            try:
                data = await self._consumer.getmany(timeout_ms=self.poll_timeout_ms)
            except Exception as e:
                log_exception(logger, e, "Error fetching records", group_id=self.group_id)
                # Keep polling; the consumer reconnects on its own
                await asyncio.sleep(self.retry_backoff_ms / 1000)
                continue

            for topic_partition, records in data.items():
                if not self._running:
                    logger.info("Subscriber stopped, breaking batch loop")
                    return
                if not records:
                    continue

                handled = await self.handle_records(topic_partition, records)
                if not handled and self._running:
                    await asyncio.sleep(self.retry_backoff_ms / 1000)

    async def handle_records(self, topic_partition: TopicPartition, records: List[ConsumerRecord]) -> bool:
        """Hand one partition's records to the subscriber as a batch.

        Commits past the last record on success; seeks back to the first
        record on failure.

        Returns:
            True if the batch was handled
        """
        topic = topic_partition.topic
        batch = [from_consumer_record(record) for record in records]
        set_log_context(topic=topic, batch_id=f"{topic}:{topic_partition.partition}:{records[0].offset}")
        start = time.perf_counter()

        try:
            await asyncio.to_thread(self.subscriber.handle_batch, topic, batch, self.context)
        except Exception as e:
            error = wrap_handler_error(e, {"topic": topic})
            self.batches_failed += 1
            log_exception(
                logger,
                error,
                "Batch failed, rewinding for redelivery",
                level=logging.WARNING,
                include_traceback=False,
                message_topic=topic,
                message_partition=topic_partition.partition,
                message_offset=records[0].offset,
                batch_size=len(batch),
            )
            self._consumer.seek(topic_partition, records[0].offset)
            return False

        await self._consumer.commit({topic_partition: records[-1].offset + 1})
        self.batches_handled += 1
        log_with_context(
            logger,
            logging.DEBUG,
            "Batch handled",
            message_topic=topic,
            message_partition=topic_partition.partition,
            message_offset=records[-1].offset,
            batch_size=len(batch),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return True


def _id_name(subscriber_id: Any) -> str:
    if isinstance(subscriber_id, type):
        return f"{subscriber_id.__module__}.{subscriber_id.__qualname__}"
    return str(subscriber_id)


class KafkaAdapter:
    """Adapter starting a KafkaSubscriberWorker per subscriber."""

    def __init__(self, consumer_factory: Callable[..., AIOKafkaConsumer] = AIOKafkaConsumer):
        self._consumer_factory = consumer_factory

    def subscriber_child_spec(self, source: "Source", blueprint: "Blueprint") -> ChildSpec:
        return ChildSpec(
            id=blueprint.id,
            start=self.start_subscriber,
            args=(source, blueprint),
            shutdown_ms=int(blueprint.start_opts.get("shutdown_ms", 5000)),
        )

    def start_subscriber(self, source: "Source", blueprint: "Blueprint") -> KafkaSubscriberWorker:
        return KafkaSubscriberWorker(source, blueprint, consumer_factory=self._consumer_factory)
