"""
Source adapters.

Provides:
- SourceAdapter protocol
- InMemoryAdapter for tests and local tooling
- KafkaAdapter running subscribers on aiokafka consumers
"""

from batchline.adapters.base import SourceAdapter
from batchline.adapters.kafka import (
    KafkaAdapter,
    KafkaMetadata,
    KafkaSubscriberWorker,
    from_consumer_record,
)
from batchline.adapters.memory import BatchOutcome, InMemoryAdapter, InMemorySubscriberProcess

__all__ = [
    "SourceAdapter",
    "InMemoryAdapter",
    "InMemorySubscriberProcess",
    "BatchOutcome",
    "KafkaAdapter",
    "KafkaSubscriberWorker",
    "KafkaMetadata",
    "from_consumer_record",
]
