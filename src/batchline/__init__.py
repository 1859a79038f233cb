"""
batchline: stateless batch subscribers for publish/subscribe sources.

A subscriber class declares its options; the blueprint builder resolves them
against environment defaults into an immutable Blueprint; the source's
adapter turns the blueprint into a ChildSpec a supervisor can start.

    >>> from batchline import BaseSubscriber, Source, register_source
    >>> from batchline.adapters import InMemoryAdapter
    >>> register_source(Source(name="orders", adapter=InMemoryAdapter(), otp_app="shop"))
    >>> class OrderSubscriber(BaseSubscriber):
    ...     options = {"source": "orders"}
    ...     def handle_message(self, topic, data, metadata, context):
    ...         print(topic, data)
    >>> OrderSubscriber.blueprint().otp_app
    'shop'
"""

from batchline.blueprint import (
    SUBSCRIBER_SCHEMA,
    Blueprint,
    BlueprintBuilder,
    ConfigResult,
    Raw,
    Resolved,
    build_blueprint,
    read_config,
)
from batchline.child_spec import OVERRIDABLE_KEYS, ChildSpec, child_spec, child_spec_for
from batchline.source import (
    Source,
    clear_sources,
    get_source,
    register_source,
    resolve_source,
    source_config,
    subscriber_child_spec,
    unregister_source,
)
from batchline.subscriber import Batch, BaseSubscriber, Subscriber

__version__ = "0.1.0"

__all__ = [
    # Blueprints
    "SUBSCRIBER_SCHEMA",
    "Blueprint",
    "BlueprintBuilder",
    "ConfigResult",
    "Raw",
    "Resolved",
    "build_blueprint",
    "read_config",
    # Subscribers
    "Batch",
    "BaseSubscriber",
    "Subscriber",
    # Process specs
    "OVERRIDABLE_KEYS",
    "ChildSpec",
    "child_spec",
    "child_spec_for",
    # Sources
    "Source",
    "register_source",
    "unregister_source",
    "clear_sources",
    "get_source",
    "resolve_source",
    "source_config",
    "subscriber_child_spec",
]
