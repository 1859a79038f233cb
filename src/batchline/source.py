"""Message sources and the source registry.

A Source names an upstream message-distribution unit and the adapter that
knows how to attach subscribers to it. Subscribers refer to a source either
by its registered name or by the Source itself.

Usage:
    >>> from batchline.adapters import InMemoryAdapter
    >>> orders = register_source(Source(name="orders", adapter=InMemoryAdapter(), otp_app="shop"))
    >>> source_config("orders", "otp_app")
    'shop'
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from core.errors import SourceNotFoundError

if TYPE_CHECKING:
    from batchline.adapters.base import SourceAdapter
    from batchline.blueprint import Blueprint
    from batchline.child_spec import ChildSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Source:
    """Upstream message-distribution unit.

    Attributes:
        name: Unique source name used for registry lookups
        adapter: Adapter that builds subscriber process specs for this source
        otp_app: Owning application; subscribers default their otp_app to it
        adapter_opts: Adapter-specific connection settings (e.g. bootstrap servers)
    """

    name: str
    adapter: "SourceAdapter"
    otp_app: Optional[str] = None
    adapter_opts: Mapping[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.name


_sources: Dict[str, Source] = {}
_sources_lock = threading.Lock()


def register_source(source: Source) -> Source:
    """Register a source under its name, replacing any previous one."""
    with _sources_lock:
        if source.name in _sources:
            logger.warning("Replacing registered source", extra={"source_name": source.name})
        _sources[source.name] = source
    return source


def unregister_source(name: str) -> None:
    with _sources_lock:
        _sources.pop(name, None)


def clear_sources() -> None:
    """Remove every registered source (useful for testing)."""
    with _sources_lock:
        _sources.clear()


def get_source(name: str) -> Source:
    """Look up a registered source.

    Raises:
        SourceNotFoundError: If no source is registered under name
    """
    try:
        return _sources[name]
    except KeyError:
        raise SourceNotFoundError(name) from None


def resolve_source(source: Union[str, Source]) -> Source:
    if isinstance(source, Source):
        return source
    return get_source(source)


def source_config(source: Union[str, Source], key: str) -> Any:
    """Read a configuration field from a source.

    Raises:
        SourceNotFoundError: If source is a name nobody registered
        KeyError: If the source has no such field
    """
    resolved = resolve_source(source)
    if key not in resolved.__dataclass_fields__:
        raise KeyError(f"Source '{resolved.name}' has no config key '{key}'")
    return getattr(resolved, key)


def subscriber_child_spec(source: Union[str, Source], blueprint: "Blueprint") -> "ChildSpec":
    """Ask the source's adapter for the process spec of a subscriber."""
    resolved = resolve_source(source)
    return resolved.adapter.subscriber_child_spec(resolved, blueprint)
