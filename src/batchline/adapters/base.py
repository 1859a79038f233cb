"""Adapter protocol.

An adapter owns how subscribers attached to a source are started and how
batches reach them. The core only asks it for a process spec.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from batchline.blueprint import Blueprint
    from batchline.child_spec import ChildSpec
    from batchline.source import Source


class SourceAdapter(Protocol):
    """Protocol for source adapters."""

    def subscriber_child_spec(self, source: "Source", blueprint: "Blueprint") -> "ChildSpec":
        """
        Build the process spec for a subscriber attached to source.

        Args:
            source: The resolved source the subscriber reads from
            blueprint: The subscriber's resolved blueprint

        Returns:
            ChildSpec whose start callable creates the subscriber process
        """
        ...
