"""
Core types and protocols used across modules.

This module provides base types, enums, and protocol definitions that are
shared across the core library to ensure consistency and type safety.
"""

from enum import Enum
from typing import Any, Mapping, Optional, Protocol


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        CONFIGURATION: Blueprint or environment configuration is invalid
                       (schema violations, missing config functions,
                       unresolved cross references). Never retried.
        HANDLER: A subscriber callback failed while dispatching a batch.
                 The adapter decides whether to redeliver.
        TRANSIENT: Temporary adapter failures (broker connection, timeouts)
        UNKNOWN: Unclassified errors
    """

    CONFIGURATION = "configuration"
    HANDLER = "handler"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


class ConfigProvider(Protocol):
    """
    Protocol for read-only environment configuration stores.

    A provider maps a (scope, key) pair to the option mapping configured for
    it, e.g. ("my_app", "subscriber") -> {"start_opts": {...}}.
    """

    def lookup(self, scope: str, key: str) -> Optional[Mapping[str, Any]]:
        """
        Look up the options configured for a scope/key pair.

        Args:
            scope: Application scope (framework name or an otp_app)
            key: Contract key within the scope (e.g. "subscriber")

        Returns:
            Mapping of option values, or None if nothing is configured
        """
        ...


__all__ = [
    "ErrorCategory",
    "ConfigProvider",
]
