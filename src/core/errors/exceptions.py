"""
Unified exception hierarchy for batchline.

Provides typed exceptions with an error category so adapters and callers
can decide how to react (fail fast on configuration, redeliver on handler
errors) without string matching.
"""

from typing import Any

# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class SubscriberError(Exception):
    """
    Base exception for all subscriber framework errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for handling decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Blueprint Construction Errors
# =============================================================================


class BlueprintError(SubscriberError):
    """Base class for errors raised while building a blueprint."""

    category = ErrorCategory.CONFIGURATION


class SchemaError(BlueprintError):
    """An option is missing, unknown, or fails its type constraint."""

    def __init__(self, key: str, expected: str, received: Any = None, message: str | None = None):
        self.key = key
        self.expected = expected
        self.received = received
        super().__init__(
            message or f"Invalid option '{key}': expected {expected}, got {received!r}",
            context={"key": key, "expected": expected},
        )


class NoConfigFunctionError(BlueprintError):
    """A class used as a configuration source exposes no config() accessor."""

    def __init__(self, module: Any):
        self.module = module
        name = getattr(module, "__qualname__", repr(module))
        super().__init__(
            f"{name} does not define a config() function",
            context={"module": name},
        )


class UnresolvedDependencyError(BlueprintError):
    """A cross-referenced default could not be resolved."""

    def __init__(self, field: str, source_reason: Any):
        self.field = field
        self.source_reason = source_reason
        super().__init__(
            f"Could not resolve '{field}': {source_reason}",
            cause=source_reason if isinstance(source_reason, Exception) else None,
            context={"field": field},
        )


class SourceNotFoundError(SubscriberError):
    """No source is registered under the requested name."""

    category = ErrorCategory.CONFIGURATION

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No source registered under '{name}'", context={"source": name})


# =============================================================================
# Runtime Errors
# =============================================================================


class HandlerError(SubscriberError):
    """A message or batch handler failed. Carries the original reason."""

    category = ErrorCategory.HANDLER

    def __init__(
        self,
        reason: Any,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.reason = reason
        if cause is None and isinstance(reason, Exception):
            cause = reason
        super().__init__(f"Handler failed: {reason}", cause=cause, context=context)

    def __str__(self) -> str:
        return self.message


class AdapterError(SubscriberError):
    """Error from an adapter while starting or running a subscriber process."""

    category = ErrorCategory.TRANSIENT


def wrap_handler_error(exc: Exception, context: dict | None = None) -> HandlerError:
    """Wrap an exception raised by a handler in a HandlerError.

    HandlerErrors pass through unchanged (context is merged in).
    """
    if isinstance(exc, HandlerError):
        if context:
            exc.context.update(context)
        return exc

    context = dict(context or {})
    context.setdefault("error_type", type(exc).__name__)
    return HandlerError(exc, cause=exc, context=context)
