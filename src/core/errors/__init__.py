"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- SubscriberError hierarchy for typed exceptions
- wrap_handler_error for normalizing handler failures
"""

from core.errors.exceptions import (
    AdapterError,
    BlueprintError,
    # Enums
    ErrorCategory,
    HandlerError,
    NoConfigFunctionError,
    SchemaError,
    SourceNotFoundError,
    # Base classes
    SubscriberError,
    UnresolvedDependencyError,
    # Utilities
    wrap_handler_error,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "SubscriberError",
    "BlueprintError",
    # Blueprint errors
    "SchemaError",
    "NoConfigFunctionError",
    "UnresolvedDependencyError",
    "SourceNotFoundError",
    # Runtime errors
    "HandlerError",
    "AdapterError",
    # Utilities
    "wrap_handler_error",
]
