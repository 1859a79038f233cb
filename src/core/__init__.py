"""
Core library: Reusable, infrastructure-agnostic components.

Modules:
    logging     - Structured JSON/console logging with subscriber context
    errors      - Error classification and exception hierarchy
    utils       - Serialization helpers

Design Principles:
    - No dependencies on a specific message broker
    - All modules are independently testable
    - Type hints throughout
"""

from .types import ConfigProvider, ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
    "ConfigProvider",
]
