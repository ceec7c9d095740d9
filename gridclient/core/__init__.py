"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions for the client:
- Result monads for validation helpers
- Error hierarchy, one exception class per error kind
- Configuration management with validation
"""

from gridclient.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
)
from gridclient.core.errors import (
    ErrorCode,
    GridError,
    ModeError,
    TransactionTimeoutError,
    ClosedError,
    StaleStateError,
    KeyNotSupportedError,
    TypeMismatchError,
    IndexConflictError,
    UnsupportedIndexError,
    TriggerValidationError,
    ValidationError,
    QuerySyntaxError,
)
from gridclient.core.config import GridClientConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "ErrorCode",
    "GridError",
    "ModeError",
    "TransactionTimeoutError",
    "ClosedError",
    "StaleStateError",
    "KeyNotSupportedError",
    "TypeMismatchError",
    "IndexConflictError",
    "UnsupportedIndexError",
    "TriggerValidationError",
    "ValidationError",
    "QuerySyntaxError",
    "GridClientConfig",
]
