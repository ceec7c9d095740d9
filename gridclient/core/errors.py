"""
Error Hierarchy for the Grid Container Client

Every failure the client can report is a GridError subclass carrying:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause chain for root cause analysis
- Timestamp for correlation with server-side logs

Error kinds map one-to-one onto exception classes so callers can write
``except ModeError`` instead of inspecting codes. Factories on each class
build the message and context for one concrete failure.

Usage:
    try:
        await container.get(key, for_update=True)
    except ModeError:
        await container.set_auto_commit(False)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from gridclient.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Transaction / session errors
    - 2xxx: Row access errors
    - 3xxx: Schema (container, index, trigger) errors
    - 4xxx: Query errors
    - 9xxx: Internal errors
    """

    # Transaction errors (1xxx)
    TRANSACTION_MODE = 1001
    TRANSACTION_TIMEOUT = 1002
    TRANSACTION_CLOSED = 1003
    TRANSACTION_STALE_STATE = 1004

    # Row errors (2xxx)
    ROW_KEY_NOT_SUPPORTED = 2001
    ROW_TYPE_MISMATCH = 2002

    # Schema errors (3xxx)
    SCHEMA_INDEX_CONFLICT = 3001
    SCHEMA_UNSUPPORTED_INDEX = 3002
    SCHEMA_TRIGGER_VALIDATION = 3003
    SCHEMA_VALIDATION = 3004

    # Query errors (4xxx)
    QUERY_SYNTAX = 4001

    # Internal errors (9xxx)
    INTERNAL_ERROR = 9001


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass(eq=False)
class GridError(Exception):
    """
    Base class for all client errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for structured logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# TRANSACTION / SESSION ERRORS
# =============================================================================
@dataclass(eq=False)
class ModeError(GridError):
    """Operation is invalid for the current commit mode."""

    @classmethod
    def requires_manual_commit(cls, operation: str) -> ModeError:
        return cls(
            code=ErrorCode.TRANSACTION_MODE,
            message=f"'{operation}' is not allowed in auto-commit mode",
            context={"operation": operation},
        )


@dataclass(eq=False)
class TransactionTimeoutError(GridError):
    """
    Transaction, lock or connection deadline exceeded.

    Always implies the transaction was implicitly aborted.
    """

    @classmethod
    def deadline_exceeded(
        cls,
        operation: str,
        timeout_ms: int,
        cause: Optional[BaseException] = None,
    ) -> TransactionTimeoutError:
        return cls(
            code=ErrorCode.TRANSACTION_TIMEOUT,
            message=(
                f"Transaction deadline exceeded during '{operation}' "
                f"(timeout={timeout_ms}ms); transaction aborted"
            ),
            cause=cause,
            context={"operation": operation, "timeout_ms": timeout_ms},
        )

    @classmethod
    def lock_wait(cls, container: str, key: Any, timeout_ms: int) -> TransactionTimeoutError:
        return cls(
            code=ErrorCode.TRANSACTION_TIMEOUT,
            message=(
                f"Timed out waiting for update lock on row {key!r} "
                f"of container '{container}' (timeout={timeout_ms}ms)"
            ),
            context={"container": container, "key": repr(key), "timeout_ms": timeout_ms},
        )


@dataclass(eq=False)
class ClosedError(GridError):
    """Operation attempted after the session was closed."""

    @classmethod
    def session_closed(cls, operation: str, container: Optional[str] = None) -> ClosedError:
        return cls(
            code=ErrorCode.TRANSACTION_CLOSED,
            message=f"Cannot '{operation}': container session is closed",
            context={"operation": operation, "container": container},
        )


@dataclass(eq=False)
class StaleStateError(GridError):
    """Container was dropped or its schema changed concurrently."""

    @classmethod
    def container_dropped(cls, container: str) -> StaleStateError:
        return cls(
            code=ErrorCode.TRANSACTION_STALE_STATE,
            message=f"Container '{container}' no longer exists",
            context={"container": container},
        )

    @classmethod
    def schema_changed(
        cls,
        container: str,
        expected_version: int,
        actual_version: int,
    ) -> StaleStateError:
        return cls(
            code=ErrorCode.TRANSACTION_STALE_STATE,
            message=(
                f"Schema of container '{container}' changed "
                f"(bound version {expected_version}, current {actual_version})"
            ),
            context={
                "container": container,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


# =============================================================================
# ROW ERRORS
# =============================================================================
@dataclass(eq=False)
class KeyNotSupportedError(GridError):
    """Key-based operation on a container without a row key column."""

    @classmethod
    def no_row_key(cls, container: str, operation: str) -> KeyNotSupportedError:
        return cls(
            code=ErrorCode.ROW_KEY_NOT_SUPPORTED,
            message=f"Container '{container}' has no row key; '{operation}' by key is not supported",
            context={"container": container, "operation": operation},
        )


@dataclass(eq=False)
class TypeMismatchError(GridError):
    """A key or row value does not conform to the bound schema."""

    @classmethod
    def column_value(
        cls,
        column: str,
        expected: str,
        value: Any,
        reason: Optional[str] = None,
    ) -> TypeMismatchError:
        detail = f": {reason}" if reason else ""
        return cls(
            code=ErrorCode.ROW_TYPE_MISMATCH,
            message=f"Value {value!r} does not conform to column '{column}' ({expected}){detail}",
            context={"column": column, "expected": expected, "value": repr(value)[:100]},
        )

    @classmethod
    def row_shape(cls, expected: str, actual: Any) -> TypeMismatchError:
        return cls(
            code=ErrorCode.ROW_TYPE_MISMATCH,
            message=f"Expected row of type {expected}, got {type(actual).__name__}",
            context={"expected": expected, "actual": type(actual).__name__},
        )


# =============================================================================
# SCHEMA ERRORS
# =============================================================================
@dataclass(eq=False)
class IndexConflictError(GridError):
    """A named index collides with an existing, different index."""

    @classmethod
    def name_in_use(cls, name: str, existing: str, requested: str) -> IndexConflictError:
        return cls(
            code=ErrorCode.SCHEMA_INDEX_CONFLICT,
            message=f"Index name '{name}' already used by {existing}; requested {requested}",
            context={"name": name, "existing": existing, "requested": requested},
        )


@dataclass(eq=False)
class UnsupportedIndexError(GridError):
    """Index type not supported for the column or container type."""

    @classmethod
    def unsupported(cls, column: str, column_type: str, index_type: str, reason: str) -> UnsupportedIndexError:
        return cls(
            code=ErrorCode.SCHEMA_UNSUPPORTED_INDEX,
            message=f"Cannot create {index_type} index on column '{column}' ({column_type}): {reason}",
            context={"column": column, "column_type": column_type, "index_type": index_type},
        )


@dataclass(eq=False)
class TriggerValidationError(GridError):
    """Trigger definition is malformed or collides with another trigger."""

    @classmethod
    def invalid(cls, trigger: Optional[str], reason: str) -> TriggerValidationError:
        return cls(
            code=ErrorCode.SCHEMA_TRIGGER_VALIDATION,
            message=f"Invalid trigger '{trigger}': {reason}",
            context={"trigger": trigger, "reason": reason},
        )

    @classmethod
    def name_conflict(cls, requested: str, existing: str) -> TriggerValidationError:
        return cls(
            code=ErrorCode.SCHEMA_TRIGGER_VALIDATION,
            message=f"Trigger name '{requested}' collides with existing trigger '{existing}'",
            context={"requested": requested, "existing": existing},
        )


@dataclass(eq=False)
class ValidationError(GridError):
    """Malformed configuration or schema value, detected locally."""

    @classmethod
    def invalid_value(cls, field_name: str, value: Any, reason: str) -> ValidationError:
        return cls(
            code=ErrorCode.SCHEMA_VALIDATION,
            message=f"Invalid {field_name} {value!r}: {reason}",
            context={"field": field_name, "value": repr(value)[:100], "reason": reason},
        )


# =============================================================================
# QUERY ERRORS
# =============================================================================
@dataclass(eq=False)
class QuerySyntaxError(GridError):
    """TQL statement could not be parsed or executed as requested."""

    @classmethod
    def malformed(cls, statement: str, reason: str, position: Optional[int] = None) -> QuerySyntaxError:
        where = f" at position {position}" if position is not None else ""
        return cls(
            code=ErrorCode.QUERY_SYNTAX,
            message=f"Malformed TQL{where}: {reason}",
            context={"statement": statement[:200], "position": position},
        )
