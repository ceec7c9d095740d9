"""
Core Type Definitions for the Grid Container Client

Ok/Err results used by the validation layer and a
millisecond-aware Timestamp used for transaction deadlines.

Design Principles:
- Validation helpers return Result values; the public facade raises
- Never use null for absence in internal contracts (use Optional or Result)
- Timestamps are plain integers underneath for cheap comparison
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type


# =============================================================================
# RESULT
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Validated value."""

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Rejected value. ``error`` is usually a GridError the facade raises
    through ``unwrap()``.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Raises:
            The wrapped exception, or RuntimeError for plain values
        """
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"unwrap() on Err: {self.error}")


Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP WITH NANOSECOND PRECISION
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    High-precision timestamp for deadlines and event ordering.

    Stores nanoseconds since Unix epoch. Supports comparison and
    millisecond arithmetic, which is all the transaction layer needs.
    """

    nanos: int

    @classmethod
    def now(cls) -> Timestamp:
        """Capture current wall-clock time with nanosecond precision."""
        return cls(nanos=time.time_ns())

    @classmethod
    def from_millis(cls, millis: int) -> Timestamp:
        """Convert milliseconds to Timestamp."""
        return cls(nanos=millis * 1_000_000)

    @property
    def millis(self) -> int:
        """Convert to milliseconds (truncating)."""
        return self.nanos // 1_000_000

    @property
    def seconds(self) -> float:
        """Convert to floating-point seconds."""
        return self.nanos / 1_000_000_000

    def plus_millis(self, millis: int) -> Timestamp:
        """Timestamp shifted forward by the given milliseconds."""
        result = self.nanos + millis * 1_000_000
        if result < 0:
            raise OverflowError("Timestamp underflow")
        return Timestamp(nanos=result)

    def remaining_seconds(self, now: Timestamp) -> float:
        """Seconds until this timestamp, floored at zero."""
        return max(0.0, (self.nanos - now.nanos) / 1_000_000_000)

    def __sub__(self, other: Timestamp) -> int:
        """Subtract timestamps, returning difference in nanos."""
        return self.nanos - other.nanos

    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# Clock signature used wherever deadlines are evaluated; injectable in tests.
Clock = Callable[[], Timestamp]
