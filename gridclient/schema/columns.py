"""
Column Types and Column Layout

The fixed column type set is a tagged enumeration; each member knows its
element type (for arrays), whether it may serve as a row key, and its
type-specific empty value.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

EPOCH: datetime = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ColumnType(Enum):
    """Column value types supported by a container schema."""

    STRING = "STRING"
    BOOL = "BOOL"
    BYTE = "BYTE"
    SHORT = "SHORT"
    INTEGER = "INTEGER"
    LONG = "LONG"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    TIMESTAMP = "TIMESTAMP"
    GEOMETRY = "GEOMETRY"
    BLOB = "BLOB"
    STRING_ARRAY = "STRING_ARRAY"
    BOOL_ARRAY = "BOOL_ARRAY"
    BYTE_ARRAY = "BYTE_ARRAY"
    SHORT_ARRAY = "SHORT_ARRAY"
    INTEGER_ARRAY = "INTEGER_ARRAY"
    LONG_ARRAY = "LONG_ARRAY"
    FLOAT_ARRAY = "FLOAT_ARRAY"
    DOUBLE_ARRAY = "DOUBLE_ARRAY"
    TIMESTAMP_ARRAY = "TIMESTAMP_ARRAY"

    @property
    def is_array(self) -> bool:
        return self.value.endswith("_ARRAY")

    @property
    def element_type(self) -> ColumnType:
        """Element type for arrays, the type itself otherwise."""
        if self.is_array:
            return ColumnType(self.value[: -len("_ARRAY")])
        return self

    @property
    def is_integral(self) -> bool:
        return self in _INTEGRAL_TYPES

    @property
    def is_numeric(self) -> bool:
        return self in _INTEGRAL_TYPES or self in (ColumnType.FLOAT, ColumnType.DOUBLE)

    @property
    def is_key_capable(self) -> bool:
        """Types that may be used for the row key column."""
        return self in (
            ColumnType.STRING,
            ColumnType.INTEGER,
            ColumnType.LONG,
            ColumnType.TIMESTAMP,
        )

    def empty_value(self) -> Any:
        """Type-specific empty value used where null cannot be represented."""
        if self.is_array:
            return ()
        return _EMPTY_VALUES[self]


_INTEGRAL_TYPES = frozenset({
    ColumnType.BYTE,
    ColumnType.SHORT,
    ColumnType.INTEGER,
    ColumnType.LONG,
})

_EMPTY_VALUES: dict[ColumnType, Any] = {
    ColumnType.STRING: "",
    ColumnType.BOOL: False,
    ColumnType.BYTE: 0,
    ColumnType.SHORT: 0,
    ColumnType.INTEGER: 0,
    ColumnType.LONG: 0,
    ColumnType.FLOAT: 0.0,
    ColumnType.DOUBLE: 0.0,
    ColumnType.TIMESTAMP: EPOCH,
    ColumnType.GEOMETRY: "POINT(EMPTY)",
    ColumnType.BLOB: b"",
}


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """
    Name and type of one column.

    ``nullable`` of None means "not specified": the row key column is then
    NOT NULL and every other column is nullable.
    """

    name: str
    type: ColumnType
    nullable: Optional[bool] = None

    def is_nullable(self, is_row_key: bool) -> bool:
        if is_row_key:
            return False
        return True if self.nullable is None else self.nullable

    def __repr__(self) -> str:
        suffix = "" if self.nullable is None else (" NULL" if self.nullable else " NOT NULL")
        return f"ColumnInfo({self.name} {self.type.value}{suffix})"
