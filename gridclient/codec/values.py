"""
Column Value Coercion

Checks a Python value against a column type and converts it to the
canonical stored form:

    STRING    -> str              TIMESTAMP -> aware UTC datetime (ms precision)
    BOOL      -> bool             GEOMETRY  -> str (WKT text)
    integral  -> int (range)      BLOB      -> bytes
    FLOAT/DOUBLE -> float         *_ARRAY   -> tuple of coerced elements

Raises TypeMismatchError on any non-conforming value.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from gridclient.codec.blob import Blob
from gridclient.core import constants as C
from gridclient.core.errors import TypeMismatchError
from gridclient.schema.columns import EPOCH, ColumnType

_INTEGRAL_RANGES: dict[ColumnType, tuple[int, int]] = {
    ColumnType.BYTE: (C.BYTE_MIN, C.BYTE_MAX),
    ColumnType.SHORT: (C.SHORT_MIN, C.SHORT_MAX),
    ColumnType.INTEGER: (C.INTEGER_MIN, C.INTEGER_MAX),
    ColumnType.LONG: (C.LONG_MIN, C.LONG_MAX),
}


def coerce_value(column: str, column_type: ColumnType, value: Any) -> Any:
    """Coerce a non-null value to the canonical form of ``column_type``."""
    if column_type.is_array:
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise TypeMismatchError.column_value(column, column_type.value, value, "expected a sequence")
        element_type = column_type.element_type
        elements = []
        for element in value:
            if element is None:
                raise TypeMismatchError.column_value(
                    column, column_type.value, value, "array elements cannot be null"
                )
            elements.append(_coerce_scalar(column, element_type, element))
        return tuple(elements)
    return _coerce_scalar(column, column_type, value)


def _coerce_scalar(column: str, column_type: ColumnType, value: Any) -> Any:
    if column_type is ColumnType.STRING or column_type is ColumnType.GEOMETRY:
        if not isinstance(value, str):
            raise TypeMismatchError.column_value(column, column_type.value, value)
        return value

    if column_type is ColumnType.BOOL:
        if not isinstance(value, bool):
            raise TypeMismatchError.column_value(column, column_type.value, value)
        return value

    if column_type.is_integral:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeMismatchError.column_value(column, column_type.value, value)
        low, high = _INTEGRAL_RANGES[column_type]
        if not low <= value <= high:
            raise TypeMismatchError.column_value(
                column, column_type.value, value, f"out of range [{low}, {high}]"
            )
        return value

    if column_type in (ColumnType.FLOAT, ColumnType.DOUBLE):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeMismatchError.column_value(column, column_type.value, value)
        return float(value)

    if column_type is ColumnType.TIMESTAMP:
        if not isinstance(value, datetime):
            raise TypeMismatchError.column_value(column, column_type.value, value)
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        return value.replace(microsecond=value.microsecond // 1000 * 1000)

    if column_type is ColumnType.BLOB:
        if isinstance(value, Blob):
            return value.get_bytes(0, value.length())
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise TypeMismatchError.column_value(column, column_type.value, value)

    raise TypeMismatchError.column_value(column, column_type.value, value, "unsupported type")


def timestamp_millis(value: datetime) -> int:
    """Epoch milliseconds of a stored TIMESTAMP value."""
    return (value - EPOCH) // timedelta(milliseconds=1)
