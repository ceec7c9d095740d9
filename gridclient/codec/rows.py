"""
Row Codecs

A codec converts between a caller's row value and the column-value tuple
stored by the container:

    encode(row, explicit_key) -> (key, values)
    decode(values)            -> row

Codecs are schema-driven: they are constructed from a ContainerInfo and
never inspect the row type reflectively.

Null handling:
- Absent or None values in columns that cannot hold null become the
  column type's empty value
- A None row key is a TypeMismatchError
- None read back from a NOT NULL column decodes as the empty value
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, TypeVar, Union

from gridclient.codec.values import coerce_value
from gridclient.core.errors import TypeMismatchError
from gridclient.schema.container_info import ContainerInfo

R = TypeVar("R")

ColumnValues = tuple[Any, ...]


class RowCodec(Protocol[R]):
    """Conversion contract between row values and column values."""

    def encode(self, row: R, explicit_key: Any = None) -> tuple[Any, ColumnValues]:
        ...

    def decode(self, values: ColumnValues) -> R:
        ...

    def encode_key(self, key: Any) -> Any:
        ...

    def create_row(self) -> R:
        ...


CodecFactory = Callable[[ContainerInfo], RowCodec[Any]]


# =============================================================================
# ROW VALUE
# =============================================================================
class Row:
    """
    Generic row: an ordered list of column values addressable by column
    number or (case-insensitive) column name.
    """

    __slots__ = ("_names", "_lookup", "_values")

    def __init__(self, column_names: Sequence[str], values: Optional[Sequence[Any]] = None) -> None:
        self._names = tuple(column_names)
        self._lookup = {name.lower(): i for i, name in enumerate(self._names)}
        if values is None:
            values = [None] * len(self._names)
        if len(values) != len(self._names):
            raise TypeMismatchError.row_shape(f"{len(self._names)} columns", values)
        self._values = list(values)

    def _position(self, column: Union[int, str]) -> int:
        if isinstance(column, int):
            if not 0 <= column < len(self._values):
                raise IndexError(f"column number {column} out of range")
            return column
        try:
            return self._lookup[column.lower()]
        except KeyError:
            raise KeyError(f"no column named {column!r}") from None

    def __getitem__(self, column: Union[int, str]) -> Any:
        return self._values[self._position(column)]

    def __setitem__(self, column: Union[int, str], value: Any) -> None:
        self._values[self._position(column)] = value

    def __len__(self) -> int:
        return len(self._values)

    @property
    def column_names(self) -> tuple[str, ...]:
        return self._names

    @property
    def values(self) -> ColumnValues:
        return tuple(self._values)

    def as_dict(self) -> dict[str, Any]:
        return dict(zip(self._names, self._values))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._names == other._names and self._values == other._values

    def __repr__(self) -> str:
        body = ", ".join(f"{n}={v!r}" for n, v in zip(self._names, self._values))
        return f"Row({body})"


# =============================================================================
# CODECS
# =============================================================================
class _SchemaCodec:
    """Shared schema-driven conversion of column value tuples."""

    def __init__(self, info: ContainerInfo) -> None:
        self._info = info
        self._columns = info.columns
        self._names = tuple(c.name for c in info.columns)

    @property
    def has_row_key(self) -> bool:
        return self._info.row_key_assigned

    def encode_key(self, key: Any) -> Any:
        key_column = self._columns[0]
        if key is None:
            raise TypeMismatchError.column_value(
                key_column.name, key_column.type.value, key, "row key cannot be null"
            )
        return coerce_value(key_column.name, key_column.type, key)

    def _encode_values(self, raw: Sequence[Any], explicit_key: Any) -> tuple[Any, ColumnValues]:
        values = []
        for number, (column, value) in enumerate(zip(self._columns, raw)):
            if number == 0 and self.has_row_key:
                if explicit_key is not None:
                    value = explicit_key
                values.append(self.encode_key(value))
            elif value is None:
                values.append(None if self._info.is_nullable(number) else column.type.empty_value())
            else:
                values.append(coerce_value(column.name, column.type, value))
        key = values[0] if self.has_row_key else None
        return key, tuple(values)

    def _decode_values(self, values: ColumnValues) -> list[Any]:
        decoded = []
        for number, (column, value) in enumerate(zip(self._columns, values)):
            if value is None and not self._info.is_nullable(number):
                value = column.type.empty_value()
            decoded.append(value)
        return decoded

    def _initial_values(self) -> list[Any]:
        return [
            None if self._info.is_nullable(n) else c.type.empty_value()
            for n, c in enumerate(self._columns)
        ]


class GenericRowCodec(_SchemaCodec):
    """Rows are ``Row`` objects or plain sequences in column order."""

    def encode(self, row: Union[Row, Sequence[Any]], explicit_key: Any = None) -> tuple[Any, ColumnValues]:
        if isinstance(row, Row):
            raw: Sequence[Any] = row.values
        elif isinstance(row, (list, tuple)):
            raw = row
        else:
            raise TypeMismatchError.row_shape("Row or sequence", row)
        if len(raw) != len(self._columns):
            raise TypeMismatchError.row_shape(f"{len(self._columns)} columns", raw)
        return self._encode_values(raw, explicit_key)

    def decode(self, values: ColumnValues) -> Row:
        return Row(self._names, self._decode_values(values))

    def create_row(self) -> Row:
        return Row(self._names, self._initial_values())


class MappingRowCodec(_SchemaCodec):
    """Rows are mappings of column name to value; missing columns are absent."""

    def encode(self, row: Mapping[str, Any], explicit_key: Any = None) -> tuple[Any, ColumnValues]:
        if not isinstance(row, Mapping):
            raise TypeMismatchError.row_shape("mapping", row)
        by_name = {str(k).lower(): v for k, v in row.items()}
        unknown = set(by_name) - {n.lower() for n in self._names}
        if unknown:
            raise TypeMismatchError.column_value(
                sorted(unknown)[0], "known column", row, "no such column"
            )
        raw = [by_name.get(name.lower()) for name in self._names]
        return self._encode_values(raw, explicit_key)

    def decode(self, values: ColumnValues) -> dict[str, Any]:
        return dict(zip(self._names, self._decode_values(values)))

    def create_row(self) -> dict[str, Any]:
        return dict(zip(self._names, self._initial_values()))
