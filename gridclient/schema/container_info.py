"""
Container Info Model

Describes a container's name, type, column layout, row-key presence,
index and trigger lists, time-series options and data affinity hint.

Design:
- Setters copy their input into owned immutable sequences (copy-on-write-in)
- Getters expose those sequences directly; they cannot be mutated
- Data affinity is syntax-checked at set time
- Column-count and row-key invariants are checked only when a container
  is materialized (check_materializable), so a transiently invalid info
  may exist in memory
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from gridclient.core import constants as C
from gridclient.core.errors import ValidationError
from gridclient.core.types import Result, Ok, Err
from gridclient.schema.columns import ColumnInfo, ColumnType
from gridclient.schema.index_info import IndexInfo
from gridclient.schema.symbols import (
    check_column_name,
    check_container_name,
    check_data_affinity,
    normalize,
)
from gridclient.schema.trigger_info import TriggerInfo


class ContainerType(Enum):
    COLLECTION = "COLLECTION"
    TIME_SERIES = "TIME_SERIES"


class TimeUnit(Enum):
    DAY = "DAY"
    HOUR = "HOUR"
    MINUTE = "MINUTE"
    SECOND = "SECOND"
    MILLISECOND = "MILLISECOND"


class CompressionMethod(Enum):
    NO = "NO"
    SS = "SS"
    HI = "HI"


# =============================================================================
# TIME-SERIES PROPERTIES
# =============================================================================
class TimeSeriesProperties:
    """
    Optional settings of a time-series container.

    Numeric fields use -1 for "not set". Setters validate immediately.
    """

    __slots__ = (
        "_row_expiration_time",
        "_row_expiration_time_unit",
        "_expiration_division_count",
        "_compression_method",
        "_compression_window_size",
        "_compression_window_size_unit",
    )

    def __init__(self) -> None:
        self._row_expiration_time: int = C.UNSET
        self._row_expiration_time_unit: Optional[TimeUnit] = None
        self._expiration_division_count: int = C.UNSET
        self._compression_method: CompressionMethod = CompressionMethod.NO
        self._compression_window_size: int = C.UNSET
        self._compression_window_size_unit: Optional[TimeUnit] = None

    @property
    def row_expiration_time(self) -> int:
        return self._row_expiration_time

    @property
    def row_expiration_time_unit(self) -> Optional[TimeUnit]:
        return self._row_expiration_time_unit

    def set_row_expiration_time(self, elapsed: int, unit: TimeUnit) -> None:
        if elapsed <= 0:
            raise ValidationError.invalid_value(
                "row expiration time", elapsed, "must be positive"
            )
        if unit is None:
            raise ValidationError.invalid_value("row expiration time unit", unit, "is required")
        self._row_expiration_time = elapsed
        self._row_expiration_time_unit = unit

    @property
    def expiration_division_count(self) -> int:
        return self._expiration_division_count

    @expiration_division_count.setter
    def expiration_division_count(self, count: int) -> None:
        if count != C.UNSET and not (1 <= count <= C.MAX_EXPIRATION_DIVISION_COUNT):
            raise ValidationError.invalid_value(
                "expiration division count",
                count,
                f"must be between 1 and {C.MAX_EXPIRATION_DIVISION_COUNT}",
            )
        self._expiration_division_count = count

    @property
    def compression_method(self) -> CompressionMethod:
        return self._compression_method

    @compression_method.setter
    def compression_method(self, method: CompressionMethod) -> None:
        if not isinstance(method, CompressionMethod):
            raise ValidationError.invalid_value("compression method", method, "unknown method")
        self._compression_method = method

    @property
    def compression_window_size(self) -> int:
        return self._compression_window_size

    @property
    def compression_window_size_unit(self) -> Optional[TimeUnit]:
        return self._compression_window_size_unit

    def set_compression_window_size(self, size: int, unit: TimeUnit) -> None:
        if size <= 0:
            raise ValidationError.invalid_value(
                "compression window size", size, "must be positive"
            )
        if unit is None:
            raise ValidationError.invalid_value("compression window unit", unit, "is required")
        self._compression_window_size = size
        self._compression_window_size_unit = unit

    def copy(self) -> TimeSeriesProperties:
        clone = TimeSeriesProperties()
        for slot in self.__slots__:
            setattr(clone, slot, getattr(self, slot))
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeSeriesProperties):
            return NotImplemented
        return all(getattr(self, s) == getattr(other, s) for s in self.__slots__)

    def __repr__(self) -> str:
        return (
            f"TimeSeriesProperties(expiration={self._row_expiration_time}"
            f"{'' if self._row_expiration_time_unit is None else self._row_expiration_time_unit.value}, "
            f"compression={self._compression_method.value})"
        )


# =============================================================================
# CONTAINER INFO
# =============================================================================
class ContainerInfo:
    """
    Description of a container, used to request creation or describe
    a fetched container.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        type: Optional[ContainerType] = None,
        columns: Iterable[ColumnInfo] = (),
        row_key_assigned: bool = False,
        index_infos: Iterable[IndexInfo] = (),
        trigger_infos: Iterable[TriggerInfo] = (),
        time_series_properties: Optional[TimeSeriesProperties] = None,
        column_order_ignorable: bool = False,
        data_affinity: Optional[str] = None,
    ) -> None:
        self.name = name
        self.type = type
        self._columns: tuple[ColumnInfo, ...] = tuple(columns)
        self.row_key_assigned = row_key_assigned
        self._index_infos: tuple[IndexInfo, ...] = tuple(index_infos)
        self._trigger_infos: tuple[TriggerInfo, ...] = tuple(trigger_infos)
        self._time_series_properties: Optional[TimeSeriesProperties] = None
        self.time_series_properties = time_series_properties
        self.column_order_ignorable = column_order_ignorable
        self._data_affinity: Optional[str] = None
        self.data_affinity = data_affinity

    # -------------------------------------------------------------------------
    # Sequences (stored as owned tuples)
    # -------------------------------------------------------------------------
    @property
    def columns(self) -> tuple[ColumnInfo, ...]:
        return self._columns

    @columns.setter
    def columns(self, columns: Iterable[ColumnInfo]) -> None:
        self._columns = tuple(columns)

    @property
    def index_infos(self) -> tuple[IndexInfo, ...]:
        return self._index_infos

    @index_infos.setter
    def index_infos(self, infos: Iterable[IndexInfo]) -> None:
        self._index_infos = tuple(infos)

    @property
    def trigger_infos(self) -> tuple[TriggerInfo, ...]:
        return self._trigger_infos

    @trigger_infos.setter
    def trigger_infos(self, infos: Iterable[TriggerInfo]) -> None:
        self._trigger_infos = tuple(infos)

    @property
    def time_series_properties(self) -> Optional[TimeSeriesProperties]:
        if self._time_series_properties is None:
            return None
        return self._time_series_properties.copy()

    @time_series_properties.setter
    def time_series_properties(self, props: Optional[TimeSeriesProperties]) -> None:
        self._time_series_properties = None if props is None else props.copy()

    @property
    def data_affinity(self) -> Optional[str]:
        return self._data_affinity

    @data_affinity.setter
    def data_affinity(self, value: Optional[str]) -> None:
        if value is not None:
            check_data_affinity(value).unwrap()
        self._data_affinity = value

    # -------------------------------------------------------------------------
    # Column access
    # -------------------------------------------------------------------------
    @property
    def column_count(self) -> int:
        return len(self._columns)

    def get_column(self, number: int) -> ColumnInfo:
        if not 0 <= number < len(self._columns):
            raise ValidationError.invalid_value(
                "column number", number, f"out of range (count={len(self._columns)})"
            )
        return self._columns[number]

    def find_column(self, name: str) -> Optional[int]:
        """Column number for a name, compared case-insensitively."""
        wanted = normalize(name)
        for number, column in enumerate(self._columns):
            if normalize(column.name) == wanted:
                return number
        return None

    def is_row_key(self, number: int) -> bool:
        return self.row_key_assigned and number == 0

    def is_nullable(self, number: int) -> bool:
        return self._columns[number].is_nullable(self.is_row_key(number))

    # -------------------------------------------------------------------------
    # Materialization
    # -------------------------------------------------------------------------
    def check_materializable(self) -> Result[None, ValidationError]:
        """Check the invariants a container must satisfy to exist."""
        if self.name is None:
            return Err(ValidationError.invalid_value("container name", None, "is required"))
        name_result = check_container_name(self.name)
        if name_result.is_err():
            return name_result
        if self.type is None:
            return Err(ValidationError.invalid_value("container type", None, "is required"))

        count = len(self._columns)
        if not C.MIN_COLUMN_COUNT <= count <= C.MAX_COLUMN_COUNT:
            return Err(ValidationError.invalid_value(
                "column count",
                count,
                f"must be between {C.MIN_COLUMN_COUNT} and {C.MAX_COLUMN_COUNT}",
            ))

        seen: set[str] = set()
        for column in self._columns:
            column_result = check_column_name(column.name)
            if column_result.is_err():
                return column_result
            key = normalize(column.name)
            if key in seen:
                return Err(ValidationError.invalid_value(
                    "column name", column.name, "duplicated (case-insensitive)"
                ))
            seen.add(key)

        if self.row_key_assigned:
            key_column = self._columns[0]
            if not key_column.type.is_key_capable:
                return Err(ValidationError.invalid_value(
                    "row key type", key_column.type.value, "type cannot be a row key"
                ))
            if key_column.nullable:
                return Err(ValidationError.invalid_value(
                    "row key column", key_column.name, "row key cannot be nullable"
                ))

        if self.type is ContainerType.TIME_SERIES:
            if not self.row_key_assigned or self._columns[0].type is not ColumnType.TIMESTAMP:
                return Err(ValidationError.invalid_value(
                    "container layout",
                    self.name,
                    "time-series containers need a TIMESTAMP row key",
                ))
        elif self._time_series_properties is not None:
            return Err(ValidationError.invalid_value(
                "time series properties", self.name, "only allowed for time-series containers"
            ))
        return Ok(None)

    def same_layout(self, other: ContainerInfo) -> bool:
        """Whether two infos describe the same column layout."""
        if self.type != other.type or self.row_key_assigned != other.row_key_assigned:
            return False
        if len(self._columns) != len(other._columns):
            return False
        mine = [self._column_signature(i) for i in range(len(self._columns))]
        theirs = [other._column_signature(i) for i in range(len(other._columns))]
        if self.column_order_ignorable:
            # Row key stays pinned to column 0.
            return mine[:1] == theirs[:1] and sorted(mine[1:]) == sorted(theirs[1:])
        return mine == theirs

    def _column_signature(self, number: int) -> tuple[str, str, bool]:
        column = self._columns[number]
        return (normalize(column.name), column.type.value, self.is_nullable(number))

    # -------------------------------------------------------------------------
    # Copying
    # -------------------------------------------------------------------------
    def copy(self) -> ContainerInfo:
        return ContainerInfo(
            name=self.name,
            type=self.type,
            columns=self._columns,
            row_key_assigned=self.row_key_assigned,
            index_infos=self._index_infos,
            trigger_infos=self._trigger_infos,
            time_series_properties=self._time_series_properties,
            column_order_ignorable=self.column_order_ignorable,
            data_affinity=self._data_affinity,
        )

    __copy__ = copy

    def __repr__(self) -> str:
        type_name = None if self.type is None else self.type.value
        return (
            f"ContainerInfo(name={self.name!r}, type={type_name}, "
            f"columns={len(self._columns)}, row_key={self.row_key_assigned})"
        )
