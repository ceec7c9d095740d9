"""
Index Directive Engine

Decides whether an index create or drop request is a no-op, a conflict, or
a genuine mutation, given the indexes that already exist on a container.

Identity:
- Two index requests denote the same index iff they resolve to the same
  column and the same effective type (DEFAULT resolved through the
  column-type / container-type table)
- Index names compare case-insensitively

Create rules:
- Named request whose name is taken by a different column/type: conflict
- Named request whose name differs only in case from an existing name: conflict
- Request equivalent to an existing index: no-op
- Otherwise: create

Drop rules:
- Unset fields (column, type, name) are wildcards
- Every index matching all set fields is removed; zero matches is a no-op
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Sequence

from gridclient.core.errors import (
    GridError,
    IndexConflictError,
    UnsupportedIndexError,
    ValidationError,
)
from gridclient.core.types import Result, Ok, Err
from gridclient.schema.columns import ColumnType
from gridclient.schema.container_info import ContainerInfo, ContainerType
from gridclient.schema.index_info import IndexInfo, IndexType
from gridclient.schema.symbols import check_index_name, normalize


# =============================================================================
# RESOLVED INDEX
# =============================================================================
@dataclass(frozen=True, slots=True)
class ResolvedIndex:
    """An index with its column and type fully resolved."""

    column: int
    column_name: str
    type: IndexType
    name: Optional[str] = None

    @property
    def identity(self) -> tuple[int, IndexType]:
        return (self.column, self.type)

    def to_info(self) -> IndexInfo:
        return IndexInfo(
            column_name=self.column_name,
            column=self.column,
            type=self.type,
            name=self.name,
        )

    def describe(self) -> str:
        return f"{self.type.value} index on '{self.column_name}'"


class IndexAction(Enum):
    NOOP = auto()
    CREATE = auto()


@dataclass(frozen=True, slots=True)
class IndexPlan:
    action: IndexAction
    index: ResolvedIndex


# =============================================================================
# SUPPORT TABLE
# =============================================================================
_PLAIN_TYPES = frozenset({
    ColumnType.STRING,
    ColumnType.BOOL,
    ColumnType.BYTE,
    ColumnType.SHORT,
    ColumnType.INTEGER,
    ColumnType.LONG,
    ColumnType.FLOAT,
    ColumnType.DOUBLE,
    ColumnType.TIMESTAMP,
})


def default_index_type(column_type: ColumnType, container_type: ContainerType) -> Optional[IndexType]:
    """Index type that DEFAULT resolves to; None where no index is possible."""
    if column_type in _PLAIN_TYPES:
        return IndexType.TREE
    if column_type is ColumnType.GEOMETRY and container_type is ContainerType.COLLECTION:
        return IndexType.SPATIAL
    return None


def is_supported(column_type: ColumnType, container_type: ContainerType, index_type: IndexType) -> bool:
    if index_type is IndexType.TREE:
        return column_type in _PLAIN_TYPES
    if index_type is IndexType.HASH:
        return column_type in _PLAIN_TYPES and container_type is ContainerType.COLLECTION
    if index_type is IndexType.SPATIAL:
        return column_type is ColumnType.GEOMETRY and container_type is ContainerType.COLLECTION
    return False


# =============================================================================
# ENGINE
# =============================================================================
class IndexDirectiveEngine:
    """Pure planning logic over one container layout."""

    def __init__(self, info: ContainerInfo) -> None:
        self._info = info

    def resolve_column(self, index_info: IndexInfo) -> Result[int, GridError]:
        """Column number for a request; name and number must agree if both set."""
        by_name: Optional[int] = None
        if index_info.column_name is not None:
            by_name = self._info.find_column(index_info.column_name)
            if by_name is None:
                return Err(ValidationError.invalid_value(
                    "index column", index_info.column_name, "no such column"
                ))
        if index_info.column is not None:
            if not 0 <= index_info.column < self._info.column_count:
                return Err(ValidationError.invalid_value(
                    "index column number", index_info.column, "out of range"
                ))
            if by_name is not None and by_name != index_info.column:
                return Err(ValidationError.invalid_value(
                    "index column",
                    (index_info.column_name, index_info.column),
                    "column name and number refer to different columns",
                ))
            return Ok(index_info.column)
        if by_name is None:
            return Err(ValidationError.invalid_value("index column", None, "column is required"))
        return Ok(by_name)

    def resolve_type(self, column: int, requested: Optional[IndexType]) -> Result[IndexType, GridError]:
        column_info = self._info.get_column(column)
        container_type = self._info.type or ContainerType.COLLECTION
        index_type = requested or IndexType.DEFAULT

        if container_type is ContainerType.TIME_SERIES and self._info.is_row_key(column):
            return Err(UnsupportedIndexError.unsupported(
                column_info.name,
                column_info.type.value,
                index_type.value,
                "the row key of a time-series container is not indexable",
            ))

        if index_type is IndexType.DEFAULT:
            resolved = default_index_type(column_info.type, container_type)
            if resolved is None:
                return Err(UnsupportedIndexError.unsupported(
                    column_info.name,
                    column_info.type.value,
                    index_type.value,
                    "no index type available for this column type",
                ))
            return Ok(resolved)

        if not is_supported(column_info.type, container_type, index_type):
            return Err(UnsupportedIndexError.unsupported(
                column_info.name,
                column_info.type.value,
                index_type.value,
                f"not supported on {container_type.value} containers",
            ))
        return Ok(index_type)

    def resolve(self, index_info: IndexInfo) -> Result[ResolvedIndex, GridError]:
        if index_info.name is not None:
            name_result = check_index_name(index_info.name)
            if name_result.is_err():
                return name_result
        column_result = self.resolve_column(index_info)
        if column_result.is_err():
            return column_result
        column = column_result.unwrap()
        type_result = self.resolve_type(column, index_info.type)
        if type_result.is_err():
            return type_result
        return Ok(ResolvedIndex(
            column=column,
            column_name=self._info.get_column(column).name,
            type=type_result.unwrap(),
            name=index_info.name,
        ))

    def plan_create(
        self,
        index_info: IndexInfo,
        existing: Sequence[ResolvedIndex],
    ) -> Result[IndexPlan, GridError]:
        resolved_result = self.resolve(index_info)
        if resolved_result.is_err():
            return resolved_result
        requested = resolved_result.unwrap()

        if requested.name is not None:
            wanted = normalize(requested.name)
            for index in existing:
                if index.name is None or normalize(index.name) != wanted:
                    continue
                if index.identity != requested.identity:
                    return Err(IndexConflictError.name_in_use(
                        requested.name, index.describe(), requested.describe()
                    ))
                if index.name != requested.name:
                    return Err(IndexConflictError.name_in_use(
                        requested.name,
                        f"{index.describe()} named '{index.name}'",
                        requested.describe(),
                    ))
                return Ok(IndexPlan(IndexAction.NOOP, index))

        for index in existing:
            if index.identity == requested.identity:
                return Ok(IndexPlan(IndexAction.NOOP, index))

        return Ok(IndexPlan(IndexAction.CREATE, requested))

    def plan_drop(
        self,
        index_info: IndexInfo,
        existing: Sequence[ResolvedIndex],
    ) -> Result[list[ResolvedIndex], GridError]:
        """Indexes that match every set field of ``index_info``."""
        column: Optional[int] = None
        if index_info.has_column_reference:
            column_result = self.resolve_column(index_info)
            if column_result.is_err():
                return column_result
            column = column_result.unwrap()

        container_type = self._info.type or ContainerType.COLLECTION
        wanted_name = None if index_info.name is None else normalize(index_info.name)

        matches = []
        for index in existing:
            if column is not None and index.column != column:
                continue
            if index_info.type is IndexType.DEFAULT:
                column_type = self._info.get_column(index.column).type
                if index.type is not default_index_type(column_type, container_type):
                    continue
            elif index_info.type is not None and index.type is not index_info.type:
                continue
            if wanted_name is not None and (index.name is None or normalize(index.name) != wanted_name):
                continue
            matches.append(index)
        return Ok(matches)

    def rebind(self, index: ResolvedIndex, new_info: ContainerInfo) -> Optional[ResolvedIndex]:
        """Re-resolve an index against a changed layout; None if it no longer applies."""
        column = new_info.find_column(index.column_name)
        if column is None:
            return None
        result = IndexDirectiveEngine(new_info).resolve_type(column, index.type)
        if result.is_err():
            return None
        return ResolvedIndex(
            column=column,
            column_name=new_info.get_column(column).name,
            type=result.unwrap(),
            name=index.name,
        )
