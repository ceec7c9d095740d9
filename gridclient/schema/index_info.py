"""
Index Specifications

An IndexInfo identifies a column by name and/or number, an index type and
an optional index name. Unset fields act as wildcards when dropping.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class IndexType(Enum):
    """Index kinds. DEFAULT is resolved per column and container type."""

    DEFAULT = "DEFAULT"
    TREE = "TREE"
    HASH = "HASH"
    SPATIAL = "SPATIAL"


@dataclass(frozen=True, slots=True)
class IndexInfo:
    """
    Index request.

    Frozen so that an IndexInfo attached to a ContainerInfo cannot be
    modified afterwards.
    """

    column_name: Optional[str] = None
    column: Optional[int] = None
    type: Optional[IndexType] = None
    name: Optional[str] = None

    @classmethod
    def for_column(
        cls,
        column_name: str,
        index_type: Optional[IndexType] = None,
        name: Optional[str] = None,
    ) -> IndexInfo:
        return cls(column_name=column_name, type=index_type, name=name)

    @classmethod
    def named(cls, name: str) -> IndexInfo:
        return cls(name=name)

    @property
    def has_column_reference(self) -> bool:
        return self.column_name is not None or self.column is not None

    def describe(self) -> str:
        parts = []
        if self.name is not None:
            parts.append(f"name={self.name}")
        if self.column_name is not None:
            parts.append(f"column={self.column_name}")
        if self.column is not None:
            parts.append(f"column#={self.column}")
        if self.type is not None:
            parts.append(f"type={self.type.value}")
        return "index(" + ", ".join(parts) + ")"
