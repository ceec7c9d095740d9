"""
Query handles and result sets.

A Query only records the statement; parsing and execution happen at
fetch time, so syntax errors surface from ``fetch()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Iterator, Optional, Sequence, TypeVar

if TYPE_CHECKING:
    from gridclient.session.container import Container

R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class AggregationResult:
    """Single value produced by an aggregation statement (None over no rows)."""

    value: Any

    def get(self) -> Any:
        return self.value


class RowSet(Generic[R]):
    """Fetched rows, iterable once or walked with has_next()/next()."""

    __slots__ = ("_items", "_position")

    def __init__(self, items: Sequence[R]) -> None:
        self._items = tuple(items)
        self._position = 0

    @property
    def size(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def has_next(self) -> bool:
        return self._position < len(self._items)

    def next(self) -> R:
        if not self.has_next():
            raise StopIteration
        item = self._items[self._position]
        self._position += 1
        return item

    def __iter__(self) -> Iterator[R]:
        while self.has_next():
            yield self.next()

    def __repr__(self) -> str:
        return f"RowSet(size={self.size}, position={self._position})"


class Query(Generic[R]):
    """
    A TQL statement bound to one container session.

    Usage:
        query = container.query("SELECT * WHERE value > 10 ORDER BY id")
        rows = await query.fetch()
        for row in rows:
            ...
    """

    __slots__ = ("_container", "_statement", "_result_type")

    def __init__(
        self,
        container: Container[Any, R],
        statement: str,
        result_type: Optional[type] = None,
    ) -> None:
        self._container = container
        self._statement = statement
        self._result_type = result_type

    @property
    def statement(self) -> str:
        return self._statement

    @property
    def result_type(self) -> Optional[type]:
        return self._result_type

    async def fetch(self, for_update: bool = False) -> RowSet[Any]:
        """
        Execute the statement.

        Args:
            for_update: Lock every returned row (manual commit mode only)

        Raises:
            QuerySyntaxError: statement cannot be parsed, or an aggregation
                is fetched for update
            ModeError: ``for_update`` in auto-commit mode
            TypeMismatchError: ``result_type`` does not fit the statement
        """
        return await self._container._fetch(self._statement, self._result_type, for_update)

    def __repr__(self) -> str:
        return f"Query({self._statement!r})"
