"""
Narrow TQL Evaluator

Grammar (keywords case-insensitive):

    statement  := SELECT projection [FROM name] [WHERE cond {AND cond}]
                  [ORDER BY column [ASC|DESC]] [LIMIT n [OFFSET m]]
    projection := '*' | COUNT '(' '*' ')' | (MIN|MAX|SUM|AVG) '(' column ')'
    cond       := column op literal
    op         := '=' | '!=' | '<>' | '<' | '<=' | '>' | '>='
    literal    := number | 'string' | TRUE | FALSE | TIMESTAMP('iso-8601')

Conditions on a null column value are false. Parsing and evaluation errors
raise QuerySyntaxError.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Final, Optional, Sequence

from gridclient.core.errors import QuerySyntaxError
from gridclient.schema.columns import ColumnType
from gridclient.schema.container_info import ContainerInfo
from gridclient.schema.symbols import normalize

# =============================================================================
# TOKENS
# =============================================================================
_TOKEN_PATTERN: Final = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<string>'(?:[^']|'')*')
    |(?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<op><=|>=|<>|!=|=|<|>)
    |(?P<delim>[(),*])
    """,
    re.VERBOSE,
)

_KEYWORDS: Final = frozenset({
    "SELECT", "FROM", "WHERE", "AND", "ORDER", "BY", "ASC", "DESC",
    "LIMIT", "OFFSET", "TRUE", "FALSE", "TIMESTAMP",
    "COUNT", "MIN", "MAX", "SUM", "AVG",
})


@dataclass(frozen=True, slots=True)
class Token:
    kind: str
    value: str
    position: int


def tokenize(statement: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(statement):
        match = _TOKEN_PATTERN.match(statement, pos)
        if match is None:
            raise QuerySyntaxError.malformed(
                statement, f"unexpected character {statement[pos]!r}", pos
            )
        kind = match.lastgroup or ""
        if kind != "ws":
            value = match.group(kind)
            if kind == "ident" and value.upper() in _KEYWORDS:
                tokens.append(Token("keyword", value.upper(), pos))
            else:
                tokens.append(Token(kind, value, pos))
        pos = match.end()
    tokens.append(Token("eof", "", len(statement)))
    return tokens


# =============================================================================
# STATEMENT MODEL
# =============================================================================
class AggregationKind(Enum):
    COUNT = "COUNT"
    MIN = "MIN"
    MAX = "MAX"
    SUM = "SUM"
    AVG = "AVG"


@dataclass(frozen=True, slots=True)
class Aggregate:
    kind: AggregationKind
    column: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Condition:
    column: int
    op: str
    literal: Any


@dataclass(frozen=True, slots=True)
class TqlStatement:
    text: str
    aggregate: Optional[Aggregate]
    conditions: tuple[Condition, ...]
    order_by: Optional[int] = None
    descending: bool = False
    limit: Optional[int] = None
    offset: int = 0

    @property
    def is_aggregation(self) -> bool:
        return self.aggregate is not None


_COMPARATORS: Final[dict[str, Callable[[Any, Any], bool]]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<>": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


# =============================================================================
# PARSER
# =============================================================================
class _Parser:
    def __init__(self, statement: str, info: ContainerInfo) -> None:
        self._text = statement
        self._info = info
        self._tokens = tokenize(statement)
        self._pos = 0

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _next(self) -> Token:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _error(self, reason: str, token: Optional[Token] = None) -> QuerySyntaxError:
        token = token or self._peek()
        return QuerySyntaxError.malformed(self._text, reason, token.position)

    def _accept(self, kind: str, value: Optional[str] = None) -> Optional[Token]:
        token = self._peek()
        if token.kind == kind and (value is None or token.value == value):
            return self._next()
        return None

    def _expect(self, kind: str, value: Optional[str] = None) -> Token:
        token = self._accept(kind, value)
        if token is None:
            expected = value or kind
            found = self._peek().value or "end of statement"
            raise self._error(f"expected {expected}, found {found!r}")
        return token

    def _column(self) -> int:
        token = self._peek()
        if token.kind != "ident":
            raise self._error("expected column name")
        self._next()
        number = self._info.find_column(token.value)
        if number is None:
            raise self._error(f"unknown column '{token.value}'", token)
        return number

    def parse(self) -> TqlStatement:
        self._expect("keyword", "SELECT")
        aggregate = self._projection()

        if self._accept("keyword", "FROM"):
            name = self._expect("ident")
            if self._info.name is not None and normalize(name.value) != normalize(self._info.name):
                raise self._error(f"statement targets '{name.value}', not this container", name)

        conditions: list[Condition] = []
        if self._accept("keyword", "WHERE"):
            conditions.append(self._condition())
            while self._accept("keyword", "AND"):
                conditions.append(self._condition())

        order_by = None
        descending = False
        if self._accept("keyword", "ORDER"):
            self._expect("keyword", "BY")
            order_by = self._column()
            self._check_comparable(order_by)
            if self._accept("keyword", "DESC"):
                descending = True
            else:
                self._accept("keyword", "ASC")

        limit = None
        offset = 0
        if self._accept("keyword", "LIMIT"):
            limit = self._non_negative_int()
            if self._accept("keyword", "OFFSET"):
                offset = self._non_negative_int()

        if self._peek().kind != "eof":
            raise self._error(f"unexpected {self._peek().value!r}")

        if aggregate is not None and order_by is not None:
            raise self._error("ORDER BY cannot be combined with an aggregation")

        return TqlStatement(
            text=self._text,
            aggregate=aggregate,
            conditions=tuple(conditions),
            order_by=order_by,
            descending=descending,
            limit=limit,
            offset=offset,
        )

    def _projection(self) -> Optional[Aggregate]:
        if self._accept("delim", "*"):
            return None
        token = self._peek()
        if token.kind != "keyword" or token.value not in AggregationKind.__members__:
            raise self._error("expected '*' or an aggregation")
        self._next()
        kind = AggregationKind(token.value)
        self._expect("delim", "(")
        if kind is AggregationKind.COUNT:
            self._expect("delim", "*")
            self._expect("delim", ")")
            return Aggregate(kind)
        column = self._column()
        column_type = self._info.get_column(column).type
        if kind in (AggregationKind.SUM, AggregationKind.AVG) and not column_type.is_numeric:
            raise self._error(f"{kind.value} needs a numeric column")
        if kind in (AggregationKind.MIN, AggregationKind.MAX):
            if not (column_type.is_numeric or column_type is ColumnType.TIMESTAMP):
                raise self._error(f"{kind.value} needs a numeric or TIMESTAMP column")
        self._expect("delim", ")")
        return Aggregate(kind, column)

    def _condition(self) -> Condition:
        column = self._column()
        self._check_comparable(column)
        op_token = self._expect("op")
        literal = self._literal(self._info.get_column(column).type)
        return Condition(column, op_token.value, literal)

    def _check_comparable(self, column: int) -> None:
        column_type = self._info.get_column(column).type
        if column_type.is_array or column_type in (ColumnType.BLOB, ColumnType.GEOMETRY):
            raise self._error(f"column '{self._info.get_column(column).name}' is not comparable")

    def _literal(self, column_type: ColumnType) -> Any:
        token = self._next()
        if token.kind == "string":
            value: Any = token.value[1:-1].replace("''", "'")
            if column_type is not ColumnType.STRING:
                raise self._error(f"string literal compared with {column_type.value}", token)
            return value
        if token.kind == "number":
            if not column_type.is_numeric:
                raise self._error(f"numeric literal compared with {column_type.value}", token)
            return float(token.value) if any(c in token.value for c in ".eE") else int(token.value)
        if token.kind == "keyword" and token.value in ("TRUE", "FALSE"):
            if column_type is not ColumnType.BOOL:
                raise self._error(f"boolean literal compared with {column_type.value}", token)
            return token.value == "TRUE"
        if token.kind == "keyword" and token.value == "TIMESTAMP":
            self._expect("delim", "(")
            text = self._expect("string")
            self._expect("delim", ")")
            if column_type is not ColumnType.TIMESTAMP:
                raise self._error(f"timestamp literal compared with {column_type.value}", token)
            return _parse_timestamp(text.value[1:-1], self._error(f"invalid timestamp {text.value}", text))
        raise self._error("expected a literal", token)

    def _non_negative_int(self) -> int:
        token = self._expect("number")
        if not token.value.isdigit():
            raise self._error("expected a non-negative integer", token)
        return int(token.value)


def _parse_timestamp(text: str, error: QuerySyntaxError) -> datetime:
    try:
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise error from None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse(statement: str, info: ContainerInfo) -> TqlStatement:
    """Parse a statement against a container layout."""
    if not isinstance(statement, str) or not statement.strip():
        raise QuerySyntaxError.malformed(str(statement), "empty statement")
    return _Parser(statement, info).parse()


# =============================================================================
# EVALUATION
# =============================================================================
def _matches(values: Sequence[Any], conditions: Sequence[Condition]) -> bool:
    for condition in conditions:
        value = values[condition.column]
        if value is None or not _COMPARATORS[condition.op](value, condition.literal):
            return False
    return True


def select_rows(
    statement: TqlStatement,
    rows: Sequence[tuple[Any, tuple[Any, ...]]],
) -> list[tuple[Any, tuple[Any, ...]]]:
    """Filter, order and window ``(row_id, values)`` pairs."""
    selected = [row for row in rows if _matches(row[1], statement.conditions)]
    if statement.order_by is not None:
        column = statement.order_by
        nulls = [row for row in selected if row[1][column] is None]
        present = [row for row in selected if row[1][column] is not None]
        present.sort(key=lambda row: row[1][column], reverse=statement.descending)
        selected = present + nulls if statement.descending else nulls + present
    end = None if statement.limit is None else statement.offset + statement.limit
    return selected[statement.offset:end]


def aggregate(statement: TqlStatement, rows: Sequence[tuple[Any, tuple[Any, ...]]]) -> Any:
    """Compute the aggregation of a statement over matching rows."""
    agg = statement.aggregate
    if agg is None:
        raise QuerySyntaxError.malformed(statement.text, "statement is not an aggregation")
    selected = [values for _, values in rows if _matches(values, statement.conditions)]
    if agg.kind is AggregationKind.COUNT:
        return len(selected)
    present = [values[agg.column] for values in selected if values[agg.column] is not None]
    if not present:
        return None
    if agg.kind is AggregationKind.MIN:
        return min(present)
    if agg.kind is AggregationKind.MAX:
        return max(present)
    total = sum(present)
    if agg.kind is AggregationKind.SUM:
        return total
    return total / len(present)
