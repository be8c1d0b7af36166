"""
Read path: eager synchronous queries and deferred queries that the caller
runs later on a thread of its choosing.
"""

import logging
import re
from enum import Enum
from typing import Any, Callable, Generic, Iterator, List, Sequence, TypeVar

from sqlalchemy.engine import Connection, Row
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import QueryExecutionError, ReadOnlyViolationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RowMapper = Callable[[Row], T]
ConnectionSupplier = Callable[[], Connection]

READ_ONLY_STARTS = (
    "SELECT",
    "WITH",
    "VALUES",
    "TABLE",
    "EXPLAIN",
    "DESCRIBE",
    "SHOW",
    "PRAGMA",
)

# whitespace, opening parentheses and comments ahead of the first keyword
_LEADING_NOISE = re.compile(r"(?:\s|\(|--[^\n]*(?:\n|$)|/\*.*?\*/)*", re.DOTALL)


def enforce_read_only(sql: str) -> None:
    """Blocks any SQL that doesn't start with a read keyword."""
    statement = sql[_LEADING_NOISE.match(sql).end():].upper()
    if not any(statement.startswith(keyword) for keyword in READ_ONLY_STARTS):
        raise ReadOnlyViolationError(
            f"SAFETY BLOCK: Only read-only queries are allowed. "
            f"Attempted: {statement[:50]}..."
        )


def run_query(
    connection_supplier: ConnectionSupplier,
    sql: str,
    parameters: Sequence[Any],
    row_mapper: RowMapper,
) -> List[T]:
    """
    Runs one query on its own connection and maps every row before the
    connection is released. Parameters bind positionally in list order.
    """
    try:
        with connection_supplier() as connection:
            result = connection.exec_driver_sql(sql, tuple(parameters))
            return [row_mapper(row) for row in result]
    except SQLAlchemyError as e:
        logger.error(f"Error querying {sql}: {e}")
        raise QueryExecutionError(f"Error querying {sql}: {e}") from e


class QueryExecutor:
    def __init__(self, connection_supplier: ConnectionSupplier, read_only: bool = True):
        self._connection_supplier = connection_supplier
        self.read_only = read_only

    def execute_query(self, sql: str, parameters: Sequence[Any], row_mapper: RowMapper) -> Iterator[T]:
        if self.read_only:
            enforce_read_only(sql)
        return iter(run_query(self._connection_supplier, sql, parameters, row_mapper))

    def execute_query_async(self, sql: str, parameters: Sequence[Any], row_mapper: RowMapper) -> "DeferredQuery[T]":
        if self.read_only:
            enforce_read_only(sql)
        return DeferredQuery(sql, parameters, row_mapper, self._connection_supplier)


class QueryState(str, Enum):
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"


class DeferredQuery(Generic[T]):
    """
    A fully specified read that has not run yet. Nothing touches the
    database until `stream()` is called; each call runs the query again.
    """

    def __init__(
        self,
        sql: str,
        parameters: Sequence[Any],
        row_mapper: RowMapper,
        connection_supplier: ConnectionSupplier,
    ):
        self.sql = sql
        self.parameters = list(parameters)
        self.row_mapper = row_mapper
        self._connection_supplier = connection_supplier
        self.state = QueryState.NOT_STARTED

    def stream(self) -> Iterator[T]:
        if self.state is QueryState.IN_FLIGHT:
            raise QueryExecutionError(f"Query is already running: {self.sql}")
        self.state = QueryState.IN_FLIGHT
        try:
            rows = run_query(self._connection_supplier, self.sql, self.parameters, self.row_mapper)
        except BaseException:
            self.state = QueryState.FAILED
            raise
        self.state = QueryState.COMPLETED
        return iter(rows)

    def __repr__(self) -> str:
        return f"DeferredQuery(sql={self.sql!r}, state={self.state.value})"
