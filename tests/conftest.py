"""Shared pytest fixtures and fakes for dbcrawl tests."""

from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from dbcrawl.connectors.base import EngineConnectionProvider
from dbcrawl.connectors.metadata import RowCursor
from dbcrawl.domain.dbms_types import DatabaseNamingConvention, DbmsType


SHOP_DDL = [
    """CREATE TABLE customers (
        id INTEGER PRIMARY KEY,
        name VARCHAR(50) NOT NULL,
        email TEXT,
        balance NUMERIC(10, 2),
        created DATETIME,
        notes
    )""",
    """CREATE TABLE orders (
        id INTEGER PRIMARY KEY,
        customer_id INTEGER NOT NULL REFERENCES customers(id),
        placed DATE,
        total REAL
    )""",
    """CREATE TABLE order_lines (
        order_id INTEGER NOT NULL,
        line_no INTEGER NOT NULL,
        sku VARCHAR(20),
        PRIMARY KEY (order_id, line_no),
        FOREIGN KEY (order_id) REFERENCES orders(id)
    )""",
    "CREATE INDEX ix_orders_customer ON orders (customer_id)",
    "CREATE UNIQUE INDEX ux_lines_sku ON order_lines (order_id, sku)",
    "CREATE VIEW big_orders AS SELECT * FROM orders WHERE total > 100",
]


@pytest.fixture
def shop_db(tmp_path):
    """A SQLite file holding a small shop schema; returns its URL."""
    url = f"sqlite:///{tmp_path / 'shop.db'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        for statement in SHOP_DDL:
            conn.execute(text(statement))
    engine.dispose()
    return url


@pytest.fixture
def shop_provider(shop_db):
    provider = EngineConnectionProvider(shop_db, db_alias="shop")
    yield provider
    provider.close()


@pytest.fixture
def test_dbms_type():
    return DbmsType(
        name="test",
        naming=DatabaseNamingConvention(schema_exclude_set=frozenset({"sys"})),
    )


class FakeMetadataSource:
    """Metadata source serving canned rows; records every call and cursor."""

    def __init__(
        self,
        schemas: Optional[List[Dict[str, Any]]] = None,
        catalogs: Optional[List[Dict[str, Any]]] = None,
        tables: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        columns: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        indexes: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        primary_keys: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        foreign_keys: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        type_info: Optional[List[Dict[str, Any]]] = None,
    ):
        self._schemas = schemas or []
        self._catalogs = catalogs or []
        self._tables = tables or {}
        self._columns = columns or {}
        self._indexes = indexes or {}
        self._primary_keys = primary_keys or {}
        self._foreign_keys = foreign_keys or {}
        self._type_info = type_info if type_info is not None else [
            {"TYPE_NAME": "INTEGER", "DATA_TYPE": 4, "PRECISION": 10},
            {"TYPE_NAME": "VARCHAR", "DATA_TYPE": 12, "PRECISION": 255},
            {"TYPE_NAME": "NUMERIC", "DATA_TYPE": 2, "PRECISION": 38},
        ]
        self.calls: List[tuple] = []
        self.cursors: List[RowCursor] = []

    def _cursor(self, rows):
        cursor = RowCursor(list(rows))
        self.cursors.append(cursor)
        return cursor

    def type_info(self):
        self.calls.append(("type_info",))
        return self._cursor(self._type_info)

    def schemas(self):
        self.calls.append(("schemas",))
        return self._cursor(self._schemas)

    def catalogs(self):
        self.calls.append(("catalogs",))
        return self._cursor(self._catalogs)

    def tables(self, catalog, schema):
        self.calls.append(("tables", catalog, schema))
        return self._cursor(self._tables.get(schema if schema is not None else catalog, []))

    def columns(self, catalog, schema, table):
        self.calls.append(("columns", table))
        return self._cursor(self._columns.get(table, []))

    def index_info(self, catalog, schema, table):
        self.calls.append(("index_info", table))
        return self._cursor(self._indexes.get(table, []))

    def primary_keys(self, catalog, schema, table):
        self.calls.append(("primary_keys", table))
        return self._cursor(self._primary_keys.get(table, []))

    def imported_keys(self, catalog, schema, table):
        self.calls.append(("imported_keys", table))
        return self._cursor(self._foreign_keys.get(table, []))


def column_row(name, position, type_name="INTEGER", nullable=1, **extra):
    row = {
        "COLUMN_NAME": name,
        "ORDINAL_POSITION": position,
        "NULLABLE": nullable,
        "TYPE_NAME": type_name,
        "IS_AUTOINCREMENT": "NO",
    }
    row.update(extra)
    return row


class DriverError(Exception):
    """Stand-in for a DB-API error carrying a SQLSTATE."""

    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def db_error(sqlstate, statement="INSERT INTO t VALUES (?)"):
    return OperationalError(statement, (), DriverError(f"failed with {sqlstate}", sqlstate))


class FakeResult:
    def __init__(self, rows=None, lastrowid=None, rowcount=None):
        self._rows = list(rows) if rows is not None else []
        self.returns_rows = rows is not None
        self.lastrowid = lastrowid
        if rowcount is None:
            rowcount = len(self._rows) if rows is not None else 1
        self.rowcount = rowcount

    def __iter__(self):
        return iter(self._rows)


class FakeTransaction:
    def __init__(self, connection):
        self._connection = connection
        self.is_active = True

    def commit(self):
        self._connection.log.append("commit")
        self.is_active = False

    def rollback(self):
        self._connection.log.append("rollback")
        if self._connection.rollback_error is not None:
            raise self._connection.rollback_error
        self.is_active = False


class FakeConnection:
    """Connection whose statements play back a script of results and errors."""

    def __init__(self, script=None, rollback_error=None):
        self.script = list(script or [])
        self.rollback_error = rollback_error
        self.executed: List[tuple] = []
        self.log: List[str] = []
        self.closed = False

    def begin(self):
        self.log.append("begin")
        return FakeTransaction(self)

    def exec_driver_sql(self, sql, parameters=None):
        self.executed.append((sql, parameters))
        outcome = self.script.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self):
        self.log.append("close")
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ScriptedProvider:
    """Hands out pre-built connections in order and counts acquisitions."""

    db_alias = "scripted"
    dialect_name = "sqlite"

    def __init__(self, connections):
        self._connections = list(connections)
        self.acquired: List[FakeConnection] = []

    def get_connection(self):
        connection = self._connections.pop(0)
        self.acquired.append(connection)
        return connection
