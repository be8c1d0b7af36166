"""
Metadata listings of a live SQLAlchemy connection, exposed as forward-only
cursors of JDBC-shaped rows so the crawler stays vendor neutral.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import inspect, types as sqltypes
from sqlalchemy.engine import Connection

from ..domain.dbms_types import DbmsType
from ..domain.interfaces import MetadataRow

logger = logging.getLogger(__name__)

# java.sql.Types codes; order matters, subclasses before their bases
_TYPE_CODES = (
    (sqltypes.BigInteger, -5),
    (sqltypes.SmallInteger, 5),
    (sqltypes.Integer, 4),
    (sqltypes.Boolean, 16),
    (sqltypes.Double, 8),
    (sqltypes.Float, 6),
    (sqltypes.Numeric, 2),
    (sqltypes.Text, -1),
    (sqltypes.String, 12),
    (sqltypes.DateTime, 93),
    (sqltypes.Date, 91),
    (sqltypes.Time, 92),
    (sqltypes.LargeBinary, 2004),
    (sqltypes.VARBINARY, -3),
    (sqltypes.BINARY, -2),
)
OTHER = 1111

COLUMN_NO_NULLS = 0
COLUMN_NULLABLE = 1
COLUMN_NULLABLE_UNKNOWN = 2

TABLE_INDEX_OTHER = 3


def sql_type_name(type_cls: type) -> str:
    """Vendor-facing name of a SQLAlchemy type class, e.g. VARCHAR."""
    return str(getattr(type_cls, "__visit_name__", type_cls.__name__)).upper()


def sql_type_code(type_cls: type) -> int:
    for base, code in _TYPE_CODES:
        if issubclass(type_cls, base):
            return code
    return OTHER


class RowCursor:
    """Forward-only iterator over metadata rows that must be closed."""

    def __init__(self, rows: Iterable[MetadataRow], on_close: Optional[Callable[[], None]] = None):
        self._rows = iter(rows)
        self._on_close = on_close
        self.closed = False

    def __iter__(self) -> Iterator[MetadataRow]:
        return self

    def __next__(self) -> MetadataRow:
        if self.closed:
            raise StopIteration
        return next(self._rows)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close()


class SQLAlchemyMetadataSource:
    """
    Reads catalog metadata through a SQLAlchemy Inspector bound to one
    connection. Optional fields are only put in a row when the dialect
    reports them, so callers see the same gaps a vendor driver would leave.
    """

    def __init__(self, connection: Connection, dbms_type: DbmsType):
        self._connection = connection
        self._dbms_type = dbms_type
        self._inspector = inspect(connection)

    @staticmethod
    def _lookup(catalog: Optional[str], schema: Optional[str]) -> Optional[str]:
        # SQLAlchemy has a single namespace level below the connection
        return schema if schema is not None else catalog

    def type_info(self) -> RowCursor:
        return RowCursor(self._type_rows())

    def _type_rows(self) -> Iterator[MetadataRow]:
        seen = set()
        for type_cls in self._connection.dialect.ischema_names.values():
            if not isinstance(type_cls, type):
                continue
            name = sql_type_name(type_cls)
            if name in seen:
                continue
            seen.add(name)
            yield {
                "TYPE_NAME": name,
                "DATA_TYPE": sql_type_code(type_cls),
                "PRECISION": 0,
                "SQL_TYPE": type_cls,
            }

    def schemas(self) -> RowCursor:
        catalog = None
        if self._dbms_type.schema_rows_have_catalog:
            catalog = self._connection.engine.url.database

        def rows():
            for name in self._inspector.get_schema_names():
                row: Dict[str, Any] = {self._dbms_type.result_set_table_schema: name}
                if catalog is not None:
                    row["TABLE_CATALOG"] = catalog
                yield row

        return RowCursor(rows())

    def catalogs(self) -> RowCursor:
        query = self._dbms_type.catalog_query
        if not query:
            return RowCursor(())
        result = self._connection.exec_driver_sql(query)
        return RowCursor(({"TABLE_CAT": row[0]} for row in result), on_close=result.close)

    def tables(self, catalog: Optional[str], schema: Optional[str]) -> RowCursor:
        lookup = self._lookup(catalog, schema)

        def rows():
            for name in self._inspector.get_table_names(schema=lookup):
                yield {
                    "TABLE_CAT": catalog,
                    "TABLE_SCHEM": schema,
                    "TABLE_NAME": name,
                    "TABLE_TYPE": "TABLE",
                }

        return RowCursor(rows())

    def columns(self, catalog: Optional[str], schema: Optional[str], table: str) -> RowCursor:
        lookup = self._lookup(catalog, schema)

        def rows():
            columns = self._inspector.get_columns(table, schema=lookup)
            for position, col in enumerate(columns, start=1):
                col_type = col["type"]
                row: Dict[str, Any] = {
                    "TABLE_NAME": table,
                    "COLUMN_NAME": col["name"],
                    "ORDINAL_POSITION": position,
                    "NULLABLE": COLUMN_NULLABLE if col["nullable"] else COLUMN_NO_NULLS,
                    "TYPE_NAME": sql_type_name(type(col_type)),
                    "COLUMN_SIZE": getattr(col_type, "length", None) or getattr(col_type, "precision", None),
                    "DECIMAL_DIGITS": getattr(col_type, "scale", None),
                }
                if "autoincrement" in col:
                    row["IS_AUTOINCREMENT"] = "YES" if col["autoincrement"] is True else "NO"
                yield row

        return RowCursor(rows())

    def index_info(self, catalog: Optional[str], schema: Optional[str], table: str) -> RowCursor:
        lookup = self._lookup(catalog, schema)

        def rows():
            for index in self._inspector.get_indexes(table, schema=lookup):
                expressions: List[Optional[str]] = index.get("expressions") or []
                sorting = index.get("column_sorting")
                for position, column_name in enumerate(index["column_names"], start=1):
                    if column_name is None and len(expressions) >= position:
                        column_name = expressions[position - 1]
                    if sorting is None:
                        asc_or_desc = None
                    elif "desc" in sorting.get(column_name, ()):
                        asc_or_desc = "D"
                    else:
                        asc_or_desc = "A"
                    yield {
                        "TABLE_NAME": table,
                        "INDEX_NAME": index["name"],
                        "NON_UNIQUE": not index["unique"],
                        "TYPE": TABLE_INDEX_OTHER,
                        "COLUMN_NAME": column_name,
                        "ORDINAL_POSITION": position,
                        "ASC_OR_DESC": asc_or_desc,
                    }

        return RowCursor(rows())

    def primary_keys(self, catalog: Optional[str], schema: Optional[str], table: str) -> RowCursor:
        lookup = self._lookup(catalog, schema)

        def rows():
            constraint = self._inspector.get_pk_constraint(table, schema=lookup) or {}
            for seq, column_name in enumerate(constraint.get("constrained_columns") or [], start=1):
                yield {
                    "TABLE_NAME": table,
                    "COLUMN_NAME": column_name,
                    "KEY_SEQ": seq,
                    "PK_NAME": constraint.get("name"),
                }

        return RowCursor(rows())

    def imported_keys(self, catalog: Optional[str], schema: Optional[str], table: str) -> RowCursor:
        lookup = self._lookup(catalog, schema)

        def rows():
            for fk in self._inspector.get_foreign_keys(table, schema=lookup):
                constrained = fk["constrained_columns"]
                # Unnamed constraints (common on SQLite) get a name unique per referenced table
                name = fk.get("name") or (
                    f"{table}_{'_'.join(constrained)}_{fk['referred_table']}_fkey"
                )
                for seq, (fk_column, pk_column) in enumerate(
                    zip(constrained, fk["referred_columns"]), start=1
                ):
                    yield {
                        "FKTABLE_NAME": table,
                        "FK_NAME": name,
                        "FKCOLUMN_NAME": fk_column,
                        "KEY_SEQ": seq,
                        "PKTABLE_SCHEM": fk.get("referred_schema"),
                        "PKTABLE_NAME": fk["referred_table"],
                        "PKCOLUMN_NAME": pk_column,
                    }

        return RowCursor(rows())
