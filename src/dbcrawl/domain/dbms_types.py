"""
Vendor conventions that shape how a database is crawled: which schema names
are noise, whether tables are looked up by catalog or by schema, and an
optional static set of SQL types that replaces the live type listing.
"""

from typing import Dict, FrozenSet, Literal, Optional

from pydantic import BaseModel, ConfigDict

from .models import Schema, SqlTypeInfo


class DatabaseNamingConvention(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_exclude_set: FrozenSet[str] = frozenset()


class DbmsType(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    naming: DatabaseNamingConvention = DatabaseNamingConvention()
    data_types: FrozenSet[SqlTypeInfo] = frozenset()
    # Column of the schema listing that carries the schema name
    result_set_table_schema: str = "TABLE_SCHEM"
    # Whether schema listing rows carry TABLE_CATALOG at all
    schema_rows_have_catalog: bool = True
    lookup_level: Literal["catalog", "schema"] = "schema"
    # Query whose first column lists catalogs; None means the vendor has none
    catalog_query: Optional[str] = None

    def catalog_lookup_name(self, schema: Schema) -> Optional[str]:
        return schema.name if self.lookup_level == "catalog" else None

    def schema_lookup_name(self, schema: Schema) -> Optional[str]:
        return schema.name if self.lookup_level == "schema" else None


SQLITE = DbmsType(
    name="sqlite",
    naming=DatabaseNamingConvention(schema_exclude_set=frozenset({"temp"})),
    schema_rows_have_catalog=False,
)

POSTGRESQL = DbmsType(
    name="postgresql",
    naming=DatabaseNamingConvention(schema_exclude_set=frozenset({
        "information_schema", "pg_catalog", "pg_toast",
    })),
)

# MySQL exposes databases as catalogs; SQLAlchemy reports them as schemas too
MYSQL = DbmsType(
    name="mysql",
    naming=DatabaseNamingConvention(schema_exclude_set=frozenset({
        "information_schema", "mysql", "performance_schema", "sys",
    })),
    lookup_level="catalog",
    catalog_query="SHOW DATABASES",
)

ORACLE = DbmsType(
    name="oracle",
    naming=DatabaseNamingConvention(schema_exclude_set=frozenset({
        "SYS", "SYSTEM", "OUTLN", "XDB", "DBSNMP", "APPQOSSYS", "CTXSYS",
        "MDSYS", "ORDSYS", "WMSYS", "OJVMSYS", "GSMADMIN_INTERNAL",
    })),
    schema_rows_have_catalog=False,
    data_types=frozenset({
        SqlTypeInfo(sql_type_name="CHAR", data_type=1, precision=2000),
        SqlTypeInfo(sql_type_name="NCHAR", data_type=-15, precision=2000),
        SqlTypeInfo(sql_type_name="VARCHAR2", data_type=12, precision=4000),
        SqlTypeInfo(sql_type_name="NVARCHAR2", data_type=-9, precision=4000),
        # SQLAlchemy reflects VARCHAR2/NVARCHAR2 columns as VARCHAR/NVARCHAR
        SqlTypeInfo(sql_type_name="VARCHAR", data_type=12, precision=4000),
        SqlTypeInfo(sql_type_name="NVARCHAR", data_type=-9, precision=4000),
        SqlTypeInfo(sql_type_name="LONG", data_type=-1),
        SqlTypeInfo(sql_type_name="REAL", data_type=7, precision=63),
        SqlTypeInfo(sql_type_name="DOUBLE_PRECISION", data_type=8, precision=126),
        SqlTypeInfo(sql_type_name="NUMBER", data_type=2, precision=38),
        SqlTypeInfo(sql_type_name="INTEGER", data_type=4, precision=38),
        SqlTypeInfo(sql_type_name="FLOAT", data_type=6, precision=126),
        SqlTypeInfo(sql_type_name="BINARY_FLOAT", data_type=7, precision=7),
        SqlTypeInfo(sql_type_name="BINARY_DOUBLE", data_type=8, precision=15),
        SqlTypeInfo(sql_type_name="DATE", data_type=93, precision=7),
        SqlTypeInfo(sql_type_name="TIMESTAMP", data_type=93, precision=11),
        SqlTypeInfo(sql_type_name="CLOB", data_type=2005),
        SqlTypeInfo(sql_type_name="NCLOB", data_type=2011),
        SqlTypeInfo(sql_type_name="BLOB", data_type=2004),
        SqlTypeInfo(sql_type_name="RAW", data_type=-3, precision=2000),
    }),
)

GENERIC = DbmsType(name="generic")

_DBMS_TYPES: Dict[str, DbmsType] = {
    t.name: t for t in (SQLITE, POSTGRESQL, MYSQL, ORACLE)
}
_ALIASES = {"postgres": "postgresql", "mariadb": "mysql"}


def dbms_type_for(name: Optional[str]) -> DbmsType:
    """Looks up a DbmsType by dialect name, falling back to GENERIC."""
    if not name:
        return GENERIC
    key = name.lower().split("+", 1)[0]
    return _DBMS_TYPES.get(_ALIASES.get(key, key), GENERIC)
