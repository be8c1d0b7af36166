"""
Resolution of vendor SQL type names to python types.

A DbmsType that declares a static set of SqlTypeInfo is mapped without
touching the database; otherwise the live type listing of the connection is
read. Both paths run every SqlTypeInfo through the same SqlTypeMapper.
"""

import datetime
import decimal
import logging
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from ..domain.dbms_types import DbmsType
from ..domain.interfaces import MetadataSource
from ..domain.models import SqlTypeInfo

logger = logging.getLogger(__name__)

# java.sql.Types code -> python type
DEFAULT_CODE_TABLE: Mapping[int, type] = MappingProxyType({
    -7: bool,                # BIT
    16: bool,                # BOOLEAN
    -6: int,                 # TINYINT
    5: int,                  # SMALLINT
    4: int,                  # INTEGER
    -5: int,                 # BIGINT
    6: float,                # FLOAT
    7: float,                # REAL
    8: float,                # DOUBLE
    2: decimal.Decimal,      # NUMERIC
    3: decimal.Decimal,      # DECIMAL
    1: str,                  # CHAR
    12: str,                 # VARCHAR
    -1: str,                 # LONGVARCHAR
    -15: str,                # NCHAR
    -9: str,                 # NVARCHAR
    -16: str,                # LONGNVARCHAR
    2005: str,               # CLOB
    2011: str,               # NCLOB
    91: datetime.date,       # DATE
    92: datetime.time,       # TIME
    93: datetime.datetime,   # TIMESTAMP
    -2: bytes,               # BINARY
    -3: bytes,               # VARBINARY
    -4: bytes,               # LONGVARBINARY
    2004: bytes,             # BLOB
})


class SqlTypeMapper:
    """Maps one SqlTypeInfo to the python type its values are read as."""

    def __init__(self, code_table: Optional[Mapping[int, type]] = None):
        self._code_table = code_table if code_table is not None else DEFAULT_CODE_TABLE

    def __call__(self, dbms_type: DbmsType, type_info: SqlTypeInfo) -> Optional[type]:
        if type_info.sql_type is not None:
            try:
                return type_info.sql_type().python_type
            except (NotImplementedError, TypeError):
                # not instantiable without arguments, or no python equivalent
                pass
        return self._code_table.get(type_info.data_type)


class TypeMappingResolver:
    def __init__(self, dbms_type: DbmsType, sql_type_mapper: Optional[SqlTypeMapper] = None):
        self.dbms_type = dbms_type
        self.sql_type_mapper = sql_type_mapper or SqlTypeMapper()

    def resolve(self, source: MetadataSource) -> Mapping[str, type]:
        """Returns a read-only mapping of vendor type name to python type."""
        if self.dbms_type.data_types:
            logger.debug(f"Using {len(self.dbms_type.data_types)} static types of {self.dbms_type.name}")
            mapping = self.from_set(self.dbms_type.data_types)
        else:
            mapping = self.from_source(source)
        return MappingProxyType(mapping)

    def from_set(self, type_infos: Iterable[SqlTypeInfo]) -> Dict[str, type]:
        return self._map(type_infos)

    def from_source(self, source: MetadataSource) -> Dict[str, type]:
        cursor = source.type_info()
        try:
            infos = [
                SqlTypeInfo(
                    sql_type_name=row["TYPE_NAME"],
                    data_type=row["DATA_TYPE"],
                    precision=row.get("PRECISION") or 0,
                    sql_type=row.get("SQL_TYPE"),
                )
                for row in cursor
            ]
        finally:
            cursor.close()
        return self._map(infos)

    def _map(self, type_infos: Iterable[SqlTypeInfo]) -> Dict[str, type]:
        result: Dict[str, type] = {}
        for info in type_infos:
            mapped = self.sql_type_mapper(self.dbms_type, info)
            if mapped is None:
                logger.debug(f"No python type for SQL type {info.sql_type_name}")
                continue
            result[info.sql_type_name] = mapped
        return result
