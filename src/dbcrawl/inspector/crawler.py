import logging
from typing import Callable, List, Mapping, Optional

from ..domain.dbms_types import DbmsType
from ..domain.interfaces import MetadataRow, MetadataSource
from ..domain.models import (
    Column,
    Dbms,
    ForeignKey,
    Index,
    OrderType,
    PrimaryKeyColumn,
    Schema,
    Table,
)
from ..exceptions import DbcrawlException, DiscoveryError, SchemaDiscoveryError, UnknownNullableCodeError
from ..typemapping.mappers import TypeMapperRegistry
from ..typemapping.resolver import TypeMappingResolver
from .ingester import TableChildIngester

logger = logging.getLogger(__name__)

SchemaFilter = Callable[[Optional[str]], bool]

COLUMN_NO_NULLS = 0
COLUMN_NULLABLE = 1
COLUMN_NULLABLE_UNKNOWN = 2


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().upper() in ("YES", "Y", "TRUE", "1")
    return bool(value)


class SchemaCrawler:
    """
    Crawls catalog metadata into a Dbms document.

    Order is fixed: type mapping, schema pass, catalog pass, then per schema
    its tables and per table columns, indexes, primary key columns and
    foreign keys.
    """
    def __init__(
        self,
        dbms_type: DbmsType,
        type_mappers: Optional[TypeMapperRegistry] = None,
        resolver: Optional[TypeMappingResolver] = None,
        ingester: Optional[TableChildIngester] = None,
    ):
        self.dbms_type = dbms_type
        self.type_mappers = type_mappers or TypeMapperRegistry.default()
        self.resolver = resolver or TypeMappingResolver(dbms_type)
        self.ingester = ingester or TableChildIngester()
        self.type_mapping: Mapping[str, type] = {}

    def crawl(self, dbms: Dbms, source: MetadataSource, schema_filter: Optional[SchemaFilter] = None) -> Dbms:
        schema_filter = schema_filter or (lambda name: True)
        logger.info(f"Reading metadata from {dbms.name} ({self.dbms_type.name})")

        try:
            self.type_mapping = self.resolver.resolve(source)
        except DbcrawlException:
            raise
        except Exception as e:
            raise DiscoveryError(f"Unable to resolve type mapping for {dbms.name}: {e}") from e

        discarded: List[Optional[str]] = []
        self._discover(dbms, source.schemas, self._schema_row_name, schema_filter, discarded)
        self._discover(dbms, source.catalogs, lambda row: row["TABLE_CAT"], schema_filter, discarded)

        if not dbms.schemas:
            raise SchemaDiscoveryError(discarded)

        for schema in dbms.schemas:
            self.tables(source, schema)
        return dbms

    def _schema_row_name(self, row: MetadataRow) -> Optional[str]:
        schema_name = row[self.dbms_type.result_set_table_schema]
        catalog_name = None
        try:
            # Not every vendor lists TABLE_CATALOG with its schemas
            catalog_name = row["TABLE_CATALOG"]
        except KeyError:
            logger.info("TABLE_CATALOG not in result set.")
        return schema_name if schema_name is not None else catalog_name

    def _discover(
        self,
        dbms: Dbms,
        cursor_supplier,
        name_of: Callable[[MetadataRow], Optional[str]],
        schema_filter: SchemaFilter,
        discarded: List[Optional[str]],
    ) -> None:
        # Dialects normalize case (Oracle reports SYS as sys)
        exclude = {s.lower() for s in self.dbms_type.naming.schema_exclude_set}
        try:
            cursor = cursor_supplier()
            try:
                for row in cursor:
                    name = name_of(row)
                    if name is not None and name.lower() not in exclude and schema_filter(name):
                        if dbms.schema_named(name) is None:
                            schema = dbms.add_new_schema()
                            schema.name = name
                        else:
                            logger.debug(f"Schema {name} already discovered, not adding it again")
                    elif name not in discarded:
                        discarded.append(name)
            finally:
                cursor.close()
        except DbcrawlException:
            raise
        except Exception as e:
            raise DiscoveryError(f"Unable to list schemas of {dbms.name}: {e}") from e

    def _lookup_names(self, schema: Schema):
        return self.dbms_type.catalog_lookup_name(schema), self.dbms_type.schema_lookup_name(schema)

    def tables(self, source: MetadataSource, schema: Schema) -> None:
        logger.info(f"Parsing schema {schema.name}")
        catalog, schema_name = self._lookup_names(schema)

        def mutate(table: Table, row: MetadataRow) -> None:
            table.name = row["TABLE_NAME"]

        self.ingester.ingest(
            schema, "tables",
            lambda row: schema.add_new_table(),
            lambda: source.tables(catalog, schema_name),
            mutate,
        )

        for table in schema.tables:
            self.columns(source, table)
            self.indexes(source, table)
            self.primary_key_columns(source, table)
            self.foreign_keys(source, table)

    def columns(self, source: MetadataSource, table: Table) -> None:
        catalog, schema_name = self._lookup_names(table.parent)

        def mutate(column: Column, row: MetadataRow) -> None:
            column.name = row["COLUMN_NAME"]
            column.ordinal_position = row["ORDINAL_POSITION"]

            nullable_code = row["NULLABLE"]
            if nullable_code in (COLUMN_NULLABLE, COLUMN_NULLABLE_UNKNOWN):
                column.nullable = True
            elif nullable_code == COLUMN_NO_NULLS:
                column.nullable = False
            else:
                raise UnknownNullableCodeError(nullable_code)

            type_name = row["TYPE_NAME"]
            column.type_name = type_name
            column.column_size = row.get("COLUMN_SIZE")
            column.decimal_digits = row.get("DECIMAL_DIGITS")

            mapping = self.lookup_type(type_name)
            if mapping is not None:
                column.type_mapper = self.type_mappers.identity_for(mapping)
                column.database_type = mapping
            else:
                logger.warning(f"Unable to determine mapping for table {table.name}, column {column.name}")

            try:
                column.auto_increment = _as_bool(row["IS_AUTOINCREMENT"])
            except KeyError:
                logger.warning(f"Unable to determine IS_AUTOINCREMENT for table {table.name}, column {column.name}")

        self.ingester.ingest(
            table, "columns",
            lambda row: table.add_new_column(),
            lambda: source.columns(catalog, schema_name, table.name),
            mutate,
        )

    def lookup_type(self, type_name: Optional[str]) -> Optional[type]:
        return self.type_mapping.get(type_name) if type_name is not None else None

    def indexes(self, source: MetadataSource, table: Table) -> None:
        catalog, schema_name = self._lookup_names(table.parent)

        def index_for(row: MetadataRow) -> Index:
            return table.index_named(row["INDEX_NAME"]) or table.add_new_index()

        def mutate(index: Index, row: MetadataRow) -> None:
            if index.name is None:
                index.name = row["INDEX_NAME"]
                index.unique = not _as_bool(row["NON_UNIQUE"])

            index_column = index.add_new_index_column()
            index_column.name = row["COLUMN_NAME"]
            index_column.ordinal_position = row["ORDINAL_POSITION"]
            asc_or_desc = row["ASC_OR_DESC"]
            if asc_or_desc is not None and asc_or_desc.upper() == "A":
                index_column.order_type = OrderType.ASC
            elif asc_or_desc is not None and asc_or_desc.upper() == "D":
                index_column.order_type = OrderType.DESC
            else:
                index_column.order_type = OrderType.NONE

        self.ingester.ingest(
            table, "indexes",
            index_for,
            lambda: source.index_info(catalog, schema_name, table.name),
            mutate,
            row_filter=lambda row: row["INDEX_NAME"] is not None,
        )

    def primary_key_columns(self, source: MetadataSource, table: Table) -> None:
        catalog, schema_name = self._lookup_names(table.parent)

        def mutate(pk_column: PrimaryKeyColumn, row: MetadataRow) -> None:
            pk_column.name = row["COLUMN_NAME"]
            pk_column.ordinal_position = row["KEY_SEQ"]

        self.ingester.ingest(
            table, "primary key columns",
            lambda row: table.add_new_primary_key_column(),
            lambda: source.primary_keys(catalog, schema_name, table.name),
            mutate,
        )

    def foreign_keys(self, source: MetadataSource, table: Table) -> None:
        catalog, schema_name = self._lookup_names(table.parent)

        def foreign_key_for(row: MetadataRow) -> ForeignKey:
            return table.foreign_key_named(row["FK_NAME"]) or table.add_new_foreign_key()

        def mutate(foreign_key: ForeignKey, row: MetadataRow) -> None:
            if foreign_key.name is None:
                foreign_key.name = row["FK_NAME"]

            fk_column = foreign_key.add_new_foreign_key_column()
            fk_column.name = row["FKCOLUMN_NAME"]
            fk_column.ordinal_position = row["KEY_SEQ"]
            fk_column.foreign_schema_name = row.get("PKTABLE_SCHEM")
            fk_column.foreign_table_name = row["PKTABLE_NAME"]
            fk_column.foreign_column_name = row["PKCOLUMN_NAME"]

        self.ingester.ingest(
            table, "foreign keys",
            foreign_key_for,
            lambda: source.imported_keys(catalog, schema_name, table.name),
            mutate,
        )
