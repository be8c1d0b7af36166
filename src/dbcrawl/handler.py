import logging
from typing import Any, Iterator, List, Mapping, Optional, Sequence

from .config import DatabaseConfig, ExecutionConfig
from .connectors.factory import get_connection_provider
from .connectors.metadata import SQLAlchemyMetadataSource
from .domain.dbms_types import DbmsType, dbms_type_for
from .domain.interfaces import ConnectionProvider
from .domain.models import Dbms
from .execution.classifier import TransientErrorClassifier
from .execution.query import DeferredQuery, QueryExecutor, RowMapper
from .execution.update import GeneratedKeysConsumer, SqlUpdateStatement, TransactionalUpdateExecutor
from .inspector.crawler import SchemaCrawler, SchemaFilter
from .typemapping.mappers import TypeMapperRegistry

logger = logging.getLogger(__name__)


class RelationalDbmsHandler:
    """
    Everything the engine does against one database: crawl its metadata into
    a frozen Dbms document, run reads, run transactional writes.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        dbms_type: Optional[DbmsType] = None,
        type_mappers: Optional[TypeMapperRegistry] = None,
        execution: Optional[ExecutionConfig] = None,
        read_only_queries: bool = True,
    ):
        self.provider = provider
        self.dbms_type = dbms_type or dbms_type_for(provider.dialect_name)
        self.type_mappers = type_mappers or TypeMapperRegistry.default()
        execution = execution or ExecutionConfig()

        self._query_executor = QueryExecutor(provider.get_connection, read_only=read_only_queries)
        self._update_executor = TransactionalUpdateExecutor(
            provider.get_connection,
            classifier=TransientErrorClassifier(execution.transient_sqlstates),
            max_attempts=execution.max_attempts,
            row_identifier_types=execution.row_identifier_types,
        )
        self.type_mapping: Mapping[str, type] = {}
        self.dbms: Optional[Dbms] = None

    @classmethod
    def from_config(cls, config: DatabaseConfig, execution: Optional[ExecutionConfig] = None) -> "RelationalDbmsHandler":
        provider = get_connection_provider(config)
        dbms_type = dbms_type_for(config.type or provider.dialect_name)
        return cls(provider, dbms_type=dbms_type, execution=execution, read_only_queries=config.read_only_queries)

    def read_schema_metadata(self, schema_filter: Optional[SchemaFilter] = None) -> Dbms:
        """Crawls the database on one connection and returns the frozen document."""
        dbms = Dbms(name=self.provider.db_alias, type_name=self.dbms_type.name)
        crawler = SchemaCrawler(self.dbms_type, type_mappers=self.type_mappers)

        with self.provider.get_connection() as connection:
            source = SQLAlchemyMetadataSource(connection, self.dbms_type)
            crawler.crawl(dbms, source, schema_filter)

        dbms.freeze()
        self.type_mapping = crawler.type_mapping
        self.dbms = dbms
        logger.info(
            f"Read {len(dbms.schemas)} schemas and {len(dbms.all_tables())} tables from {dbms.name}"
        )
        return dbms

    def execute_query(self, sql: str, parameters: Sequence[Any], row_mapper: RowMapper) -> Iterator[Any]:
        return self._query_executor.execute_query(sql, parameters, row_mapper)

    def execute_query_async(self, sql: str, parameters: Sequence[Any], row_mapper: RowMapper) -> DeferredQuery:
        return self._query_executor.execute_query_async(sql, parameters, row_mapper)

    def execute_update(
        self,
        sql: str,
        parameters: Sequence[Any],
        generated_keys_consumer: Optional[GeneratedKeysConsumer] = None,
    ) -> None:
        self.execute_updates([SqlUpdateStatement(sql, parameters, generated_keys_consumer)])

    def execute_updates(self, statements: List[SqlUpdateStatement]) -> None:
        self._update_executor.execute_update(statements)
