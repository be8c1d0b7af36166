from typing import Any, Iterator, Mapping, Optional, Protocol

from sqlalchemy.engine import Connection

from .models import ConnectionHealth

# One metadata row, keyed by JDBC-style field names (TABLE_NAME, NULLABLE, ...)
MetadataRow = Mapping[str, Any]


class MetadataCursor(Protocol):
    def __iter__(self) -> Iterator[MetadataRow]: ...
    def close(self) -> None: ...


class MetadataSource(Protocol):
    """Catalog listing calls of a live connection."""

    def type_info(self) -> MetadataCursor: ...
    def schemas(self) -> MetadataCursor: ...
    def catalogs(self) -> MetadataCursor: ...
    def tables(self, catalog: Optional[str], schema: Optional[str]) -> MetadataCursor: ...
    def columns(self, catalog: Optional[str], schema: Optional[str], table: str) -> MetadataCursor: ...
    def index_info(self, catalog: Optional[str], schema: Optional[str], table: str) -> MetadataCursor: ...
    def primary_keys(self, catalog: Optional[str], schema: Optional[str], table: str) -> MetadataCursor: ...
    def imported_keys(self, catalog: Optional[str], schema: Optional[str], table: str) -> MetadataCursor: ...


class ConnectionProvider(Protocol):
    """Hands out live connections; pooling belongs to the implementation."""

    db_alias: str

    @property
    def dialect_name(self) -> str: ...
    def get_connection(self) -> Connection: ...
    def check_health(self) -> ConnectionHealth: ...
