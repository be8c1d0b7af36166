from enum import Enum
from typing import Any, ClassVar, FrozenSet, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_serializer

from ..exceptions import DocumentError, DocumentFrozenError
from ..typemapping.mappers import TypeMapper


class HealthStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"

class ConnectionHealth(BaseModel):
    db_alias: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    error_message: Optional[str] = None

class OrderType(str, Enum):
    ASC = "ASC"
    DESC = "DESC"
    NONE = "NONE"

class SqlTypeInfo(BaseModel):
    """One vendor SQL type as reported by the driver or declared statically."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sql_type_name: str
    data_type: int = 1111  # java.sql.Types.OTHER
    precision: int = 0
    sql_type: Optional[Type[Any]] = Field(default=None, exclude=True)


N = TypeVar("N", bound="DocumentNode")


class DocumentNode(BaseModel):
    """
    Base of the schema document tree.

    Nodes are mutable while the crawler builds them. `freeze()` checks that
    child names are unique within each parent and then rejects any further
    assignment or `add_new_*` call on the node and everything below it.
    """
    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    name: Optional[str] = None

    _frozen: bool = PrivateAttr(default=False)
    _parent: Optional["DocumentNode"] = PrivateAttr(default=None)
    _write_once: ClassVar[FrozenSet[str]] = frozenset()

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_"):
            if self._frozen:
                raise DocumentFrozenError(
                    f"Cannot set {name} on frozen {type(self).__name__} '{self.name}'"
                )
            if name in self._write_once and getattr(self, name) is not None:
                raise DocumentError(
                    f"{name} of {type(self).__name__} '{self.name}' is already set"
                )
        super().__setattr__(name, value)

    # Nodes are entities: identity, not field-wise equality (parents make the tree cyclic)
    def __eq__(self, other: object) -> bool:
        return self is other

    __hash__ = object.__hash__

    @property
    def parent(self) -> Optional["DocumentNode"]:
        return self._parent

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _child_collections(self) -> Iterable[List["DocumentNode"]]:
        return ()

    def _attach(self, children: List[N], child: N) -> N:
        if self._frozen:
            raise DocumentFrozenError(
                f"Cannot add {type(child).__name__} to frozen {type(self).__name__} '{self.name}'"
            )
        child._parent = self
        children.append(child)
        return child

    def freeze(self) -> None:
        for children in self._child_collections():
            seen = set()
            for child in children:
                if child.name in seen:
                    raise DocumentError(
                        f"Duplicate {type(child).__name__} name '{child.name}' "
                        f"in {type(self).__name__} '{self.name}'"
                    )
                seen.add(child.name)
                child.freeze()
        self._frozen = True


def _named(children: Iterable[N], name: str) -> Optional[N]:
    return next((child for child in children if child.name == name), None)


class IndexColumn(DocumentNode):
    _write_once: ClassVar[FrozenSet[str]] = frozenset({"ordinal_position"})

    ordinal_position: Optional[int] = None
    order_type: OrderType = OrderType.NONE


class Index(DocumentNode):
    unique: bool = False
    columns: List[IndexColumn] = Field(default_factory=list)

    def _child_collections(self):
        return (self.columns,)

    def add_new_index_column(self) -> IndexColumn:
        return self._attach(self.columns, IndexColumn())


class PrimaryKeyColumn(DocumentNode):
    _write_once: ClassVar[FrozenSet[str]] = frozenset({"ordinal_position"})

    ordinal_position: Optional[int] = None


class ForeignKeyColumn(DocumentNode):
    _write_once: ClassVar[FrozenSet[str]] = frozenset({"ordinal_position"})

    ordinal_position: Optional[int] = None
    foreign_schema_name: Optional[str] = None
    foreign_table_name: Optional[str] = None
    foreign_column_name: Optional[str] = None

    def find_foreign_table(self) -> Optional["Table"]:
        """Resolves the referenced table inside the owning Dbms, if it was crawled."""
        table = self.parent.parent if self.parent else None
        schema = table.parent if table else None
        dbms = schema.parent if schema else None
        if dbms is None:
            return None
        target_schema = schema
        if self.foreign_schema_name and self.foreign_schema_name != schema.name:
            target_schema = dbms.schema_named(self.foreign_schema_name)
            if target_schema is None:
                return None
        return target_schema.table_named(self.foreign_table_name)

    def find_foreign_column(self) -> Optional["Column"]:
        table = self.find_foreign_table()
        return table.column_named(self.foreign_column_name) if table else None


class ForeignKey(DocumentNode):
    columns: List[ForeignKeyColumn] = Field(default_factory=list)

    def _child_collections(self):
        return (self.columns,)

    def add_new_foreign_key_column(self) -> ForeignKeyColumn:
        return self._attach(self.columns, ForeignKeyColumn())


class Column(DocumentNode):
    _write_once: ClassVar[FrozenSet[str]] = frozenset({"ordinal_position"})

    ordinal_position: Optional[int] = None
    nullable: bool = True
    type_name: Optional[str] = None
    column_size: Optional[int] = None
    decimal_digits: Optional[int] = None
    database_type: Optional[Type[Any]] = None
    type_mapper: Optional[TypeMapper] = Field(default=None, exclude=True, repr=False)
    auto_increment: bool = False

    @property
    def resolved(self) -> bool:
        return self.type_mapper is not None

    @field_serializer("database_type")
    def serialize_database_type(self, value: Optional[type]) -> Optional[str]:
        if value is None:
            return None
        return f"{value.__module__}.{value.__qualname__}"


class Table(DocumentNode):
    columns: List[Column] = Field(default_factory=list)
    indexes: List[Index] = Field(default_factory=list)
    primary_key_columns: List[PrimaryKeyColumn] = Field(default_factory=list)
    foreign_keys: List[ForeignKey] = Field(default_factory=list)

    def _child_collections(self):
        return (self.columns, self.indexes, self.primary_key_columns, self.foreign_keys)

    def add_new_column(self) -> Column:
        return self._attach(self.columns, Column())

    def add_new_index(self) -> Index:
        return self._attach(self.indexes, Index())

    def add_new_primary_key_column(self) -> PrimaryKeyColumn:
        return self._attach(self.primary_key_columns, PrimaryKeyColumn())

    def add_new_foreign_key(self) -> ForeignKey:
        return self._attach(self.foreign_keys, ForeignKey())

    def column_named(self, name: str) -> Optional[Column]:
        return _named(self.columns, name)

    def index_named(self, name: str) -> Optional[Index]:
        return _named(self.indexes, name)

    def foreign_key_named(self, name: str) -> Optional[ForeignKey]:
        return _named(self.foreign_keys, name)


class Schema(DocumentNode):
    tables: List[Table] = Field(default_factory=list)

    def _child_collections(self):
        return (self.tables,)

    def add_new_table(self) -> Table:
        return self._attach(self.tables, Table())

    def table_named(self, name: str) -> Optional[Table]:
        return _named(self.tables, name)


class Dbms(DocumentNode):
    type_name: Optional[str] = None
    schemas: List[Schema] = Field(default_factory=list)

    def _child_collections(self):
        return (self.schemas,)

    def add_new_schema(self) -> Schema:
        return self._attach(self.schemas, Schema())

    def schema_named(self, name: str) -> Optional[Schema]:
        return _named(self.schemas, name)

    def all_tables(self) -> List[Table]:
        return [table for schema in self.schemas for table in schema.tables]
