import decimal
import uuid

import pytest
from sqlalchemy import types as sqltypes

from dbcrawl.domain.dbms_types import GENERIC, ORACLE, dbms_type_for
from dbcrawl.domain.models import SqlTypeInfo
from dbcrawl.exceptions import ColumnResolutionError
from dbcrawl.typemapping.mappers import TypeMapper, TypeMapperRegistry, identity_mapper
from dbcrawl.typemapping.resolver import SqlTypeMapper, TypeMappingResolver

from conftest import FakeMetadataSource


class ExplodingSource(FakeMetadataSource):
    def type_info(self):
        raise AssertionError("static type sets must not read the connection")


def test_static_types_skip_the_connection():
    resolver = TypeMappingResolver(ORACLE)
    mapping = resolver.resolve(ExplodingSource())

    assert mapping["VARCHAR2"] is str
    assert mapping["NUMBER"] is decimal.Decimal
    assert mapping["BLOB"] is bytes


def test_dynamic_types_read_and_close_cursor():
    source = FakeMetadataSource()
    mapping = TypeMappingResolver(GENERIC).resolve(source)

    assert dict(mapping) == {"INTEGER": int, "VARCHAR": str, "NUMERIC": decimal.Decimal}
    assert all(cursor.closed for cursor in source.cursors)


def test_mapping_is_read_only_and_stable():
    mapping = TypeMappingResolver(GENERIC).resolve(FakeMetadataSource())

    assert mapping["VARCHAR"] is mapping["VARCHAR"]
    with pytest.raises(TypeError):
        mapping["VARCHAR"] = bytes


def test_types_without_python_equivalent_are_left_out():
    source = FakeMetadataSource(type_info=[
        {"TYPE_NAME": "GEOMETRY", "DATA_TYPE": 1111, "PRECISION": 0},
        {"TYPE_NAME": "TEXT", "DATA_TYPE": -1, "PRECISION": None},
    ])
    mapping = TypeMappingResolver(GENERIC).resolve(source)

    assert "GEOMETRY" not in mapping
    assert mapping["TEXT"] is str


def test_sql_type_mapper_prefers_sqlalchemy_type():
    mapper = SqlTypeMapper()
    # DATA_TYPE says VARCHAR but the SQLAlchemy class knows better
    info = SqlTypeInfo(sql_type_name="BIGINT", data_type=12, sql_type=sqltypes.BIGINT)

    assert mapper(GENERIC, info) is int


def test_sql_type_mapper_falls_back_to_code_table():
    mapper = SqlTypeMapper()
    # ARRAY cannot be built without an item type
    info = SqlTypeInfo(sql_type_name="ARRAY", data_type=12, sql_type=sqltypes.ARRAY)

    assert mapper(GENERIC, info) is str


def test_identity_for_returns_the_single_identity_mapper():
    registry = TypeMapperRegistry.default()

    mapper = registry.identity_for(str)
    assert mapper.is_identity
    assert mapper.python_type is str


def test_identity_for_ignores_converting_mappers():
    registry = TypeMapperRegistry.default()

    # int -> bool is registered but is not an identity
    assert registry.identity_for(int).python_type is int
    assert registry.identity_for(uuid.UUID).database_type is uuid.UUID


def test_identity_for_missing_mapper():
    registry = TypeMapperRegistry([identity_mapper(int)])

    with pytest.raises(ColumnResolutionError, match="Found 0 identity type mappers"):
        registry.identity_for(str)


def test_identity_for_ambiguous_mappers():
    registry = TypeMapperRegistry.default()
    registry.register(identity_mapper(str))

    with pytest.raises(ColumnResolutionError, match="Found 2 identity type mappers"):
        registry.identity_for(str)


def test_converting_mapper():
    mapper = TypeMapper(int, bool, to_python=lambda v: v != 0, to_database=int)

    assert mapper.to_python(1) is True
    assert mapper.to_database(True) == 1
    assert mapper.to_python(None) is None
    assert not mapper.is_identity


@pytest.mark.parametrize("name, expected", [
    ("postgresql+psycopg2", "postgresql"),
    ("postgres", "postgresql"),
    ("mariadb", "mysql"),
    ("sqlite", "sqlite"),
    ("oracle+oracledb", "oracle"),
    ("duckdb", "generic"),
    (None, "generic"),
])
def test_dbms_type_lookup(name, expected):
    assert dbms_type_for(name).name == expected
