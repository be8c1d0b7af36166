import datetime
import decimal

import pytest

from dbcrawl.connectors.base import EngineConnectionProvider
from dbcrawl.domain.models import HealthStatus
from dbcrawl.exceptions import DocumentFrozenError, SchemaDiscoveryError, TransactionError
from dbcrawl.execution.query import QueryState
from dbcrawl.execution.update import SqlUpdateStatement
from dbcrawl.handler import RelationalDbmsHandler
from dbcrawl.inspector import InspectorFacade


@pytest.fixture
def handler(shop_provider):
    return RelationalDbmsHandler(shop_provider)


def test_crawl_sqlite_database(handler):
    dbms = handler.read_schema_metadata()

    assert dbms.frozen
    assert dbms.name == "shop"
    assert dbms.type_name == "sqlite"
    assert [s.name for s in dbms.schemas] == ["main"]
    # views are not tables
    assert sorted(t.name for t in dbms.all_tables()) == ["customers", "order_lines", "orders"]
    assert handler.dbms is dbms


def test_crawled_columns(handler):
    customers = handler.read_schema_metadata().schema_named("main").table_named("customers")

    assert [c.ordinal_position for c in customers.columns] == [1, 2, 3, 4, 5, 6]
    assert customers.column_named("name").nullable is False
    assert customers.column_named("name").column_size == 50
    assert customers.column_named("email").database_type is str

    balance = customers.column_named("balance")
    assert balance.database_type is decimal.Decimal
    assert (balance.column_size, balance.decimal_digits) == (10, 2)
    assert customers.column_named("created").database_type is datetime.datetime

    # no declared type
    notes = customers.column_named("notes")
    assert notes.type_name == "NULL"
    assert not notes.resolved


def test_crawled_keys_and_indexes(handler):
    schema = handler.read_schema_metadata().schema_named("main")

    order_lines = schema.table_named("order_lines")
    assert [(c.name, c.ordinal_position) for c in order_lines.primary_key_columns] == [
        ("order_id", 1), ("line_no", 2),
    ]
    unique = order_lines.index_named("ux_lines_sku")
    assert unique.unique is True
    assert [c.name for c in unique.columns] == ["order_id", "sku"]

    orders = schema.table_named("orders")
    assert orders.index_named("ix_orders_customer").unique is False
    fk = orders.foreign_key_named("orders_customer_id_customers_fkey")
    assert fk.columns[0].find_foreign_table() is schema.table_named("customers")
    assert fk.columns[0].find_foreign_column().name == "id"


def test_type_mapping_lookup_is_stable(handler):
    handler.read_schema_metadata()

    assert handler.type_mapping["VARCHAR"] is str
    assert handler.type_mapping["VARCHAR"] is handler.type_mapping["VARCHAR"]
    assert handler.type_mapping["INTEGER"] is int


def test_crawled_document_is_frozen(handler):
    table = handler.read_schema_metadata().all_tables()[0]

    with pytest.raises(DocumentFrozenError):
        table.add_new_column()


def test_schema_filter_rejecting_everything(handler):
    with pytest.raises(SchemaDiscoveryError) as exc_info:
        handler.read_schema_metadata(lambda name: False)
    assert "main" in exc_info.value.discarded


def test_insert_then_query(handler):
    keys = []
    handler.execute_update(
        "INSERT INTO customers (name, email) VALUES (?, ?)", ["Ada", "ada@example.com"], keys.extend,
    )
    handler.execute_update(
        "INSERT INTO customers (name, email) VALUES (?, ?)", ["Grace", None], keys.extend,
    )

    assert keys == [1, 2]
    rows = handler.execute_query(
        "SELECT id, name FROM customers WHERE id >= ? ORDER BY id", [1], lambda row: (row[0], row[1]),
    )
    assert list(rows) == [(1, "Ada"), (2, "Grace")]


def test_ignored_insert_reports_no_key(handler):
    handler.execute_update("CREATE TABLE tags (label TEXT UNIQUE)", [])
    first, ignored = [], []

    handler.execute_update("INSERT INTO tags (label) VALUES (?)", ["a"], first.extend)
    handler.execute_update("INSERT OR IGNORE INTO tags (label) VALUES (?)", ["a"], ignored.extend)

    assert first == [1]
    assert ignored == []


def test_failed_batch_is_rolled_back(handler):
    keys = []
    statements = [
        SqlUpdateStatement("INSERT INTO customers (name) VALUES (?)", ["Ada"], keys.extend),
        SqlUpdateStatement("INSERT INTO customers (name) VALUES (?)", [None], keys.extend),
    ]

    with pytest.raises(TransactionError) as exc_info:
        handler.execute_updates(statements)

    assert exc_info.value.retryable is False
    assert keys == []
    count = handler.execute_query("SELECT COUNT(*) FROM customers", [], lambda row: row[0])
    assert list(count) == [0]


def test_deferred_query(handler):
    handler.execute_update("INSERT INTO customers (name) VALUES (?)", ["Ada"])
    deferred = handler.execute_query_async("SELECT name FROM customers", [], lambda row: row[0])

    assert deferred.state is QueryState.NOT_STARTED
    assert list(deferred.stream()) == ["Ada"]
    assert deferred.state is QueryState.COMPLETED


def test_diagnostics_crawl_healthy_database(handler):
    report = InspectorFacade(handler).run_diagnostics()

    assert report.health.status == HealthStatus.SUCCESS
    assert len(report.dbms.all_tables()) == 3


def test_diagnostics_skip_crawl_when_unreachable(tmp_path):
    provider = EngineConnectionProvider(f"sqlite:///{tmp_path / 'missing' / 'shop.db'}", db_alias="gone")
    report = InspectorFacade(RelationalDbmsHandler(provider)).run_diagnostics()

    assert report.health.status == HealthStatus.FAILED
    assert report.dbms is None
    assert "Unable to get connection for gone" in report.health.error_message
