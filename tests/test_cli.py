import json

import pytest
from typer.testing import CliRunner

from dbcrawl.main import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, shop_db):
    path = tmp_path / "dbcrawl.yaml"
    path.write_text(
        "databases:\n"
        "  - alias: shop\n"
        f"    connection_string: {shop_db}\n"
    )
    return path


def test_crawl_writes_document(tmp_path, config_file):
    output = tmp_path / "shop.json"

    result = runner.invoke(app, ["crawl", "shop", "--config", str(config_file), "--output", str(output)])

    assert result.exit_code == 0, result.output
    document = json.loads(output.read_text())
    assert document["name"] == "shop"
    assert [s["name"] for s in document["schemas"]] == ["main"]
    tables = {t["name"] for t in document["schemas"][0]["tables"]}
    assert tables == {"customers", "orders", "order_lines"}


def test_crawl_prints_document(config_file):
    result = runner.invoke(app, ["crawl", "shop", "-c", str(config_file)])

    assert result.exit_code == 0
    assert '"name": "customers"' in result.stdout


def test_crawl_schema_pattern_without_match(config_file):
    result = runner.invoke(app, ["crawl", "shop", "-c", str(config_file), "--schema", "sales*"])

    assert result.exit_code == 1


def test_crawl_unknown_alias(config_file):
    result = runner.invoke(app, ["crawl", "warehouse", "-c", str(config_file)])

    assert result.exit_code == 1


def test_missing_config(tmp_path):
    result = runner.invoke(app, ["crawl", "shop", "-c", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1


def test_check_conn(config_file):
    result = runner.invoke(app, ["check-conn", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "shop: Connection Successful" in result.stdout
    assert "Found 1 schemas, 3 tables." in result.stdout
