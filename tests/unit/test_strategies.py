from __future__ import annotations

from decimal import Decimal

import pytest

from sheetload.models.config_models import ColumnMapping, TableConfig, TableDefaults
from sheetload.services.schema import MappingError, build_container
from sheetload.services.strategies import (
    BulkStrategy,
    InsertStrategy,
    InvalidMode,
    LoadMode,
    UpsertStrategy,
    dedupe_by_key,
    get_strategy,
    parse_mode,
)


def _table(keys=("SKU",), **overrides) -> TableConfig:
    return TableConfig(
        name="products",
        folder="products",
        columns=(
            ColumnMapping(db="SKU", type="string", excel="Sku"),
            ColumnMapping(db="Price", type="decimal", excel="Price"),
        ),
        key_columns=keys,
        overrides=TableDefaults(**overrides),
    )


def _container(table, rows):
    c = build_container(table)
    for sku, price in rows:
        c.add_row({"SKU": sku, "Price": price})
    return c


@pytest.mark.parametrize("text,mode", [("bulk", LoadMode.BULK), (" Insert ", LoadMode.INSERT), ("UPSERT", LoadMode.UPSERT)])
def test_parse_mode(text, mode):
    assert parse_mode(text) is mode
    assert get_strategy(text).mode is mode


@pytest.mark.parametrize("text", ["merge", "", None])
def test_parse_mode_invalid(text):
    with pytest.raises(InvalidMode):
        parse_mode(text)


def test_bulk_sends_everything_in_one_copy(fake_client):
    table = _table(batch_size=2, identity_insert=True)
    settings = table.effective(TableDefaults())
    container = _container(table, [("A", Decimal("1")), ("B", None)])
    assert BulkStrategy().load(fake_client, table, settings, container) == 2
    (copy,) = fake_client.bulk_copies
    assert copy["columns"] == ["SKU", "Price"]
    assert copy["rows"] == [("A", Decimal("1")), ("B", None)]
    assert copy["batch_size"] == 2
    assert copy["identity_insert"] is True


def test_bulk_empty_container_does_nothing(fake_client):
    table = _table()
    assert BulkStrategy().load(fake_client, table, table.effective(TableDefaults()), build_container(table)) == 0
    assert fake_client.bulk_copies == []


def test_insert_uses_populated_columns_only(fake_client):
    table = _table()
    container = _container(table, [("A", Decimal("1")), ("B", None), (None, None)])
    sent = InsertStrategy().load(fake_client, table, table.effective(TableDefaults()), container)
    assert sent == 2
    statements = [s.statements[0] for s in fake_client.sessions]
    assert statements == [
        ('INSERT INTO "products" ("SKU", "Price") VALUES (%s, %s)', ["A", Decimal("1")]),
        ('INSERT INTO "products" ("SKU") VALUES (%s)', ["B"]),
    ]


def test_dedupe_last_occurrence_wins_first_position_kept():
    table = _table()
    container = _container(table, [("A", 1), ("B", 2), ("A", 3), (None, 4), (None, 5)])
    rows = dedupe_by_key(container, ["SKU"])
    assert [(r["SKU"], r["Price"]) for r in rows] == [("A", 3), ("B", 2), (None, 4), (None, 5)]


def test_upsert_stages_and_merges_in_one_session(fake_client, caplog):
    table = _table(batch_size=50)
    container = _container(table, [("SKU-1", Decimal("9.99")), ("SKU-2", Decimal("5")), ("SKU-1", Decimal("10"))])
    with caplog.at_level("WARNING"):
        sent = UpsertStrategy().load(fake_client, table, table.effective(TableDefaults()), container)
    assert sent == 2
    assert "collapsed" in caplog.text

    (session,) = fake_client.sessions
    assert session.timeout_disabled is True
    create_sql = session.statements[0][0]
    merge_sql = session.statements[1][0]
    assert create_sql.startswith('CREATE TEMP TABLE "stg_products_')
    assert '"SKU" TEXT, "Price" DECIMAL(38,10)' in create_sql
    assert merge_sql.startswith('MERGE INTO "products" AS t')
    assert 'WHEN MATCHED THEN UPDATE SET "Price" = s."Price"' in merge_sql

    (load,) = session.bulk_loads
    assert load["table"] in create_sql
    assert load["rows"] == [("SKU-1", Decimal("10")), ("SKU-2", Decimal("5"))]
    assert load["batch_size"] == 50


def test_upsert_requires_keys(fake_client):
    table = _table(keys=())
    container = _container(table, [("A", 1)])
    with pytest.raises(MappingError):
        UpsertStrategy().load(fake_client, table, table.effective(TableDefaults()), container)
    assert fake_client.sessions == []


def test_upsert_empty_container_skips_database(fake_client):
    table = _table()
    assert UpsertStrategy().load(fake_client, table, table.effective(TableDefaults()), build_container(table)) == 0
    assert fake_client.sessions == []
