import pytest
from sqlalchemy import update

from tenantsql.core import models
from tenantsql.core.schema.formatter import (
    MirrorRow,
    build_schema_tree,
    format_schema,
    load_active_rows,
    render_schema,
)


def row(table, column, data_type="integer", database="shop", endpoint_id=1, **descriptions):
    return MirrorRow(
        endpoint_id=endpoint_id,
        database=database,
        database_description=descriptions.get("database_description"),
        table=table,
        table_description=descriptions.get("table_description"),
        column=column,
        data_type=data_type if column else None,
        column_description=descriptions.get("column_description"),
    )


def test_render_single_database():
    rows = [
        row("orders", "id", table_description="One row per checkout"),
        row("orders", "total", "numeric(10, 2)", table_description="One row per checkout",
            column_description="Order total in USD"),
        row("users", "id"),
    ]

    assert render_schema(rows) == (
        "Table: orders\n"
        "Description: One row per checkout\n"
        "- id (INTEGER): No description\n"
        "- total (NUMERIC(10, 2)): Order total in USD\n"
        "\n"
        "Table: users\n"
        "- id (INTEGER): No description"
    )


def test_render_qualifies_tables_across_databases():
    rows = [row("orders", "id", database="billing"), row("orders", "id", database="shop")]

    text = render_schema(rows)

    assert "Table: billing.orders" in text
    assert "Table: shop.orders" in text


def test_render_table_without_columns():
    assert render_schema([row("empty", None)]) == "Table: empty"


def test_render_nothing():
    assert render_schema([]) == ""


def test_tree_groups_rows():
    rows = [row("orders", "id"), row("orders", "total", "numeric"), row("users", "id")]

    tree = build_schema_tree(rows)

    assert len(tree) == 1
    assert tree[0]["name"] == "shop"
    assert [t["name"] for t in tree[0]["tables"]] == ["orders", "users"]
    assert [c["name"] for c in tree[0]["tables"][0]["columns"]] == ["id", "total"]


@pytest.mark.asyncio
async def test_format_synced_tenant(db_session, synced_endpoint, test_company):
    text = await format_schema(test_company.id, db_session)

    assert text.split("\n\n")[0] == (
        "Table: legacy_logs\n"
        "- id (INTEGER): No description\n"
        "- message (TEXT): No description"
    )
    assert "- total (NUMERIC(10, 2)): No description" in text
    assert "- name (VARCHAR(50)): No description" in text
    assert "main." not in text


@pytest.mark.asyncio
async def test_format_excludes_inactive_entities(db_session, synced_endpoint, test_company):
    await db_session.execute(
        update(models.SchemaTable)
        .where(models.SchemaTable.name == "legacy_logs")
        .values(active=False)
    )
    await db_session.execute(
        update(models.SchemaColumn)
        .where(models.SchemaColumn.name == "email")
        .values(active=False)
    )
    await db_session.commit()

    text = await format_schema(test_company.id, db_session)

    assert "legacy_logs" not in text
    assert "email" not in text
    assert "Table: users" in text


@pytest.mark.asyncio
async def test_format_excludes_inactive_endpoint(db_session, synced_endpoint, test_company):
    await db_session.execute(
        update(models.Endpoint)
        .where(models.Endpoint.id == synced_endpoint.id)
        .values(active=False)
    )
    await db_session.commit()

    assert await load_active_rows(test_company.id, db_session) == []


@pytest.mark.asyncio
async def test_format_is_deterministic(db_session, synced_endpoint, test_company):
    first = await format_schema(test_company.id, db_session)

    assert await format_schema(test_company.id, db_session) == first


@pytest.mark.asyncio
async def test_format_without_sync_is_empty(db_session, test_company):
    assert await format_schema(test_company.id, db_session) == ""
