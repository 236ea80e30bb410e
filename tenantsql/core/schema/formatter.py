"""Read-only projections of a company's active schema mirror.

`render_schema` produces the grounding document fed to the language model;
`build_schema_tree` produces the structured view served by the API. Both read
the same ordered rows so the two never disagree.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantsql.core import models

NO_DESCRIPTION = "No description"


@dataclass(frozen=True)
class MirrorRow:
    endpoint_id: int
    database: str
    database_description: Optional[str]
    table: str
    table_description: Optional[str]
    column: Optional[str]
    data_type: Optional[str]
    column_description: Optional[str]


async def load_active_rows(company_id: int, db: AsyncSession) -> List[MirrorRow]:
    """
    Active mirror rows for a company, one per column.

    Tables without active columns still yield one row with `column=None`.
    Ordered by endpoint, database, table, column so output is deterministic.
    """
    query = (
        select(
            models.Endpoint.id,
            models.SchemaDatabase.name,
            models.SchemaDatabase.description,
            models.SchemaTable.name,
            models.SchemaTable.description,
            models.SchemaColumn.name,
            models.SchemaColumn.data_type,
            models.SchemaColumn.description,
        )
        .select_from(models.Endpoint)
        .join(models.SchemaDatabase, models.SchemaDatabase.endpoint_id == models.Endpoint.id)
        .join(models.SchemaTable, models.SchemaTable.database_id == models.SchemaDatabase.id)
        .outerjoin(
            models.SchemaColumn,
            and_(
                models.SchemaColumn.table_id == models.SchemaTable.id,
                models.SchemaColumn.active == True,
            ),
        )
        .where(
            models.Endpoint.company_id == company_id,
            models.Endpoint.active == True,
            models.SchemaDatabase.active == True,
            models.SchemaTable.active == True,
        )
        .order_by(
            models.Endpoint.id,
            models.SchemaDatabase.name,
            models.SchemaTable.name,
            models.SchemaColumn.name,
        )
    )
    result = await db.execute(query)
    return [MirrorRow(*row) for row in result.all()]


def render_schema(rows: Sequence[MirrorRow]) -> str:
    """
    Render mirror rows as the grounding document.

    Example:
        Table: orders
        - id (INTEGER): No description
        - total (NUMERIC(10, 2)): Order total in USD
    """
    qualify = len({(row.endpoint_id, row.database) for row in rows}) > 1

    blocks: "OrderedDict[Any, List[str]]" = OrderedDict()
    for row in rows:
        key = (row.endpoint_id, row.database, row.table)
        if key not in blocks:
            title = f"{row.database}.{row.table}" if qualify else row.table
            lines = [f"Table: {title}"]
            if row.table_description:
                lines.append(f"Description: {row.table_description}")
            blocks[key] = lines
        if row.column is not None:
            description = row.column_description or NO_DESCRIPTION
            blocks[key].append(f"- {row.column} ({row.data_type.upper()}): {description}")

    return "\n\n".join("\n".join(lines) for lines in blocks.values())


def build_schema_tree(rows: Sequence[MirrorRow]) -> List[Dict[str, Any]]:
    databases: "OrderedDict[Any, Dict[str, Any]]" = OrderedDict()
    tables: Dict[Any, Dict[str, Any]] = {}

    for row in rows:
        db_key = (row.endpoint_id, row.database)
        if db_key not in databases:
            databases[db_key] = {
                "name": row.database,
                "endpoint_id": row.endpoint_id,
                "description": row.database_description,
                "tables": [],
            }
        table_key = db_key + (row.table,)
        if table_key not in tables:
            tables[table_key] = {
                "name": row.table,
                "description": row.table_description,
                "columns": [],
            }
            databases[db_key]["tables"].append(tables[table_key])
        if row.column is not None:
            tables[table_key]["columns"].append(
                {
                    "name": row.column,
                    "data_type": row.data_type,
                    "description": row.column_description,
                }
            )

    return list(databases.values())


async def format_schema(company_id: int, db: AsyncSession) -> str:
    """Grounding document for a company; empty string when nothing is synced."""
    return render_schema(await load_active_rows(company_id, db))
