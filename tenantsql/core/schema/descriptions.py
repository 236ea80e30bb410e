"""Human-authored descriptions on mirror entities.

Descriptions are keyed by name within a company, not by row id, so the UI can
send back exactly what `GET /schema` showed. Inactive rows can be described
too: a description written now survives until the entity comes back.
"""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantsql.core import models, schemas

logger = logging.getLogger(__name__)


async def _find_database(
    company_id: int, name: str, db: AsyncSession
) -> Optional[models.SchemaDatabase]:
    # Newest endpoint wins when a tenant moved servers and kept database names
    query = (
        select(models.SchemaDatabase)
        .join(models.Endpoint, models.Endpoint.id == models.SchemaDatabase.endpoint_id)
        .where(
            models.Endpoint.company_id == company_id,
            models.SchemaDatabase.name == name,
        )
        .order_by(models.Endpoint.active.desc(), models.Endpoint.id.desc())
        .limit(1)
    )
    result = await db.execute(query)
    return result.scalars().first()


async def _find_table(database_id: int, name: str, db: AsyncSession):
    query = select(models.SchemaTable).where(
        models.SchemaTable.database_id == database_id,
        models.SchemaTable.name == name,
    )
    result = await db.execute(query)
    return result.scalars().first()


async def _find_column(table_id: int, name: str, db: AsyncSession):
    query = select(models.SchemaColumn).where(
        models.SchemaColumn.table_id == table_id,
        models.SchemaColumn.name == name,
    )
    result = await db.execute(query)
    return result.scalars().first()


def _label(item: schemas.DescriptionItem) -> str:
    return ".".join(part for part in (item.database, item.table, item.column) if part)


async def save_descriptions(
    company_id: int, items: Sequence[schemas.DescriptionItem], db: AsyncSession
) -> Dict[str, List[str]]:
    """
    Apply descriptions and commit once.

    Returns:
        {"updated": [...], "missing": [...]} with dotted entity names.
    """
    updated: List[str] = []
    missing: List[str] = []

    for item in items:
        if item.column and not item.table:
            missing.append(_label(item))
            continue

        target = await _find_database(company_id, item.database, db)
        if target is not None and item.table:
            target = await _find_table(target.id, item.table, db)
            if target is not None and item.column:
                target = await _find_column(target.id, item.column, db)

        if target is None:
            missing.append(_label(item))
            continue

        target.description = item.description
        updated.append(_label(item))

    await db.commit()
    if missing:
        logger.warning(f"Descriptions for unknown entities ignored: {missing}")
    return {"updated": updated, "missing": missing}
