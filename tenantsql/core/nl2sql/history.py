import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantsql.core import models

logger = logging.getLogger(__name__)


async def record_query(
    db: AsyncSession, company_id: int, user_id: int, prompt: str, sql: str
) -> bool:
    """
    Append an accepted query to the audit trail.
    Best-effort: a failed write is logged and rolled back, never raised.
    """
    try:
        db.add(
            models.QueryHistory(
                company_id=company_id, user_id=user_id, prompt=prompt, generated_sql=sql
            )
        )
        await db.commit()
        return True
    except SQLAlchemyError as error:
        await db.rollback()
        logger.error(f"Failed to save query history for user {user_id}: {error}")
        return False
