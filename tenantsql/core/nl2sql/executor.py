import logging
from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from tenantsql.core.errors import BlockedQuery
from tenantsql.core.nl2sql.guard import ensure_safe
from tenantsql.core.nl2sql.planner import run_query
from tenantsql.core.tenancy import ConnectionRegistry, resolve_connection

logger = logging.getLogger(__name__)


async def execute_sql(
    sql: str,
    user_id: int,
    db: AsyncSession,
    registry: ConnectionRegistry,
    timeout: float = 30.0,
) -> List[Dict[str, Any]]:
    """
    Run a client-submitted query on the user's tenant database.

    The safety gate runs again here: the SQL string comes back from the
    client and may differ from what generation validated.

    Raises:
        BlockedQuery: the text contains a mutating keyword
        TenantNotFound / TenantConnectionError: routing failed
        ExecutionError: the database rejected the query or it timed out
    """
    try:
        ensure_safe(sql)
    except BlockedQuery:
        logger.warning(f"Refused to execute blocked SQL for user {user_id}")
        raise

    connection = await resolve_connection(user_id, db, registry)
    rows = await run_query(connection, sql, timeout)
    logger.info(
        f"Executed query for user {user_id} on endpoint {connection.endpoint_id}: {len(rows)} rows"
    )
    return rows
