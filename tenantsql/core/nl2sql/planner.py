"""Round trips to a tenant database: plan-only checks and real execution."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Dialect
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from tenantsql.core.errors import (
    ExecutionError,
    PlanValidationFailed,
    TenantConnectionError,
)
from tenantsql.core.tenancy import TenantConnection

logger = logging.getLogger(__name__)


def database_message(error: SQLAlchemyError) -> str:
    """The driver's own message, without SQLAlchemy's statement dump."""
    if isinstance(error, DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error)


def database_selection_sql(dialect: Dialect, database: str) -> Optional[str]:
    """
    Statement that points a fresh connection at the resolved database.

    MySQL calls it a database, PostgreSQL a schema. SQLite tables are found
    through the attached `main` database without any switch.
    """
    if not database or dialect.name == "sqlite":
        return None
    quoted = dialect.identifier_preparer.quote(database)
    if dialect.name == "mysql":
        return f"USE {quoted}"
    if dialect.name == "postgresql":
        return f"SET search_path TO {quoted}"
    return None


async def select_database(conn: AsyncConnection, database: str) -> None:
    statement = database_selection_sql(conn.dialect, database)
    if statement is not None:
        await conn.exec_driver_sql(statement)


async def checkout(connection: TenantConnection) -> AsyncConnection:
    """Pooled connection already switched to `connection.database`."""
    try:
        conn = await connection.engine.connect()
    except (SQLAlchemyError, OSError) as error:
        raise TenantConnectionError(
            f"Endpoint {connection.endpoint_id} unavailable: {error}"
        ) from error

    try:
        await select_database(conn, connection.database)
    except SQLAlchemyError as error:
        await conn.close()
        raise TenantConnectionError(
            f"Endpoint {connection.endpoint_id} has no database {connection.database!r}: "
            f"{database_message(error)}"
        ) from error
    return conn


async def abandon(conn: AsyncConnection) -> None:
    """
    Stop a statement that outlived its timeout and discard the connection.

    Cancelling the await does not stop a driver that runs statements on a
    worker thread (aiosqlite); interrupting it does, so closing does not
    block until the statement finishes on its own.
    """
    raw = await conn.get_raw_connection()
    interrupt = getattr(raw.driver_connection, "interrupt", None)
    if interrupt is not None:
        result = interrupt()
        if asyncio.iscoroutine(result):
            await result
    await conn.invalidate()


async def explain_query(connection: TenantConnection, sql: str, timeout: float) -> None:
    """
    Ask the tenant database to plan `sql` without running it.

    Raises:
        PlanValidationFailed: the planner rejected the query or timed out.
    """
    conn = await checkout(connection)
    try:
        await asyncio.wait_for(conn.exec_driver_sql(f"EXPLAIN {sql}"), timeout)
    except asyncio.TimeoutError as error:
        await abandon(conn)
        raise PlanValidationFailed(f"Plan check timed out after {timeout}s") from error
    except SQLAlchemyError as error:
        raise PlanValidationFailed(database_message(error)) from error
    finally:
        await conn.close()


async def run_query(connection: TenantConnection, sql: str, timeout: float) -> List[Dict[str, Any]]:
    """
    Execute `sql` and return its rows as column -> value mappings.

    Raises:
        ExecutionError: database error or timeout; never retried.
    """
    conn = await checkout(connection)
    try:
        result = await asyncio.wait_for(conn.exec_driver_sql(sql), timeout)
        if not result.returns_rows:
            return []
        return [dict(row) for row in result.mappings().all()]
    except asyncio.TimeoutError as error:
        await abandon(conn)
        raise ExecutionError(f"Query timed out after {timeout}s") from error
    except SQLAlchemyError as error:
        raise ExecutionError(database_message(error)) from error
    finally:
        await conn.close()
