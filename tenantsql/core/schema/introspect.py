"""Live catalog reads for a tenant endpoint.

Uses SQLAlchemy's Inspector, which queries the vendor catalog for us:
information_schema on MySQL, pg_catalog on PostgreSQL, PRAGMA on SQLite.
"""

import logging
from typing import Any, Callable, Dict, List

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Dialect
from sqlalchemy.exc import CompileError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.types import TypeEngine

from tenantsql.core.errors import TenantConnectionError

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = frozenset(
    {
        "information_schema",
        "pg_catalog",
        "pg_toast",
        "mysql",
        "performance_schema",
        "sys",
        "temp",
    }
)


def is_system_schema(name: str) -> bool:
    lowered = name.lower()
    return lowered in SYSTEM_SCHEMAS or lowered.startswith("pg_temp_") or lowered.startswith(
        "pg_toast_temp_"
    )


def render_type(type_: TypeEngine, dialect: Dialect) -> str:
    """Declared column type as the tenant's dialect spells it."""
    try:
        return type_.compile(dialect=dialect)
    except CompileError:
        return type(type_).__name__.upper()


class LiveCatalog:
    """Read-only view of the databases, tables and columns on one endpoint."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def _run(self, fn: Callable[[Connection], Any]) -> Any:
        try:
            async with self.engine.connect() as conn:
                return await conn.run_sync(fn)
        except (SQLAlchemyError, OSError) as error:
            raise TenantConnectionError(f"Catalog read failed: {error}") from error

    async def database_names(self) -> List[str]:
        names = await self._run(lambda conn: inspect(conn).get_schema_names())
        return sorted(name for name in names if not is_system_schema(name))

    async def table_names(self, database: str) -> List[str]:
        names = await self._run(
            lambda conn: inspect(conn).get_table_names(schema=database)
        )
        return sorted(names)

    async def columns(self, database: str, table: str) -> Dict[str, str]:
        """Column name -> declared type, in the table's declared order."""

        def _read(conn: Connection) -> Dict[str, str]:
            return {
                column["name"]: render_type(column["type"], conn.dialect)
                for column in inspect(conn).get_columns(table, schema=database)
            }

        return await self._run(_read)
