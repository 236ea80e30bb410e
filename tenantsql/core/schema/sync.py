# tenantsql/core/schema/sync.py
"""
SCHEMA SYNC MODULE - Reconcile a tenant's live catalog into the schema mirror

Purpose:
    1. List live databases, tables and columns on an endpoint
    2. Three-way diff each level against the mirror rows of its parent
    3. Insert new entities, re-activate seen ones, deactivate missing ones
    4. Never delete: descriptions survive a table that is briefly unreachable

Data Flow:
    endpoint -> LiveCatalog -> reconcile(databases) -> reconcile(tables)
             -> reconcile(columns) -> single commit -> SyncReport

Every entity write runs in its own savepoint so a lock conflict only replays
that one write. The pass commits once, at the end.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, Optional, Type

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantsql.core import models
from tenantsql.core.errors import (
    TenantConnectionError,
    TenantNotFound,
    TransientWriteConflict,
)
from tenantsql.core.schema.introspect import LiveCatalog
from tenantsql.core.tenancy import ConnectionRegistry

logger = logging.getLogger(__name__)

# MySQL: lock wait timeout, deadlock. PostgreSQL: serialization failure, deadlock.
MYSQL_LOCK_ERRORS = {1205, 1213}
POSTGRES_LOCK_STATES = {"40001", "40P01"}


def is_lock_conflict(error: DBAPIError) -> bool:
    """True when the store rejected a write because of lock contention."""
    orig = getattr(error, "orig", None)
    if orig is None:
        return False

    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in POSTGRES_LOCK_STATES:
        return True

    args = getattr(orig, "args", ())
    if args and args[0] in MYSQL_LOCK_ERRORS:
        return True

    return "database is locked" in str(orig).lower()


@dataclass
class ReconcileResult:
    """Outcome of one three-way diff; `active` maps observed name -> row id."""

    active: Dict[str, int] = field(default_factory=dict)
    upserted: int = 0
    inserted: int = 0
    deactivated: int = 0


@dataclass
class SyncReport:
    endpoint_id: int
    databases_upserted: int = 0
    tables_upserted: int = 0
    columns_upserted: int = 0
    inserted: int = 0
    deactivated: int = 0

    def absorb(self, level: str, result: ReconcileResult) -> None:
        setattr(self, f"{level}_upserted", getattr(self, f"{level}_upserted") + result.upserted)
        self.inserted += result.inserted
        self.deactivated += result.deactivated

    def to_dict(self) -> Dict[str, int]:
        return {
            "endpoint_id": self.endpoint_id,
            "databases_upserted": self.databases_upserted,
            "tables_upserted": self.tables_upserted,
            "columns_upserted": self.columns_upserted,
            "inserted": self.inserted,
            "deactivated": self.deactivated,
        }


class SchemaSynchronizer:
    """Sole writer of the schema mirror."""

    def __init__(
        self,
        db: AsyncSession,
        registry: ConnectionRegistry,
        attempts: int = 3,
        backoff_seconds: float = 0.1,
        catalog_factory: Callable[[Any], LiveCatalog] = LiveCatalog,
    ):
        self.db = db
        self.registry = registry
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.catalog_factory = catalog_factory

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _write(self, apply: Callable[[], Any]) -> Any:
        """
        Run one entity write inside a savepoint.

        Lock conflicts are retried with a fixed backoff up to `attempts`;
        every other database error propagates on the first failure.
        """
        for attempt in range(1, self.attempts + 1):
            try:
                async with self.db.begin_nested():
                    return apply()
            except DBAPIError as error:
                if not is_lock_conflict(error):
                    raise
                if attempt == self.attempts:
                    raise TransientWriteConflict(
                        f"Mirror write still conflicting after {self.attempts} attempts"
                    ) from error
                logger.warning(
                    f"Lock conflict on mirror write (attempt {attempt}/{self.attempts}), retrying"
                )
                await asyncio.sleep(self.backoff_seconds)

    def _insert(self, model: Type[models.Base], values: Dict[str, Any]):
        row = model(**values)
        self.db.add(row)
        return row

    @staticmethod
    def _assign(row: Any, values: Dict[str, Any]):
        for key, value in values.items():
            setattr(row, key, value)
        return row

    # ------------------------------------------------------------------
    # Generic three-way diff
    # ------------------------------------------------------------------

    async def reconcile(
        self,
        model: Type[models.Base],
        parent_column: str,
        parent_id: int,
        observed: Dict[str, Dict[str, Any]],
    ) -> ReconcileResult:
        """
        Diff live entities against mirror rows that share one parent.

        Args:
            model: Mirror model (database, table or column level).
            parent_column: Foreign key column naming the parent.
            parent_id: Parent row id the diff is scoped to.
            observed: Live name -> extra attributes to keep in sync (e.g. data_type).

        Returns:
            ReconcileResult with the ids of every observed (now active) entity.
        """
        query = select(model).where(getattr(model, parent_column) == parent_id)
        result = await self.db.execute(query)
        existing = {row.name: row for row in result.scalars().all()}

        outcome = ReconcileResult()

        for name, attrs in observed.items():
            row = existing.get(name)
            if row is None:
                values = {parent_column: parent_id, "name": name, "active": True, **attrs}
                row = await self._write(partial(self._insert, model, values))
                outcome.active[name] = row.id
                outcome.inserted += 1
            else:
                # read before writing: a rolled back savepoint expires the row
                outcome.active[name] = row.id
                wanted = {"active": True, **attrs}
                changed = {k: v for k, v in wanted.items() if getattr(row, k) != v}
                if changed:
                    await self._write(partial(self._assign, row, changed))
            outcome.upserted += 1

        for name, row in existing.items():
            if name not in observed and row.active:
                await self._write(partial(self._assign, row, {"active": False}))
                outcome.deactivated += 1

        return outcome

    # ------------------------------------------------------------------
    # Sync pass
    # ------------------------------------------------------------------

    async def refresh(self, endpoint_id: int, company_id: Optional[int] = None) -> SyncReport:
        """
        Run one full sync pass for an endpoint.

        Args:
            endpoint_id: Endpoint to walk.
            company_id: When given, the endpoint must belong to this company.

        Raises:
            TenantNotFound: unknown endpoint (or owned by another company)
            TenantConnectionError: live catalog unreachable; endpoint marked inactive
            TransientWriteConflict: lock contention outlasted the retry bound
        """
        endpoint = await self.db.get(models.Endpoint, endpoint_id)
        if endpoint is None or (company_id is not None and endpoint.company_id != company_id):
            raise TenantNotFound(f"Endpoint {endpoint_id} not found")

        logger.info(f"Schema sync started for endpoint {endpoint_id}")
        try:
            engine = await self.registry.get_engine(endpoint)
            report = await self._sync_endpoint(endpoint, self.catalog_factory(engine))
            await self._write(
                partial(
                    self._assign,
                    endpoint,
                    {"active": True, "last_synced_at": datetime.now(timezone.utc)},
                )
            )
            await self.db.commit()
        except TenantConnectionError:
            await self.db.rollback()
            await self._mark_unreachable(endpoint_id)
            raise
        except Exception:
            await self.db.rollback()
            logger.error(f"Schema sync failed for endpoint {endpoint_id}, rolled back")
            raise

        logger.info(
            f"Schema sync finished for endpoint {endpoint_id}: "
            f"{report.databases_upserted} databases, {report.tables_upserted} tables, "
            f"{report.columns_upserted} columns, {report.inserted} new, "
            f"{report.deactivated} deactivated"
        )
        return report

    async def _sync_endpoint(self, endpoint: models.Endpoint, catalog: LiveCatalog) -> SyncReport:
        report = SyncReport(endpoint_id=endpoint.id)

        live_databases = await catalog.database_names()
        databases = await self.reconcile(
            models.SchemaDatabase,
            "endpoint_id",
            endpoint.id,
            {name: {} for name in live_databases},
        )
        report.absorb("databases", databases)

        for database_name, database_id in databases.active.items():
            live_tables = await catalog.table_names(database_name)
            tables = await self.reconcile(
                models.SchemaTable,
                "database_id",
                database_id,
                {name: {} for name in live_tables},
            )
            report.absorb("tables", tables)

            for table_name, table_id in tables.active.items():
                live_columns = await catalog.columns(database_name, table_name)
                columns = await self.reconcile(
                    models.SchemaColumn,
                    "table_id",
                    table_id,
                    {name: {"data_type": data_type} for name, data_type in live_columns.items()},
                )
                report.absorb("columns", columns)

        return report

    async def _mark_unreachable(self, endpoint_id: int) -> None:
        stmt = (
            update(models.Endpoint)
            .where(models.Endpoint.id == endpoint_id)
            .values(active=False)
        )
        await self.db.execute(stmt)
        await self.db.commit()
        await self.registry.invalidate(endpoint_id)
        logger.warning(f"Endpoint {endpoint_id} unreachable, marked inactive")
