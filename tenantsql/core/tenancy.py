# tenantsql/core/tenancy.py
"""
TENANCY MODULE - Route a user to their company's live database

Purpose:
    1. Resolve user -> company -> active endpoint -> active database
    2. Keep one pooled async engine per endpoint (not per company)
    3. Surface handshake failures instead of retrying them

Data Flow:
    user_id -> resolve_connection() -> ConnectionRegistry.get_engine() -> TenantConnection
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from tenantsql.core import models
from tenantsql.core.errors import TenantConnectionError, TenantNotFound

logger = logging.getLogger(__name__)

DRIVERS = {
    "mysql": "mysql+aiomysql",
    "postgresql": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


@dataclass
class TenantConnection:
    endpoint_id: int
    database: str
    engine: AsyncEngine


def build_endpoint_url(endpoint: models.Endpoint) -> URL:
    """
    Build the SQLAlchemy URL for an endpoint.

    For sqlite endpoints `default_database` is the database file path.
    """
    driver = DRIVERS.get(endpoint.protocol)
    if driver is None:
        raise TenantConnectionError(
            f"Unsupported protocol for endpoint {endpoint.id}: {endpoint.protocol}"
        )

    if endpoint.protocol == "sqlite":
        return URL.create(driver, database=endpoint.default_database)

    return URL.create(
        driver,
        username=endpoint.username,
        password=endpoint.password,
        host=endpoint.host,
        port=endpoint.port,
        database=endpoint.default_database,
    )


class ConnectionRegistry:
    """
    Per-endpoint engine cache owned by the application instance.

    First access for an endpoint creates the engine under that endpoint's
    lock and performs one handshake; concurrent first requests for the same
    endpoint wait on the lock and reuse the engine the winner stored.
    """

    def __init__(
        self,
        pool_size: int = 5,
        handshake_timeout: float = 10.0,
        engine_factory: Callable[..., AsyncEngine] = create_async_engine,
    ):
        self.pool_size = pool_size
        self.handshake_timeout = handshake_timeout
        self._engine_factory = engine_factory
        self._engines: Dict[int, AsyncEngine] = {}
        self._locks: Dict[int, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._engines)

    def __contains__(self, endpoint_id: int) -> bool:
        return endpoint_id in self._engines

    def _create_engine(self, endpoint: models.Endpoint) -> AsyncEngine:
        url = build_endpoint_url(endpoint)
        if endpoint.protocol == "sqlite":
            return self._engine_factory(url)
        return self._engine_factory(
            url, pool_size=self.pool_size, max_overflow=0, pool_pre_ping=True
        )

    async def get_engine(self, endpoint: models.Endpoint) -> AsyncEngine:
        engine = self._engines.get(endpoint.id)
        if engine is not None:
            return engine

        lock = self._locks.setdefault(endpoint.id, asyncio.Lock())
        async with lock:
            # Another request may have finished creating it while we waited
            engine = self._engines.get(endpoint.id)
            if engine is not None:
                return engine

            engine = self._create_engine(endpoint)
            try:
                await asyncio.wait_for(self._handshake(engine), self.handshake_timeout)
            except (SQLAlchemyError, OSError, asyncio.TimeoutError) as error:
                await engine.dispose()
                logger.error(f"Handshake failed for endpoint {endpoint.id}: {error}")
                raise TenantConnectionError(
                    f"Could not connect to endpoint {endpoint.id}: {error}"
                ) from error

            self._engines[endpoint.id] = engine
            logger.info(
                f"Created connection pool for endpoint {endpoint.id} ({endpoint.protocol})"
            )
            return engine

    @staticmethod
    async def _handshake(engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.exec_driver_sql("SELECT 1")

    async def invalidate(self, endpoint_id: int) -> None:
        """Drop the cached pool, e.g. after the endpoint's credentials changed."""
        engine = self._engines.pop(endpoint_id, None)
        if engine is not None:
            await engine.dispose()
            logger.info(f"Disposed connection pool for endpoint {endpoint_id}")

    async def dispose_all(self) -> None:
        for endpoint_id in list(self._engines):
            await self.invalidate(endpoint_id)


async def get_active_endpoint(
    company_id: int, db: AsyncSession
) -> Optional[models.Endpoint]:
    """Newest active endpoint of a company; a relocated tenant gets a newer row."""
    query = (
        select(models.Endpoint)
        .where(
            models.Endpoint.company_id == company_id,
            models.Endpoint.active == True,
        )
        .order_by(models.Endpoint.id.desc())
        .limit(1)
    )
    result = await db.execute(query)
    return result.scalars().first()


async def resolve_connection(
    user_id: int, db: AsyncSession, registry: ConnectionRegistry
) -> TenantConnection:
    """
    Resolve a user to a pooled connection on their company's database.

    Raises:
        TenantNotFound: no company, no active endpoint or no active database
        TenantConnectionError: the endpoint refused the handshake
    """
    user = await db.get(models.User, user_id)
    if user is None or user.company_id is None:
        raise TenantNotFound(f"User {user_id} is not assigned to a company")

    endpoint = await get_active_endpoint(user.company_id, db)
    if endpoint is None:
        raise TenantNotFound(f"Company {user.company_id} has no active endpoint")

    query = (
        select(models.SchemaDatabase.name)
        .where(
            models.SchemaDatabase.endpoint_id == endpoint.id,
            models.SchemaDatabase.active == True,
        )
        .order_by(models.SchemaDatabase.name)
    )
    result = await db.execute(query)
    database_names = list(result.scalars().all())

    if not database_names:
        raise TenantNotFound(
            f"Endpoint {endpoint.id} has no active database, refresh the schema first"
        )

    if endpoint.default_database in database_names:
        database = endpoint.default_database
    else:
        database = database_names[0]

    engine = await registry.get_engine(endpoint)
    return TenantConnection(endpoint_id=endpoint.id, database=database, engine=engine)
