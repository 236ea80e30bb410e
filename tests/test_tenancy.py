import asyncio

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine

from tenantsql.core import models
from tenantsql.core.errors import TenantConnectionError, TenantNotFound
from tenantsql.core.tenancy import ConnectionRegistry, build_endpoint_url, resolve_connection


class CountingFactory:
    def __init__(self):
        self.created = 0

    def __call__(self, url, **kwargs):
        self.created += 1
        return create_async_engine(url, **kwargs)


def test_build_url_for_server_endpoint():
    endpoint = models.Endpoint(
        id=1,
        protocol="postgresql",
        host="db.internal",
        port=5432,
        username="reader",
        password="s3cret",
        default_database="shop",
    )
    url = build_endpoint_url(endpoint)

    assert url.drivername == "postgresql+asyncpg"
    assert url.host == "db.internal"
    assert url.database == "shop"


def test_build_url_rejects_unknown_protocol():
    with pytest.raises(TenantConnectionError):
        build_endpoint_url(models.Endpoint(id=1, protocol="oracle"))


@pytest.mark.asyncio
async def test_resolve_before_sync_raises(db_session, registry, test_user, test_endpoint):
    with pytest.raises(TenantNotFound):
        await resolve_connection(test_user.id, db_session, registry)

    assert len(registry) == 0


@pytest.mark.asyncio
async def test_resolve_after_sync(db_session, registry, test_user, synced_endpoint):
    connection = await resolve_connection(test_user.id, db_session, registry)

    assert connection.endpoint_id == synced_endpoint.id
    assert connection.database == "main"
    assert connection.engine.dialect.name == "sqlite"


@pytest.mark.asyncio
async def test_resolve_reuses_pool(db_session, registry, test_user, synced_endpoint):
    first = await resolve_connection(test_user.id, db_session, registry)
    second = await resolve_connection(test_user.id, db_session, registry)

    assert first.engine is second.engine
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_user_without_company(db_session, registry, test_admin):
    with pytest.raises(TenantNotFound):
        await resolve_connection(test_admin.id, db_session, registry)


@pytest.mark.asyncio
async def test_unknown_user(db_session, registry):
    with pytest.raises(TenantNotFound):
        await resolve_connection(9999, db_session, registry)


@pytest.mark.asyncio
async def test_inactive_endpoint_is_not_routed(db_session, registry, test_user, synced_endpoint):
    await db_session.execute(
        update(models.Endpoint)
        .where(models.Endpoint.id == synced_endpoint.id)
        .values(active=False)
    )
    await db_session.commit()

    with pytest.raises(TenantNotFound):
        await resolve_connection(test_user.id, db_session, registry)


@pytest.mark.asyncio
async def test_concurrent_first_access_creates_one_engine(test_endpoint):
    factory = CountingFactory()
    registry = ConnectionRegistry(engine_factory=factory)
    try:
        engines = await asyncio.gather(
            *(registry.get_engine(test_endpoint) for _ in range(5))
        )
    finally:
        await registry.dispose_all()

    assert factory.created == 1
    assert all(engine is engines[0] for engine in engines)


@pytest.mark.asyncio
async def test_failed_handshake_is_not_cached(test_company, tmp_path):
    endpoint = models.Endpoint(
        id=42,
        company_id=test_company.id,
        protocol="sqlite",
        default_database=str(tmp_path / "missing" / "tenant.db"),
    )
    registry = ConnectionRegistry()

    with pytest.raises(TenantConnectionError):
        await registry.get_engine(endpoint)

    assert 42 not in registry


@pytest.mark.asyncio
async def test_invalidate_drops_pool(registry, test_endpoint):
    engine = await registry.get_engine(test_endpoint)

    await registry.invalidate(test_endpoint.id)

    assert test_endpoint.id not in registry
    assert await registry.get_engine(test_endpoint) is not engine


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "default_database, expected",
    [(None, "analytics"), ("shop", "shop"), ("retired", "analytics")],
)
async def test_resolved_database_is_routed(
    db_session, test_user, test_company, tenant_db_path, default_database, expected
):
    endpoint = models.Endpoint(
        company_id=test_company.id,
        name="warehouse",
        protocol="mysql",
        host="db.internal",
        default_database=default_database,
        active=True,
    )
    db_session.add(endpoint)
    await db_session.commit()
    for name, active in (("analytics", True), ("retired", False), ("shop", True)):
        db_session.add(models.SchemaDatabase(endpoint_id=endpoint.id, name=name, active=active))
    await db_session.commit()

    # Any URL lands on the local tenant file so the handshake succeeds
    registry = ConnectionRegistry(
        engine_factory=lambda url, **kwargs: create_async_engine(
            f"sqlite+aiosqlite:///{tenant_db_path}"
        )
    )
    try:
        connection = await resolve_connection(test_user.id, db_session, registry)
    finally:
        await registry.dispose_all()

    assert connection.endpoint_id == endpoint.id
    assert connection.database == expected
