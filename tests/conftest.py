import os

# Settings are read at import time, so the environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./tenantsql_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "30")

import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from tenantsql.api.dependencies import get_llm, get_registry
from tenantsql.core import models
from tenantsql.core.database import Base, get_db
from tenantsql.core.schema.sync import SchemaSynchronizer
from tenantsql.core.security import create_access_token, hash_password
from tenantsql.core.tenancy import ConnectionRegistry
from tenantsql.main import app

from helpers import TENANT_DDL, ScriptedLLM, run_tenant_sql


# A fresh store per test, file-backed so savepoints behave like a server database
@pytest_asyncio.fixture(scope="function")
async def store_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")

    # Let SQLAlchemy own BEGIN so nested savepoints work on sqlite
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(store_engine):
    TestingSessionLocal = async_sessionmaker(
        store_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with TestingSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
def tenant_db_path(tmp_path):
    path = tmp_path / "tenant.db"
    run_tenant_sql(path, TENANT_DDL)
    return path


@pytest_asyncio.fixture(scope="function")
async def registry():
    registry = ConnectionRegistry(pool_size=5, handshake_timeout=5.0)
    yield registry
    await registry.dispose_all()


@pytest.fixture
def llm():
    return ScriptedLLM()


# Company
@pytest_asyncio.fixture(scope="function")
async def test_company(db_session: AsyncSession):
    company = models.Company(name=f"Acme {uuid.uuid4().hex[:8]}")
    db_session.add(company)
    await db_session.commit()
    await db_session.refresh(company)
    return company


# Endpoint pointing at the fake tenant database
@pytest_asyncio.fixture(scope="function")
async def test_endpoint(db_session: AsyncSession, test_company, tenant_db_path):
    endpoint = models.Endpoint(
        company_id=test_company.id,
        name="primary",
        protocol="sqlite",
        default_database=str(tenant_db_path),
        active=True,
    )
    db_session.add(endpoint)
    await db_session.commit()
    await db_session.refresh(endpoint)
    return endpoint


# User
@pytest_asyncio.fixture(scope="function")
async def test_user(db_session: AsyncSession, test_company):
    unique_email = f"test_{uuid.uuid4().hex[:8]}@gmail.com"
    hashed_pwd = hash_password("password123")

    user = models.User(
        email=unique_email, password=hashed_pwd, role="user", company_id=test_company.id
    )

    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


# Admin
@pytest_asyncio.fixture(scope="function")
async def test_admin(db_session: AsyncSession):
    unique_email = f"admin_{uuid.uuid4().hex[:8]}@gmail.com"
    hashed_pwd = hash_password("password123")

    user = models.User(email=unique_email, password=hashed_pwd, role="admin")

    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def synced_endpoint(db_session, registry, test_endpoint):
    await SchemaSynchronizer(db_session, registry, backoff_seconds=0).refresh(test_endpoint.id)
    return test_endpoint


# Client
@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, registry, llm):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_llm] = lambda: llm

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# Token for user
@pytest_asyncio.fixture(scope="function")
async def auth_headers_user(test_user):
    token = create_access_token({"user_id": test_user.id})
    return {"Authorization": f"Bearer {token}"}


# Token for admin
@pytest_asyncio.fixture(scope="function")
async def auth_headers_admin(test_admin):
    token = create_access_token({"user_id": test_admin.id})
    return {"Authorization": f"Bearer {token}"}
