import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
import alembic.config
import alembic.command
from tenantsql.core.config import settings
from tenantsql.core.database import engine
from tenantsql.core.nl2sql.llm import ChatCompletionsClient
from tenantsql.core.tenancy import ConnectionRegistry
from tenantsql.api.router import api_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_migrations():
    """Sync function to run migrations"""
    alembic_cfg = alembic.config.Config("alembic.ini")
    alembic.command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Apply any pending migrations automatically when the app starts
    try:
        await asyncio.to_thread(run_migrations)
        logger.info("Migrations applied successfully (or already up-to-date)")
    except Exception as e:
        logger.error(f"Migration error during startup: {e}")

    # Shared by every request; one pool per tenant endpoint
    app.state.registry = ConnectionRegistry(
        pool_size=settings.TENANT_POOL_SIZE,
        handshake_timeout=settings.PLAN_TIMEOUT_SECONDS,
    )
    app.state.llm = ChatCompletionsClient(
        api_key=settings.LLM_API_KEY,
        base_url=settings.LLM_BASE_URL,
        model=settings.LLM_MODEL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )

    yield

    await app.state.registry.dispose_all()
    await app.state.llm.aclose()
    await engine.dispose()


app = FastAPI(title="Tenant NL-to-SQL API", lifespan=lifespan)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Tenant NL-to-SQL API is running"}
