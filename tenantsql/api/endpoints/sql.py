from fastapi import APIRouter, HTTPException, status

from tenantsql.core import schemas
from tenantsql.core.config import settings
from tenantsql.core.errors import TenantSQLError
from tenantsql.core.nl2sql.executor import execute_sql
from tenantsql.core.nl2sql.generator import SQLGenerator
from tenantsql.api.dependencies import db_dep, llm_dep, registry_dep, tenant_user_dep
from tenantsql.api.errors import to_http_exception

router = APIRouter(prefix="/sql", tags=["SQL"])


@router.post("/generate", response_model=schemas.GenerateSQLResponse)
async def generate_sql(
    payload: schemas.GenerateSQLRequest,
    current_user: tenant_user_dep,
    db: db_dep,
    registry: registry_dep,
    llm: llm_dep,
):
    """
    Turn a question into an answer or a validated, unexecuted query.
    `context` carries earlier turns; it is dropped when the turn is classified fresh.
    """
    generator = SQLGenerator(llm, db, registry, settings=settings)
    try:
        result = await generator.generate(payload.prompt, current_user, payload.context)
    except TenantSQLError as error:
        raise to_http_exception(error)
    return result.to_dict()


@router.post("/execute", response_model=schemas.ExecuteSQLResponse)
async def execute(
    payload: schemas.ExecuteSQLRequest,
    current_user: tenant_user_dep,
    db: db_dep,
    registry: registry_dep,
):
    if not payload.sql.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "SQL query is required")

    try:
        rows = await execute_sql(
            payload.sql,
            current_user.id,
            db,
            registry,
            timeout=settings.QUERY_TIMEOUT_SECONDS,
        )
    except TenantSQLError as error:
        raise to_http_exception(error)
    return {"rows": rows}
