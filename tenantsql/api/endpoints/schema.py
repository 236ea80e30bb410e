from fastapi import APIRouter

from tenantsql.core import schemas
from tenantsql.core.config import settings
from tenantsql.core.errors import TenantSQLError
from tenantsql.core.schema.descriptions import save_descriptions
from tenantsql.core.schema.formatter import build_schema_tree, load_active_rows, render_schema
from tenantsql.core.schema.sync import SchemaSynchronizer
from tenantsql.api.dependencies import db_dep, registry_dep, tenant_user_dep
from tenantsql.api.errors import to_http_exception

router = APIRouter(prefix="/schema", tags=["Schema"])


@router.post("/refresh", response_model=schemas.SyncReportResponse)
async def refresh_schema(
    payload: schemas.RefreshRequest,
    current_user: tenant_user_dep,
    db: db_dep,
    registry: registry_dep,
):
    """
    Walk the endpoint's live catalog and reconcile it into the schema mirror.
    Entities that disappeared are deactivated, never deleted.
    """
    synchronizer = SchemaSynchronizer(
        db,
        registry,
        attempts=settings.SYNC_WRITE_ATTEMPTS,
        backoff_seconds=settings.SYNC_RETRY_BACKOFF_SECONDS,
    )
    try:
        report = await synchronizer.refresh(
            payload.endpoint_id, company_id=current_user.company_id
        )
    except TenantSQLError as error:
        raise to_http_exception(error)
    return report.to_dict()


@router.get("", response_model=schemas.SchemaTreeResponse)
async def get_schema(current_user: tenant_user_dep, db: db_dep):
    """Active schema mirror of the current user's company."""
    rows = await load_active_rows(current_user.company_id, db)
    return {"company_id": current_user.company_id, "databases": build_schema_tree(rows)}


@router.get("/text", response_model=schemas.SchemaTextResponse)
async def get_schema_text(current_user: tenant_user_dep, db: db_dep):
    """The grounding document exactly as the language model sees it."""
    rows = await load_active_rows(current_user.company_id, db)
    return {"company_id": current_user.company_id, "schema_text": render_schema(rows)}


@router.post("/descriptions")
async def save_schema_descriptions(
    payload: schemas.SaveDescriptionsRequest,
    current_user: tenant_user_dep,
    db: db_dep,
):
    return await save_descriptions(current_user.company_id, payload.items, db)
