from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantsql.core import models
from tenantsql.core.database import get_db
from tenantsql.core.nl2sql.llm import LLMClient
from tenantsql.core.security import get_current_user, require_tenant, validate_admin_role
from tenantsql.core.tenancy import ConnectionRegistry


# Both live on app.state, created in the lifespan; tests override these two functions
def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_llm(request: Request) -> LLMClient:
    return request.app.state.llm


db_dep = Annotated[AsyncSession, Depends(get_db)]
user_dep = Annotated[models.User, Depends(get_current_user)]
tenant_user_dep = Annotated[models.User, Depends(require_tenant)]
admin_dep = Annotated[models.User, Depends(validate_admin_role)]
registry_dep = Annotated[ConnectionRegistry, Depends(get_registry)]
llm_dep = Annotated[LLMClient, Depends(get_llm)]
