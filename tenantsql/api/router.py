from fastapi import APIRouter
from tenantsql.api.endpoints import auth, users, tenants, schema, sql

api_router = APIRouter()

# Combine all sub-routers into one
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(tenants.router)
api_router.include_router(schema.router)
api_router.include_router(sql.router)
