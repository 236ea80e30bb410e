import logging
from typing import List

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from tenantsql.core import schemas, models
from tenantsql.api.dependencies import admin_dep, db_dep, registry_dep

router = APIRouter(prefix="/tenants", tags=["Tenants"])


async def _get_company(company_id: int, db) -> models.Company:
    company = await db.get(models.Company, company_id)
    if company is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Company not found")
    return company


async def _get_endpoint(company_id: int, endpoint_id: int, db) -> models.Endpoint:
    endpoint = await db.get(models.Endpoint, endpoint_id)
    if endpoint is None or endpoint.company_id != company_id:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Endpoint not found")
    return endpoint


@router.post(
    "", response_model=schemas.CompanyResponse, status_code=status.HTTP_201_CREATED
)
async def create_company(company: schemas.CompanyCreate, db: db_dep, admin: admin_dep):
    query = select(models.Company).where(models.Company.name == company.name)
    result = await db.execute(query)
    if result.scalars().first():
        raise HTTPException(status.HTTP_409_CONFLICT, "Company already exists")

    try:
        new_company = models.Company(name=company.name)
        db.add(new_company)
        await db.commit()
        await db.refresh(new_company)
        return new_company
    except Exception as error:
        await db.rollback()
        logging.error(f"Failed to create company: {error}")
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create company"
        )


@router.post(
    "/{company_id}/endpoints",
    response_model=schemas.EndpointResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_endpoint(
    company_id: int,
    endpoint: schemas.EndpointCreate,
    db: db_dep,
    admin: admin_dep,
):
    """Register a tenant database server. Run POST /schema/refresh afterwards."""
    await _get_company(company_id, db)

    try:
        new_endpoint = models.Endpoint(
            **endpoint.model_dump(exclude={"protocol"}),
            protocol=endpoint.protocol.value,
            company_id=company_id,
            active=True,
        )
        db.add(new_endpoint)
        await db.commit()
        await db.refresh(new_endpoint)
        return new_endpoint
    except Exception as error:
        await db.rollback()
        logging.error(f"Failed to register endpoint: {error}")
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to register endpoint"
        )


@router.get("/{company_id}/endpoints", response_model=List[schemas.EndpointResponse])
async def list_endpoints(company_id: int, db: db_dep, admin: admin_dep):
    await _get_company(company_id, db)
    query = (
        select(models.Endpoint)
        .where(models.Endpoint.company_id == company_id)
        .order_by(models.Endpoint.id)
    )
    result = await db.execute(query)
    return result.scalars().all()


@router.patch(
    "/{company_id}/endpoints/{endpoint_id}", response_model=schemas.EndpointResponse
)
async def update_endpoint(
    company_id: int,
    endpoint_id: int,
    changes: schemas.EndpointUpdate,
    db: db_dep,
    admin: admin_dep,
    registry: registry_dep,
):
    """Update connection details; the cached pool is dropped so new credentials apply."""
    endpoint = await _get_endpoint(company_id, endpoint_id, db)

    for key, value in changes.model_dump(exclude_unset=True).items():
        setattr(endpoint, key, value)

    try:
        await db.commit()
        await db.refresh(endpoint)
    except Exception as error:
        await db.rollback()
        logging.error(f"Failed to update endpoint {endpoint_id}: {error}")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Update failed")

    await registry.invalidate(endpoint_id)
    return endpoint
