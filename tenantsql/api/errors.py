import logging

from fastapi import HTTPException, status

from tenantsql.core.errors import (
    BlockedQuery,
    ExecutionError,
    LLMError,
    TenantConnectionError,
    TenantNotFound,
    TenantSQLError,
    TransientWriteConflict,
)

STATUS_BY_ERROR = (
    (TenantNotFound, status.HTTP_404_NOT_FOUND),
    (BlockedQuery, status.HTTP_403_FORBIDDEN),
    (ExecutionError, status.HTTP_400_BAD_REQUEST),
    (TransientWriteConflict, status.HTTP_409_CONFLICT),
    (TenantConnectionError, status.HTTP_502_BAD_GATEWAY),
    (LLMError, status.HTTP_502_BAD_GATEWAY),
)


def to_http_exception(error: TenantSQLError) -> HTTPException:
    """Map a domain error to the HTTP response the client sees."""
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))

    logging.error(f"Unmapped domain error: {error!r}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Request failed"
    )
