"""Domain errors raised by the schema sync and NL-to-SQL pipeline.

Routers translate these into HTTP responses; none of them is fatal to the
process.
"""


class TenantSQLError(Exception):
    """Base error for tenantsql."""


class TenantNotFound(TenantSQLError):
    """User has no active tenant, endpoint or database."""


class TenantConnectionError(TenantSQLError):
    """Tenant database unreachable or credentials rejected."""


class TransientWriteConflict(TenantSQLError):
    """Mirror write kept losing to lock contention after all retries."""


class UnparsableModelReply(TenantSQLError):
    """Language model reply does not have the expected structure."""


class BlockedQuery(TenantSQLError):
    """SQL contains a data- or structure-modifying keyword."""

    def __init__(self, keyword: str):
        super().__init__(f"Query contains blocked keyword: {keyword}")
        self.keyword = keyword


class PlanValidationFailed(TenantSQLError):
    """Tenant database refused to plan the candidate query."""


class ExecutionError(TenantSQLError):
    """Runtime failure while executing a query on the tenant database."""


class LLMError(TenantSQLError):
    """Language model request failed."""


class LLMTimeout(LLMError):
    """Language model request timed out."""
