from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, EmailStr


# =========================
# Enums
# =========================
class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class EndpointProtocol(str, Enum):
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


class Intent(str, Enum):
    FRESH = "fresh"
    FOLLOW_UP = "follow_up"


class GenerationStatus(str, Enum):
    ANSWERED = "answered"
    ACCEPTED = "accepted"
    BLOCKED = "blocked"
    REJECTED = "rejected"


# =========================
# USER
# =========================
class UserBase(BaseModel):
    email: EmailStr
    role: UserRole = UserRole.USER


class CreateUser(UserBase):
    password: str = Field(min_length=8)
    company_id: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(UserBase):
    id: int
    company_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =========================
# TENANT / ENDPOINT
# =========================
class CompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)


class CompanyResponse(CompanyCreate):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EndpointBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    protocol: EndpointProtocol
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    default_database: Optional[str] = None


class EndpointCreate(EndpointBase):
    password: Optional[str] = None


class EndpointUpdate(BaseModel):
    name: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    default_database: Optional[str] = None
    active: Optional[bool] = None


class EndpointResponse(EndpointBase):
    id: int
    company_id: int
    active: bool
    last_synced_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =========================
# SCHEMA MIRROR
# =========================
class RefreshRequest(BaseModel):
    endpoint_id: int


class SyncReportResponse(BaseModel):
    endpoint_id: int
    databases_upserted: int
    tables_upserted: int
    columns_upserted: int
    inserted: int
    deactivated: int


class ColumnView(BaseModel):
    name: str
    data_type: str
    description: Optional[str] = None


class TableView(BaseModel):
    name: str
    description: Optional[str] = None
    columns: List[ColumnView] = []


class DatabaseView(BaseModel):
    name: str
    endpoint_id: int
    description: Optional[str] = None
    tables: List[TableView] = []


class SchemaTreeResponse(BaseModel):
    company_id: int
    databases: List[DatabaseView] = []


class SchemaTextResponse(BaseModel):
    company_id: int
    schema_text: str


class DescriptionItem(BaseModel):
    """
    Human-authored description for a mirror entity.
    Omitting `column` targets the table; omitting `table` targets the database.
    """

    database: str
    table: Optional[str] = None
    column: Optional[str] = None
    description: Optional[str] = None


class SaveDescriptionsRequest(BaseModel):
    items: List[DescriptionItem]


# =========================
# NL -> SQL
# =========================
class ContextTurn(BaseModel):
    prompt: str
    sql: Optional[str] = None
    message: Optional[str] = None
    result: Optional[List[Dict[str, Any]]] = None


class GenerateSQLRequest(BaseModel):
    prompt: str = Field(min_length=1)
    context: List[ContextTurn] = []


class GenerateSQLResponse(BaseModel):
    status: GenerationStatus
    intent: Intent
    requires_schema: bool
    needs_sql: bool
    blocked: bool = False
    explanation: Optional[str] = None
    sql: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


class ExecuteSQLRequest(BaseModel):
    sql: str = ""


class ExecuteSQLResponse(BaseModel):
    rows: List[Dict[str, Any]]
