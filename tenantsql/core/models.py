from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    String,
    Boolean,
    TIMESTAMP,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from tenantsql.core.database import Base


# =========================
# Company (tenant)
# =========================
class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    users = relationship("User", back_populates="company")

    endpoints = relationship(
        "Endpoint",
        back_populates="company",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# =========================
# User
# =========================
class User(Base):
    __tablename__ = "users_table"

    id = Column(Integer, primary_key=True, autoincrement=True)

    email = Column(String, nullable=False, unique=True, index=True)
    password = Column(String, nullable=False)
    role = Column(String, nullable=False, server_default="user")

    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    company = relationship("Company", back_populates="users")


# =========================
# Endpoint (tenant database server)
# =========================
class Endpoint(Base):
    """
    A reachable database server owned by one tenant.

    The pool registry keys connections by this row's id, so a tenant that
    moves to a new server gets a new endpoint (and a new pool) instead of a
    mutated one.
    """

    __tablename__ = "endpoints"

    id = Column(Integer, primary_key=True, autoincrement=True)

    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String, nullable=False)
    protocol = Column(String, nullable=False)  # mysql/postgresql/sqlite
    host = Column(String, nullable=True)
    port = Column(Integer, nullable=True)
    username = Column(String, nullable=True)
    password = Column(String, nullable=True)
    default_database = Column(String, nullable=True)

    active = Column(Boolean, nullable=False, default=True, index=True)
    last_synced_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    company = relationship("Company", back_populates="endpoints")

    databases = relationship(
        "SchemaDatabase",
        back_populates="endpoint",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# =========================
# Schema mirror
# Endpoint -> Database -> Table -> Column, soft-activated, never deleted by sync
# =========================
class SchemaDatabase(Base):
    __tablename__ = "schema_databases"
    __table_args__ = (
        UniqueConstraint("endpoint_id", "name", name="uq_schema_databases_endpoint_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    endpoint_id = Column(
        Integer,
        ForeignKey("endpoints.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=True)

    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    endpoint = relationship("Endpoint", back_populates="databases")

    tables = relationship(
        "SchemaTable",
        back_populates="database",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SchemaTable(Base):
    __tablename__ = "schema_tables"
    __table_args__ = (
        UniqueConstraint("database_id", "name", name="uq_schema_tables_database_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    database_id = Column(
        Integer,
        ForeignKey("schema_databases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=True)

    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    database = relationship("SchemaDatabase", back_populates="tables")

    columns = relationship(
        "SchemaColumn",
        back_populates="table",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SchemaColumn(Base):
    __tablename__ = "schema_columns"
    __table_args__ = (
        UniqueConstraint("table_id", "name", name="uq_schema_columns_table_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    table_id = Column(
        Integer,
        ForeignKey("schema_tables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String, nullable=False)
    data_type = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    # human-authored, survives deactivation
    description = Column(Text, nullable=True)

    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    table = relationship("SchemaTable", back_populates="columns")


# =========================
# Query history (write-only audit trail)
# =========================
class QueryHistory(Base):
    __tablename__ = "query_history"

    id = Column(Integer, primary_key=True, autoincrement=True)

    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer,
        ForeignKey("users_table.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    prompt = Column(Text, nullable=False)
    generated_sql = Column(Text, nullable=False)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
