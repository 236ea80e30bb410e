"""initial schema: tenants, users, endpoints, schema mirror, query history

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "users_table",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="user"),
        sa.Column(
            "company_id",
            sa.Integer(),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("created_at"),
    )
    op.create_index("ix_users_table_email", "users_table", ["email"], unique=True)
    op.create_index("ix_users_table_company_id", "users_table", ["company_id"])

    op.create_table(
        "endpoints",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "company_id",
            sa.Integer(),
            sa.ForeignKey("companies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("protocol", sa.String(), nullable=False),
        sa.Column("host", sa.String(), nullable=True),
        sa.Column("port", sa.Integer(), nullable=True),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("password", sa.String(), nullable=True),
        sa.Column("default_database", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("last_synced_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_endpoints_company_id", "endpoints", ["company_id"])
    op.create_index("ix_endpoints_active", "endpoints", ["active"])

    op.create_table(
        "schema_databases",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "endpoint_id",
            sa.Integer(),
            sa.ForeignKey("endpoints.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("updated_at"),
        sa.UniqueConstraint("endpoint_id", "name", name="uq_schema_databases_endpoint_name"),
    )
    op.create_index("ix_schema_databases_endpoint_id", "schema_databases", ["endpoint_id"])

    op.create_table(
        "schema_tables",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "database_id",
            sa.Integer(),
            sa.ForeignKey("schema_databases.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("updated_at"),
        sa.UniqueConstraint("database_id", "name", name="uq_schema_tables_database_name"),
    )
    op.create_index("ix_schema_tables_database_id", "schema_tables", ["database_id"])

    op.create_table(
        "schema_columns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "table_id",
            sa.Integer(),
            sa.ForeignKey("schema_tables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("data_type", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("updated_at"),
        sa.UniqueConstraint("table_id", "name", name="uq_schema_columns_table_name"),
    )
    op.create_index("ix_schema_columns_table_id", "schema_columns", ["table_id"])

    op.create_table(
        "query_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "company_id",
            sa.Integer(),
            sa.ForeignKey("companies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users_table.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("generated_sql", sa.Text(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_query_history_company_id", "query_history", ["company_id"])
    op.create_index("ix_query_history_user_id", "query_history", ["user_id"])


def downgrade() -> None:
    op.drop_table("query_history")
    op.drop_table("schema_columns")
    op.drop_table("schema_tables")
    op.drop_table("schema_databases")
    op.drop_table("endpoints")
    op.drop_table("users_table")
    op.drop_table("companies")
