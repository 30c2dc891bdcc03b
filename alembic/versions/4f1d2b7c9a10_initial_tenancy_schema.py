"""initial tenancy schema: users, companies, workspaces, memberships, credential tokens

Revision ID: 4f1d2b7c9a10
Revises: 
Create Date: 2026-10-17 09:12:44.102311

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4f1d2b7c9a10'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

membership_role = sa.Enum("ADMIN", "WORKSPACE_ADMIN", "MEMBER", name="membershiprole")
resource_type = sa.Enum("COMPANY", "WORKSPACE", name="resourcetype")
token_kind = sa.Enum("PASSWORD_RESET", "FIRST_ACCESS", name="tokenkind")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("is_superuser", sa.Boolean(), nullable=False),
        sa.Column("must_reset_password", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    op.create_table(
        "companies",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("legal_name", sa.String(255), nullable=False),
        sa.Column("tax_id", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_companies_tax_id", "companies", ["tax_id"])
    op.create_index("ix_companies_deleted_at", "companies", ["deleted_at"])

    op.create_table(
        "workspaces",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_workspaces_company_id", "workspaces", ["company_id"])
    op.create_index("ix_workspaces_deleted_at", "workspaces", ["deleted_at"])

    op.create_table(
        "memberships",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("resource_type", resource_type, nullable=False),
        sa.Column("resource_id", sa.Uuid(), nullable=False),
        sa.Column("role", membership_role, nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_memberships_user_scope", "memberships", ["user_id", "resource_type", "resource_id"]
    )
    op.create_index("ix_memberships_scope", "memberships", ["resource_type", "resource_id"])
    op.create_index("ix_memberships_deleted_at", "memberships", ["deleted_at"])

    op.create_table(
        "credential_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("kind", token_kind, nullable=False),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_credential_tokens_token_hash", "credential_tokens", ["token_hash"], unique=True)
    op.create_index(
        "ix_credential_tokens_lookup",
        "credential_tokens",
        ["user_id", "kind", "used_at", "expires_at"],
    )


def downgrade() -> None:
    op.drop_table("credential_tokens")
    op.drop_table("memberships")
    op.drop_table("workspaces")
    op.drop_table("companies")
    op.drop_table("users")
    token_kind.drop(op.get_bind(), checkfirst=True)
    membership_role.drop(op.get_bind(), checkfirst=True)
    resource_type.drop(op.get_bind(), checkfirst=True)
