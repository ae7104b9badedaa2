"""Initial schema — project locks and access policies.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- Coordination --
    op.create_table(
        "project_locks",
        sa.Column("namespace", sa.String(255), primary_key=True),
        sa.Column("repository", sa.String(255), primary_key=True),
        sa.Column("project", sa.String(255), primary_key=True),
        sa.Column("workspace", sa.String(255), primary_key=True),
        sa.Column("pr_number", sa.Integer, nullable=False),
        sa.Column("requested_by", sa.String(255), server_default=""),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
    )

    # -- Policies --
    op.create_table(
        "access_policies",
        sa.Column("policy_id", sa.Uuid, primary_key=True),
        sa.Column("organisation", sa.String(255), nullable=False, server_default=""),
        sa.Column("namespace", sa.String(255), nullable=False, server_default=""),
        sa.Column("project", sa.String(255), nullable=False, server_default=""),
        sa.Column("policy", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "organisation", "namespace", "project", name="uq_access_policy_scope",
        ),
    )
    op.create_index(
        "ix_access_policies_organisation", "access_policies", ["organisation"],
    )


def downgrade() -> None:
    op.drop_index("ix_access_policies_organisation", table_name="access_policies")
    op.drop_table("access_policies")
    op.drop_table("project_locks")
