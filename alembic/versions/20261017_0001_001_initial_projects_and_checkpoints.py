"""001 initial projects and workflow step checkpoints

Revision ID: 001_initial_projects
Revises:
Create Date: 2026-10-17

Creates the projects table (upload metadata plus the status fields the
workflow writes) and the workflow_step_checkpoints table used to resume
runs without re-executing completed steps.
"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_projects"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

plan_tier = sa.Enum("free", "pro", "ultra", name="plan_tier")
project_status = sa.Enum("uploaded", "processing", "completed", "failed", name="project_status")


def upgrade() -> None:
    """Create projects and workflow_step_checkpoints tables."""
    op.create_table(
        "projects",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("file_duration", sa.Float(), nullable=True),
        sa.Column("plan", plan_tier, nullable=False, server_default="free"),
        sa.Column("status", project_status, nullable=False, server_default="uploaded"),
        sa.Column("job_status", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("job_errors", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("generated_content", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("transcript", sa.JSON(), nullable=True),
        sa.Column("error", sa.JSON(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_user_id", "projects", ["user_id"])
    op.create_index("ix_projects_status", "projects", ["status"])

    op.create_table(
        "workflow_step_checkpoints",
        sa.Column("run_id", sa.String(100), nullable=False),
        sa.Column("step_name", sa.String(100), nullable=False),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("run_id", "step_name", name="pk_workflow_step_checkpoints"),
    )
    op.create_index(
        "ix_workflow_step_checkpoints_completed_at",
        "workflow_step_checkpoints",
        ["completed_at"],
    )


def downgrade() -> None:
    """Drop workflow tables and enum types."""
    op.drop_index("ix_workflow_step_checkpoints_completed_at", "workflow_step_checkpoints")
    op.drop_table("workflow_step_checkpoints")
    op.drop_index("ix_projects_status", "projects")
    op.drop_index("ix_projects_user_id", "projects")
    op.drop_table("projects")
    project_status.drop(op.get_bind(), checkfirst=True)
    plan_tier.drop(op.get_bind(), checkfirst=True)
