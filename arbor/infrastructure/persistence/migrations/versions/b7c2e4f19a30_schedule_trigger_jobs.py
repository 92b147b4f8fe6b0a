"""schedule_trigger_jobs

Revision ID: b7c2e4f19a30
Revises: a1b2c3d4e5f6
Create Date: 2026-10-19

Fire-time state for schedule triggers: one job row per trigger.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "b7c2e4f19a30"
down_revision: Union[str, Sequence[str], None] = "a1b2c3d4e5f6"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create automation_scheduled_job."""
    op.create_table(
        "automation_scheduled_job",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_id", sa.String(), nullable=False),
        sa.Column("trigger_id", sa.String(), nullable=False),
        sa.Column("schedule_key", sa.String(), nullable=False),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("trigger_id", name="uq_automation_scheduled_job_trigger_id"),
        sa.ForeignKeyConstraint(["workflow_id"], ["automation_workflow.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["trigger_id"], ["automation_trigger.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_automation_scheduled_job_workflow_id", "automation_scheduled_job", ["workflow_id"]
    )
    op.create_index(
        "ix_automation_scheduled_job_active_next",
        "automation_scheduled_job",
        ["is_active", "next_run_at"],
    )


def downgrade() -> None:
    """Drop automation_scheduled_job."""
    op.drop_table("automation_scheduled_job")
