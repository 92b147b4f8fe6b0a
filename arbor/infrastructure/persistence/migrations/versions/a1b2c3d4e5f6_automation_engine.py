"""automation_engine

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

Domain event store, workflow definitions (triggers, actions), execution
summaries, execution logs and delayed actions.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    """Create automation tables and indexes."""
    op.create_table(
        "domain_event",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), server_default="pending", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'dismissed')",
            name="domain_event_status_check",
        ),
    )
    op.create_index("ix_domain_event_event_type", "domain_event", ["event_type"])
    op.create_index("ix_domain_event_status_created", "domain_event", ["status", "created_at"])
    op.create_index("ix_domain_event_entity", "domain_event", ["entity_type", "entity_id"])

    op.create_table(
        "automation_workflow",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("is_template", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("template_category", sa.String(), nullable=True),
        sa.Column("max_executions_per_day", sa.Integer(), nullable=True),
        sa.Column("cooldown_minutes", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_workflow_deleted_at", "automation_workflow", ["deleted_at"])

    op.create_table(
        "automation_trigger",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_id", sa.String(), nullable=False),
        sa.Column("trigger_type", sa.String(), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("conditions", sa.JSON(), nullable=False),
        sa.Column("trigger_order", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["workflow_id"], ["automation_workflow.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_automation_trigger_workflow_id", "automation_trigger", ["workflow_id"])
    op.create_index("ix_automation_trigger_trigger_type", "automation_trigger", ["trigger_type"])

    op.create_table(
        "automation_action",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_id", sa.String(), nullable=False),
        sa.Column("action_type", sa.String(), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("delay_minutes", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("action_order", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("continue_on_error", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["workflow_id"], ["automation_workflow.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_automation_action_workflow_id", "automation_action", ["workflow_id"])

    op.create_table(
        "automation_execution",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_id", sa.String(), nullable=False),
        sa.Column("event_id", sa.String(), nullable=True),
        sa.Column("trigger_id", sa.String(), nullable=True),
        sa.Column("trigger_type", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("input_data", sa.JSON(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["workflow_id"], ["automation_workflow.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["domain_event.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_automation_execution_event_id", "automation_execution", ["event_id"])
    op.create_index(
        "ix_automation_execution_workflow_started",
        "automation_execution",
        ["workflow_id", "started_at"],
    )

    op.create_table(
        "automation_log",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_id", sa.String(), nullable=False),
        sa.Column("execution_id", sa.String(), nullable=False),
        sa.Column("trigger_id", sa.String(), nullable=True),
        sa.Column("trigger_type", sa.String(), nullable=True),
        sa.Column("action_id", sa.String(), nullable=True),
        sa.Column("action_type", sa.String(), nullable=True),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("input_data", sa.JSON(), nullable=True),
        sa.Column("output_data", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["workflow_id"], ["automation_workflow.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('completed', 'failed', 'skipped')",
            name="automation_log_status_check",
        ),
    )
    op.create_index("ix_automation_log_execution_id", "automation_log", ["execution_id"])
    op.create_index("ix_automation_log_action_type", "automation_log", ["action_type"])
    op.create_index("ix_automation_log_status", "automation_log", ["status"])
    op.create_index("ix_automation_log_workflow_started", "automation_log", ["workflow_id", "started_at"])
    op.create_index("ix_automation_log_entity", "automation_log", ["entity_type", "entity_id"])

    op.create_table(
        "automation_scheduled_action",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("execution_id", sa.String(), nullable=False),
        sa.Column("workflow_id", sa.String(), nullable=False),
        sa.Column("action_id", sa.String(), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("context", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), server_default="pending", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["workflow_id"], ["automation_workflow.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="automation_scheduled_action_status_check",
        ),
    )
    op.create_index(
        "ix_automation_scheduled_action_execution_id",
        "automation_scheduled_action",
        ["execution_id"],
    )
    op.create_index(
        "ix_automation_scheduled_action_status_due",
        "automation_scheduled_action",
        ["status", "due_at"],
    )


def downgrade() -> None:
    """Drop automation tables."""
    op.drop_table("automation_scheduled_action")
    op.drop_table("automation_log")
    op.drop_table("automation_execution")
    op.drop_table("automation_action")
    op.drop_table("automation_trigger")
    op.drop_table("automation_workflow")
    op.drop_table("domain_event")
