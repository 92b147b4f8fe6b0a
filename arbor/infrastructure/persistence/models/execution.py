"""Execution summary, execution log, scheduled action and schedule job ORM models."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from arbor.infrastructure.persistence.database import Base
from arbor.infrastructure.persistence.models.mixins import (
    CuidMixin,
    TimestampMixin,
    status_check,
)
from arbor.shared.enums import ExecutionLogStatus, ScheduledActionStatus


class AutomationExecution(Base):
    """One run of one workflow. Table: automation_execution. Counted by the rate gates."""

    __tablename__ = "automation_execution"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("automation_workflow.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("domain_event.id", ondelete="SET NULL"), nullable=True, index=True
    )
    trigger_id: Mapped[str | None] = mapped_column(String, nullable=True)
    trigger_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    input_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_automation_execution_workflow_started", "workflow_id", "started_at"),
    )


class AutomationLog(CuidMixin, Base):
    """One action attempt or skipped run. Table: automation_log. Immutable."""

    __tablename__ = "automation_log"

    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("automation_workflow.id", ondelete="CASCADE"),
        nullable=False,
    )
    execution_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    trigger_id: Mapped[str | None] = mapped_column(String, nullable=True)
    trigger_type: Mapped[str | None] = mapped_column(String, nullable=True)
    action_id: Mapped[str | None] = mapped_column(String, nullable=True)
    action_type: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, index=True)
    input_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    output_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_automation_log_workflow_started", "workflow_id", "started_at"),
        Index("ix_automation_log_entity", "entity_type", "entity_id"),
        status_check("status", ExecutionLogStatus.values(), "automation_log_status_check"),
    )


class AutomationScheduledAction(CuidMixin, TimestampMixin, Base):
    """Delayed action continuation. Table: automation_scheduled_action."""

    __tablename__ = "automation_scheduled_action"

    execution_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("automation_workflow.id", ondelete="CASCADE"),
        nullable=False,
    )
    action_id: Mapped[str] = mapped_column(String, nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    context: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=ScheduledActionStatus.PENDING.value,
        server_default=ScheduledActionStatus.PENDING.value,
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_automation_scheduled_action_status_due", "status", "due_at"),
        status_check(
            "status",
            ScheduledActionStatus.values(),
            "automation_scheduled_action_status_check",
        ),
    )


class AutomationScheduledJob(CuidMixin, TimestampMixin, Base):
    """Fire-time state of one schedule trigger. Table: automation_scheduled_job."""

    __tablename__ = "automation_scheduled_job"

    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("automation_workflow.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    trigger_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("automation_trigger.id", ondelete="CASCADE"),
        nullable=False,
    )
    schedule_key: Mapped[str] = mapped_column(String, nullable=False)
    next_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("trigger_id", name="uq_automation_scheduled_job_trigger_id"),
        Index("ix_automation_scheduled_job_active_next", "is_active", "next_run_at"),
    )
