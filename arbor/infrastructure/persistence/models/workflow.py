"""Workflow, trigger and action ORM models. Event-driven automation definitions."""

from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from arbor.infrastructure.persistence.database import Base
from arbor.infrastructure.persistence.models.mixins import (
    CuidMixin,
    SoftDeleteMixin,
    TimestampMixin,
)


class AutomationWorkflow(CuidMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Workflow definition. Table: automation_workflow."""

    __tablename__ = "automation_workflow"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )
    is_template: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.text("false")
    )
    template_category: Mapped[str | None] = mapped_column(String, nullable=True)
    max_executions_per_day: Mapped[int | None] = mapped_column(
        Integer, nullable=True, default=100
    )
    cooldown_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )

    triggers: Mapped[list["AutomationTrigger"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="AutomationTrigger.trigger_order",
    )
    actions: Mapped[list["AutomationAction"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="AutomationAction.action_order",
    )


class AutomationTrigger(CuidMixin, TimestampMixin, Base):
    """Trigger of a workflow. Table: automation_trigger."""

    __tablename__ = "automation_trigger"

    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("automation_workflow.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    trigger_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    conditions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    trigger_order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )

    workflow: Mapped[AutomationWorkflow] = relationship(back_populates="triggers")


class AutomationAction(CuidMixin, TimestampMixin, Base):
    """Action of a workflow. Table: automation_action."""

    __tablename__ = "automation_action"

    workflow_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("automation_workflow.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action_type: Mapped[str] = mapped_column(String, nullable=False)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    delay_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    action_order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    continue_on_error: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.text("true")
    )

    workflow: Mapped[AutomationWorkflow] = relationship(back_populates="actions")
