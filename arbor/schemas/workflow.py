"""Workflow API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from arbor.application.dtos.workflow import (
    ActionSpec,
    TriggerSpec,
    WorkflowCreate,
    WorkflowUpdate,
)
from arbor.schemas.automation_log import ExecutionLogResponse
from arbor.shared.enums import ExecutionOutcome


class ConditionRequest(BaseModel):
    """Single condition: field (dotted path), operator, value."""

    field: str = Field(..., min_length=1)
    operator: str = Field(..., min_length=1)
    value: Any = None


class TriggerRequest(BaseModel):
    trigger_type: str = Field(..., min_length=1, max_length=128)
    conditions: list[ConditionRequest] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)
    trigger_order: int | None = None


class ActionRequest(BaseModel):
    action_type: str = Field(..., min_length=1, max_length=128)
    config: dict[str, Any] = Field(default_factory=dict)
    delay_minutes: int = Field(default=0, ge=0)
    action_order: int | None = None
    continue_on_error: bool = True


def _trigger_specs(triggers: list[TriggerRequest]) -> list[TriggerSpec]:
    return [
        TriggerSpec(
            trigger_type=t.trigger_type,
            conditions=[c.model_dump() for c in t.conditions],
            config=dict(t.config),
            trigger_order=i if t.trigger_order is None else t.trigger_order,
        )
        for i, t in enumerate(triggers)
    ]


def _action_specs(actions: list[ActionRequest]) -> list[ActionSpec]:
    return [
        ActionSpec(
            action_type=a.action_type,
            config=dict(a.config),
            delay_minutes=a.delay_minutes,
            action_order=i if a.action_order is None else a.action_order,
            continue_on_error=a.continue_on_error,
        )
        for i, a in enumerate(actions)
    ]


class WorkflowCreateRequest(BaseModel):
    """Request body for creating a workflow. Orders default to list position."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    is_active: bool = True
    is_template: bool = False
    template_category: str | None = Field(default=None, max_length=128)
    max_executions_per_day: int | None = Field(default=100, ge=0)
    cooldown_minutes: int = Field(default=0, ge=0)
    triggers: list[TriggerRequest] = Field(default_factory=list)
    actions: list[ActionRequest] = Field(default_factory=list)

    def to_dto(self) -> WorkflowCreate:
        return WorkflowCreate(
            name=self.name,
            description=self.description,
            is_active=self.is_active,
            is_template=self.is_template,
            template_category=self.template_category,
            max_executions_per_day=self.max_executions_per_day,
            cooldown_minutes=self.cooldown_minutes,
            triggers=_trigger_specs(self.triggers),
            actions=_action_specs(self.actions),
        )


class WorkflowUpdateRequest(BaseModel):
    """Partial update. Given triggers/actions replace the whole set."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None
    template_category: str | None = Field(default=None, max_length=128)
    max_executions_per_day: int | None = Field(default=None, ge=0)
    cooldown_minutes: int | None = Field(default=None, ge=0)
    triggers: list[TriggerRequest] | None = None
    actions: list[ActionRequest] | None = None

    def to_dto(self) -> WorkflowUpdate:
        return WorkflowUpdate(
            name=self.name,
            description=self.description,
            is_active=self.is_active,
            template_category=self.template_category,
            max_executions_per_day=self.max_executions_per_day,
            cooldown_minutes=self.cooldown_minutes,
            triggers=_trigger_specs(self.triggers) if self.triggers is not None else None,
            actions=_action_specs(self.actions) if self.actions is not None else None,
        )


class FromTemplateRequest(BaseModel):
    """Optional overrides when cloning a template."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None


class ExecuteWorkflowRequest(BaseModel):
    """Manual run. Accepts camelCase (entityType, entityId, entityData, dryRun)."""

    model_config = ConfigDict(populate_by_name=True)

    entity_type: str | None = Field(default=None, alias="entityType")
    entity_id: str | None = Field(default=None, alias="entityId")
    entity_data: dict[str, Any] = Field(default_factory=dict, alias="entityData")
    dry_run: bool = Field(default=False, alias="dryRun")


class TriggerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    trigger_type: str
    conditions: list[dict[str, Any]]
    config: dict[str, Any]
    trigger_order: int


class ActionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    action_type: str
    config: dict[str, Any]
    delay_minutes: int
    action_order: int
    continue_on_error: bool


class WorkflowResponse(BaseModel):
    """Workflow with its triggers and actions (ordered)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    is_active: bool
    is_template: bool
    template_category: str | None = None
    max_executions_per_day: int | None = None
    cooldown_minutes: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    triggers: list[TriggerResponse]
    actions: list[ActionResponse]


class WorkflowDetailResponse(WorkflowResponse):
    """Workflow plus its most recent execution logs."""

    recent_logs: list[ExecutionLogResponse] = Field(default_factory=list)


class WorkflowListResponse(BaseModel):
    items: list[WorkflowResponse]
    total: int
    skip: int
    limit: int


class ExecutionResultResponse(BaseModel):
    """Outcome of a manual run."""

    model_config = ConfigDict(from_attributes=True)

    execution_id: str
    workflow_id: str
    outcome: ExecutionOutcome
    reason: str | None = None
    scheduled_for: datetime | None = None
    logs: list[ExecutionLogResponse]
