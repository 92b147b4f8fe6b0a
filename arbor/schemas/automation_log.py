"""Execution history API schemas (automation logs, executions, stats)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from arbor.shared.enums import ExecutionLogStatus, ExecutionStatus


class ExecutionLogResponse(BaseModel):
    """One action attempt or skipped run."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow_id: str
    execution_id: str
    status: ExecutionLogStatus
    started_at: datetime
    trigger_id: str | None = None
    trigger_type: str | None = None
    action_id: str | None = None
    action_type: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    input_data: dict[str, Any] | None = None
    output_data: dict[str, Any] | None = None
    error_message: str | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None


class ExecutionLogListResponse(BaseModel):
    """Page of execution logs, newest first."""

    items: list[ExecutionLogResponse]
    total: int
    skip: int
    limit: int


class ExecutionDetailResponse(BaseModel):
    """One execution: summary fields, derived status, ordered logs."""

    execution_id: str
    workflow_id: str
    status: ExecutionStatus
    trigger_type: str | None = None
    event_id: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    logs: list[ExecutionLogResponse]


class OverallStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    completed: int
    failed: int
    skipped: int
    success_rate: float = Field(..., description="completed / (completed + failed), percent")
    avg_duration_ms: float | None = None
    max_duration_ms: int | None = None
    min_duration_ms: int | None = None


class DailyStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: str
    total: int
    completed: int
    failed: int
    skipped: int


class ActionTypeStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action_type: str
    total: int
    completed: int
    failed: int
    avg_duration_ms: float | None = None


class WorkflowStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    workflow_id: str
    workflow_name: str | None = None
    executions: int
    total: int
    failed: int


class AutomationStatsResponse(BaseModel):
    """GET /automation-logs/stats."""

    model_config = ConfigDict(from_attributes=True)

    period_days: int
    overall: OverallStatsResponse
    daily: list[DailyStatsResponse]
    by_action_type: list[ActionTypeStatsResponse]
    top_workflows: list[WorkflowStatsResponse]
