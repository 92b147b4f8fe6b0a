"""DTOs for workflow execution: trigger context, action outcomes, logs and stats."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from arbor.domain.entities.execution import ExecutionLogEntity, ExecutionRecord
from arbor.shared.enums import ExecutionLogStatus, ExecutionOutcome, ExecutionStatus


@dataclass(frozen=True)
class AutomationOptions:
    """Process-level execution options, passed explicitly (no module globals)."""

    dry_run: bool = False
    company_name: str = ""
    action_timeout_seconds: float = 30.0


@dataclass(frozen=True)
class TriggerContext:
    """What started a run: the event (or manual request) and its data."""

    trigger_type: str
    payload: dict[str, Any]
    event_id: str | None = None
    event_type: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    trigger_id: str | None = None
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form, persisted with delayed actions."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TriggerContext":
        return cls(
            trigger_type=data.get("trigger_type") or "manual",
            payload=dict(data.get("payload") or {}),
            event_id=data.get("event_id"),
            event_type=data.get("event_type"),
            entity_type=data.get("entity_type"),
            entity_id=data.get("entity_id"),
            trigger_id=data.get("trigger_id"),
            dry_run=bool(data.get("dry_run", False)),
        )


@dataclass(frozen=True)
class ActionContext:
    """Context handed to an action handler."""

    execution_id: str
    workflow_id: str
    action_id: str
    action_type: str
    trigger: TriggerContext

    @property
    def idempotency_key(self) -> str:
        """Stable per (execution, action): redelivery of the same step reuses it."""
        return f"{self.execution_id}:{self.action_id}"


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one handler invocation."""

    status: ExecutionLogStatus
    output_data: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def completed(cls, output_data: dict[str, Any] | None = None) -> "ActionOutcome":
        return cls(ExecutionLogStatus.COMPLETED, output_data or {})

    @classmethod
    def failed(cls, error: str, output_data: dict[str, Any] | None = None) -> "ActionOutcome":
        return cls(ExecutionLogStatus.FAILED, output_data, error)


@dataclass(frozen=True)
class ExecutionLogCreate:
    """Input for the execution log sink (one row, committed on its own)."""

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


@dataclass(frozen=True)
class ScheduledActionCreate:
    """Input for persisting a delayed action."""

    execution_id: str
    workflow_id: str
    action_id: str
    due_at: datetime
    context: dict[str, Any]


@dataclass(frozen=True)
class ExecutionResult:
    """What one executor invocation did."""

    execution_id: str
    workflow_id: str
    outcome: ExecutionOutcome
    logs: tuple[ExecutionLogEntity, ...] = field(default_factory=tuple)
    reason: str | None = None
    scheduled_for: datetime | None = None


@dataclass(frozen=True)
class LogQuery:
    """Filters for the execution history view."""

    workflow_id: str | None = None
    status: str | None = None
    action_type: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    skip: int = 0
    limit: int = 50


@dataclass(frozen=True)
class ExecutionDetail:
    """One execution with its ordered logs and derived status."""

    record: ExecutionRecord | None
    execution_id: str
    workflow_id: str
    status: ExecutionStatus
    logs: tuple[ExecutionLogEntity, ...]


@dataclass(frozen=True)
class OverallStats:
    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    avg_duration_ms: float | None = None
    max_duration_ms: int | None = None
    min_duration_ms: int | None = None

    @property
    def success_rate(self) -> float:
        """Completed / (completed + failed), as a percentage; skipped runs excluded."""
        attempted = self.completed + self.failed
        if not attempted:
            return 0.0
        return round(self.completed * 100.0 / attempted, 1)


@dataclass(frozen=True)
class DailyStats:
    day: str
    total: int
    completed: int
    failed: int
    skipped: int


@dataclass(frozen=True)
class ActionTypeStats:
    action_type: str
    total: int
    completed: int
    failed: int
    avg_duration_ms: float | None


@dataclass(frozen=True)
class WorkflowStats:
    workflow_id: str
    workflow_name: str | None
    executions: int
    total: int
    failed: int


@dataclass(frozen=True)
class AutomationStats:
    """Aggregates over execution logs within a period."""

    period_days: int
    overall: OverallStats
    daily: list[DailyStats] = field(default_factory=list)
    by_action_type: list[ActionTypeStats] = field(default_factory=list)
    top_workflows: list[WorkflowStats] = field(default_factory=list)
