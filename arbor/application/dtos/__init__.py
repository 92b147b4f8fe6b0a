"""Data transfer objects crossing the application boundary."""

from arbor.application.dtos.event import EventCreate, ProcessingSummary
from arbor.application.dtos.execution import (
    ActionContext,
    ActionOutcome,
    AutomationOptions,
    AutomationStats,
    ExecutionDetail,
    ExecutionLogCreate,
    ExecutionResult,
    LogQuery,
    ScheduledActionCreate,
    TriggerContext,
)
from arbor.application.dtos.workflow import (
    ActionSpec,
    TriggerSpec,
    WorkflowCreate,
    WorkflowQuery,
    WorkflowUpdate,
)

__all__ = [
    "ActionContext",
    "ActionOutcome",
    "ActionSpec",
    "AutomationOptions",
    "AutomationStats",
    "EventCreate",
    "ExecutionDetail",
    "ExecutionLogCreate",
    "ExecutionResult",
    "LogQuery",
    "ProcessingSummary",
    "ScheduledActionCreate",
    "TriggerContext",
    "TriggerSpec",
    "WorkflowCreate",
    "WorkflowQuery",
    "WorkflowUpdate",
]
