"""Execution domain entities: execution summary, per-action logs, delayed actions.

An execution is one run of one workflow for one trigger. Its status is
derived from its logs and never stored, so the logs stay the single
source of truth.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from arbor.shared.enums import (
    ExecutionLogStatus,
    ExecutionStatus,
    ScheduledActionStatus,
)


@dataclass(frozen=True)
class ExecutionRecord:
    """Execution summary row (created when a run passes the rate gates)."""

    id: str
    workflow_id: str
    trigger_type: str
    started_at: datetime
    event_id: str | None = None
    trigger_id: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    input_data: dict[str, Any] | None = None
    finished_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None


@dataclass(frozen=True)
class ExecutionLogEntity:
    """One action attempt (or one skipped run). Immutable once written."""

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


@dataclass(frozen=True)
class ScheduledActionEntity:
    """Persisted continuation: run action_id of execution_id when due_at passes."""

    id: str
    execution_id: str
    workflow_id: str
    action_id: str
    due_at: datetime
    context: dict[str, Any]
    status: ScheduledActionStatus
    attempts: int = 0
    last_error: str | None = None


def derive_execution_status(
    statuses: Iterable[ExecutionLogStatus | str],
    *,
    finished: bool = True,
) -> ExecutionStatus:
    """Derive an execution's status from its log statuses.

    failed if any log failed; completed once the run finished and every log
    (possibly none) is completed or skipped; otherwise running.
    """
    values = [ExecutionLogStatus(s) for s in statuses]
    if any(s == ExecutionLogStatus.FAILED for s in values):
        return ExecutionStatus.FAILED
    if finished and all(
        s in (ExecutionLogStatus.COMPLETED, ExecutionLogStatus.SKIPPED) for s in values
    ):
        return ExecutionStatus.COMPLETED
    return ExecutionStatus.RUNNING


@dataclass(frozen=True)
class ScheduledJobEntity:
    """Fire-time state of one schedule trigger (one row per trigger).

    next_run_at is None once a one-shot job has fired. A paused job
    (workflow inactive or trigger removed) keeps its next_run_at.
    """

    id: str
    workflow_id: str
    trigger_id: str
    schedule_key: str
    next_run_at: datetime | None
    is_active: bool
    last_run_at: datetime | None = None
