"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
Two backends implement every port: SQL (arbor.infrastructure.persistence.stores)
and in-memory (arbor.infrastructure.memory). Engine-facing stores own their
transactions: every call commits on its own.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from arbor.application.dtos.event import EventCreate
    from arbor.application.dtos.execution import (
        AutomationStats,
        ExecutionLogCreate,
        LogQuery,
        ScheduledActionCreate,
    )
    from arbor.application.dtos.workflow import (
        WorkflowCreate,
        WorkflowQuery,
        WorkflowUpdate,
    )
    from arbor.domain.entities.event import DomainEventEntity
    from arbor.domain.entities.execution import (
        ExecutionLogEntity,
        ExecutionRecord,
        ScheduledActionEntity,
        ScheduledJobEntity,
    )
    from arbor.domain.entities.workflow import WorkflowEntity


class IEventStore(Protocol):
    """Durable, append-only store of domain events with an atomic claim."""

    async def append(self, data: EventCreate) -> DomainEventEntity:
        """Persist a new pending event. Durable before returning."""

    async def claim_pending(
        self,
        limit: int,
        *,
        now: datetime,
        visibility_timeout_seconds: int,
        max_attempts: int,
    ) -> list[DomainEventEntity]:
        """Atomically move up to limit eligible events to processing and return them.

        Eligible: pending; failed with next_attempt_at due and attempts left;
        processing whose lease (locked_until) expired and attempts left.
        Each claimed row gets attempts + 1 and a new lease. A row is
        returned to at most one concurrent caller.
        """

    async def claim_event(
        self,
        event_id: str,
        *,
        now: datetime,
        visibility_timeout_seconds: int,
        max_attempts: int,
    ) -> DomainEventEntity | None:
        """claim_pending for one event id. None if it is not eligible or already claimed."""

    async def release_stuck(self, *, now: datetime, max_attempts: int) -> int:
        """Fail processing rows whose lease expired after their final attempt."""

    async def mark_completed(
        self, event_id: str, *, now: datetime, attempt: int | None = None
    ) -> bool:
        """processing -> completed. Returns False if the event was not processing.

        attempt fences the update to the claim that produced it: a processor
        whose lease expired and was reclaimed cannot settle the newer claim.
        """

    async def mark_failed(
        self,
        event_id: str,
        error: str,
        *,
        now: datetime,
        retry_at: datetime | None,
        attempt: int | None = None,
    ) -> bool:
        """processing -> failed with last_error; retry_at schedules the next attempt.

        attempt fences the update the same way as mark_completed.
        """

    async def requeue(self, event_id: str, *, now: datetime) -> DomainEventEntity | None:
        """failed -> pending, attempts reset, error cleared. None if not failed."""

    async def dismiss(self, event_id: str, *, now: datetime) -> DomainEventEntity | None:
        """pending|failed -> dismissed. None if not in one of those states."""

    async def get_by_id(self, event_id: str) -> DomainEventEntity | None:
        """Return the event or None."""

    async def list_events(
        self, status: str | None = None, skip: int = 0, limit: int = 50
    ) -> list[DomainEventEntity]:
        """Newest first, optionally filtered by status."""

    async def count_by_status(self) -> dict[str, int]:
        """Number of events per status (every status present, zero when empty)."""


class IWorkflowRepository(Protocol):
    """Workflow definitions with their owned triggers and actions."""

    async def create(self, data: WorkflowCreate) -> WorkflowEntity:
        """Create a workflow, its triggers and actions in one transaction."""

    async def update(
        self, workflow_id: str, data: WorkflowUpdate
    ) -> WorkflowEntity | None:
        """Apply a partial update; replaces triggers/actions when given. None if missing."""

    async def set_active(
        self, workflow_id: str, is_active: bool
    ) -> WorkflowEntity | None:
        """Set is_active. None if missing or deleted."""

    async def soft_delete(self, workflow_id: str, *, now: datetime) -> bool:
        """Set deleted_at and deactivate. False if missing or already deleted."""

    async def get_by_id(
        self, workflow_id: str, *, include_deleted: bool = False
    ) -> WorkflowEntity | None:
        """Return the workflow with triggers and actions, or None."""

    async def list_workflows(
        self, query: WorkflowQuery
    ) -> tuple[list[WorkflowEntity], int]:
        """Page of non-deleted workflows and the total matching count."""

    async def list_templates(
        self, category: str | None = None
    ) -> list[WorkflowEntity]:
        """Non-deleted template workflows, optionally by category."""

    async def get_candidates(self, event_type: str) -> list[WorkflowEntity]:
        """Active, non-deleted, non-template workflows with a trigger of event_type."""


class IExecutionStore(Protocol):
    """Execution summaries and the execution log sink."""

    async def start_execution(self, record: ExecutionRecord) -> None:
        """Persist an execution summary (the run passed the rate gates)."""

    async def finish_execution(self, execution_id: str, finished_at: datetime) -> None:
        """Stamp finished_at once no further actions remain for the run."""

    async def write_log(self, data: ExecutionLogCreate) -> ExecutionLogEntity:
        """Append one log row, committed independently of anything else."""

    async def count_executions_since(self, workflow_id: str, since: datetime) -> int:
        """Executions of workflow_id started at or after since."""

    async def last_execution_started_at(self, workflow_id: str) -> datetime | None:
        """Start time of the most recent execution of workflow_id."""

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        """Return the execution summary or None."""

    async def list_execution_logs(self, execution_id: str) -> list[ExecutionLogEntity]:
        """Logs of one execution in the order they were written."""

    async def list_logs(self, query: LogQuery) -> tuple[list[ExecutionLogEntity], int]:
        """Page of logs (newest first) and the total matching count."""

    async def stats(
        self,
        *,
        since: datetime,
        period_days: int,
        workflow_id: str | None = None,
    ) -> AutomationStats:
        """Aggregate logs written since the given time."""


class IScheduledActionStore(Protocol):
    """Persisted continuations for actions with a delay."""

    async def schedule(self, data: ScheduledActionCreate) -> ScheduledActionEntity:
        """Persist a pending delayed action."""

    async def claim_due(
        self,
        *,
        now: datetime,
        limit: int,
        visibility_timeout_seconds: int,
    ) -> list[ScheduledActionEntity]:
        """Atomically claim due pending rows (and running rows whose lease expired)."""

    async def complete(self, scheduled_id: str, *, now: datetime) -> None:
        """running -> completed."""

    async def fail(self, scheduled_id: str, error: str, *, now: datetime) -> None:
        """running -> failed with last_error."""

    async def release(
        self, scheduled_id: str, error: str, *, retry_at: datetime, now: datetime
    ) -> None:
        """running -> pending again, due at retry_at, with last_error."""


class IScheduledJobStore(Protocol):
    """Fire-time state of schedule triggers, one job per trigger."""

    async def sync(
        self,
        *,
        workflow_id: str,
        trigger_id: str,
        schedule_key: str,
        next_run_at: datetime | None,
        now: datetime,
    ) -> ScheduledJobEntity:
        """Create the trigger's job, or reset it when schedule_key changed or it was paused.

        Active jobs with an unchanged key are returned as they are; a fired
        one-shot (inactive, no next_run_at) stays inactive.
        """

    async def deactivate_missing(self, trigger_ids: Collection[str], *, now: datetime) -> int:
        """Pause active jobs whose trigger is not in trigger_ids. Returns how many."""

    async def claim_due(
        self,
        *,
        now: datetime,
        limit: int,
        visibility_timeout_seconds: int,
    ) -> list[ScheduledJobEntity]:
        """Lease active jobs with next_run_at <= now. A job goes to at most one caller."""

    async def advance(
        self,
        job_id: str,
        *,
        last_run_at: datetime,
        next_run_at: datetime | None,
        now: datetime,
    ) -> None:
        """Record a run and move to next_run_at; None deactivates the job."""

    async def list_jobs(self, workflow_id: str | None = None) -> list[ScheduledJobEntity]:
        """Jobs ordered by next_run_at (inactive last)."""
