"""Execution history queries: log listing, execution detail and stats."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta

from arbor.application.dtos.execution import AutomationStats, ExecutionDetail, LogQuery
from arbor.application.interfaces.repositories import (
    IExecutionStore,
    IWorkflowRepository,
)
from arbor.domain.entities.execution import ExecutionLogEntity, derive_execution_status
from arbor.domain.exceptions import ResourceNotFoundException, ValidationException
from arbor.shared.enums import ExecutionLogStatus
from arbor.shared.utils.datetime import start_of_utc_day, utc_now

MAX_STATS_DAYS = 365


class AutomationLogService:
    """Read side of the execution log sink."""

    def __init__(
        self,
        *,
        executions: IExecutionStore,
        workflows: IWorkflowRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._executions = executions
        self._workflows = workflows
        self._clock = clock

    async def list_logs(self, query: LogQuery) -> tuple[list[ExecutionLogEntity], int]:
        if query.status is not None and query.status not in ExecutionLogStatus.values():
            raise ValidationException(
                f"status must be one of {', '.join(ExecutionLogStatus.values())}", "status"
            )
        if query.start_date and query.end_date and query.start_date > query.end_date:
            raise ValidationException("start_date must not be after end_date", "start_date")
        return await self._executions.list_logs(query)

    async def get_execution(self, execution_id: str) -> ExecutionDetail:
        """One execution with its logs; status derived from the logs."""
        record = await self._executions.get_execution(execution_id)
        logs = await self._executions.list_execution_logs(execution_id)
        if record is None and not logs:
            raise ResourceNotFoundException("execution", execution_id)
        finished = record.is_finished if record is not None else True
        status = derive_execution_status((log.status for log in logs), finished=finished)
        workflow_id = record.workflow_id if record is not None else logs[0].workflow_id
        return ExecutionDetail(
            record=record,
            execution_id=execution_id,
            workflow_id=workflow_id,
            status=status,
            logs=tuple(logs),
        )

    async def stats(self, *, days: int = 30, workflow_id: str | None = None) -> AutomationStats:
        """Aggregates for the last `days` UTC days (today included)."""
        if days < 1 or days > MAX_STATS_DAYS:
            raise ValidationException(f"days must be between 1 and {MAX_STATS_DAYS}", "days")
        since = start_of_utc_day(self._clock()) - timedelta(days=days - 1)
        stats = await self._executions.stats(
            since=since, period_days=days, workflow_id=workflow_id
        )
        named = []
        for item in stats.top_workflows:
            if item.workflow_name is None:
                workflow = await self._workflows.get_by_id(item.workflow_id, include_deleted=True)
                item = replace(item, workflow_name=workflow.name if workflow else None)
            named.append(item)
        return replace(stats, top_workflows=named)
