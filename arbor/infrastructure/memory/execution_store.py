"""In-memory execution store (IExecutionStore): summaries, log sink, stats."""

from __future__ import annotations

import asyncio
from collections import Counter, defaultdict
from dataclasses import replace
from datetime import datetime

from arbor.application.dtos.execution import (
    ActionTypeStats,
    AutomationStats,
    DailyStats,
    ExecutionLogCreate,
    LogQuery,
    OverallStats,
    WorkflowStats,
)
from arbor.domain.entities.execution import ExecutionLogEntity, ExecutionRecord
from arbor.shared.enums import ExecutionLogStatus
from arbor.shared.utils.generators import generate_cuid

TOP_WORKFLOWS_LIMIT = 10


def _avg(values: list[int]) -> float | None:
    return round(sum(values) / len(values), 1) if values else None


class InMemoryExecutionStore:
    """IExecutionStore backed by lists and dicts."""

    def __init__(self) -> None:
        self._records: dict[str, ExecutionRecord] = {}
        self._logs: list[ExecutionLogEntity] = []
        self._lock = asyncio.Lock()

    async def start_execution(self, record: ExecutionRecord) -> None:
        async with self._lock:
            self._records[record.id] = record

    async def finish_execution(self, execution_id: str, finished_at: datetime) -> None:
        async with self._lock:
            record = self._records.get(execution_id)
            if record is not None:
                self._records[execution_id] = replace(record, finished_at=finished_at)

    async def write_log(self, data: ExecutionLogCreate) -> ExecutionLogEntity:
        log = ExecutionLogEntity(
            id=generate_cuid(),
            workflow_id=data.workflow_id,
            execution_id=data.execution_id,
            status=data.status,
            started_at=data.started_at,
            trigger_id=data.trigger_id,
            trigger_type=data.trigger_type,
            action_id=data.action_id,
            action_type=data.action_type,
            entity_type=data.entity_type,
            entity_id=data.entity_id,
            input_data=data.input_data,
            output_data=data.output_data,
            error_message=data.error_message,
            completed_at=data.completed_at,
            duration_ms=data.duration_ms,
        )
        async with self._lock:
            self._logs.append(log)
        return log

    async def count_executions_since(self, workflow_id: str, since: datetime) -> int:
        return sum(
            1
            for r in self._records.values()
            if r.workflow_id == workflow_id and r.started_at >= since
        )

    async def last_execution_started_at(self, workflow_id: str) -> datetime | None:
        starts = [r.started_at for r in self._records.values() if r.workflow_id == workflow_id]
        return max(starts) if starts else None

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        return self._records.get(execution_id)

    async def list_execution_logs(self, execution_id: str) -> list[ExecutionLogEntity]:
        return [log for log in self._logs if log.execution_id == execution_id]

    async def list_logs(self, query: LogQuery) -> tuple[list[ExecutionLogEntity], int]:
        def keep(log: ExecutionLogEntity) -> bool:
            return (
                (query.workflow_id is None or log.workflow_id == query.workflow_id)
                and (query.status is None or log.status.value == query.status)
                and (query.action_type is None or log.action_type == query.action_type)
                and (query.entity_type is None or log.entity_type == query.entity_type)
                and (query.entity_id is None or log.entity_id == query.entity_id)
                and (query.start_date is None or log.started_at >= query.start_date)
                and (query.end_date is None or log.started_at <= query.end_date)
            )

        matches = [log for log in reversed(self._logs) if keep(log)]
        return matches[query.skip : query.skip + query.limit], len(matches)

    async def stats(
        self,
        *,
        since: datetime,
        period_days: int,
        workflow_id: str | None = None,
    ) -> AutomationStats:
        logs = [
            log
            for log in self._logs
            if log.started_at >= since and (workflow_id is None or log.workflow_id == workflow_id)
        ]
        statuses = Counter(log.status for log in logs)
        durations = [log.duration_ms for log in logs if log.duration_ms is not None and log.action_id]
        overall = OverallStats(
            total=len(logs),
            completed=statuses[ExecutionLogStatus.COMPLETED],
            failed=statuses[ExecutionLogStatus.FAILED],
            skipped=statuses[ExecutionLogStatus.SKIPPED],
            avg_duration_ms=_avg(durations),
            max_duration_ms=max(durations) if durations else None,
            min_duration_ms=min(durations) if durations else None,
        )

        by_day: dict[str, list[ExecutionLogEntity]] = defaultdict(list)
        by_type: dict[str, list[ExecutionLogEntity]] = defaultdict(list)
        by_workflow: dict[str, list[ExecutionLogEntity]] = defaultdict(list)
        for log in logs:
            by_day[log.started_at.date().isoformat()].append(log)
            if log.action_type:
                by_type[log.action_type].append(log)
            by_workflow[log.workflow_id].append(log)

        daily = [
            DailyStats(
                day=day,
                total=len(items),
                completed=sum(1 for i in items if i.status == ExecutionLogStatus.COMPLETED),
                failed=sum(1 for i in items if i.status == ExecutionLogStatus.FAILED),
                skipped=sum(1 for i in items if i.status == ExecutionLogStatus.SKIPPED),
            )
            for day, items in sorted(by_day.items())
        ]
        by_action_type = sorted(
            (
                ActionTypeStats(
                    action_type=action_type,
                    total=len(items),
                    completed=sum(1 for i in items if i.status == ExecutionLogStatus.COMPLETED),
                    failed=sum(1 for i in items if i.status == ExecutionLogStatus.FAILED),
                    avg_duration_ms=_avg(
                        [i.duration_ms for i in items if i.duration_ms is not None]
                    ),
                )
                for action_type, items in by_type.items()
            ),
            key=lambda s: (-s.total, s.action_type),
        )
        top_workflows = sorted(
            (
                WorkflowStats(
                    workflow_id=wf_id,
                    workflow_name=None,
                    executions=len({i.execution_id for i in items}),
                    total=len(items),
                    failed=sum(1 for i in items if i.status == ExecutionLogStatus.FAILED),
                )
                for wf_id, items in by_workflow.items()
            ),
            key=lambda s: (-s.executions, s.workflow_id),
        )[:TOP_WORKFLOWS_LIMIT]
        return AutomationStats(
            period_days=period_days,
            overall=overall,
            daily=daily,
            by_action_type=by_action_type,
            top_workflows=top_workflows,
        )
