"""SQL execution store (IExecutionStore): summaries, the log sink, and stats."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Date, cast, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

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
from arbor.infrastructure.persistence.models.execution import (
    AutomationExecution,
    AutomationLog,
)
from arbor.shared.enums import ExecutionLogStatus
from arbor.shared.utils.datetime import ensure_utc

TOP_WORKFLOWS_LIMIT = 10


def to_record(row: AutomationExecution) -> ExecutionRecord:
    return ExecutionRecord(
        id=row.id,
        workflow_id=row.workflow_id,
        trigger_type=row.trigger_type,
        started_at=ensure_utc(row.started_at),
        event_id=row.event_id,
        trigger_id=row.trigger_id,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        input_data=row.input_data,
        finished_at=ensure_utc(row.finished_at),
    )


def to_log_entity(row: AutomationLog) -> ExecutionLogEntity:
    return ExecutionLogEntity(
        id=row.id,
        workflow_id=row.workflow_id,
        execution_id=row.execution_id,
        status=ExecutionLogStatus(row.status),
        started_at=ensure_utc(row.started_at),
        trigger_id=row.trigger_id,
        trigger_type=row.trigger_type,
        action_id=row.action_id,
        action_type=row.action_type,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        input_data=row.input_data,
        output_data=row.output_data,
        error_message=row.error_message,
        completed_at=ensure_utc(row.completed_at),
        duration_ms=row.duration_ms,
    )


def _status_count(status: ExecutionLogStatus):
    return func.count().filter(AutomationLog.status == status.value)


def _round(value) -> float | None:
    return round(float(value), 1) if value is not None else None


class SqlExecutionStore:
    """IExecutionStore on PostgreSQL. write_log commits each row on its own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def start_execution(self, record: ExecutionRecord) -> None:
        async with self._sessions.begin() as db:
            db.add(
                AutomationExecution(
                    id=record.id,
                    workflow_id=record.workflow_id,
                    event_id=record.event_id,
                    trigger_id=record.trigger_id,
                    trigger_type=record.trigger_type,
                    entity_type=record.entity_type,
                    entity_id=record.entity_id,
                    input_data=record.input_data,
                    started_at=record.started_at,
                    finished_at=record.finished_at,
                )
            )

    async def finish_execution(self, execution_id: str, finished_at: datetime) -> None:
        stmt = (
            update(AutomationExecution)
            .where(AutomationExecution.id == execution_id)
            .values(finished_at=finished_at)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            await db.execute(stmt)

    async def write_log(self, data: ExecutionLogCreate) -> ExecutionLogEntity:
        async with self._sessions.begin() as db:
            row = AutomationLog(
                workflow_id=data.workflow_id,
                execution_id=data.execution_id,
                trigger_id=data.trigger_id,
                trigger_type=data.trigger_type,
                action_id=data.action_id,
                action_type=data.action_type,
                entity_type=data.entity_type,
                entity_id=data.entity_id,
                status=ExecutionLogStatus(data.status).value,
                input_data=data.input_data,
                output_data=data.output_data,
                error_message=data.error_message,
                started_at=data.started_at,
                completed_at=data.completed_at,
                duration_ms=data.duration_ms,
            )
            db.add(row)
            await db.flush()
            return to_log_entity(row)

    async def count_executions_since(self, workflow_id: str, since: datetime) -> int:
        stmt = select(func.count()).where(
            AutomationExecution.workflow_id == workflow_id,
            AutomationExecution.started_at >= since,
        )
        async with self._sessions() as db:
            return (await db.execute(stmt)).scalar_one()

    async def last_execution_started_at(self, workflow_id: str) -> datetime | None:
        stmt = select(func.max(AutomationExecution.started_at)).where(
            AutomationExecution.workflow_id == workflow_id
        )
        async with self._sessions() as db:
            return ensure_utc((await db.execute(stmt)).scalar_one_or_none())

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        async with self._sessions() as db:
            row = await db.get(AutomationExecution, execution_id)
            return to_record(row) if row is not None else None

    async def list_execution_logs(self, execution_id: str) -> list[ExecutionLogEntity]:
        stmt = (
            select(AutomationLog)
            .where(AutomationLog.execution_id == execution_id)
            .order_by(AutomationLog.created_at, AutomationLog.started_at)
        )
        async with self._sessions() as db:
            rows = (await db.execute(stmt)).scalars().all()
            return [to_log_entity(r) for r in rows]

    async def list_logs(self, query: LogQuery) -> tuple[list[ExecutionLogEntity], int]:
        stmt = select(AutomationLog)
        if query.workflow_id is not None:
            stmt = stmt.where(AutomationLog.workflow_id == query.workflow_id)
        if query.status is not None:
            stmt = stmt.where(AutomationLog.status == query.status)
        if query.action_type is not None:
            stmt = stmt.where(AutomationLog.action_type == query.action_type)
        if query.entity_type is not None:
            stmt = stmt.where(AutomationLog.entity_type == query.entity_type)
        if query.entity_id is not None:
            stmt = stmt.where(AutomationLog.entity_id == query.entity_id)
        if query.start_date is not None:
            stmt = stmt.where(AutomationLog.started_at >= query.start_date)
        if query.end_date is not None:
            stmt = stmt.where(AutomationLog.started_at <= query.end_date)
        count_stmt = select(func.count()).select_from(stmt.subquery())
        page = (
            stmt.order_by(AutomationLog.started_at.desc(), AutomationLog.created_at.desc())
            .offset(query.skip)
            .limit(query.limit)
        )
        async with self._sessions() as db:
            total = (await db.execute(count_stmt)).scalar_one()
            rows = (await db.execute(page)).scalars().all()
            return [to_log_entity(r) for r in rows], total

    async def stats(
        self,
        *,
        since: datetime,
        period_days: int,
        workflow_id: str | None = None,
    ) -> AutomationStats:
        scope = [AutomationLog.started_at >= since]
        if workflow_id is not None:
            scope.append(AutomationLog.workflow_id == workflow_id)

        overall_stmt = select(
            func.count(),
            _status_count(ExecutionLogStatus.COMPLETED),
            _status_count(ExecutionLogStatus.FAILED),
            _status_count(ExecutionLogStatus.SKIPPED),
            func.avg(AutomationLog.duration_ms).filter(AutomationLog.action_id.is_not(None)),
            func.max(AutomationLog.duration_ms).filter(AutomationLog.action_id.is_not(None)),
            func.min(AutomationLog.duration_ms).filter(AutomationLog.action_id.is_not(None)),
        ).where(*scope)

        day = cast(func.timezone("UTC", AutomationLog.started_at), Date).label("day")
        daily_stmt = (
            select(
                day,
                func.count(),
                _status_count(ExecutionLogStatus.COMPLETED),
                _status_count(ExecutionLogStatus.FAILED),
                _status_count(ExecutionLogStatus.SKIPPED),
            )
            .where(*scope)
            .group_by(day)
            .order_by(day)
        )

        type_stmt = (
            select(
                AutomationLog.action_type,
                func.count().label("total"),
                _status_count(ExecutionLogStatus.COMPLETED),
                _status_count(ExecutionLogStatus.FAILED),
                func.avg(AutomationLog.duration_ms),
            )
            .where(*scope, AutomationLog.action_type.is_not(None))
            .group_by(AutomationLog.action_type)
            .order_by(func.count().desc(), AutomationLog.action_type)
        )

        executions = func.count(func.distinct(AutomationLog.execution_id)).label("executions")
        workflow_stmt = (
            select(
                AutomationLog.workflow_id,
                executions,
                func.count(),
                _status_count(ExecutionLogStatus.FAILED),
            )
            .where(*scope)
            .group_by(AutomationLog.workflow_id)
            .order_by(executions.desc(), AutomationLog.workflow_id)
            .limit(TOP_WORKFLOWS_LIMIT)
        )

        async with self._sessions() as db:
            total, completed, failed, skipped, avg_ms, max_ms, min_ms = (
                await db.execute(overall_stmt)
            ).one()
            daily_rows = (await db.execute(daily_stmt)).all()
            type_rows = (await db.execute(type_stmt)).all()
            workflow_rows = (await db.execute(workflow_stmt)).all()

        return AutomationStats(
            period_days=period_days,
            overall=OverallStats(
                total=total,
                completed=completed,
                failed=failed,
                skipped=skipped,
                avg_duration_ms=_round(avg_ms),
                max_duration_ms=max_ms,
                min_duration_ms=min_ms,
            ),
            daily=[
                DailyStats(
                    day=d.isoformat(), total=t, completed=c, failed=f, skipped=s
                )
                for d, t, c, f, s in daily_rows
            ],
            by_action_type=[
                ActionTypeStats(
                    action_type=action_type,
                    total=t,
                    completed=c,
                    failed=f,
                    avg_duration_ms=_round(avg),
                )
                for action_type, t, c, f, avg in type_rows
            ],
            top_workflows=[
                WorkflowStats(
                    workflow_id=wf_id,
                    workflow_name=None,
                    executions=n_exec,
                    total=t,
                    failed=f,
                )
                for wf_id, n_exec, t, f in workflow_rows
            ],
        )
