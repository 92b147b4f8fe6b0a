"""SQL delayed action store (IScheduledActionStore) over automation_scheduled_action."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbor.application.dtos.execution import ScheduledActionCreate
from arbor.domain.entities.execution import ScheduledActionEntity
from arbor.infrastructure.persistence.models.execution import AutomationScheduledAction
from arbor.shared.enums import ScheduledActionStatus
from arbor.shared.utils.datetime import ensure_utc, utc_now


def to_scheduled_entity(row: AutomationScheduledAction) -> ScheduledActionEntity:
    return ScheduledActionEntity(
        id=row.id,
        execution_id=row.execution_id,
        workflow_id=row.workflow_id,
        action_id=row.action_id,
        due_at=ensure_utc(row.due_at),
        context=dict(row.context or {}),
        status=ScheduledActionStatus(row.status),
        attempts=row.attempts,
        last_error=row.last_error,
    )


class SqlScheduledActionStore:
    """IScheduledActionStore on PostgreSQL; claim_due uses FOR UPDATE SKIP LOCKED."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def schedule(self, data: ScheduledActionCreate) -> ScheduledActionEntity:
        now = utc_now()
        async with self._sessions.begin() as db:
            row = AutomationScheduledAction(
                execution_id=data.execution_id,
                workflow_id=data.workflow_id,
                action_id=data.action_id,
                due_at=data.due_at,
                context=dict(data.context),
                status=ScheduledActionStatus.PENDING.value,
                attempts=0,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            await db.flush()
            return to_scheduled_entity(row)

    async def claim_due(
        self,
        *,
        now: datetime,
        limit: int,
        visibility_timeout_seconds: int,
    ) -> list[ScheduledActionEntity]:
        due = (
            select(AutomationScheduledAction.id)
            .where(
                AutomationScheduledAction.due_at <= now,
                or_(
                    AutomationScheduledAction.status == ScheduledActionStatus.PENDING.value,
                    and_(
                        AutomationScheduledAction.status
                        == ScheduledActionStatus.RUNNING.value,
                        AutomationScheduledAction.locked_until <= now,
                    ),
                ),
            )
            .order_by(AutomationScheduledAction.due_at, AutomationScheduledAction.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(AutomationScheduledAction)
            .where(AutomationScheduledAction.id.in_(due))
            .values(
                status=ScheduledActionStatus.RUNNING.value,
                attempts=AutomationScheduledAction.attempts + 1,
                locked_until=now + timedelta(seconds=visibility_timeout_seconds),
                updated_at=now,
            )
            .returning(AutomationScheduledAction)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            rows = (await db.execute(stmt)).scalars().all()
            claimed = [to_scheduled_entity(r) for r in rows]
        return sorted(claimed, key=lambda r: (r.due_at, r.id))

    async def complete(self, scheduled_id: str, *, now: datetime) -> None:
        await self._finish(
            scheduled_id, ScheduledActionStatus.COMPLETED, now=now, error=None
        )

    async def fail(self, scheduled_id: str, error: str, *, now: datetime) -> None:
        await self._finish(scheduled_id, ScheduledActionStatus.FAILED, now=now, error=error)

    async def release(
        self, scheduled_id: str, error: str, *, retry_at: datetime, now: datetime
    ) -> None:
        stmt = (
            update(AutomationScheduledAction)
            .where(
                AutomationScheduledAction.id == scheduled_id,
                AutomationScheduledAction.status == ScheduledActionStatus.RUNNING.value,
            )
            .values(
                status=ScheduledActionStatus.PENDING.value,
                due_at=retry_at,
                last_error=error,
                locked_until=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            await db.execute(stmt)

    async def _finish(
        self,
        scheduled_id: str,
        status: ScheduledActionStatus,
        *,
        now: datetime,
        error: str | None,
    ) -> None:
        stmt = (
            update(AutomationScheduledAction)
            .where(AutomationScheduledAction.id == scheduled_id)
            .values(status=status.value, last_error=error, locked_until=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            await db.execute(stmt)
