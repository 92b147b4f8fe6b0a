"""SQL schedule trigger job store (IScheduledJobStore) over automation_scheduled_job."""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbor.domain.entities.execution import ScheduledJobEntity
from arbor.infrastructure.persistence.models.execution import AutomationScheduledJob
from arbor.shared.utils.datetime import ensure_utc
from arbor.shared.utils.generators import generate_cuid


def to_job_entity(row: AutomationScheduledJob) -> ScheduledJobEntity:
    return ScheduledJobEntity(
        id=row.id,
        workflow_id=row.workflow_id,
        trigger_id=row.trigger_id,
        schedule_key=row.schedule_key,
        next_run_at=ensure_utc(row.next_run_at),
        is_active=row.is_active,
        last_run_at=ensure_utc(row.last_run_at),
    )


class SqlScheduledJobStore:
    """IScheduledJobStore on PostgreSQL; claim_due uses FOR UPDATE SKIP LOCKED."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def sync(
        self,
        *,
        workflow_id: str,
        trigger_id: str,
        schedule_key: str,
        next_run_at: datetime | None,
        now: datetime,
    ) -> ScheduledJobEntity:
        by_trigger = select(AutomationScheduledJob).where(
            AutomationScheduledJob.trigger_id == trigger_id
        )
        async with self._sessions.begin() as db:
            row = (await db.execute(by_trigger.with_for_update())).scalar_one_or_none()
            if row is None:
                insert_stmt = (
                    pg_insert(AutomationScheduledJob)
                    .values(
                        id=generate_cuid(),
                        workflow_id=workflow_id,
                        trigger_id=trigger_id,
                        schedule_key=schedule_key,
                        next_run_at=next_run_at,
                        is_active=next_run_at is not None,
                        created_at=now,
                        updated_at=now,
                    )
                    .on_conflict_do_nothing(index_elements=["trigger_id"])
                )
                await db.execute(insert_stmt)
                row = (await db.execute(by_trigger)).scalar_one()
                return to_job_entity(row)
            if row.schedule_key != schedule_key or (
                not row.is_active and row.next_run_at is not None
            ):
                row.schedule_key = schedule_key
                row.next_run_at = next_run_at
                row.is_active = next_run_at is not None
                row.locked_until = None
                row.updated_at = now
                await db.flush()
            return to_job_entity(row)

    async def deactivate_missing(self, trigger_ids: Collection[str], *, now: datetime) -> int:
        stmt = (
            update(AutomationScheduledJob)
            .where(AutomationScheduledJob.is_active.is_(True))
            .values(is_active=False, locked_until=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if trigger_ids:
            stmt = stmt.where(AutomationScheduledJob.trigger_id.not_in(list(trigger_ids)))
        async with self._sessions.begin() as db:
            result = await db.execute(stmt)
            return result.rowcount or 0

    async def claim_due(
        self,
        *,
        now: datetime,
        limit: int,
        visibility_timeout_seconds: int,
    ) -> list[ScheduledJobEntity]:
        due = (
            select(AutomationScheduledJob.id)
            .where(
                AutomationScheduledJob.is_active.is_(True),
                AutomationScheduledJob.next_run_at <= now,
                or_(
                    AutomationScheduledJob.locked_until.is_(None),
                    AutomationScheduledJob.locked_until <= now,
                ),
            )
            .order_by(AutomationScheduledJob.next_run_at, AutomationScheduledJob.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        stmt = (
            update(AutomationScheduledJob)
            .where(AutomationScheduledJob.id.in_(due))
            .values(
                locked_until=now + timedelta(seconds=visibility_timeout_seconds),
                updated_at=now,
            )
            .returning(AutomationScheduledJob)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            rows = (await db.execute(stmt)).scalars().all()
            claimed = [to_job_entity(r) for r in rows]
        return sorted(claimed, key=lambda j: (j.next_run_at, j.id))

    async def advance(
        self,
        job_id: str,
        *,
        last_run_at: datetime,
        next_run_at: datetime | None,
        now: datetime,
    ) -> None:
        values = {
            "last_run_at": last_run_at,
            "next_run_at": next_run_at,
            "locked_until": None,
            "updated_at": now,
        }
        if next_run_at is None:
            values["is_active"] = False
        stmt = (
            update(AutomationScheduledJob)
            .where(AutomationScheduledJob.id == job_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            await db.execute(stmt)

    async def list_jobs(self, workflow_id: str | None = None) -> list[ScheduledJobEntity]:
        stmt = select(AutomationScheduledJob)
        if workflow_id is not None:
            stmt = stmt.where(AutomationScheduledJob.workflow_id == workflow_id)
        stmt = stmt.order_by(
            AutomationScheduledJob.is_active.desc(),
            AutomationScheduledJob.next_run_at.asc().nulls_last(),
            AutomationScheduledJob.id,
        )
        async with self._sessions() as db:
            rows = (await db.execute(stmt)).scalars().all()
            return [to_job_entity(r) for r in rows]
