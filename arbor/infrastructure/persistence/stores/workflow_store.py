"""SQL workflow repository (IWorkflowRepository) over automation_workflow/trigger/action."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbor.application.dtos.workflow import (
    ActionSpec,
    TriggerSpec,
    WorkflowCreate,
    WorkflowQuery,
    WorkflowUpdate,
)
from arbor.domain.entities.workflow import ActionEntity, TriggerEntity, WorkflowEntity
from arbor.infrastructure.persistence.models.workflow import (
    AutomationAction,
    AutomationTrigger,
    AutomationWorkflow,
)
from arbor.shared.utils.datetime import ensure_utc, utc_now


def to_workflow_entity(row: AutomationWorkflow) -> WorkflowEntity:
    return WorkflowEntity(
        id=row.id,
        name=row.name,
        description=row.description,
        is_active=row.is_active,
        is_template=row.is_template,
        template_category=row.template_category,
        max_executions_per_day=row.max_executions_per_day,
        cooldown_minutes=row.cooldown_minutes,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
        deleted_at=ensure_utc(row.deleted_at),
        triggers=tuple(
            TriggerEntity(
                id=t.id,
                workflow_id=row.id,
                trigger_type=t.trigger_type,
                config=dict(t.config or {}),
                conditions=list(t.conditions or []),
                trigger_order=t.trigger_order,
            )
            for t in row.triggers
        ),
        actions=tuple(
            ActionEntity(
                id=a.id,
                workflow_id=row.id,
                action_type=a.action_type,
                config=dict(a.config or {}),
                delay_minutes=a.delay_minutes,
                action_order=a.action_order,
                continue_on_error=a.continue_on_error,
            )
            for a in row.actions
        ),
    )


def _trigger_rows(specs: list[TriggerSpec], now: datetime) -> list[AutomationTrigger]:
    return [
        AutomationTrigger(
            trigger_type=spec.trigger_type,
            config=dict(spec.config),
            conditions=[dict(c) for c in spec.conditions],
            trigger_order=spec.trigger_order,
            created_at=now,
            updated_at=now,
        )
        for spec in specs
    ]


def _action_rows(specs: list[ActionSpec], now: datetime) -> list[AutomationAction]:
    return [
        AutomationAction(
            action_type=spec.action_type,
            config=dict(spec.config),
            delay_minutes=spec.delay_minutes,
            action_order=spec.action_order,
            continue_on_error=spec.continue_on_error,
            created_at=now,
            updated_at=now,
        )
        for spec in specs
    ]


class SqlWorkflowRepository:
    """IWorkflowRepository on PostgreSQL. Triggers/actions are loaded with selectin."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def create(self, data: WorkflowCreate) -> WorkflowEntity:
        now = utc_now()
        async with self._sessions.begin() as db:
            row = AutomationWorkflow(
                name=data.name,
                description=data.description,
                is_active=data.is_active,
                is_template=data.is_template,
                template_category=data.template_category,
                max_executions_per_day=data.max_executions_per_day,
                cooldown_minutes=data.cooldown_minutes,
                created_at=now,
                updated_at=now,
                deleted_at=None,
                triggers=_trigger_rows(data.triggers, now),
                actions=_action_rows(data.actions, now),
            )
            db.add(row)
            await db.flush()
            return to_workflow_entity(row)

    async def update(
        self, workflow_id: str, data: WorkflowUpdate
    ) -> WorkflowEntity | None:
        now = utc_now()
        async with self._sessions.begin() as db:
            row = await self._get_live(db, workflow_id, for_update=True)
            if row is None:
                return None
            if data.name is not None:
                row.name = data.name
            if data.description is not None:
                row.description = data.description
            if data.is_active is not None:
                row.is_active = data.is_active
            if data.template_category is not None:
                row.template_category = data.template_category
            if data.max_executions_per_day is not None:
                row.max_executions_per_day = data.max_executions_per_day
            if data.cooldown_minutes is not None:
                row.cooldown_minutes = data.cooldown_minutes
            if data.triggers is not None:
                row.triggers = _trigger_rows(data.triggers, now)
            if data.actions is not None:
                row.actions = _action_rows(data.actions, now)
            row.updated_at = now
            await db.flush()
            return to_workflow_entity(row)

    async def set_active(
        self, workflow_id: str, is_active: bool
    ) -> WorkflowEntity | None:
        async with self._sessions.begin() as db:
            row = await self._get_live(db, workflow_id, for_update=True)
            if row is None:
                return None
            row.is_active = is_active
            row.updated_at = utc_now()
            await db.flush()
            return to_workflow_entity(row)

    async def soft_delete(self, workflow_id: str, *, now: datetime) -> bool:
        stmt = (
            update(AutomationWorkflow)
            .where(
                AutomationWorkflow.id == workflow_id,
                AutomationWorkflow.deleted_at.is_(None),
            )
            .values(deleted_at=now, is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            result = await db.execute(stmt)
            return bool(result.rowcount)

    async def get_by_id(
        self, workflow_id: str, *, include_deleted: bool = False
    ) -> WorkflowEntity | None:
        stmt = select(AutomationWorkflow).where(AutomationWorkflow.id == workflow_id)
        if not include_deleted:
            stmt = stmt.where(AutomationWorkflow.deleted_at.is_(None))
        async with self._sessions() as db:
            row = (await db.execute(stmt)).scalar_one_or_none()
            return to_workflow_entity(row) if row is not None else None

    async def list_workflows(
        self, query: WorkflowQuery
    ) -> tuple[list[WorkflowEntity], int]:
        stmt = select(AutomationWorkflow).where(AutomationWorkflow.deleted_at.is_(None))
        if not query.include_templates:
            stmt = stmt.where(AutomationWorkflow.is_template.is_(False))
        if query.status == "active":
            stmt = stmt.where(AutomationWorkflow.is_active.is_(True))
        elif query.status == "inactive":
            stmt = stmt.where(AutomationWorkflow.is_active.is_(False))
        if query.search:
            pattern = f"%{query.search.strip()}%"
            stmt = stmt.where(
                or_(
                    AutomationWorkflow.name.ilike(pattern),
                    AutomationWorkflow.description.ilike(pattern),
                )
            )
        count_stmt = select(func.count()).select_from(stmt.subquery())
        page = (
            stmt.order_by(AutomationWorkflow.created_at.desc(), AutomationWorkflow.id)
            .offset(query.skip)
            .limit(query.limit)
        )
        async with self._sessions() as db:
            total = (await db.execute(count_stmt)).scalar_one()
            rows = (await db.execute(page)).scalars().all()
            return [to_workflow_entity(r) for r in rows], total

    async def list_templates(
        self, category: str | None = None
    ) -> list[WorkflowEntity]:
        stmt = select(AutomationWorkflow).where(
            AutomationWorkflow.is_template.is_(True),
            AutomationWorkflow.deleted_at.is_(None),
        )
        if category is not None:
            stmt = stmt.where(AutomationWorkflow.template_category == category)
        stmt = stmt.order_by(AutomationWorkflow.template_category, AutomationWorkflow.name)
        async with self._sessions() as db:
            rows = (await db.execute(stmt)).scalars().all()
            return [to_workflow_entity(r) for r in rows]

    async def get_candidates(self, event_type: str) -> list[WorkflowEntity]:
        with_trigger = select(AutomationTrigger.workflow_id).where(
            AutomationTrigger.trigger_type == event_type
        )
        stmt = (
            select(AutomationWorkflow)
            .where(
                AutomationWorkflow.is_active.is_(True),
                AutomationWorkflow.is_template.is_(False),
                AutomationWorkflow.deleted_at.is_(None),
                AutomationWorkflow.id.in_(with_trigger),
            )
            .order_by(AutomationWorkflow.created_at, AutomationWorkflow.id)
        )
        async with self._sessions() as db:
            rows = (await db.execute(stmt)).scalars().all()
            return [to_workflow_entity(r) for r in rows]

    @staticmethod
    async def _get_live(
        db: AsyncSession, workflow_id: str, *, for_update: bool = False
    ) -> AutomationWorkflow | None:
        stmt = select(AutomationWorkflow).where(
            AutomationWorkflow.id == workflow_id,
            AutomationWorkflow.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update()
        return (await db.execute(stmt)).scalar_one_or_none()
