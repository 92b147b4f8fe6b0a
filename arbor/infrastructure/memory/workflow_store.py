"""In-memory workflow repository (IWorkflowRepository)."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime

from arbor.application.dtos.workflow import (
    ActionSpec,
    TriggerSpec,
    WorkflowCreate,
    WorkflowQuery,
    WorkflowUpdate,
)
from arbor.domain.entities.workflow import ActionEntity, TriggerEntity, WorkflowEntity
from arbor.shared.utils.datetime import utc_now
from arbor.shared.utils.generators import generate_cuid


def _triggers(workflow_id: str, specs: list[TriggerSpec]) -> tuple[TriggerEntity, ...]:
    return tuple(
        TriggerEntity(
            id=generate_cuid(),
            workflow_id=workflow_id,
            trigger_type=spec.trigger_type,
            config=dict(spec.config),
            conditions=[dict(c) for c in spec.conditions],
            trigger_order=spec.trigger_order,
        )
        for spec in specs
    )


def _actions(workflow_id: str, specs: list[ActionSpec]) -> tuple[ActionEntity, ...]:
    return tuple(
        ActionEntity(
            id=generate_cuid(),
            workflow_id=workflow_id,
            action_type=spec.action_type,
            config=dict(spec.config),
            delay_minutes=spec.delay_minutes,
            action_order=spec.action_order,
            continue_on_error=spec.continue_on_error,
        )
        for spec in specs
    )


class InMemoryWorkflowRepository:
    """IWorkflowRepository backed by a dict of frozen entities."""

    def __init__(self) -> None:
        self._workflows: dict[str, WorkflowEntity] = {}
        self._lock = asyncio.Lock()

    async def create(self, data: WorkflowCreate) -> WorkflowEntity:
        now = utc_now()
        workflow_id = generate_cuid()
        workflow = WorkflowEntity(
            id=workflow_id,
            name=data.name,
            description=data.description,
            is_active=data.is_active,
            is_template=data.is_template,
            template_category=data.template_category,
            max_executions_per_day=data.max_executions_per_day,
            cooldown_minutes=data.cooldown_minutes,
            created_at=now,
            updated_at=now,
            triggers=_triggers(workflow_id, data.triggers),
            actions=_actions(workflow_id, data.actions),
        )
        async with self._lock:
            self._workflows[workflow_id] = workflow
        return workflow

    async def update(
        self, workflow_id: str, data: WorkflowUpdate
    ) -> WorkflowEntity | None:
        async with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None or workflow.is_deleted:
                return None
            changes = {
                key: value
                for key, value in (
                    ("name", data.name),
                    ("description", data.description),
                    ("is_active", data.is_active),
                    ("template_category", data.template_category),
                    ("max_executions_per_day", data.max_executions_per_day),
                    ("cooldown_minutes", data.cooldown_minutes),
                )
                if value is not None
            }
            if data.triggers is not None:
                changes["triggers"] = _triggers(workflow_id, data.triggers)
            if data.actions is not None:
                changes["actions"] = _actions(workflow_id, data.actions)
            updated = replace(workflow, updated_at=utc_now(), **changes)
            self._workflows[workflow_id] = updated
            return updated

    async def set_active(
        self, workflow_id: str, is_active: bool
    ) -> WorkflowEntity | None:
        async with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None or workflow.is_deleted:
                return None
            updated = replace(workflow, is_active=is_active, updated_at=utc_now())
            self._workflows[workflow_id] = updated
            return updated

    async def soft_delete(self, workflow_id: str, *, now: datetime) -> bool:
        async with self._lock:
            workflow = self._workflows.get(workflow_id)
            if workflow is None or workflow.is_deleted:
                return False
            self._workflows[workflow_id] = replace(
                workflow, deleted_at=now, is_active=False, updated_at=now
            )
            return True

    async def get_by_id(
        self, workflow_id: str, *, include_deleted: bool = False
    ) -> WorkflowEntity | None:
        workflow = self._workflows.get(workflow_id)
        if workflow is None or (workflow.is_deleted and not include_deleted):
            return None
        return workflow

    async def list_workflows(
        self, query: WorkflowQuery
    ) -> tuple[list[WorkflowEntity], int]:
        search = (query.search or "").strip().lower()
        matches = []
        for workflow in self._workflows.values():
            if workflow.is_deleted:
                continue
            if workflow.is_template and not query.include_templates:
                continue
            if query.status == "active" and not workflow.is_active:
                continue
            if query.status == "inactive" and workflow.is_active:
                continue
            if search and search not in (
                f"{workflow.name} {workflow.description or ''}".lower()
            ):
                continue
            matches.append(workflow)
        matches.sort(key=lambda w: (w.created_at, w.id), reverse=True)
        return matches[query.skip : query.skip + query.limit], len(matches)

    async def list_templates(
        self, category: str | None = None
    ) -> list[WorkflowEntity]:
        templates = [
            w
            for w in self._workflows.values()
            if w.is_template
            and not w.is_deleted
            and (category is None or w.template_category == category)
        ]
        return sorted(templates, key=lambda w: (w.template_category or "", w.name))

    async def get_candidates(self, event_type: str) -> list[WorkflowEntity]:
        return [
            w
            for w in self._workflows.values()
            if w.is_executable() and any(t.trigger_type == event_type for t in w.triggers)
        ]
