"""Workflow use cases: validated CRUD, templates, toggling and manual execution.

Validation happens here, on write: unknown condition operators and
unknown action types are rejected with ValidationException instead of
surfacing later as failed runs.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Any

from arbor.application.dtos.execution import ExecutionResult, LogQuery, TriggerContext
from arbor.application.dtos.workflow import (
    ActionSpec,
    TriggerSpec,
    WorkflowCreate,
    WorkflowQuery,
    WorkflowUpdate,
)
from arbor.application.interfaces.repositories import (
    IExecutionStore,
    IWorkflowRepository,
)
from arbor.application.interfaces.services import IActionRegistry
from arbor.application.services.action_executor import ActionExecutor
from arbor.domain.entities.execution import ExecutionLogEntity
from arbor.domain.entities.workflow import WorkflowEntity
from arbor.domain.enums import SpecialTriggerType
from arbor.domain.exceptions import (
    ResourceNotFoundException,
    ValidationException,
    WorkflowNotExecutableException,
)
from arbor.domain.value_objects.condition import parse_conditions
from arbor.domain.value_objects.schedule import TriggerSchedule
from arbor.shared.telemetry.logging import get_logger
from arbor.shared.utils.datetime import utc_now

logger = get_logger(__name__)

RECENT_LOGS_LIMIT = 10


class WorkflowService:
    """Workflow definitions and manual runs."""

    def __init__(
        self,
        *,
        workflows: IWorkflowRepository,
        executions: IExecutionStore,
        registry: IActionRegistry,
        executor: ActionExecutor,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._workflows = workflows
        self._executions = executions
        self._registry = registry
        self._executor = executor
        self._clock = clock

    async def create_workflow(self, data: WorkflowCreate) -> WorkflowEntity:
        self._validate_limits(data.max_executions_per_day, data.cooldown_minutes)
        if not data.name.strip():
            raise ValidationException("Workflow name is required", "name")
        validated = replace(
            data,
            name=data.name.strip(),
            triggers=self._validate_triggers(data.triggers),
            actions=self._validate_actions(data.actions),
        )
        workflow = await self._workflows.create(validated)
        logger.info(
            "Workflow %s created (%d triggers, %d actions)",
            workflow.id,
            len(workflow.triggers),
            len(workflow.actions),
        )
        return workflow

    async def update_workflow(
        self, workflow_id: str, data: WorkflowUpdate
    ) -> WorkflowEntity:
        self._validate_limits(data.max_executions_per_day, data.cooldown_minutes)
        if data.name is not None and not data.name.strip():
            raise ValidationException("Workflow name cannot be empty", "name")
        validated = replace(
            data,
            triggers=(
                self._validate_triggers(data.triggers) if data.triggers is not None else None
            ),
            actions=(
                self._validate_actions(data.actions) if data.actions is not None else None
            ),
        )
        workflow = await self._workflows.update(workflow_id, validated)
        if workflow is None:
            raise ResourceNotFoundException("workflow", workflow_id)
        return workflow

    async def delete_workflow(self, workflow_id: str) -> None:
        """Soft delete: history and logs stay, the workflow stops matching."""
        if not await self._workflows.soft_delete(workflow_id, now=self._clock()):
            raise ResourceNotFoundException("workflow", workflow_id)
        logger.info("Workflow %s deleted", workflow_id)

    async def toggle_workflow(self, workflow_id: str) -> WorkflowEntity:
        workflow = await self.get_workflow(workflow_id)
        updated = await self._workflows.set_active(workflow_id, not workflow.is_active)
        if updated is None:
            raise ResourceNotFoundException("workflow", workflow_id)
        logger.info("Workflow %s %s", workflow_id, "activated" if updated.is_active else "deactivated")
        return updated

    async def get_workflow(self, workflow_id: str) -> WorkflowEntity:
        workflow = await self._workflows.get_by_id(workflow_id)
        if workflow is None:
            raise ResourceNotFoundException("workflow", workflow_id)
        return workflow

    async def get_workflow_with_logs(
        self, workflow_id: str
    ) -> tuple[WorkflowEntity, list[ExecutionLogEntity]]:
        """Workflow plus its most recent execution logs."""
        workflow = await self.get_workflow(workflow_id)
        logs, _ = await self._executions.list_logs(
            LogQuery(workflow_id=workflow_id, limit=RECENT_LOGS_LIMIT)
        )
        return workflow, logs

    async def list_workflows(
        self, query: WorkflowQuery
    ) -> tuple[list[WorkflowEntity], int]:
        if query.status is not None and query.status not in ("active", "inactive"):
            raise ValidationException("status must be 'active' or 'inactive'", "status")
        return await self._workflows.list_workflows(query)

    async def list_templates(
        self, category: str | None = None
    ) -> dict[str, list[WorkflowEntity]]:
        """Templates grouped by template_category ("general" when unset)."""
        grouped: dict[str, list[WorkflowEntity]] = {}
        for template in await self._workflows.list_templates(category):
            grouped.setdefault(template.template_category or "general", []).append(template)
        return grouped

    async def create_from_template(
        self,
        template_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> WorkflowEntity:
        """Deep-copy a template into a new, active, non-template workflow."""
        template = await self._workflows.get_by_id(template_id)
        if template is None or not template.is_template:
            raise ResourceNotFoundException("template", template_id)
        data = WorkflowCreate(
            name=name or template.name,
            description=description if description is not None else template.description,
            is_active=True,
            is_template=False,
            template_category=template.template_category,
            max_executions_per_day=template.max_executions_per_day,
            cooldown_minutes=template.cooldown_minutes,
            triggers=[
                TriggerSpec(
                    trigger_type=t.trigger_type,
                    conditions=[dict(c) for c in t.conditions],
                    config=dict(t.config),
                    trigger_order=t.trigger_order,
                )
                for t in template.ordered_triggers()
            ],
            actions=[
                ActionSpec(
                    action_type=a.action_type,
                    config=dict(a.config),
                    delay_minutes=a.delay_minutes,
                    action_order=a.action_order,
                    continue_on_error=a.continue_on_error,
                )
                for a in template.ordered_actions()
            ],
        )
        workflow = await self.create_workflow(data)
        logger.info("Workflow %s created from template %s", workflow.id, template_id)
        return workflow

    async def execute_manually(
        self,
        workflow_id: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        entity_data: dict[str, Any] | None = None,
        dry_run: bool = False,
    ) -> ExecutionResult:
        """Run a workflow now, bypassing trigger matching (rate gates still apply)."""
        workflow = await self.get_workflow(workflow_id)
        if workflow.is_template:
            raise WorkflowNotExecutableException(workflow_id, "templates cannot be executed")
        if not workflow.is_active:
            raise WorkflowNotExecutableException(workflow_id, "workflow is inactive")
        payload = dict(entity_data or {})
        if entity_id is not None:
            payload.setdefault("id", entity_id)
        context = TriggerContext(
            trigger_type=SpecialTriggerType.MANUAL.value,
            payload=payload,
            entity_type=entity_type,
            entity_id=entity_id,
            dry_run=dry_run,
        )
        return await self._executor.run_workflow(workflow, context)

    @staticmethod
    def _validate_limits(max_per_day: int | None, cooldown: int | None) -> None:
        if max_per_day is not None and max_per_day < 0:
            raise ValidationException(
                "max_executions_per_day cannot be negative", "max_executions_per_day"
            )
        if cooldown is not None and cooldown < 0:
            raise ValidationException("cooldown_minutes cannot be negative", "cooldown_minutes")

    @staticmethod
    def _validate_triggers(triggers: list[TriggerSpec]) -> list[TriggerSpec]:
        validated: list[TriggerSpec] = []
        for spec in triggers:
            if not spec.trigger_type or not spec.trigger_type.strip():
                raise ValidationException("trigger_type is required", "triggers.trigger_type")
            conditions = [c.to_dict() for c in parse_conditions(spec.conditions)]
            if spec.trigger_type.strip() == SpecialTriggerType.SCHEDULE.value:
                TriggerSchedule.from_config(spec.config or {})
            validated.append(
                replace(spec, trigger_type=spec.trigger_type.strip(), conditions=conditions)
            )
        return validated

    def _validate_actions(self, actions: list[ActionSpec]) -> list[ActionSpec]:
        for spec in actions:
            if not self._registry.is_registered(spec.action_type):
                raise ValidationException(
                    f"Unknown action type: {spec.action_type!r} "
                    f"(known: {', '.join(self._registry.registered_types())})",
                    "actions.action_type",
                )
            if spec.delay_minutes < 0:
                raise ValidationException(
                    "delay_minutes cannot be negative", "actions.delay_minutes"
                )
        return list(actions)
