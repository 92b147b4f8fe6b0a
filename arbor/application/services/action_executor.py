"""Action executor: runs one workflow's actions in order and logs every step.

A run is:
  1. rate gates (daily limit, cooldown); a failing gate writes one skipped log
  2. execution summary row
  3. actions in ascending action_order, each rendered, dispatched through the
     registry and logged on its own
  4. finished_at stamped on the summary

An action with delay_minutes > 0 is not slept on: the run is persisted as a
scheduled continuation and resume() picks it up at that action when due.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from arbor.application.dtos.execution import (
    ActionContext,
    ActionOutcome,
    AutomationOptions,
    ExecutionLogCreate,
    ExecutionResult,
    ScheduledActionCreate,
    TriggerContext,
)
from arbor.application.interfaces.repositories import (
    IExecutionStore,
    IScheduledActionStore,
    IWorkflowRepository,
)
from arbor.application.interfaces.services import IActionRegistry, IConfigRenderer
from arbor.application.services.rate_guard import WorkflowRateGuard
from arbor.domain.entities.execution import (
    ExecutionLogEntity,
    ExecutionRecord,
    ScheduledActionEntity,
)
from arbor.domain.entities.workflow import ActionEntity, WorkflowEntity
from arbor.domain.exceptions import ActionConfigError
from arbor.shared.enums import ExecutionLogStatus, ExecutionOutcome
from arbor.shared.telemetry.logging import get_logger
from arbor.shared.telemetry.tracing import add_span_attributes, add_span_event, traced
from arbor.shared.utils.datetime import utc_now
from arbor.shared.utils.generators import generate_cuid

logger = get_logger(__name__)


class ActionExecutor:
    """Executes workflows for a trigger context. Never raises for action failures."""

    def __init__(
        self,
        *,
        executions: IExecutionStore,
        workflows: IWorkflowRepository,
        scheduled: IScheduledActionStore,
        registry: IActionRegistry,
        renderer: IConfigRenderer,
        rate_guard: WorkflowRateGuard,
        options: AutomationOptions | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._executions = executions
        self._workflows = workflows
        self._scheduled = scheduled
        self._registry = registry
        self._renderer = renderer
        self._rate_guard = rate_guard
        self._options = options or AutomationOptions()
        self._clock = clock

    @traced("automation.run_workflow")
    async def run_workflow(
        self,
        workflow: WorkflowEntity,
        context: TriggerContext,
        *,
        enforce_limits: bool = True,
    ) -> ExecutionResult:
        """Gate, then run workflow's actions for context."""
        now = self._clock()
        execution_id = generate_cuid()
        add_span_attributes(workflow_id=workflow.id, execution_id=execution_id)

        if enforce_limits:
            decision = await self._rate_guard.check(workflow, now)
            if not decision.allowed:
                log = await self._executions.write_log(
                    ExecutionLogCreate(
                        workflow_id=workflow.id,
                        execution_id=execution_id,
                        status=ExecutionLogStatus.SKIPPED,
                        started_at=now,
                        completed_at=now,
                        duration_ms=0,
                        trigger_id=context.trigger_id,
                        trigger_type=context.trigger_type,
                        entity_type=context.entity_type,
                        entity_id=context.entity_id,
                        input_data=context.payload,
                        output_data={"reason": decision.reason},
                        error_message=decision.reason,
                    )
                )
                add_span_event("workflow.skipped", {"reason": decision.reason or ""})
                logger.info(
                    "Workflow %s skipped for %s %s: %s",
                    workflow.id,
                    context.trigger_type,
                    context.event_id or context.entity_id,
                    decision.reason,
                )
                return ExecutionResult(
                    execution_id=execution_id,
                    workflow_id=workflow.id,
                    outcome=ExecutionOutcome.SKIPPED,
                    logs=(log,),
                    reason=decision.reason,
                )

        await self._executions.start_execution(
            ExecutionRecord(
                id=execution_id,
                workflow_id=workflow.id,
                trigger_type=context.trigger_type,
                started_at=now,
                event_id=context.event_id,
                trigger_id=context.trigger_id,
                entity_type=context.entity_type,
                entity_id=context.entity_id,
                input_data=context.payload,
            )
        )
        logger.info(
            "Executing workflow %s (%s) as %s", workflow.id, workflow.name, execution_id
        )
        return await self._run_actions(workflow, execution_id, context, start_index=0)

    @traced("automation.resume_scheduled_action")
    async def resume(self, scheduled: ScheduledActionEntity) -> ExecutionResult:
        """Continue a run at a delayed action that is now due."""
        context = TriggerContext.from_dict(scheduled.context)
        workflow = await self._workflows.get_by_id(
            scheduled.workflow_id, include_deleted=True
        )
        index = workflow.action_index(scheduled.action_id) if workflow else None
        if workflow is None or index is None:
            now = self._clock()
            reason = "scheduled action no longer exists"
            log = await self._executions.write_log(
                ExecutionLogCreate(
                    workflow_id=scheduled.workflow_id,
                    execution_id=scheduled.execution_id,
                    status=ExecutionLogStatus.SKIPPED,
                    started_at=now,
                    completed_at=now,
                    duration_ms=0,
                    trigger_id=context.trigger_id,
                    trigger_type=context.trigger_type,
                    action_id=scheduled.action_id,
                    entity_type=context.entity_type,
                    entity_id=context.entity_id,
                    output_data={"reason": reason},
                    error_message=reason,
                )
            )
            await self._executions.finish_execution(scheduled.execution_id, now)
            logger.warning(
                "Scheduled action %s of execution %s skipped: %s",
                scheduled.action_id,
                scheduled.execution_id,
                reason,
            )
            return ExecutionResult(
                execution_id=scheduled.execution_id,
                workflow_id=scheduled.workflow_id,
                outcome=ExecutionOutcome.SKIPPED,
                logs=(log,),
                reason=reason,
            )
        return await self._run_actions(
            workflow, scheduled.execution_id, context, start_index=index, resumed=True
        )

    async def abandon(
        self, scheduled: ScheduledActionEntity, error: str
    ) -> ExecutionLogEntity:
        """Close a run whose delayed action could not be resumed: failed log, finished_at."""
        context = TriggerContext.from_dict(scheduled.context)
        workflow = await self._workflows.get_by_id(
            scheduled.workflow_id, include_deleted=True
        )
        action_type = None
        if workflow is not None:
            index = workflow.action_index(scheduled.action_id)
            if index is not None:
                action_type = workflow.ordered_actions()[index].action_type
        now = self._clock()
        message = f"Delayed action gave up after {scheduled.attempts} attempts: {error}"
        log = await self._executions.write_log(
            ExecutionLogCreate(
                workflow_id=scheduled.workflow_id,
                execution_id=scheduled.execution_id,
                status=ExecutionLogStatus.FAILED,
                started_at=now,
                completed_at=now,
                duration_ms=0,
                trigger_id=context.trigger_id,
                trigger_type=context.trigger_type,
                action_id=scheduled.action_id,
                action_type=action_type,
                entity_type=context.entity_type,
                entity_id=context.entity_id,
                error_message=message,
            )
        )
        await self._executions.finish_execution(scheduled.execution_id, now)
        logger.error(
            "Execution %s abandoned at action %s: %s",
            scheduled.execution_id,
            scheduled.action_id,
            message,
        )
        return log

    async def _run_actions(
        self,
        workflow: WorkflowEntity,
        execution_id: str,
        context: TriggerContext,
        *,
        start_index: int,
        resumed: bool = False,
    ) -> ExecutionResult:
        actions = workflow.ordered_actions()
        logs: list[ExecutionLogEntity] = []
        for index in range(start_index, len(actions)):
            action = actions[index]
            delay_due = action.delay_minutes > 0 and not (resumed and index == start_index)
            if delay_due:
                due_at = self._clock() + timedelta(minutes=action.delay_minutes)
                await self._scheduled.schedule(
                    ScheduledActionCreate(
                        execution_id=execution_id,
                        workflow_id=workflow.id,
                        action_id=action.id,
                        due_at=due_at,
                        context=context.to_dict(),
                    )
                )
                logger.info(
                    "Execution %s: action %s (%s) scheduled for %s",
                    execution_id,
                    action.id,
                    action.action_type,
                    due_at.isoformat(),
                )
                return ExecutionResult(
                    execution_id=execution_id,
                    workflow_id=workflow.id,
                    outcome=ExecutionOutcome.SCHEDULED,
                    logs=tuple(logs),
                    scheduled_for=due_at,
                )

            log = await self._run_action(workflow, execution_id, action, context)
            logs.append(log)
            if log.status == ExecutionLogStatus.FAILED and not action.continue_on_error:
                logger.warning(
                    "Execution %s aborted after action %s (%s) failed: %s",
                    execution_id,
                    action.id,
                    action.action_type,
                    log.error_message,
                )
                break

        await self._executions.finish_execution(execution_id, self._clock())
        failed = any(log.status == ExecutionLogStatus.FAILED for log in logs)
        return ExecutionResult(
            execution_id=execution_id,
            workflow_id=workflow.id,
            outcome=ExecutionOutcome.FAILED if failed else ExecutionOutcome.COMPLETED,
            logs=tuple(logs),
        )

    async def _run_action(
        self,
        workflow: WorkflowEntity,
        execution_id: str,
        action: ActionEntity,
        context: TriggerContext,
    ) -> ExecutionLogEntity:
        started_at = self._clock()
        started = time.monotonic()
        action_context = ActionContext(
            execution_id=execution_id,
            workflow_id=workflow.id,
            action_id=action.id,
            action_type=action.action_type,
            trigger=context,
        )
        config: dict[str, Any] = action.config
        try:
            config = self._renderer.render(
                action.config, self._variables(context, execution_id)
            )
        except ActionConfigError as e:
            outcome = ActionOutcome.failed(e.message)
        else:
            if self._options.dry_run or context.dry_run:
                outcome = self._dry_run(action.action_type, config)
            else:
                outcome = await self._registry.execute(
                    action.action_type, config, action_context
                )

        duration_ms = int((time.monotonic() - started) * 1000)
        if outcome.status == ExecutionLogStatus.FAILED:
            logger.warning(
                "Action %s (%s) failed in execution %s: %s",
                action.id,
                action.action_type,
                execution_id,
                outcome.error,
            )
        return await self._executions.write_log(
            ExecutionLogCreate(
                workflow_id=workflow.id,
                execution_id=execution_id,
                status=outcome.status,
                started_at=started_at,
                completed_at=self._clock(),
                duration_ms=duration_ms,
                trigger_id=context.trigger_id,
                trigger_type=context.trigger_type,
                action_id=action.id,
                action_type=action.action_type,
                entity_type=context.entity_type,
                entity_id=context.entity_id,
                input_data=config,
                output_data=outcome.output_data,
                error_message=outcome.error,
            )
        )

    def _dry_run(self, action_type: str, config: dict[str, Any]) -> ActionOutcome:
        if not self._registry.is_registered(action_type):
            return ActionOutcome.failed(f"Unknown action type: {action_type}")
        return ActionOutcome.completed({"dry_run": True, "config": config})

    def _variables(self, context: TriggerContext, execution_id: str) -> dict[str, Any]:
        """Template variables: payload fields at top level plus run metadata."""
        variables: dict[str, Any] = dict(context.payload)
        variables.update(
            {
                "payload": context.payload,
                "event_id": context.event_id,
                "event_type": context.event_type,
                "trigger_type": context.trigger_type,
                "entity_type": context.entity_type,
                "entity_id": context.entity_id,
                "execution_id": execution_id,
                "company_name": self._options.company_name,
                "now": self._clock(),
            }
        )
        return variables
