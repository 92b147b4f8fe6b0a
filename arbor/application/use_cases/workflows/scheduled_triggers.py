"""Schedule trigger runner: fires workflows whose cron (or run_at) time has come.

Each pass syncs one job row per schedule trigger of an executable workflow,
pauses jobs whose trigger went away, then claims due jobs and runs their
workflow with trigger_type "schedule". Missed fire times are not replayed:
a job that is late fires once and moves to the next time after now.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from arbor.application.dtos.execution import ExecutionLogCreate, TriggerContext
from arbor.application.interfaces.repositories import (
    IExecutionStore,
    IScheduledJobStore,
    IWorkflowRepository,
)
from arbor.application.services.action_executor import ActionExecutor
from arbor.domain.entities.execution import ScheduledJobEntity
from arbor.domain.entities.workflow import TriggerEntity, WorkflowEntity
from arbor.domain.enums import SpecialTriggerType
from arbor.domain.exceptions import ValidationException
from arbor.domain.value_objects.schedule import TriggerSchedule
from arbor.shared.enums import ExecutionLogStatus
from arbor.shared.telemetry.logging import get_logger
from arbor.shared.utils.datetime import utc_now
from arbor.shared.utils.generators import generate_cuid

logger = get_logger(__name__)

SCHEDULE_TRIGGER = SpecialTriggerType.SCHEDULE.value

_Target = tuple[WorkflowEntity, TriggerEntity, TriggerSchedule]


class ScheduledTriggerRunner:
    """Claims due schedule trigger jobs and runs their workflows."""

    def __init__(
        self,
        *,
        jobs: IScheduledJobStore,
        workflows: IWorkflowRepository,
        executions: IExecutionStore,
        executor: ActionExecutor,
        batch_size: int = 10,
        visibility_timeout_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._jobs = jobs
        self._workflows = workflows
        self._executions = executions
        self._executor = executor
        self._batch_size = batch_size
        self._visibility_timeout = visibility_timeout_seconds
        self._clock = clock

    async def sync(self) -> dict[str, _Target]:
        """Create or refresh jobs for live schedule triggers; pause the rest."""
        now = self._clock()
        targets: dict[str, _Target] = {}
        for workflow in await self._workflows.get_candidates(SCHEDULE_TRIGGER):
            if not workflow.is_executable():
                continue
            for trigger in workflow.ordered_triggers(SCHEDULE_TRIGGER):
                try:
                    schedule = TriggerSchedule.from_config(trigger.config)
                except ValidationException as e:
                    logger.warning(
                        "Schedule trigger %s of workflow %s ignored: %s",
                        trigger.id,
                        workflow.id,
                        e.message,
                    )
                    continue
                await self._jobs.sync(
                    workflow_id=workflow.id,
                    trigger_id=trigger.id,
                    schedule_key=schedule.key,
                    next_run_at=schedule.first_run(now),
                    now=now,
                )
                targets[trigger.id] = (workflow, trigger, schedule)
        paused = await self._jobs.deactivate_missing(targets.keys(), now=now)
        if paused:
            logger.info("Paused %d schedule job(s) without a live trigger", paused)
        return targets

    async def run_due(self) -> int:
        """Fire every due job in one claimed batch. Returns how many were claimed."""
        targets = await self.sync()
        due = await self._jobs.claim_due(
            now=self._clock(),
            limit=self._batch_size,
            visibility_timeout_seconds=self._visibility_timeout,
        )
        for job in due:
            target = targets.get(job.trigger_id)
            if target is None:
                continue
            await self._fire(job, *target)
        return len(due)

    async def _fire(
        self,
        job: ScheduledJobEntity,
        workflow: WorkflowEntity,
        trigger: TriggerEntity,
        schedule: TriggerSchedule,
    ) -> None:
        now = self._clock()
        context = TriggerContext(
            trigger_type=SCHEDULE_TRIGGER,
            payload={
                "scheduled_job_id": job.id,
                "scheduled_at": job.next_run_at.isoformat() if job.next_run_at else None,
                "executed_at": now.isoformat(),
            },
            trigger_id=trigger.id,
        )
        try:
            result = await self._executor.run_workflow(workflow, context)
        except Exception as e:
            logger.exception(
                "Scheduled run of workflow %s (trigger %s) failed", workflow.id, trigger.id
            )
            await self._record_failure(workflow, context, now, str(e) or type(e).__name__)
        else:
            logger.info(
                "Scheduled run of workflow %s (trigger %s): %s",
                workflow.id,
                trigger.id,
                result.outcome.value,
            )
        next_run_at = schedule.next_run(now)
        await self._jobs.advance(
            job.id, last_run_at=now, next_run_at=next_run_at, now=self._clock()
        )
        if next_run_at is None:
            logger.info("Schedule trigger %s has no further runs; job deactivated", trigger.id)

    async def _record_failure(
        self,
        workflow: WorkflowEntity,
        context: TriggerContext,
        started_at: datetime,
        error: str,
    ) -> None:
        try:
            await self._executions.write_log(
                ExecutionLogCreate(
                    workflow_id=workflow.id,
                    execution_id=generate_cuid(),
                    status=ExecutionLogStatus.FAILED,
                    started_at=started_at,
                    completed_at=self._clock(),
                    duration_ms=0,
                    trigger_id=context.trigger_id,
                    trigger_type=context.trigger_type,
                    input_data=context.payload,
                    error_message=error,
                )
            )
        except Exception:
            logger.exception("Could not record failed scheduled run of %s", workflow.id)

    async def run(self, interval_seconds: float) -> None:
        """Background loop; runs until cancelled."""
        logger.info("Schedule trigger runner started (interval=%ss)", interval_seconds)
        while True:
            try:
                claimed = await self.run_due()
            except Exception:
                logger.exception("Schedule trigger pass failed")
                claimed = 0
            await asyncio.sleep(interval_seconds if claimed < self._batch_size else 0)
