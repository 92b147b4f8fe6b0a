"""Automation runtime: wires stores, services and background workers for one process.

build_runtime() picks the backend from settings (postgres or memory) and
returns an AutomationRuntime. The lifespan stores it on app.state.automation;
API dependencies read it from there. Tests build their own runtime.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from arbor.application.dtos.execution import AutomationOptions
from arbor.application.interfaces.repositories import (
    IEventStore,
    IExecutionStore,
    IScheduledActionStore,
    IScheduledJobStore,
    IWorkflowRepository,
)
from arbor.application.interfaces.services import IEntityMutator
from arbor.application.services import (
    ActionExecutor,
    RetryPolicy,
    WorkflowMatcher,
    WorkflowRateGuard,
)
from arbor.application.use_cases.automation_logs import AutomationLogService
from arbor.application.use_cases.events import EventEmitter, EventProcessor
from arbor.application.use_cases.workflows import (
    DelayedActionRunner,
    ScheduledTriggerRunner,
    WorkflowService,
)
from arbor.core.config import Settings
from arbor.infrastructure.actions import (
    ActionRegistry,
    InMemoryEntityMutator,
    InMemoryTaskSink,
    JinjaConfigRenderer,
    LogOnlyEmailSender,
    LogOnlySmsSender,
    SqlEntityMutator,
    build_default_registry,
)
from arbor.shared.telemetry.logging import get_logger
from arbor.shared.utils.datetime import utc_now

logger = get_logger(__name__)


@dataclass
class AutomationRuntime:
    """Everything the automation engine needs in one process."""

    settings: Settings
    events: IEventStore
    workflows: IWorkflowRepository
    executions: IExecutionStore
    scheduled: IScheduledActionStore
    scheduled_jobs: IScheduledJobStore
    registry: ActionRegistry
    executor: ActionExecutor
    processor: EventProcessor
    emitter: EventEmitter
    delayed_runner: DelayedActionRunner
    schedule_runner: ScheduledTriggerRunner
    workflow_service: WorkflowService
    log_service: AutomationLogService
    collaborators: dict[str, Any] = field(default_factory=dict)
    tasks: list[asyncio.Task] = field(default_factory=list)

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self.tasks)

    def start(self) -> None:
        """Start the emitter drain, the processor loop and the two schedule pollers."""
        if self.running:
            return
        self.tasks = [
            asyncio.create_task(self.emitter.run(), name="automation-emitter"),
            asyncio.create_task(
                self.processor.run(self.settings.event_processor_interval_seconds),
                name="automation-processor",
            ),
            asyncio.create_task(
                self.delayed_runner.run(self.settings.scheduled_action_poll_seconds),
                name="automation-delayed-actions",
            ),
            asyncio.create_task(
                self.schedule_runner.run(self.settings.schedule_trigger_poll_seconds),
                name="automation-schedule-triggers",
            ),
        ]
        logger.info("Automation workers started")

    async def stop(self) -> None:
        """Cancel workers, then record whatever is still queued in the emitter."""
        for task in self.tasks:
            task.cancel()
        for task in self.tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.tasks = []
        recorded = await self.emitter.drain()
        if recorded:
            logger.info("Recorded %d queued events on shutdown", recorded)
        logger.info("Automation workers stopped")


def _build_stores(
    settings: Settings,
) -> tuple[
    IEventStore,
    IWorkflowRepository,
    IExecutionStore,
    IScheduledActionStore,
    IScheduledJobStore,
    IEntityMutator,
]:
    if settings.database_backend == "postgres":
        from arbor.infrastructure.persistence.database import get_session_factory
        from arbor.infrastructure.persistence.stores import (
            SqlEventStore,
            SqlExecutionStore,
            SqlScheduledActionStore,
            SqlScheduledJobStore,
            SqlWorkflowRepository,
        )

        factory = get_session_factory()
        return (
            SqlEventStore(factory),
            SqlWorkflowRepository(factory),
            SqlExecutionStore(factory),
            SqlScheduledActionStore(factory),
            SqlScheduledJobStore(factory),
            SqlEntityMutator(factory),
        )

    from arbor.infrastructure.memory import (
        InMemoryEventStore,
        InMemoryExecutionStore,
        InMemoryScheduledActionStore,
        InMemoryScheduledJobStore,
        InMemoryWorkflowRepository,
    )

    return (
        InMemoryEventStore(),
        InMemoryWorkflowRepository(),
        InMemoryExecutionStore(),
        InMemoryScheduledActionStore(),
        InMemoryScheduledJobStore(),
        InMemoryEntityMutator(),
    )


def build_runtime(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> AutomationRuntime:
    """Wire the engine for settings.database_backend."""
    events, workflows, executions, scheduled, scheduled_jobs, entity_mutator = _build_stores(
        settings
    )
    email_sender = LogOnlyEmailSender()
    sms_sender = LogOnlySmsSender()
    task_sink = InMemoryTaskSink()
    registry = build_default_registry(
        email_sender=email_sender,
        sms_sender=sms_sender,
        task_sink=task_sink,
        entity_mutator=entity_mutator,
        http_client=http_client,
        timeout_seconds=settings.action_timeout_seconds,
        webhook_timeout_seconds=settings.webhook_timeout_seconds,
        clock=clock,
    )
    executor = ActionExecutor(
        executions=executions,
        workflows=workflows,
        scheduled=scheduled,
        registry=registry,
        renderer=JinjaConfigRenderer(),
        rate_guard=WorkflowRateGuard(executions),
        options=AutomationOptions(
            dry_run=settings.automation_dry_run,
            company_name=settings.company_name,
            action_timeout_seconds=settings.action_timeout_seconds,
        ),
        clock=clock,
    )
    retry_policy = RetryPolicy(
        max_attempts=settings.event_max_attempts,
        base_delay_seconds=settings.event_retry_base_seconds,
        max_delay_seconds=settings.event_retry_max_seconds,
    )
    processor = EventProcessor(
        store=events,
        matcher=WorkflowMatcher(workflows),
        executor=executor,
        retry_policy=retry_policy,
        batch_size=settings.event_batch_size,
        visibility_timeout_seconds=settings.event_visibility_timeout_seconds,
        clock=clock,
    )
    emitter = EventEmitter(
        events,
        max_queue_size=settings.emitter_queue_size,
        overflow_policy=settings.emitter_overflow_policy,
        dedupe_window_seconds=settings.emitter_dedupe_window_seconds,
        on_recorded=processor.kick,
    )
    delayed_runner = DelayedActionRunner(
        store=scheduled,
        executor=executor,
        retry_policy=retry_policy,
        batch_size=settings.scheduled_action_batch_size,
        visibility_timeout_seconds=settings.event_visibility_timeout_seconds,
        clock=clock,
    )
    schedule_runner = ScheduledTriggerRunner(
        jobs=scheduled_jobs,
        workflows=workflows,
        executions=executions,
        executor=executor,
        batch_size=settings.schedule_trigger_batch_size,
        visibility_timeout_seconds=settings.event_visibility_timeout_seconds,
        clock=clock,
    )
    logger.info(
        "Automation runtime built (backend=%s, dry_run=%s)",
        settings.database_backend,
        settings.automation_dry_run,
    )
    return AutomationRuntime(
        settings=settings,
        events=events,
        workflows=workflows,
        executions=executions,
        scheduled=scheduled,
        scheduled_jobs=scheduled_jobs,
        registry=registry,
        executor=executor,
        processor=processor,
        emitter=emitter,
        delayed_runner=delayed_runner,
        schedule_runner=schedule_runner,
        workflow_service=WorkflowService(
            workflows=workflows,
            executions=executions,
            registry=registry,
            executor=executor,
            clock=clock,
        ),
        log_service=AutomationLogService(
            executions=executions, workflows=workflows, clock=clock
        ),
        collaborators={
            "email_sender": email_sender,
            "sms_sender": sms_sender,
            "task_sink": task_sink,
            "entity_mutator": entity_mutator,
        },
    )
