"""Event processor: claim pending events, match workflows, run them, settle the event.

The atomic claim in the event store is the only serialization point, so
any number of processors (tasks or processes) can run side by side.
Workflows matched by one event run concurrently and are isolated from
each other; an unhandled error in any of them marks the event failed and
the retry policy schedules the next attempt.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from arbor.application.dtos.event import ProcessingSummary
from arbor.application.dtos.execution import ExecutionResult, TriggerContext
from arbor.application.interfaces.repositories import IEventStore
from arbor.application.services.action_executor import ActionExecutor
from arbor.application.services.retry_policy import RetryPolicy
from arbor.application.services.workflow_matcher import WorkflowMatch, WorkflowMatcher
from arbor.domain.entities.event import DomainEventEntity
from arbor.domain.exceptions import (
    InvalidEventTransitionException,
    ResourceNotFoundException,
)
from arbor.shared.telemetry.logging import get_logger
from arbor.shared.telemetry.tracing import add_span_attributes, traced
from arbor.shared.utils.datetime import utc_now

logger = get_logger(__name__)


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def _log_lost_claim(event: DomainEventEntity) -> None:
    logger.warning(
        "Event %s was reclaimed or changed before attempt %d settled; result discarded",
        event.id,
        event.attempts,
    )


class EventProcessor:
    """Processes domain events in batches (background loop or on demand)."""

    def __init__(
        self,
        *,
        store: IEventStore,
        matcher: WorkflowMatcher,
        executor: ActionExecutor,
        retry_policy: RetryPolicy | None = None,
        batch_size: int = 5,
        visibility_timeout_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._matcher = matcher
        self._executor = executor
        self._retry_policy = retry_policy or RetryPolicy()
        self._batch_size = batch_size
        self._visibility_timeout = visibility_timeout_seconds
        self._clock = clock
        self._wake = asyncio.Event()

    @traced("automation.process_next")
    async def process_next(self, batch_size: int | None = None) -> ProcessingSummary:
        """Claim up to batch_size events and process each one."""
        limit = batch_size or self._batch_size
        now = self._clock()
        released = await self._store.release_stuck(
            now=now, max_attempts=self._retry_policy.max_attempts
        )
        if released:
            logger.warning("Failed %d events stuck in processing after their last attempt", released)
        events = await self._store.claim_pending(
            limit,
            now=now,
            visibility_timeout_seconds=self._visibility_timeout,
            max_attempts=self._retry_policy.max_attempts,
        )
        add_span_attributes(claimed=len(events))
        completed = failed = 0
        for event in events:
            if await self._process_event(event):
                completed += 1
            else:
                failed += 1
        if events:
            logger.info(
                "Processed %d events (%d completed, %d failed)", len(events), completed, failed
            )
        return ProcessingSummary(
            claimed=len(events),
            completed=completed,
            failed=failed,
            event_ids=tuple(e.id for e in events),
        )

    async def trigger_processing(self) -> ProcessingSummary:
        """On-demand processing pass (admin "process now")."""
        return await self.process_next()

    async def process_event(self, event_id: str) -> ProcessingSummary:
        """Claim and process one event now; empty summary if it is not claimable."""
        event = await self._store.claim_event(
            event_id,
            now=self._clock(),
            visibility_timeout_seconds=self._visibility_timeout,
            max_attempts=self._retry_policy.max_attempts,
        )
        if event is None:
            return ProcessingSummary()
        completed = await self._process_event(event)
        return ProcessingSummary(
            claimed=1,
            completed=int(completed),
            failed=int(not completed),
            event_ids=(event.id,),
        )

    def kick(self) -> None:
        """Wake the background loop without waiting for its interval."""
        self._wake.set()

    async def run(self, interval_seconds: float) -> None:
        """Background loop: process, then sleep until the interval passes or kick() is called."""
        logger.info(
            "Event processor started (interval=%ss, batch=%d)", interval_seconds, self._batch_size
        )
        while True:
            try:
                summary = await self.process_next()
            except Exception:
                logger.exception("Event processing pass failed")
                summary = ProcessingSummary()
            if summary.claimed >= self._batch_size:
                await asyncio.sleep(0)
                continue
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=interval_seconds)
            except TimeoutError:
                pass
            self._wake.clear()

    async def retry_event(self, event_id: str) -> DomainEventEntity:
        """failed -> pending with attempts reset. Raises if missing or not failed."""
        event = await self._store.get_by_id(event_id)
        if event is None:
            raise ResourceNotFoundException("event", event_id)
        if not event.can_retry():
            raise InvalidEventTransitionException(event_id, event.status.value, "retry")
        requeued = await self._store.requeue(event_id, now=self._clock())
        if requeued is None:
            current = await self._store.get_by_id(event_id)
            status = current.status.value if current else "missing"
            raise InvalidEventTransitionException(event_id, status, "retry")
        logger.info("Event %s requeued for processing", event_id)
        return requeued

    async def dismiss_event(self, event_id: str) -> DomainEventEntity:
        """pending|failed -> dismissed. Raises if missing or in another status."""
        event = await self._store.get_by_id(event_id)
        if event is None:
            raise ResourceNotFoundException("event", event_id)
        if not event.can_dismiss():
            raise InvalidEventTransitionException(event_id, event.status.value, "dismiss")
        dismissed = await self._store.dismiss(event_id, now=self._clock())
        if dismissed is None:
            current = await self._store.get_by_id(event_id)
            status = current.status.value if current else "missing"
            raise InvalidEventTransitionException(event_id, status, "dismiss")
        logger.info("Event %s dismissed", event_id)
        return dismissed

    async def _process_event(self, event: DomainEventEntity) -> bool:
        try:
            await self._handle(event)
        except Exception as e:
            error = _describe(e)
            now = self._clock()
            retry_at = self._retry_policy.next_attempt_at(event.attempts, now)
            if retry_at is None:
                logger.error(
                    "Event %s (%s) failed on final attempt %d: %s",
                    event.id,
                    event.event_type,
                    event.attempts,
                    error,
                )
            else:
                logger.warning(
                    "Event %s (%s) failed on attempt %d, retrying at %s: %s",
                    event.id,
                    event.event_type,
                    event.attempts,
                    retry_at.isoformat(),
                    error,
                )
            settled = await self._store.mark_failed(
                event.id, error, now=now, retry_at=retry_at, attempt=event.attempts
            )
            if not settled:
                _log_lost_claim(event)
            return False
        settled = await self._store.mark_completed(
            event.id, now=self._clock(), attempt=event.attempts
        )
        if not settled:
            _log_lost_claim(event)
        return True

    async def _handle(self, event: DomainEventEntity) -> None:
        matches = await self._matcher.match(event)
        if not matches:
            return
        outcomes = await asyncio.gather(
            *(self._run_match(event, match) for match in matches),
            return_exceptions=True,
        )
        errors: list[Exception] = []
        for match, outcome in zip(matches, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    "Workflow %s failed for event %s: %s",
                    match.workflow.id,
                    event.id,
                    _describe(outcome),
                )
                errors.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
        if errors:
            raise errors[0]

    async def _run_match(
        self, event: DomainEventEntity, match: WorkflowMatch
    ) -> ExecutionResult:
        context = TriggerContext(
            trigger_type=event.event_type,
            payload=event.payload,
            event_id=event.id,
            event_type=event.event_type,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            trigger_id=match.trigger.id,
        )
        return await self._executor.run_workflow(match.workflow, context)
