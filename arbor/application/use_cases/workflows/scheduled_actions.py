"""Delayed action runner: resumes executions whose next action is now due."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from arbor.application.interfaces.repositories import IScheduledActionStore
from arbor.application.services.action_executor import ActionExecutor
from arbor.application.services.retry_policy import RetryPolicy
from arbor.domain.entities.execution import ScheduledActionEntity
from arbor.shared.telemetry.logging import get_logger
from arbor.shared.utils.datetime import utc_now

logger = get_logger(__name__)


class DelayedActionRunner:
    """Claims due scheduled actions and hands them back to the executor.

    A resume that raises is released back to pending with the retry
    policy's backoff. Once attempts run out the run is closed with a failed
    log and the row is marked failed.
    """

    def __init__(
        self,
        *,
        store: IScheduledActionStore,
        executor: ActionExecutor,
        retry_policy: RetryPolicy | None = None,
        batch_size: int = 10,
        visibility_timeout_seconds: int = 300,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._executor = executor
        self._retry_policy = retry_policy or RetryPolicy()
        self._batch_size = batch_size
        self._visibility_timeout = visibility_timeout_seconds
        self._clock = clock

    async def run_due(self) -> int:
        """Resume every due action in one claimed batch. Returns how many were claimed."""
        due = await self._store.claim_due(
            now=self._clock(),
            limit=self._batch_size,
            visibility_timeout_seconds=self._visibility_timeout,
        )
        for scheduled in due:
            try:
                result = await self._executor.resume(scheduled)
            except Exception as e:
                logger.exception(
                    "Resuming action %s of execution %s failed (attempt %d)",
                    scheduled.action_id,
                    scheduled.execution_id,
                    scheduled.attempts,
                )
                await self._handle_failure(scheduled, str(e) or type(e).__name__)
                continue
            await self._store.complete(scheduled.id, now=self._clock())
            logger.info(
                "Execution %s resumed at action %s: %s",
                scheduled.execution_id,
                scheduled.action_id,
                result.outcome.value,
            )
        return len(due)

    async def _handle_failure(self, scheduled: ScheduledActionEntity, error: str) -> None:
        now = self._clock()
        retry_at = self._retry_policy.next_attempt_at(scheduled.attempts, now)
        if retry_at is not None:
            await self._store.release(scheduled.id, error, retry_at=retry_at, now=now)
            logger.info(
                "Delayed action %s will be retried at %s", scheduled.id, retry_at.isoformat()
            )
            return
        try:
            await self._executor.abandon(scheduled, error)
        except Exception:
            logger.exception(
                "Could not record abandoned action %s of execution %s",
                scheduled.action_id,
                scheduled.execution_id,
            )
        await self._store.fail(scheduled.id, error, now=now)

    async def run(self, interval_seconds: float) -> None:
        """Background loop; runs until cancelled."""
        logger.info("Delayed action runner started (interval=%ss)", interval_seconds)
        while True:
            try:
                claimed = await self.run_due()
            except Exception:
                logger.exception("Delayed action pass failed")
                claimed = 0
            await asyncio.sleep(interval_seconds if claimed < self._batch_size else 0)
