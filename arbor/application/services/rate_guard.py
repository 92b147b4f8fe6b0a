"""Per-workflow daily limit and cooldown gates.

Both gates read the execution summaries, so only runs that actually
started count. Gates are soft under races: two processors may both pass
a workflow at its last allowed slot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from arbor.application.interfaces.repositories import IExecutionStore
from arbor.domain.entities.workflow import WorkflowEntity
from arbor.shared.utils.datetime import ensure_utc, start_of_utc_day


@dataclass(frozen=True)
class GateDecision:
    """allowed, or the reason the run must be skipped."""

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> "GateDecision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "GateDecision":
        return cls(False, reason)


class WorkflowRateGuard:
    """Checks max_executions_per_day (UTC day) and cooldown_minutes before a run."""

    def __init__(self, executions: IExecutionStore) -> None:
        self._executions = executions

    async def check(self, workflow: WorkflowEntity, now: datetime) -> GateDecision:
        """Return whether workflow may start a run at now."""
        if workflow.has_rate_limit():
            limit = workflow.max_executions_per_day or 0
            count = await self._executions.count_executions_since(
                workflow.id, start_of_utc_day(now)
            )
            if count >= limit:
                return GateDecision.deny(f"daily limit reached ({count}/{limit})")

        if workflow.cooldown_minutes > 0:
            last_started = ensure_utc(
                await self._executions.last_execution_started_at(workflow.id)
            )
            if last_started is not None:
                available_at = last_started + timedelta(minutes=workflow.cooldown_minutes)
                if now < available_at:
                    return GateDecision.deny(
                        f"cooldown active until {available_at.isoformat()}"
                    )
        return GateDecision.allow()
