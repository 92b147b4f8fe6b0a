"""In-memory delayed action store (IScheduledActionStore)."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta

from arbor.application.dtos.execution import ScheduledActionCreate
from arbor.domain.entities.execution import ScheduledActionEntity
from arbor.shared.enums import ScheduledActionStatus
from arbor.shared.utils.generators import generate_cuid


class InMemoryScheduledActionStore:
    """IScheduledActionStore backed by a dict; leases tracked alongside."""

    def __init__(self) -> None:
        self._rows: dict[str, ScheduledActionEntity] = {}
        self._leases: dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def schedule(self, data: ScheduledActionCreate) -> ScheduledActionEntity:
        row = ScheduledActionEntity(
            id=generate_cuid(),
            execution_id=data.execution_id,
            workflow_id=data.workflow_id,
            action_id=data.action_id,
            due_at=data.due_at,
            context=dict(data.context),
            status=ScheduledActionStatus.PENDING,
        )
        async with self._lock:
            self._rows[row.id] = row
        return row

    async def claim_due(
        self,
        *,
        now: datetime,
        limit: int,
        visibility_timeout_seconds: int,
    ) -> list[ScheduledActionEntity]:
        async with self._lock:
            due = sorted(
                (
                    row
                    for row in self._rows.values()
                    if row.due_at <= now
                    and (
                        row.status == ScheduledActionStatus.PENDING
                        or (
                            row.status == ScheduledActionStatus.RUNNING
                            and self._leases.get(row.id, now) <= now
                        )
                    )
                ),
                key=lambda r: (r.due_at, r.id),
            )[:limit]
            claimed = []
            for row in due:
                updated = replace(
                    row, status=ScheduledActionStatus.RUNNING, attempts=row.attempts + 1
                )
                self._rows[row.id] = updated
                self._leases[row.id] = now + timedelta(seconds=visibility_timeout_seconds)
                claimed.append(updated)
            return claimed

    async def complete(self, scheduled_id: str, *, now: datetime) -> None:
        async with self._lock:
            row = self._rows.get(scheduled_id)
            if row is not None:
                self._rows[scheduled_id] = replace(row, status=ScheduledActionStatus.COMPLETED)
                self._leases.pop(scheduled_id, None)

    async def fail(self, scheduled_id: str, error: str, *, now: datetime) -> None:
        async with self._lock:
            row = self._rows.get(scheduled_id)
            if row is not None:
                self._rows[scheduled_id] = replace(
                    row, status=ScheduledActionStatus.FAILED, last_error=error
                )
                self._leases.pop(scheduled_id, None)

    async def release(
        self, scheduled_id: str, error: str, *, retry_at: datetime, now: datetime
    ) -> None:
        async with self._lock:
            row = self._rows.get(scheduled_id)
            if row is not None:
                self._rows[scheduled_id] = replace(
                    row,
                    status=ScheduledActionStatus.PENDING,
                    due_at=retry_at,
                    last_error=error,
                )
                self._leases.pop(scheduled_id, None)

    def pending(self) -> list[ScheduledActionEntity]:
        """Rows not yet run (inspection helper for the admin view and tests)."""
        return [r for r in self._rows.values() if r.status == ScheduledActionStatus.PENDING]
