"""In-memory schedule trigger job store (IScheduledJobStore)."""

from __future__ import annotations

import asyncio
from collections.abc import Collection
from dataclasses import replace
from datetime import datetime, timedelta

from arbor.domain.entities.execution import ScheduledJobEntity
from arbor.shared.utils.generators import generate_cuid


class InMemoryScheduledJobStore:
    """IScheduledJobStore keyed by trigger id; leases tracked alongside."""

    def __init__(self) -> None:
        self._jobs: dict[str, ScheduledJobEntity] = {}
        self._leases: dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def sync(
        self,
        *,
        workflow_id: str,
        trigger_id: str,
        schedule_key: str,
        next_run_at: datetime | None,
        now: datetime,
    ) -> ScheduledJobEntity:
        async with self._lock:
            job = self._jobs.get(trigger_id)
            if job is None:
                job = ScheduledJobEntity(
                    id=generate_cuid(),
                    workflow_id=workflow_id,
                    trigger_id=trigger_id,
                    schedule_key=schedule_key,
                    next_run_at=next_run_at,
                    is_active=next_run_at is not None,
                )
            elif job.schedule_key != schedule_key or (
                not job.is_active and job.next_run_at is not None
            ):
                job = replace(
                    job,
                    schedule_key=schedule_key,
                    next_run_at=next_run_at,
                    is_active=next_run_at is not None,
                )
                self._leases.pop(job.id, None)
            else:
                return job
            self._jobs[trigger_id] = job
            return job

    async def deactivate_missing(self, trigger_ids: Collection[str], *, now: datetime) -> int:
        keep = set(trigger_ids)
        async with self._lock:
            paused = [
                job for job in self._jobs.values() if job.is_active and job.trigger_id not in keep
            ]
            for job in paused:
                self._jobs[job.trigger_id] = replace(job, is_active=False)
                self._leases.pop(job.id, None)
            return len(paused)

    async def claim_due(
        self,
        *,
        now: datetime,
        limit: int,
        visibility_timeout_seconds: int,
    ) -> list[ScheduledJobEntity]:
        async with self._lock:
            due = sorted(
                (
                    job
                    for job in self._jobs.values()
                    if job.is_active
                    and job.next_run_at is not None
                    and job.next_run_at <= now
                    and self._leases.get(job.id, now) <= now
                ),
                key=lambda j: (j.next_run_at, j.id),
            )[:limit]
            for job in due:
                self._leases[job.id] = now + timedelta(seconds=visibility_timeout_seconds)
            return due

    async def advance(
        self,
        job_id: str,
        *,
        last_run_at: datetime,
        next_run_at: datetime | None,
        now: datetime,
    ) -> None:
        async with self._lock:
            for job in self._jobs.values():
                if job.id == job_id:
                    self._jobs[job.trigger_id] = replace(
                        job,
                        last_run_at=last_run_at,
                        next_run_at=next_run_at,
                        is_active=job.is_active and next_run_at is not None,
                    )
                    self._leases.pop(job_id, None)
                    return

    async def list_jobs(self, workflow_id: str | None = None) -> list[ScheduledJobEntity]:
        jobs = [
            j for j in self._jobs.values() if workflow_id is None or j.workflow_id == workflow_id
        ]
        return sorted(
            jobs,
            key=lambda j: (
                not j.is_active,
                j.next_run_at.timestamp() if j.next_run_at is not None else float("inf"),
                j.id,
            ),
        )
