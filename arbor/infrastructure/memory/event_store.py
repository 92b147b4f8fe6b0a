"""In-memory event store (IEventStore). Process-local; for development and tests.

An asyncio.Lock guards every state change, so claim_pending hands each
event to exactly one concurrent caller just like the SQL claim.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta

from arbor.application.dtos.event import EventCreate
from arbor.domain.entities.event import DomainEventEntity
from arbor.shared.enums import EventStatus
from arbor.shared.utils.datetime import utc_now
from arbor.shared.utils.generators import generate_cuid


class InMemoryEventStore:
    """IEventStore backed by a dict."""

    def __init__(self) -> None:
        self._events: dict[str, DomainEventEntity] = {}
        self._lock = asyncio.Lock()

    async def append(self, data: EventCreate) -> DomainEventEntity:
        now = utc_now()
        event = DomainEventEntity(
            id=generate_cuid(),
            event_type=data.event_type,
            payload=dict(data.payload),
            status=EventStatus.PENDING,
            attempts=0,
            created_at=now,
            entity_type=data.entity_type,
            entity_id=data.entity_id,
            updated_at=now,
        )
        async with self._lock:
            self._events[event.id] = event
        return event

    def _eligible(self, event: DomainEventEntity, now: datetime, max_attempts: int) -> bool:
        if event.status == EventStatus.PENDING:
            return event.next_attempt_at is None or event.next_attempt_at <= now
        if event.status == EventStatus.FAILED:
            return (
                event.next_attempt_at is not None
                and event.next_attempt_at <= now
                and event.attempts < max_attempts
            )
        if event.status == EventStatus.PROCESSING:
            return (
                event.locked_until is not None
                and event.locked_until <= now
                and event.attempts < max_attempts
            )
        return False

    async def claim_pending(
        self,
        limit: int,
        *,
        now: datetime,
        visibility_timeout_seconds: int,
        max_attempts: int,
    ) -> list[DomainEventEntity]:
        async with self._lock:
            eligible = sorted(
                (e for e in self._events.values() if self._eligible(e, now, max_attempts)),
                key=lambda e: (e.created_at, e.id),
            )[:limit]
            claimed = []
            for event in eligible:
                updated = replace(
                    event,
                    status=EventStatus.PROCESSING,
                    attempts=event.attempts + 1,
                    locked_until=now + timedelta(seconds=visibility_timeout_seconds),
                    next_attempt_at=None,
                    updated_at=now,
                )
                self._events[event.id] = updated
                claimed.append(updated)
            return claimed

    async def claim_event(
        self,
        event_id: str,
        *,
        now: datetime,
        visibility_timeout_seconds: int,
        max_attempts: int,
    ) -> DomainEventEntity | None:
        async with self._lock:
            event = self._events.get(event_id)
            if event is None or not self._eligible(event, now, max_attempts):
                return None
            updated = replace(
                event,
                status=EventStatus.PROCESSING,
                attempts=event.attempts + 1,
                locked_until=now + timedelta(seconds=visibility_timeout_seconds),
                next_attempt_at=None,
                updated_at=now,
            )
            self._events[event_id] = updated
            return updated

    async def release_stuck(self, *, now: datetime, max_attempts: int) -> int:
        async with self._lock:
            stuck = [
                e
                for e in self._events.values()
                if e.status == EventStatus.PROCESSING
                and e.locked_until is not None
                and e.locked_until <= now
                and e.attempts >= max_attempts
            ]
            for event in stuck:
                self._events[event.id] = replace(
                    event,
                    status=EventStatus.FAILED,
                    last_error="Processing lease expired on final attempt",
                    locked_until=None,
                    next_attempt_at=None,
                    updated_at=now,
                )
            return len(stuck)

    async def mark_completed(
        self, event_id: str, *, now: datetime, attempt: int | None = None
    ) -> bool:
        async with self._lock:
            event = self._events.get(event_id)
            if event is None or event.status != EventStatus.PROCESSING:
                return False
            if attempt is not None and event.attempts != attempt:
                return False
            self._events[event_id] = replace(
                event,
                status=EventStatus.COMPLETED,
                locked_until=None,
                processed_at=now,
                updated_at=now,
            )
            return True

    async def mark_failed(
        self,
        event_id: str,
        error: str,
        *,
        now: datetime,
        retry_at: datetime | None,
        attempt: int | None = None,
    ) -> bool:
        async with self._lock:
            event = self._events.get(event_id)
            if event is None or event.status != EventStatus.PROCESSING:
                return False
            if attempt is not None and event.attempts != attempt:
                return False
            self._events[event_id] = replace(
                event,
                status=EventStatus.FAILED,
                last_error=error,
                next_attempt_at=retry_at,
                locked_until=None,
                processed_at=now,
                updated_at=now,
            )
            return True

    async def requeue(self, event_id: str, *, now: datetime) -> DomainEventEntity | None:
        async with self._lock:
            event = self._events.get(event_id)
            if event is None or event.status != EventStatus.FAILED:
                return None
            updated = replace(
                event,
                status=EventStatus.PENDING,
                attempts=0,
                last_error=None,
                next_attempt_at=None,
                locked_until=None,
                updated_at=now,
            )
            self._events[event_id] = updated
            return updated

    async def dismiss(self, event_id: str, *, now: datetime) -> DomainEventEntity | None:
        async with self._lock:
            event = self._events.get(event_id)
            if event is None or not event.can_dismiss():
                return None
            updated = replace(
                event,
                status=EventStatus.DISMISSED,
                last_error="Manually dismissed",
                next_attempt_at=None,
                updated_at=now,
            )
            self._events[event_id] = updated
            return updated

    async def get_by_id(self, event_id: str) -> DomainEventEntity | None:
        return self._events.get(event_id)

    async def list_events(
        self, status: str | None = None, skip: int = 0, limit: int = 50
    ) -> list[DomainEventEntity]:
        events = [
            e for e in self._events.values() if status is None or e.status.value == status
        ]
        events.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return events[skip : skip + limit]

    async def count_by_status(self) -> dict[str, int]:
        counts = {status: 0 for status in EventStatus.values()}
        for event in self._events.values():
            counts[event.status.value] += 1
        return counts
