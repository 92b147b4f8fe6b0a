"""SQL event store (IEventStore) over domain_event.

claim_pending is one statement:

    UPDATE domain_event SET status='processing', attempts=attempts+1, ...
    WHERE id IN (SELECT id ... FOR UPDATE SKIP LOCKED LIMIT n)
    RETURNING *

so concurrent processors never receive the same row.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbor.application.dtos.event import EventCreate
from arbor.domain.entities.event import DomainEventEntity
from arbor.infrastructure.persistence.models.event import DomainEvent
from arbor.shared.enums import EventStatus
from arbor.shared.utils.datetime import ensure_utc, utc_now


def to_event_entity(row: DomainEvent) -> DomainEventEntity:
    return DomainEventEntity(
        id=row.id,
        event_type=row.event_type,
        payload=dict(row.payload or {}),
        status=EventStatus(row.status),
        attempts=row.attempts,
        created_at=ensure_utc(row.created_at),
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        last_error=row.last_error,
        next_attempt_at=ensure_utc(row.next_attempt_at),
        locked_until=ensure_utc(row.locked_until),
        processed_at=ensure_utc(row.processed_at),
        updated_at=ensure_utc(row.updated_at),
    )


def _claimable(now: datetime, max_attempts: int):
    return or_(
        and_(
            DomainEvent.status == EventStatus.PENDING.value,
            or_(DomainEvent.next_attempt_at.is_(None), DomainEvent.next_attempt_at <= now),
        ),
        and_(
            DomainEvent.status == EventStatus.FAILED.value,
            DomainEvent.next_attempt_at <= now,
            DomainEvent.attempts < max_attempts,
        ),
        and_(
            DomainEvent.status == EventStatus.PROCESSING.value,
            DomainEvent.locked_until <= now,
            DomainEvent.attempts < max_attempts,
        ),
    )


def _claim_update(criterion, now: datetime, visibility_timeout_seconds: int):
    return (
        update(DomainEvent)
        .where(criterion)
        .values(
            status=EventStatus.PROCESSING.value,
            attempts=DomainEvent.attempts + 1,
            locked_until=now + timedelta(seconds=visibility_timeout_seconds),
            next_attempt_at=None,
            updated_at=now,
        )
        .returning(DomainEvent)
        .execution_options(synchronize_session=False)
    )


def _settle_scope(event_id: str, attempt: int | None) -> list:
    scope = [DomainEvent.id == event_id, DomainEvent.status == EventStatus.PROCESSING.value]
    if attempt is not None:
        scope.append(DomainEvent.attempts == attempt)
    return scope


class SqlEventStore:
    """IEventStore on PostgreSQL. One transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def append(self, data: EventCreate) -> DomainEventEntity:
        now = utc_now()
        async with self._sessions.begin() as db:
            row = DomainEvent(
                event_type=data.event_type,
                payload=dict(data.payload),
                entity_type=data.entity_type,
                entity_id=data.entity_id,
                status=EventStatus.PENDING.value,
                attempts=0,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            await db.flush()
            return to_event_entity(row)

    async def claim_pending(
        self,
        limit: int,
        *,
        now: datetime,
        visibility_timeout_seconds: int,
        max_attempts: int,
    ) -> list[DomainEventEntity]:
        eligible = (
            select(DomainEvent.id)
            .where(_claimable(now, max_attempts))
            .order_by(DomainEvent.created_at, DomainEvent.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        stmt = _claim_update(DomainEvent.id.in_(eligible), now, visibility_timeout_seconds)
        async with self._sessions.begin() as db:
            rows = (await db.execute(stmt)).scalars().all()
            events = [to_event_entity(r) for r in rows]
        return sorted(events, key=lambda e: (e.created_at, e.id))

    async def claim_event(
        self,
        event_id: str,
        *,
        now: datetime,
        visibility_timeout_seconds: int,
        max_attempts: int,
    ) -> DomainEventEntity | None:
        eligible = (
            select(DomainEvent.id)
            .where(DomainEvent.id == event_id, _claimable(now, max_attempts))
            .with_for_update(skip_locked=True)
        )
        stmt = _claim_update(DomainEvent.id.in_(eligible), now, visibility_timeout_seconds)
        async with self._sessions.begin() as db:
            row = (await db.execute(stmt)).scalar_one_or_none()
            return to_event_entity(row) if row is not None else None

    async def release_stuck(self, *, now: datetime, max_attempts: int) -> int:
        stmt = (
            update(DomainEvent)
            .where(
                DomainEvent.status == EventStatus.PROCESSING.value,
                DomainEvent.locked_until <= now,
                DomainEvent.attempts >= max_attempts,
            )
            .values(
                status=EventStatus.FAILED.value,
                last_error="Processing lease expired on final attempt",
                locked_until=None,
                next_attempt_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            result = await db.execute(stmt)
            return result.rowcount or 0

    async def mark_completed(
        self, event_id: str, *, now: datetime, attempt: int | None = None
    ) -> bool:
        stmt = (
            update(DomainEvent)
            .where(*_settle_scope(event_id, attempt))
            .values(
                status=EventStatus.COMPLETED.value,
                locked_until=None,
                processed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            result = await db.execute(stmt)
            return bool(result.rowcount)

    async def mark_failed(
        self,
        event_id: str,
        error: str,
        *,
        now: datetime,
        retry_at: datetime | None,
        attempt: int | None = None,
    ) -> bool:
        stmt = (
            update(DomainEvent)
            .where(*_settle_scope(event_id, attempt))
            .values(
                status=EventStatus.FAILED.value,
                last_error=error,
                next_attempt_at=retry_at,
                locked_until=None,
                processed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            result = await db.execute(stmt)
            return bool(result.rowcount)

    async def requeue(self, event_id: str, *, now: datetime) -> DomainEventEntity | None:
        return await self._transition(
            event_id,
            from_statuses=[EventStatus.FAILED],
            values={
                "status": EventStatus.PENDING.value,
                "attempts": 0,
                "last_error": None,
                "next_attempt_at": None,
                "locked_until": None,
                "updated_at": now,
            },
        )

    async def dismiss(self, event_id: str, *, now: datetime) -> DomainEventEntity | None:
        return await self._transition(
            event_id,
            from_statuses=[EventStatus.PENDING, EventStatus.FAILED],
            values={
                "status": EventStatus.DISMISSED.value,
                "last_error": "Manually dismissed",
                "next_attempt_at": None,
                "updated_at": now,
            },
        )

    async def _transition(
        self,
        event_id: str,
        *,
        from_statuses: list[EventStatus],
        values: dict,
    ) -> DomainEventEntity | None:
        stmt = (
            update(DomainEvent)
            .where(
                DomainEvent.id == event_id,
                DomainEvent.status.in_([s.value for s in from_statuses]),
            )
            .values(**values)
            .returning(DomainEvent)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions.begin() as db:
            row = (await db.execute(stmt)).scalar_one_or_none()
            return to_event_entity(row) if row is not None else None

    async def get_by_id(self, event_id: str) -> DomainEventEntity | None:
        async with self._sessions() as db:
            row = await db.get(DomainEvent, event_id)
            return to_event_entity(row) if row is not None else None

    async def list_events(
        self, status: str | None = None, skip: int = 0, limit: int = 50
    ) -> list[DomainEventEntity]:
        stmt = select(DomainEvent)
        if status is not None:
            stmt = stmt.where(DomainEvent.status == status)
        stmt = stmt.order_by(DomainEvent.created_at.desc(), DomainEvent.id.desc())
        async with self._sessions() as db:
            rows = (await db.execute(stmt.offset(skip).limit(limit))).scalars().all()
            return [to_event_entity(r) for r in rows]

    async def count_by_status(self) -> dict[str, int]:
        counts = {status: 0 for status in EventStatus.values()}
        stmt = select(DomainEvent.status, func.count()).group_by(DomainEvent.status)
        async with self._sessions() as db:
            for status, count in (await db.execute(stmt)).all():
                counts[status] = count
        return counts
