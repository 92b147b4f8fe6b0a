"""Memory backend unit tests: event claim/lease semantics and execution stats."""

import asyncio
from datetime import UTC, datetime, timedelta

from arbor.application.dtos.event import EventCreate
from arbor.application.dtos.execution import (
    ExecutionLogCreate,
    LogQuery,
    ScheduledActionCreate,
)
from arbor.infrastructure.memory import (
    InMemoryEventStore,
    InMemoryExecutionStore,
    InMemoryScheduledActionStore,
)
from arbor.shared.enums import EventStatus, ExecutionLogStatus, ScheduledActionStatus

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


def _claim(store: InMemoryEventStore, now: datetime = NOW, limit: int = 10):
    return store.claim_pending(limit, now=now, visibility_timeout_seconds=300, max_attempts=3)


async def test_concurrent_claims_have_one_winner() -> None:
    store = InMemoryEventStore()
    event = await store.append(EventCreate("quote_sent", {"id": "q-1"}))

    results = await asyncio.gather(*(_claim(store) for _ in range(5)))

    winners = [batch for batch in results if batch]
    assert len(winners) == 1
    assert winners[0][0].id == event.id
    assert winners[0][0].status == EventStatus.PROCESSING
    assert winners[0][0].attempts == 1


async def test_claim_respects_limit() -> None:
    store = InMemoryEventStore()
    ids = [(await store.append(EventCreate("job_created", {"id": str(i)}))).id for i in range(3)]
    first = await _claim(store, limit=2)
    second = await _claim(store, limit=2)
    assert len(first) == 2
    assert len(second) == 1
    assert {e.id for e in first + second} == set(ids)
    assert await _claim(store) == []


async def test_expired_lease_is_reclaimed_until_attempts_run_out() -> None:
    store = InMemoryEventStore()
    event = await store.append(EventCreate("job_created", {"id": "j"}))

    assert [e.id for e in await _claim(store)] == [event.id]
    assert await _claim(store, NOW + timedelta(seconds=299)) == []
    later = NOW + timedelta(seconds=300)
    reclaimed = await _claim(store, later)
    assert reclaimed[0].attempts == 2
    reclaimed = await _claim(store, later + timedelta(seconds=300))
    assert reclaimed[0].attempts == 3

    final = later + timedelta(seconds=600)
    assert await _claim(store, final) == []
    assert await store.release_stuck(now=final, max_attempts=3) == 1
    stuck = await store.get_by_id(event.id)
    assert stuck.status == EventStatus.FAILED
    assert stuck.last_error == "Processing lease expired on final attempt"


async def test_settle_only_from_processing() -> None:
    store = InMemoryEventStore()
    event = await store.append(EventCreate("invoice_paid", {"id": "i"}))
    assert await store.mark_completed(event.id, now=NOW) is False
    await _claim(store)
    assert await store.mark_completed(event.id, now=NOW) is True
    assert await store.mark_failed(event.id, "late", now=NOW, retry_at=None) is False
    assert await store.requeue(event.id, now=NOW) is None
    assert await store.dismiss(event.id, now=NOW) is None


async def test_count_by_status_includes_every_status() -> None:
    store = InMemoryEventStore()
    await store.append(EventCreate("invoice_paid", {}))
    counts = await store.count_by_status()
    assert counts == {
        "pending": 1,
        "processing": 0,
        "completed": 0,
        "failed": 0,
        "dismissed": 0,
    }


def _log(status: ExecutionLogStatus, **fields) -> ExecutionLogCreate:
    fields.setdefault("workflow_id", "wf1")
    fields.setdefault("execution_id", "e1")
    fields.setdefault("started_at", NOW)
    return ExecutionLogCreate(status=status, **fields)


async def test_log_filters_and_newest_first() -> None:
    store = InMemoryExecutionStore()
    await store.write_log(_log(ExecutionLogStatus.COMPLETED, action_id="a1", action_type="send_email"))
    await store.write_log(_log(ExecutionLogStatus.FAILED, action_id="a2", action_type="webhook"))
    await store.write_log(_log(ExecutionLogStatus.SKIPPED, workflow_id="wf2", execution_id="e2"))

    logs, total = await store.list_logs(LogQuery())
    assert total == 3
    assert [log.execution_id for log in logs] == ["e2", "e1", "e1"]

    logs, total = await store.list_logs(LogQuery(workflow_id="wf1", status="failed"))
    assert total == 1
    assert logs[0].action_type == "webhook"

    logs, total = await store.list_logs(LogQuery(skip=1, limit=1))
    assert total == 3
    assert len(logs) == 1


async def test_stats_aggregate_by_day_type_and_workflow() -> None:
    store = InMemoryExecutionStore()
    yesterday = NOW - timedelta(days=1)
    await store.write_log(
        _log(ExecutionLogStatus.COMPLETED, action_id="a1", action_type="send_email", duration_ms=100)
    )
    await store.write_log(
        _log(ExecutionLogStatus.FAILED, action_id="a2", action_type="send_email", duration_ms=300)
    )
    await store.write_log(
        _log(
            ExecutionLogStatus.COMPLETED,
            execution_id="e2",
            action_id="a1",
            action_type="create_task",
            started_at=yesterday,
            duration_ms=20,
        )
    )
    await store.write_log(
        _log(ExecutionLogStatus.SKIPPED, workflow_id="wf2", execution_id="e3", duration_ms=0)
    )

    stats = await store.stats(since=yesterday.replace(hour=0), period_days=2)

    assert stats.overall.total == 4
    assert (stats.overall.completed, stats.overall.failed, stats.overall.skipped) == (2, 1, 1)
    assert stats.overall.success_rate == 66.7
    assert stats.overall.avg_duration_ms == 140.0
    assert stats.overall.max_duration_ms == 300
    assert stats.overall.min_duration_ms == 20
    assert [(d.day, d.total) for d in stats.daily] == [("2026-03-09", 1), ("2026-03-10", 3)]
    assert [(t.action_type, t.total, t.failed) for t in stats.by_action_type] == [
        ("send_email", 2, 1),
        ("create_task", 1, 0),
    ]
    assert [(w.workflow_id, w.executions) for w in stats.top_workflows] == [("wf1", 2), ("wf2", 1)]

    narrowed = await store.stats(since=NOW.replace(hour=0), period_days=1, workflow_id="wf1")
    assert narrowed.overall.total == 2


async def test_scheduled_actions_claim_due_once() -> None:
    store = InMemoryScheduledActionStore()
    row = await store.schedule(
        ScheduledActionCreate(
            execution_id="e1", workflow_id="wf1", action_id="a2", due_at=NOW, context={}
        )
    )
    claimed = await store.claim_due(now=NOW, limit=10, visibility_timeout_seconds=60)
    assert [r.id for r in claimed] == [row.id]
    assert claimed[0].status == ScheduledActionStatus.RUNNING
    assert await store.claim_due(now=NOW, limit=10, visibility_timeout_seconds=60) == []

    again = await store.claim_due(
        now=NOW + timedelta(seconds=61), limit=10, visibility_timeout_seconds=60
    )
    assert again[0].attempts == 2
    await store.complete(row.id, now=NOW)
    assert await store.claim_due(
        now=NOW + timedelta(hours=1), limit=10, visibility_timeout_seconds=60
    ) == []


async def test_stale_claim_cannot_settle_the_reclaimed_attempt() -> None:
    store = InMemoryEventStore()
    event = await store.append(EventCreate("invoice_paid", {"id": "i"}))
    [first] = await _claim(store)
    [second] = await _claim(store, NOW + timedelta(seconds=300))
    assert (first.attempts, second.attempts) == (1, 2)

    assert await store.mark_completed(event.id, now=NOW, attempt=first.attempts) is False
    assert (
        await store.mark_failed(
            event.id, "late", now=NOW, retry_at=None, attempt=first.attempts
        )
        is False
    )
    assert (await store.get_by_id(event.id)).status == EventStatus.PROCESSING

    assert await store.mark_completed(event.id, now=NOW, attempt=second.attempts) is True
    assert (await store.get_by_id(event.id)).status == EventStatus.COMPLETED
