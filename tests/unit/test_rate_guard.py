"""WorkflowRateGuard unit tests: daily limit per UTC day and cooldown."""

from datetime import UTC, datetime, timedelta

from arbor.application.services.rate_guard import WorkflowRateGuard
from arbor.domain.entities.execution import ExecutionRecord
from arbor.domain.entities.workflow import WorkflowEntity
from arbor.infrastructure.memory import InMemoryExecutionStore

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


def _workflow(max_per_day: int | None = 100, cooldown: int = 0) -> WorkflowEntity:
    return WorkflowEntity(
        id="wf1",
        name="Thank-you email",
        description=None,
        is_active=True,
        is_template=False,
        template_category=None,
        max_executions_per_day=max_per_day,
        cooldown_minutes=cooldown,
    )


async def _started(store: InMemoryExecutionStore, at: datetime, execution_id: str) -> None:
    await store.start_execution(
        ExecutionRecord(id=execution_id, workflow_id="wf1", trigger_type="invoice_paid", started_at=at)
    )


async def test_allows_first_run() -> None:
    guard = WorkflowRateGuard(InMemoryExecutionStore())
    decision = await guard.check(_workflow(max_per_day=1, cooldown=30), NOW)
    assert decision.allowed is True
    assert decision.reason is None


async def test_daily_limit_counts_todays_executions_only() -> None:
    store = InMemoryExecutionStore()
    guard = WorkflowRateGuard(store)
    await _started(store, NOW - timedelta(days=1), "yesterday")
    assert (await guard.check(_workflow(max_per_day=1), NOW)).allowed is True

    await _started(store, NOW.replace(hour=0, minute=5), "today")
    decision = await guard.check(_workflow(max_per_day=1), NOW)
    assert decision.allowed is False
    assert decision.reason.startswith("daily limit reached")


async def test_zero_or_none_limit_is_unlimited() -> None:
    store = InMemoryExecutionStore()
    guard = WorkflowRateGuard(store)
    for i in range(3):
        await _started(store, NOW, f"e{i}")
    assert (await guard.check(_workflow(max_per_day=None), NOW)).allowed is True
    assert (await guard.check(_workflow(max_per_day=0), NOW)).allowed is True


async def test_cooldown_boundary() -> None:
    store = InMemoryExecutionStore()
    guard = WorkflowRateGuard(store)
    await _started(store, NOW, "e1")
    workflow = _workflow(cooldown=30)

    inside = await guard.check(workflow, NOW + timedelta(minutes=29, seconds=59))
    assert inside.allowed is False
    assert "cooldown active until" in inside.reason

    assert (await guard.check(workflow, NOW + timedelta(minutes=30))).allowed is True
