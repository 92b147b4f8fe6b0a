"""ScheduledTriggerRunner unit tests: cron firing, catch-up, gates, one-shots, pausing."""

from datetime import UTC, datetime
from typing import Any

from arbor.application.dtos.execution import LogQuery
from arbor.application.dtos.workflow import ActionSpec, TriggerSpec, WorkflowCreate, WorkflowUpdate
from arbor.shared.enums import ExecutionLogStatus


async def _schedule_workflow(runtime, config: dict[str, Any], **fields: Any):
    data = WorkflowCreate(
        name=fields.pop("name", "Weekly crew check"),
        triggers=[TriggerSpec("schedule", config=config)],
        actions=[ActionSpec("create_task", config={"title": "Inspect {{ trigger_type }} run"})],
        **fields,
    )
    return await runtime.workflow_service.create_workflow(data)


async def _logs(runtime, workflow_id: str):
    logs, _ = await runtime.executions.list_logs(LogQuery(workflow_id=workflow_id))
    return logs


async def _job(runtime, workflow_id: str):
    [job] = await runtime.scheduled_jobs.list_jobs(workflow_id)
    return job


async def test_nothing_fires_before_the_first_cron_time(runtime) -> None:
    workflow = await _schedule_workflow(runtime, {"cron": "0 10 * * *"})

    assert await runtime.schedule_runner.run_due() == 0
    assert await _logs(runtime, workflow.id) == []
    job = await _job(runtime, workflow.id)
    assert job.is_active
    assert job.next_run_at == datetime(2026, 3, 10, 10, 0, tzinfo=UTC)


async def test_fires_when_due_and_advances_to_the_next_time(runtime, clock) -> None:
    workflow = await _schedule_workflow(runtime, {"cron": "0 10 * * *"})
    await runtime.schedule_runner.run_due()

    clock.advance(hours=1)
    assert await runtime.schedule_runner.run_due() == 1

    [log] = await _logs(runtime, workflow.id)
    assert log.status == ExecutionLogStatus.COMPLETED
    assert log.trigger_type == "schedule"
    assert log.trigger_id == workflow.triggers[0].id
    [task] = runtime.collaborators["task_sink"].records
    assert task["title"] == "Inspect schedule run"

    job = await _job(runtime, workflow.id)
    assert job.last_run_at == datetime(2026, 3, 10, 10, 0, tzinfo=UTC)
    assert job.next_run_at == datetime(2026, 3, 11, 10, 0, tzinfo=UTC)
    assert await runtime.schedule_runner.run_due() == 0


async def test_missed_runs_fire_once(runtime, clock) -> None:
    workflow = await _schedule_workflow(runtime, {"cron": "0 * * * *"})
    await runtime.schedule_runner.run_due()

    clock.advance(hours=5)
    assert await runtime.schedule_runner.run_due() == 1
    assert await runtime.schedule_runner.run_due() == 0

    assert len(await _logs(runtime, workflow.id)) == 1
    job = await _job(runtime, workflow.id)
    assert job.next_run_at == datetime(2026, 3, 10, 15, 0, tzinfo=UTC)


async def test_cooldown_skips_a_scheduled_run(runtime, clock) -> None:
    workflow = await _schedule_workflow(
        runtime, {"cron": "*/10 * * * *"}, cooldown_minutes=30
    )
    await runtime.schedule_runner.run_due()

    clock.advance(minutes=10)
    await runtime.schedule_runner.run_due()
    clock.advance(minutes=10)
    await runtime.schedule_runner.run_due()

    skipped, completed = await _logs(runtime, workflow.id)
    assert completed.status == ExecutionLogStatus.COMPLETED
    assert skipped.status == ExecutionLogStatus.SKIPPED
    assert skipped.trigger_type == "schedule"
    assert skipped.error_message.startswith("cooldown active until")
    assert len(runtime.collaborators["task_sink"].records) == 1


async def test_one_shot_fires_once_and_deactivates(runtime, clock) -> None:
    workflow = await _schedule_workflow(runtime, {"run_at": "2026-03-10T12:00:00+00:00"})
    assert await runtime.schedule_runner.run_due() == 0

    clock.advance(hours=3)
    assert await runtime.schedule_runner.run_due() == 1
    job = await _job(runtime, workflow.id)
    assert not job.is_active
    assert job.next_run_at is None

    clock.advance(days=1)
    assert await runtime.schedule_runner.run_due() == 0
    assert len(await _logs(runtime, workflow.id)) == 1


async def test_one_shot_in_the_past_fires_immediately(runtime) -> None:
    workflow = await _schedule_workflow(runtime, {"run_at": "2026-03-10T08:00:00Z"})

    assert await runtime.schedule_runner.run_due() == 1
    assert await runtime.schedule_runner.run_due() == 0
    [log] = await _logs(runtime, workflow.id)
    assert log.status == ExecutionLogStatus.COMPLETED


async def test_inactive_workflow_pauses_its_schedule(runtime, clock) -> None:
    workflow = await _schedule_workflow(runtime, {"cron": "0 * * * *"})
    await runtime.schedule_runner.run_due()

    await runtime.workflow_service.toggle_workflow(workflow.id)
    clock.advance(hours=2)
    assert await runtime.schedule_runner.run_due() == 0
    assert not (await _job(runtime, workflow.id)).is_active

    await runtime.workflow_service.toggle_workflow(workflow.id)
    assert await runtime.schedule_runner.run_due() == 0
    job = await _job(runtime, workflow.id)
    assert job.is_active
    assert job.next_run_at == datetime(2026, 3, 10, 12, 0, tzinfo=UTC)

    clock.advance(hours=1)
    assert await runtime.schedule_runner.run_due() == 1
    assert len(await _logs(runtime, workflow.id)) == 1


async def test_replaced_trigger_moves_the_schedule(runtime, clock) -> None:
    workflow = await _schedule_workflow(runtime, {"cron": "0 10 * * *"})
    await runtime.schedule_runner.run_due()

    await runtime.workflow_service.update_workflow(
        workflow.id,
        WorkflowUpdate(triggers=[TriggerSpec("schedule", config={"cron": "30 9 * * *"})]),
    )
    await runtime.schedule_runner.run_due()

    jobs = await runtime.scheduled_jobs.list_jobs(workflow.id)
    assert [(j.is_active, j.next_run_at) for j in jobs] == [
        (True, datetime(2026, 3, 10, 9, 30, tzinfo=UTC)),
        (False, datetime(2026, 3, 10, 10, 0, tzinfo=UTC)),
    ]

    clock.advance(hours=1)
    assert await runtime.schedule_runner.run_due() == 1
    assert len(await _logs(runtime, workflow.id)) == 1


async def test_event_trigger_only_workflows_are_not_scheduled(runtime, make_workflow) -> None:
    await make_workflow("invoice_paid")

    assert await runtime.schedule_runner.run_due() == 0
    assert await runtime.scheduled_jobs.list_jobs() == []


async def test_executor_error_is_logged_and_the_schedule_moves_on(
    runtime, clock, monkeypatch
) -> None:
    workflow = await _schedule_workflow(runtime, {"cron": "0 10 * * *"})
    await runtime.schedule_runner.run_due()

    async def broken(*args, **kwargs):
        raise RuntimeError("executor down")

    monkeypatch.setattr(runtime.executor, "run_workflow", broken)
    clock.advance(hours=1)
    assert await runtime.schedule_runner.run_due() == 1

    [log] = await _logs(runtime, workflow.id)
    assert log.status == ExecutionLogStatus.FAILED
    assert log.trigger_type == "schedule"
    assert log.error_message == "executor down"
    job = await _job(runtime, workflow.id)
    assert job.next_run_at == datetime(2026, 3, 11, 10, 0, tzinfo=UTC)
