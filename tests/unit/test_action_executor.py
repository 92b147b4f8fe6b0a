"""ActionExecutor unit tests: ordering, continue_on_error, rendering, delays, gates."""

from datetime import timedelta

from arbor.application.dtos.execution import TriggerContext
from arbor.application.dtos.workflow import ActionSpec, WorkflowUpdate
from arbor.domain.entities.workflow import ActionEntity, WorkflowEntity
from arbor.shared.enums import (
    ExecutionLogStatus,
    ExecutionOutcome,
    ExecutionStatus,
)


def _context(**payload) -> TriggerContext:
    return TriggerContext(
        trigger_type="invoice_paid",
        payload=payload,
        event_id="ev1",
        event_type="invoice_paid",
        entity_type="invoice",
        entity_id=str(payload.get("id", "inv-1")),
    )


async def test_stops_after_failure_when_continue_on_error_is_false(runtime, make_workflow) -> None:
    workflow = await make_workflow(
        actions=[
            ActionSpec("create_task", config={}, continue_on_error=False),
            ActionSpec("wait"),
            ActionSpec("create_task", config={"title": "Never"}),
        ]
    )
    result = await runtime.executor.run_workflow(workflow, _context(amount=500))

    assert result.outcome == ExecutionOutcome.FAILED
    logs = await runtime.executions.list_execution_logs(result.execution_id)
    assert [log.status for log in logs] == [ExecutionLogStatus.FAILED]
    assert logs[0].error_message == "Task title is required"
    assert runtime.collaborators["task_sink"].records == []


async def test_continues_past_failures_when_allowed(runtime, make_workflow) -> None:
    workflow = await make_workflow(
        actions=[
            ActionSpec("create_task", config={}),
            ActionSpec("wait"),
            ActionSpec("create_task", config={"title": "Call {{ client_name }}"}),
        ]
    )
    result = await runtime.executor.run_workflow(
        workflow, _context(amount=500, client_name="Dana")
    )

    assert result.outcome == ExecutionOutcome.FAILED
    assert [log.status for log in result.logs] == [
        ExecutionLogStatus.FAILED,
        ExecutionLogStatus.COMPLETED,
        ExecutionLogStatus.COMPLETED,
    ]
    assert [log.action_type for log in result.logs] == ["create_task", "wait", "create_task"]
    assert runtime.collaborators["task_sink"].records[0]["title"] == "Call Dana"
    record = await runtime.executions.get_execution(result.execution_id)
    assert record.finished_at is not None


async def test_renders_config_and_logs_rendered_input(runtime, make_workflow) -> None:
    workflow = await make_workflow(
        actions=[
            ActionSpec(
                "send_email",
                config={
                    "to": "{{ customer_email }}",
                    "subject": "Thanks, {{ client.name }}",
                    "body": "Paid ${{ amount }}. {{ company_name }}",
                },
            )
        ]
    )
    result = await runtime.executor.run_workflow(
        workflow,
        _context(amount=500, customer_email="dana@example.com", client={"name": "Dana"}),
    )

    assert result.outcome == ExecutionOutcome.COMPLETED
    log = result.logs[0]
    assert log.input_data == {
        "to": "dana@example.com",
        "subject": "Thanks, Dana",
        "body": "Paid $500. Our Tree Service",
    }
    assert log.output_data["recipients"] == ["dana@example.com"]
    sent = runtime.collaborators["email_sender"].sent
    assert list(sent) == [f"{result.execution_id}:{log.action_id}"]


async def test_template_error_fails_only_that_action(runtime, make_workflow) -> None:
    workflow = await make_workflow(
        actions=[
            ActionSpec("create_task", config={"title": "{{ amount | no_such_filter }}"}),
            ActionSpec("wait"),
        ]
    )
    result = await runtime.executor.run_workflow(workflow, _context(amount=500))

    assert [log.status for log in result.logs] == [
        ExecutionLogStatus.FAILED,
        ExecutionLogStatus.COMPLETED,
    ]
    assert "Template error" in result.logs[0].error_message


async def test_unknown_action_type_is_a_failed_log(runtime) -> None:
    workflow = WorkflowEntity(
        id="wf-legacy",
        name="Legacy",
        description=None,
        is_active=True,
        is_template=False,
        template_category=None,
        max_executions_per_day=None,
        cooldown_minutes=0,
        actions=(
            ActionEntity(
                id="a1",
                workflow_id="wf-legacy",
                action_type="teleport",
                config={},
                delay_minutes=0,
                action_order=0,
            ),
        ),
    )
    result = await runtime.executor.run_workflow(workflow, _context())

    assert result.outcome == ExecutionOutcome.FAILED
    assert result.logs[0].error_message == "Unknown action type: teleport"


async def test_dry_run_skips_handlers(runtime, make_workflow) -> None:
    workflow = await make_workflow(
        actions=[ActionSpec("send_email", config={"to": "a@example.com", "subject": "Hi"})]
    )
    context = TriggerContext(trigger_type="manual", payload={}, dry_run=True)
    result = await runtime.executor.run_workflow(workflow, context)

    assert result.outcome == ExecutionOutcome.COMPLETED
    assert result.logs[0].output_data == {
        "dry_run": True,
        "config": {"to": "a@example.com", "subject": "Hi"},
    }
    assert runtime.collaborators["email_sender"].sent == {}


async def test_daily_limit_writes_one_skipped_log(runtime, make_workflow) -> None:
    workflow = await make_workflow(max_executions_per_day=1)
    first = await runtime.executor.run_workflow(workflow, _context(id="inv-1"))
    second = await runtime.executor.run_workflow(workflow, _context(id="inv-2"))

    assert first.outcome == ExecutionOutcome.COMPLETED
    assert second.outcome == ExecutionOutcome.SKIPPED
    assert second.reason.startswith("daily limit reached")
    skipped = await runtime.executions.list_execution_logs(second.execution_id)
    assert len(skipped) == 1
    assert skipped[0].status == ExecutionLogStatus.SKIPPED
    assert skipped[0].action_id is None
    assert await runtime.executions.get_execution(second.execution_id) is None


async def test_delayed_action_is_scheduled_then_resumed(runtime, make_workflow, clock) -> None:
    workflow = await make_workflow(
        actions=[
            ActionSpec("create_task", config={"title": "First"}),
            ActionSpec("wait", delay_minutes=60),
            ActionSpec("create_task", config={"title": "Second"}),
        ]
    )
    result = await runtime.executor.run_workflow(workflow, _context())

    assert result.outcome == ExecutionOutcome.SCHEDULED
    assert result.scheduled_for == clock.now.replace(hour=10)
    assert len(result.logs) == 1
    assert len(runtime.scheduled.pending()) == 1
    detail = await runtime.log_service.get_execution(result.execution_id)
    assert detail.status == ExecutionStatus.RUNNING

    assert await runtime.delayed_runner.run_due() == 0

    clock.advance(minutes=61)
    assert await runtime.delayed_runner.run_due() == 1
    assert runtime.scheduled.pending() == []

    logs = await runtime.executions.list_execution_logs(result.execution_id)
    assert [log.action_type for log in logs] == ["create_task", "wait", "create_task"]
    assert [r["title"] for r in runtime.collaborators["task_sink"].records] == [
        "First",
        "Second",
    ]
    detail = await runtime.log_service.get_execution(result.execution_id)
    assert detail.status == ExecutionStatus.COMPLETED


async def test_resume_skips_when_action_was_removed(runtime, make_workflow, clock) -> None:
    workflow = await make_workflow(
        actions=[ActionSpec("create_task", config={"title": "Later"}, delay_minutes=5)]
    )
    result = await runtime.executor.run_workflow(workflow, _context())
    assert result.outcome == ExecutionOutcome.SCHEDULED

    await runtime.workflow_service.update_workflow(
        workflow.id, WorkflowUpdate(actions=[ActionSpec("wait")])
    )
    clock.advance(minutes=10)
    assert await runtime.delayed_runner.run_due() == 1

    logs = await runtime.executions.list_execution_logs(result.execution_id)
    assert len(logs) == 1
    assert logs[0].status == ExecutionLogStatus.SKIPPED
    assert logs[0].error_message == "scheduled action no longer exists"
    assert runtime.collaborators["task_sink"].records == []


async def test_finished_run_without_actions_is_completed(runtime, make_workflow) -> None:
    workflow = await make_workflow(actions=[])
    result = await runtime.executor.run_workflow(workflow, _context())

    assert result.outcome == ExecutionOutcome.COMPLETED
    assert result.logs == ()
    detail = await runtime.log_service.get_execution(result.execution_id)
    assert detail.record.finished_at is not None
    assert detail.status == ExecutionStatus.COMPLETED


async def test_resume_error_is_retried_with_backoff(
    runtime, make_workflow, clock, monkeypatch
) -> None:
    workflow = await make_workflow(actions=[ActionSpec("wait", delay_minutes=5)])
    result = await runtime.executor.run_workflow(workflow, _context())

    write_log = runtime.executions.write_log
    calls = []

    async def flaky_write_log(data):
        calls.append(data)
        if len(calls) == 1:
            raise ConnectionError("database went away")
        return await write_log(data)

    monkeypatch.setattr(runtime.executions, "write_log", flaky_write_log)
    clock.advance(minutes=10)
    assert await runtime.delayed_runner.run_due() == 1

    [pending] = runtime.scheduled.pending()
    assert pending.last_error == "database went away"
    assert pending.due_at == clock.now + timedelta(minutes=1)
    assert await runtime.delayed_runner.run_due() == 0

    clock.advance(minutes=2)
    assert await runtime.delayed_runner.run_due() == 1
    assert runtime.scheduled.pending() == []
    detail = await runtime.log_service.get_execution(result.execution_id)
    assert detail.status == ExecutionStatus.COMPLETED
    assert [log.action_type for log in detail.logs] == ["wait"]


async def test_resume_gives_up_with_failed_log_after_max_attempts(
    runtime, make_workflow, clock, monkeypatch
) -> None:
    workflow = await make_workflow(actions=[ActionSpec("wait", delay_minutes=5)])
    result = await runtime.executor.run_workflow(workflow, _context())

    write_log = runtime.executions.write_log

    async def broken_write_log(data):
        if data.status == ExecutionLogStatus.COMPLETED:
            raise ConnectionError("database went away")
        return await write_log(data)

    monkeypatch.setattr(runtime.executions, "write_log", broken_write_log)
    for _ in range(runtime.settings.event_max_attempts):
        clock.advance(minutes=20)
        assert await runtime.delayed_runner.run_due() == 1

    assert runtime.scheduled.pending() == []
    clock.advance(minutes=60)
    assert await runtime.delayed_runner.run_due() == 0

    detail = await runtime.log_service.get_execution(result.execution_id)
    assert detail.status == ExecutionStatus.FAILED
    assert detail.record.finished_at is not None
    [log] = detail.logs
    assert log.action_type == "wait"
    assert log.error_message == (
        "Delayed action gave up after 5 attempts: database went away"
    )
