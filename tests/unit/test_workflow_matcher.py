"""WorkflowMatcher unit tests over the memory workflow repository."""

from datetime import UTC, datetime

from arbor.application.dtos.workflow import ActionSpec, TriggerSpec, WorkflowCreate
from arbor.application.services.workflow_matcher import WorkflowMatcher
from arbor.domain.entities.event import DomainEventEntity
from arbor.infrastructure.memory import InMemoryWorkflowRepository
from arbor.shared.enums import EventStatus


def _event(event_type: str = "invoice_paid", **payload) -> DomainEventEntity:
    return DomainEventEntity(
        id="ev1",
        event_type=event_type,
        payload=payload,
        status=EventStatus.PROCESSING,
        attempts=1,
        created_at=datetime(2026, 3, 10, 9, 0, tzinfo=UTC),
    )


def _create(name: str, *triggers: TriggerSpec, **fields) -> WorkflowCreate:
    return WorkflowCreate(
        name=name,
        triggers=list(triggers),
        actions=[ActionSpec(action_type="wait")],
        **fields,
    )


async def test_matches_by_event_type_and_conditions() -> None:
    repo = InMemoryWorkflowRepository()
    big = await repo.create(
        _create(
            "Big payments",
            TriggerSpec(
                "invoice_paid",
                conditions=[{"field": "amount", "operator": "gte", "value": 1000}],
            ),
        )
    )
    any_payment = await repo.create(_create("Any payment", TriggerSpec("invoice_paid")))
    await repo.create(_create("Quotes", TriggerSpec("quote_sent")))

    matches = await WorkflowMatcher(repo).match(_event(amount=500))
    assert [m.workflow.id for m in matches] == [any_payment.id]

    matches = await WorkflowMatcher(repo).match(_event(amount=5000))
    assert {m.workflow.id for m in matches} == {big.id, any_payment.id}


async def test_inactive_deleted_and_template_workflows_never_match() -> None:
    repo = InMemoryWorkflowRepository()
    await repo.create(_create("Inactive", TriggerSpec("job_completed"), is_active=False))
    await repo.create(
        _create("Template", TriggerSpec("job_completed"), is_template=True, template_category="jobs")
    )
    deleted = await repo.create(_create("Deleted", TriggerSpec("job_completed")))
    await repo.soft_delete(deleted.id, now=datetime(2026, 3, 10, tzinfo=UTC))

    assert await WorkflowMatcher(repo).match(_event("job_completed")) == []


async def test_first_matching_trigger_in_order_wins() -> None:
    repo = InMemoryWorkflowRepository()
    workflow = await repo.create(
        _create(
            "Two triggers",
            TriggerSpec(
                "invoice_paid",
                conditions=[{"field": "amount", "operator": "gte", "value": 100}],
                trigger_order=1,
            ),
            TriggerSpec("invoice_paid", trigger_order=0),
        )
    )
    matches = await WorkflowMatcher(repo).match(_event(amount=500))
    assert len(matches) == 1
    assert matches[0].workflow.id == workflow.id
    assert matches[0].trigger.trigger_order == 0
    assert matches[0].trigger.conditions == []


async def test_malformed_stored_condition_disqualifies_only_that_workflow() -> None:
    repo = InMemoryWorkflowRepository()
    await repo.create(
        _create(
            "Broken",
            TriggerSpec("invoice_paid", conditions=[{"field": "amount", "operator": "???"}]),
        )
    )
    healthy = await repo.create(_create("Healthy", TriggerSpec("invoice_paid")))
    matches = await WorkflowMatcher(repo).match(_event(amount=1))
    assert [m.workflow.id for m in matches] == [healthy.id]
