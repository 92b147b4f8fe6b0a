"""Domain helpers: operator parsing, entity types, event transitions, execution status."""

from datetime import UTC, datetime

import pytest

from arbor.domain.entities.event import DomainEventEntity, entity_id_from_payload
from arbor.domain.entities.execution import derive_execution_status
from arbor.domain.enums import ConditionOperator, entity_type_for
from arbor.shared.enums import EventStatus, ExecutionStatus


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("equals", ConditionOperator.EQUALS),
        (" GTE ", ConditionOperator.GREATER_THAN_OR_EQUALS),
        ("!==", ConditionOperator.NOT_EQUALS),
        ("===", ConditionOperator.STRICT_EQUALS),
        ("about", None),
        (None, None),
        (3, None),
    ],
)
def test_operator_parse(raw, expected) -> None:
    assert ConditionOperator.parse(raw) is expected


@pytest.mark.parametrize(
    ("event_type", "expected"),
    [
        ("invoice_paid", "invoice"),
        ("lead_stage_changed", "lead"),
        ("job.completed", "job"),
        ("heartbeat", None),
        ("_odd", None),
    ],
)
def test_entity_type_for(event_type: str, expected: str | None) -> None:
    assert entity_type_for(event_type) == expected


def test_entity_id_from_payload() -> None:
    assert entity_id_from_payload({"id": 12}) == "12"
    assert entity_id_from_payload({"id": "", "entityId": "e-1"}) == "e-1"
    assert entity_id_from_payload({"entity_id": "x"}) == "x"
    assert entity_id_from_payload({}) is None


@pytest.mark.parametrize(
    ("status", "retry", "dismiss"),
    [
        (EventStatus.PENDING, False, True),
        (EventStatus.PROCESSING, False, False),
        (EventStatus.COMPLETED, False, False),
        (EventStatus.FAILED, True, True),
        (EventStatus.DISMISSED, False, False),
    ],
)
def test_event_transitions(status: EventStatus, retry: bool, dismiss: bool) -> None:
    event = DomainEventEntity(
        id="e",
        event_type="job_created",
        payload={},
        status=status,
        attempts=0,
        created_at=datetime(2026, 3, 10, tzinfo=UTC),
    )
    assert event.can_retry() is retry
    assert event.can_dismiss() is dismiss
    assert event.is_terminal() is (status in (EventStatus.COMPLETED, EventStatus.DISMISSED))


@pytest.mark.parametrize(
    ("statuses", "finished", "expected"),
    [
        ([], True, ExecutionStatus.COMPLETED),
        ([], False, ExecutionStatus.RUNNING),
        (["completed", "skipped"], True, ExecutionStatus.COMPLETED),
        (["skipped"], True, ExecutionStatus.COMPLETED),
        (["completed"], False, ExecutionStatus.RUNNING),
        (["completed", "failed"], False, ExecutionStatus.FAILED),
    ],
)
def test_derive_execution_status(statuses, finished, expected) -> None:
    assert derive_execution_status(statuses, finished=finished) == expected
