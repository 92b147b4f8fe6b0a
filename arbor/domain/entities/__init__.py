"""Domain entities (frozen dataclasses, no persistence concerns)."""

from arbor.domain.entities.event import DomainEventEntity, entity_id_from_payload
from arbor.domain.entities.execution import (
    ExecutionLogEntity,
    ExecutionRecord,
    ScheduledActionEntity,
    ScheduledJobEntity,
    derive_execution_status,
)
from arbor.domain.entities.workflow import ActionEntity, TriggerEntity, WorkflowEntity

__all__ = [
    "ActionEntity",
    "DomainEventEntity",
    "ExecutionLogEntity",
    "ExecutionRecord",
    "ScheduledActionEntity",
    "ScheduledJobEntity",
    "TriggerEntity",
    "WorkflowEntity",
    "derive_execution_status",
    "entity_id_from_payload",
]
