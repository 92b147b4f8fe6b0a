"""Workflow matching: which workflows does an event qualify, and by which trigger."""

from __future__ import annotations

from dataclasses import dataclass

from arbor.application.interfaces.repositories import IWorkflowRepository
from arbor.application.services.condition_evaluator import evaluate_conditions
from arbor.domain.entities.event import DomainEventEntity
from arbor.domain.entities.workflow import TriggerEntity, WorkflowEntity
from arbor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class WorkflowMatch:
    workflow: WorkflowEntity
    trigger: TriggerEntity


class WorkflowMatcher:
    """Finds the workflows an event qualifies.

    Triggers of a workflow are tried in ascending trigger_order; the first
    one whose conditions hold wins, so a workflow runs at most once per
    event.
    """

    def __init__(self, workflows: IWorkflowRepository) -> None:
        self._workflows = workflows

    async def match(self, event: DomainEventEntity) -> list[WorkflowMatch]:
        candidates = await self._workflows.get_candidates(event.event_type)
        matches: list[WorkflowMatch] = []
        for workflow in candidates:
            if not workflow.is_executable():
                continue
            trigger = self.first_matching_trigger(workflow, event)
            if trigger is not None:
                matches.append(WorkflowMatch(workflow=workflow, trigger=trigger))
        logger.debug(
            "Event %s (%s): %d candidate workflows, %d matched",
            event.id,
            event.event_type,
            len(candidates),
            len(matches),
        )
        return matches

    @staticmethod
    def first_matching_trigger(
        workflow: WorkflowEntity, event: DomainEventEntity
    ) -> TriggerEntity | None:
        for trigger in workflow.ordered_triggers(event.event_type):
            if evaluate_conditions(trigger.conditions, event.payload):
                return trigger
        return None
