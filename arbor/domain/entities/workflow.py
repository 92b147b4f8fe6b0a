"""Workflow domain entities.

A workflow owns an ordered set of triggers and an ordered set of actions.
Triggers decide whether an event qualifies the workflow; actions are run
in ascending action_order by the executor.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class TriggerEntity:
    """Trigger: event type (or manual/schedule) plus AND-ed conditions."""

    id: str
    workflow_id: str
    trigger_type: str
    config: dict[str, Any]
    conditions: list[dict[str, Any]]
    trigger_order: int


@dataclass(frozen=True)
class ActionEntity:
    """Action: handler tag, templated config and delay/failure policy."""

    id: str
    workflow_id: str
    action_type: str
    config: dict[str, Any]
    delay_minutes: int
    action_order: int
    continue_on_error: bool = True


@dataclass(frozen=True)
class WorkflowEntity:
    """Workflow definition with its triggers and actions."""

    id: str
    name: str
    description: str | None
    is_active: bool
    is_template: bool
    template_category: str | None
    max_executions_per_day: int | None
    cooldown_minutes: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    triggers: tuple[TriggerEntity, ...] = field(default_factory=tuple)
    actions: tuple[ActionEntity, ...] = field(default_factory=tuple)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def is_executable(self) -> bool:
        """Return whether the workflow may run (active, not deleted, not a template)."""
        return self.is_active and not self.is_deleted and not self.is_template

    def ordered_triggers(self, trigger_type: str | None = None) -> list[TriggerEntity]:
        """Triggers in ascending trigger_order, optionally only those of one type."""
        triggers = [
            t for t in self.triggers if trigger_type is None or t.trigger_type == trigger_type
        ]
        return sorted(triggers, key=lambda t: (t.trigger_order, t.id))

    def ordered_actions(self) -> list[ActionEntity]:
        """Actions in ascending action_order (ties broken by id for stability)."""
        return sorted(self.actions, key=lambda a: (a.action_order, a.id))

    def action_index(self, action_id: str) -> int | None:
        """Position of action_id within ordered_actions(), or None if it was removed."""
        for index, action in enumerate(self.ordered_actions()):
            if action.id == action_id:
                return index
        return None

    def has_rate_limit(self) -> bool:
        """max_executions_per_day of None or 0 means unlimited."""
        return bool(self.max_executions_per_day)
