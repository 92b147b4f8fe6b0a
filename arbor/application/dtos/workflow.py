"""DTOs for workflow definition use cases (create, update, query)."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TriggerSpec:
    """Validated trigger definition (conditions already in canonical form)."""

    trigger_type: str
    conditions: list[dict[str, Any]] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)
    trigger_order: int = 0


@dataclass(frozen=True)
class ActionSpec:
    """Validated action definition."""

    action_type: str
    config: dict[str, Any] = field(default_factory=dict)
    delay_minutes: int = 0
    action_order: int = 0
    continue_on_error: bool = True


@dataclass(frozen=True)
class WorkflowCreate:
    """Input for creating a workflow with its triggers and actions."""

    name: str
    description: str | None = None
    is_active: bool = True
    is_template: bool = False
    template_category: str | None = None
    max_executions_per_day: int | None = 100
    cooldown_minutes: int = 0
    triggers: list[TriggerSpec] = field(default_factory=list)
    actions: list[ActionSpec] = field(default_factory=list)


@dataclass(frozen=True)
class WorkflowUpdate:
    """Partial update. None leaves a field unchanged; triggers/actions replace the whole set."""

    name: str | None = None
    description: str | None = None
    is_active: bool | None = None
    template_category: str | None = None
    max_executions_per_day: int | None = None
    cooldown_minutes: int | None = None
    triggers: list[TriggerSpec] | None = None
    actions: list[ActionSpec] | None = None


@dataclass(frozen=True)
class WorkflowQuery:
    """Filters for listing workflows (status is "active" or "inactive")."""

    status: str | None = None
    search: str | None = None
    include_templates: bool = False
    skip: int = 0
    limit: int = 50
