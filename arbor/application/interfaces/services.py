"""Service interfaces (ports) for the application layer.

Protocols define contracts for the collaborators the action executor calls
(DIP). Concrete senders, mutators and handlers live in
arbor.infrastructure.actions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from arbor.application.dtos.execution import ActionContext, ActionOutcome


class IActionHandler(Protocol):
    """One action capability. Raises on failure; returns output data on success."""

    async def __call__(
        self, config: dict[str, Any], context: ActionContext
    ) -> dict[str, Any]:
        """Perform the action with its rendered config."""


class IActionRegistry(Protocol):
    """Dispatch from action_type tag to handler."""

    def is_registered(self, action_type: str) -> bool:
        """Return whether a handler exists for action_type."""

    def registered_types(self) -> list[str]:
        """Sorted list of known action types."""

    async def execute(
        self,
        action_type: str,
        config: dict[str, Any],
        context: ActionContext,
    ) -> ActionOutcome:
        """Run the handler; never raises (unknown type, errors and timeouts become failed outcomes)."""


class IConfigRenderer(Protocol):
    """Renders an action's templated config against trigger variables."""

    def render(
        self, config: dict[str, Any], variables: dict[str, Any]
    ) -> dict[str, Any]:
        """Return a rendered copy of config. Raises ActionConfigError on template errors."""


class IEmailSender(Protocol):
    """Outbound email capability."""

    async def send(
        self,
        to: list[str],
        subject: str,
        body: str,
        *,
        idempotency_key: str,
    ) -> dict[str, Any]:
        """Send (or skip if already sent for idempotency_key). Returns delivery info."""


class ISmsSender(Protocol):
    """Outbound SMS capability."""

    async def send(
        self, to: str, message: str, *, idempotency_key: str
    ) -> dict[str, Any]:
        """Send (or skip if already sent for idempotency_key). Returns delivery info."""


class IEntityMutator(Protocol):
    """Updates a field on a business entity (job status, lead stage, invoice status)."""

    async def set_field(
        self, entity_type: str, entity_id: str, field: str, value: Any
    ) -> bool:
        """Set entity.field = value. Returns False when the entity does not exist."""


class ITaskSink(Protocol):
    """Receives follow-up tasks and reminders created by actions."""

    async def create(self, kind: str, data: dict[str, Any]) -> dict[str, Any]:
        """Persist a task or reminder; returns the stored record."""
