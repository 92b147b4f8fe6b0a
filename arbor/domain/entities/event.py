"""Domain event entity.

A domain event is a durable record that something happened in the
business (invoice paid, quote sent). Events are never deleted; they move
through the status lifecycle below and carry their retry bookkeeping.

    pending -> processing -> completed
                          -> failed -> pending (manual retry)
                                    -> processing (scheduled retry)
    pending | failed -> dismissed
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from arbor.shared.enums import EventStatus

_RETRYABLE = frozenset({EventStatus.FAILED})
_DISMISSIBLE = frozenset({EventStatus.PENDING, EventStatus.FAILED})


def entity_id_from_payload(payload: dict[str, Any]) -> str | None:
    """Return the business entity id carried by a payload (id, entityId or entity_id)."""
    for key in ("id", "entityId", "entity_id"):
        value = payload.get(key)
        if value is not None and value != "":
            return str(value)
    return None


@dataclass(frozen=True)
class DomainEventEntity:
    """Immutable snapshot of a stored domain event."""

    id: str
    event_type: str
    payload: dict[str, Any]
    status: EventStatus
    attempts: int
    created_at: datetime
    entity_type: str | None = None
    entity_id: str | None = None
    last_error: str | None = None
    next_attempt_at: datetime | None = None
    locked_until: datetime | None = None
    processed_at: datetime | None = None
    updated_at: datetime | None = None

    def can_retry(self) -> bool:
        """Manual retry is allowed only from failed."""
        return self.status in _RETRYABLE

    def can_dismiss(self) -> bool:
        """Dismiss is allowed from pending or failed."""
        return self.status in _DISMISSIBLE

    def is_terminal(self) -> bool:
        """Return whether no further automatic processing will happen."""
        return self.status in (EventStatus.COMPLETED, EventStatus.DISMISSED)
