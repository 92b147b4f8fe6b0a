"""DTOs for event use cases (no dependency on ORM or presentation schemas)."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventCreate:
    """Input for appending an event. The emitter builds this; the store persists it."""

    event_type: str
    payload: dict[str, Any]
    entity_type: str | None = None
    entity_id: str | None = None


@dataclass(frozen=True)
class ProcessingSummary:
    """Outcome of one process_next() batch."""

    claimed: int = 0
    completed: int = 0
    failed: int = 0
    event_ids: tuple[str, ...] = field(default_factory=tuple)
