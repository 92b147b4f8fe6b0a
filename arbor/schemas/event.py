"""Domain event API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from arbor.shared.enums import EventStatus


class EventEmitRequest(BaseModel):
    """Request body for POST /events."""

    event_type: str = Field(..., min_length=1, max_length=128)
    payload: dict[str, Any] = Field(default_factory=dict)


class EventEmitResponse(BaseModel):
    """accepted is False when the event was suppressed (duplicate) or not recorded."""

    accepted: bool
    event_id: str | None = None


class EventResponse(BaseModel):
    """Stored domain event."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    event_type: str
    entity_type: str | None = None
    entity_id: str | None = None
    payload: dict[str, Any]
    status: EventStatus
    attempts: int
    last_error: str | None = None
    next_attempt_at: datetime | None = None
    processed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class EventStatsResponse(BaseModel):
    """Event counts per status plus emitter queue counters."""

    counts: dict[str, int]
    total: int
    queued: int = Field(0, description="Emitted but not yet recorded")
    dropped: int = Field(0, description="Dropped by the emitter overflow policy")
    deduplicated: int = Field(0, description="Suppressed as duplicates")


class ProcessingSummaryResponse(BaseModel):
    """Result of one processing pass."""

    model_config = ConfigDict(from_attributes=True)

    claimed: int
    completed: int
    failed: int
    event_ids: list[str]


class EventRetryResponse(BaseModel):
    """Requeued event and the processing pass that followed."""

    event: EventResponse
    processing: ProcessingSummaryResponse
