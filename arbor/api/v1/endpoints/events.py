"""Domain event API: emit, inspect, retry, dismiss and force processing."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from arbor.api.v1.dependencies import (
    RuntimeDep,
    get_event_emitter,
    get_event_processor,
)
from arbor.application.use_cases.events import EventEmitter, EventProcessor
from arbor.core.limiter import limit_emit, limit_process, limit_writes
from arbor.domain.exceptions import ResourceNotFoundException, ValidationException
from arbor.schemas.event import (
    EventEmitRequest,
    EventEmitResponse,
    EventResponse,
    EventRetryResponse,
    EventStatsResponse,
    ProcessingSummaryResponse,
)
from arbor.shared.enums import EventStatus

router = APIRouter()


@router.get("", response_model=list[EventResponse])
async def list_events(
    runtime: RuntimeDep,
    status: str | None = Query(None, description="pending, processing, completed, failed, dismissed"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
):
    """List events, newest first."""
    if status is not None and status not in EventStatus.values():
        raise ValidationException(
            f"status must be one of: {', '.join(EventStatus.values())}", "status"
        )
    events = await runtime.events.list_events(status=status, skip=skip, limit=limit)
    return [EventResponse.model_validate(e) for e in events]


@router.get("/stats", response_model=EventStatsResponse)
async def event_stats(runtime: RuntimeDep):
    """Event counts per status and emitter counters."""
    counts = await runtime.events.count_by_status()
    return EventStatsResponse(
        counts=counts,
        total=sum(counts.values()),
        queued=runtime.emitter.queued,
        dropped=runtime.emitter.dropped_count,
        deduplicated=runtime.emitter.deduplicated_count,
    )


@router.post("", response_model=EventEmitResponse, status_code=202)
@limit_emit
async def emit_event(
    request: Request,
    body: EventEmitRequest,
    emitter: Annotated[EventEmitter, Depends(get_event_emitter)],
):
    """Record a business event. Processing happens asynchronously."""
    event_id = await emitter.emit_now(body.event_type, body.payload)
    return EventEmitResponse(accepted=event_id is not None, event_id=event_id)


@router.post("/process", response_model=ProcessingSummaryResponse)
@limit_process
async def process_events(
    request: Request,
    processor: Annotated[EventProcessor, Depends(get_event_processor)],
):
    """Run one processing pass now."""
    summary = await processor.trigger_processing()
    return ProcessingSummaryResponse.model_validate(summary)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, runtime: RuntimeDep):
    event = await runtime.events.get_by_id(event_id)
    if event is None:
        raise ResourceNotFoundException("event", event_id)
    return EventResponse.model_validate(event)


@router.post("/{event_id}/retry", response_model=EventRetryResponse)
@limit_writes
async def retry_event(request: Request, event_id: str, runtime: RuntimeDep):
    """Requeue a failed event (attempts reset) and process it right away."""
    event = await runtime.processor.retry_event(event_id)
    summary = await runtime.processor.process_event(event_id)
    event = await runtime.events.get_by_id(event_id) or event
    return EventRetryResponse(
        event=EventResponse.model_validate(event),
        processing=ProcessingSummaryResponse.model_validate(summary),
    )


@router.post("/{event_id}/dismiss", response_model=EventResponse)
@limit_writes
async def dismiss_event(
    request: Request,
    event_id: str,
    processor: Annotated[EventProcessor, Depends(get_event_processor)],
):
    """Dismiss a pending or failed event; it will never be processed."""
    event = await processor.dismiss_event(event_id)
    return EventResponse.model_validate(event)
