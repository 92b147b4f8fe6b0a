"""Event emitter: fire-and-forget entry point for business operations.

emit() never raises and never blocks the caller. Events go onto a bounded
in-process queue; a drain worker appends them to the event store and kicks
the processor. When the queue is full the configured overflow policy
decides which event is dropped, and every drop is logged and counted.

Use emit_now() when the caller wants the durable append awaited (it still
never raises).
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from arbor.application.dtos.event import EventCreate
from arbor.application.interfaces.repositories import IEventStore
from arbor.domain.entities.event import entity_id_from_payload
from arbor.domain.enums import BusinessEventType, entity_type_for
from arbor.shared.enums import OverflowPolicy
from arbor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_APPEND_ATTEMPTS = 3
_APPEND_RETRY_DELAY_SECONDS = 0.5


def _dedupe_key(event_type: str, entity_id: str | None) -> str | None:
    return f"{event_type}:{entity_id}" if entity_id is not None else None


class EventEmitter:
    """Bounded, non-blocking event emission with an explicit overflow policy."""

    def __init__(
        self,
        store: IEventStore,
        *,
        max_queue_size: int = 1000,
        overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
        dedupe_window_seconds: float = 300,
        on_recorded: Callable[[], None] | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._queue: asyncio.Queue[EventCreate] = asyncio.Queue(maxsize=max_queue_size)
        self._overflow_policy = overflow_policy
        self._dedupe_window = dedupe_window_seconds
        self._on_recorded = on_recorded
        self._monotonic = monotonic
        self._recent: dict[str, float] = {}
        self.dropped_count = 0
        self.deduplicated_count = 0

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    def emit(self, event_type: str, payload: dict[str, Any] | None = None) -> bool:
        """Queue an event for durable recording. Returns False when it was not queued."""
        try:
            data = self._build(event_type, payload)
            if data is None or not self._enqueue(data):
                return False
            self._remember(data)
            return True
        except Exception:
            logger.exception("Failed to emit event %r", event_type)
            return False

    async def emit_now(
        self, event_type: str, payload: dict[str, Any] | None = None
    ) -> str | None:
        """Append immediately and return the event id (None if suppressed or failed)."""
        try:
            data = self._build(event_type, payload)
            if data is None:
                return None
            event = await self._store.append(data)
        except Exception:
            logger.exception("Failed to record event %r", event_type)
            return None
        self._remember(data)
        self._notify()
        return event.id

    async def drain(self) -> int:
        """Append everything currently queued. Returns the number recorded."""
        recorded = 0
        while not self._queue.empty():
            data = self._queue.get_nowait()
            try:
                if await self._append_with_retry(data):
                    recorded += 1
            finally:
                self._queue.task_done()
        if recorded:
            self._notify()
        return recorded

    async def run(self) -> None:
        """Drain worker loop; runs until cancelled."""
        while True:
            data = await self._queue.get()
            try:
                if await self._append_with_retry(data):
                    self._notify()
            finally:
                self._queue.task_done()

    def _build(self, event_type: str, payload: dict[str, Any] | None) -> EventCreate | None:
        if not event_type or not isinstance(event_type, str):
            logger.warning("Ignoring event with empty type")
            return None
        if event_type not in BusinessEventType.values():
            logger.warning("Unknown event type %r emitted; recording anyway", event_type)
        body = dict(payload or {})
        entity_id = entity_id_from_payload(body)
        if self._is_duplicate(_dedupe_key(event_type, entity_id)):
            self.deduplicated_count += 1
            logger.info(
                "Duplicate %s for %s inside %ss window; skipped",
                event_type,
                entity_id,
                self._dedupe_window,
            )
            return None
        return EventCreate(
            event_type=event_type,
            payload=body,
            entity_type=entity_type_for(event_type),
            entity_id=entity_id,
        )

    def _is_duplicate(self, key: str | None) -> bool:
        if self._dedupe_window <= 0 or key is None:
            return False
        cutoff = self._monotonic() - self._dedupe_window
        self._recent = {k: t for k, t in self._recent.items() if t > cutoff}
        return key in self._recent

    def _remember(self, data: EventCreate) -> None:
        key = _dedupe_key(data.event_type, data.entity_id)
        if self._dedupe_window > 0 and key is not None:
            self._recent[key] = self._monotonic()

    def _forget(self, data: EventCreate) -> None:
        key = _dedupe_key(data.event_type, data.entity_id)
        if key is not None:
            self._recent.pop(key, None)

    def _enqueue(self, data: EventCreate) -> bool:
        try:
            self._queue.put_nowait(data)
            return True
        except asyncio.QueueFull:
            pass
        self.dropped_count += 1
        if self._overflow_policy == OverflowPolicy.DROP_NEW:
            logger.warning(
                "Event queue full (%d); dropped new %s event", self._queue.maxsize, data.event_type
            )
            return False
        oldest = self._queue.get_nowait()
        self._queue.task_done()
        self._forget(oldest)
        self._queue.put_nowait(data)
        logger.warning(
            "Event queue full (%d); dropped oldest %s event to make room for %s",
            self._queue.maxsize,
            oldest.event_type,
            data.event_type,
        )
        return True

    async def _append_with_retry(self, data: EventCreate) -> bool:
        for attempt in range(1, _APPEND_ATTEMPTS + 1):
            try:
                event = await self._store.append(data)
            except Exception as e:
                if attempt == _APPEND_ATTEMPTS:
                    logger.error(
                        "Giving up recording %s event after %d attempts: %s (payload=%r)",
                        data.event_type,
                        attempt,
                        e,
                        data.payload,
                    )
                    self._forget(data)
                    return False
                logger.warning(
                    "Recording %s event failed (attempt %d): %s", data.event_type, attempt, e
                )
                await asyncio.sleep(_APPEND_RETRY_DELAY_SECONDS * attempt)
            else:
                logger.debug("Recorded event %s (%s)", event.id, event.event_type)
                return True
        return False

    def _notify(self) -> None:
        if self._on_recorded is None:
            return
        try:
            self._on_recorded()
        except Exception:
            logger.exception("Event recorded hook failed")
