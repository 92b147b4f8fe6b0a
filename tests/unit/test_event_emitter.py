"""EventEmitter unit tests: non-blocking emit, overflow policy, dedupe."""

import pytest

from arbor.application.use_cases.events import EventEmitter
from arbor.infrastructure.memory import InMemoryEventStore
from arbor.shared.enums import OverflowPolicy


class FlakyStore(InMemoryEventStore):
    """Event store whose first `failures` appends raise."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    async def append(self, data):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("database unavailable")
        return await super().append(data)


async def _payload_ids(store: InMemoryEventStore) -> set[str]:
    return {e.payload["id"] for e in await store.list_events()}


async def test_emit_queues_and_drain_records() -> None:
    store = InMemoryEventStore()
    kicks: list[int] = []
    emitter = EventEmitter(store, on_recorded=lambda: kicks.append(1))

    assert emitter.emit("invoice_paid", {"id": "inv-1", "amount": 250}) is True
    assert emitter.queued == 1
    assert await store.list_events() == []

    assert await emitter.drain() == 1
    [event] = await store.list_events()
    assert event.event_type == "invoice_paid"
    assert event.entity_type == "invoice"
    assert event.entity_id == "inv-1"
    assert event.payload == {"id": "inv-1", "amount": 250}
    assert kicks == [1]


def test_emit_never_raises() -> None:
    emitter = EventEmitter(InMemoryEventStore())
    assert emitter.emit("") is False
    assert emitter.emit(None) is False
    assert emitter.emit("job_created", object()) is False


async def test_unknown_event_type_is_still_recorded() -> None:
    store = InMemoryEventStore()
    emitter = EventEmitter(store)
    event_id = await emitter.emit_now("stump_ground", {"entityId": 42})
    event = await store.get_by_id(event_id)
    assert event.entity_type == "stump"
    assert event.entity_id == "42"


async def test_overflow_drops_oldest_by_default() -> None:
    store = InMemoryEventStore()
    emitter = EventEmitter(store, max_queue_size=2)
    for entity_id in ("a", "b", "c"):
        assert emitter.emit("quote_sent", {"id": entity_id}) is True

    assert emitter.queued == 2
    assert emitter.dropped_count == 1
    await emitter.drain()
    assert await _payload_ids(store) == {"b", "c"}


async def test_overflow_drop_new_rejects_incoming() -> None:
    store = InMemoryEventStore()
    emitter = EventEmitter(store, max_queue_size=2, overflow_policy=OverflowPolicy.DROP_NEW)
    assert emitter.emit("quote_sent", {"id": "a"}) is True
    assert emitter.emit("quote_sent", {"id": "b"}) is True
    assert emitter.emit("quote_sent", {"id": "c"}) is False

    assert emitter.dropped_count == 1
    await emitter.drain()
    assert await _payload_ids(store) == {"a", "b"}


async def test_duplicates_inside_window_are_suppressed() -> None:
    now = [1000.0]
    store = InMemoryEventStore()
    emitter = EventEmitter(store, dedupe_window_seconds=300, monotonic=lambda: now[0])

    assert await emitter.emit_now("job_completed", {"id": "job-1"}) is not None
    assert await emitter.emit_now("job_completed", {"id": "job-1"}) is None
    assert emitter.emit("job_completed", {"id": "job-1"}) is False
    assert emitter.deduplicated_count == 2
    assert await emitter.emit_now("job_started", {"id": "job-1"}) is not None

    now[0] += 301
    assert await emitter.emit_now("job_completed", {"id": "job-1"}) is not None
    assert len(await store.list_events()) == 3


async def test_events_without_entity_id_are_never_deduplicated() -> None:
    emitter = EventEmitter(InMemoryEventStore())
    assert await emitter.emit_now("invoice_paid", {"amount": 10}) is not None
    assert await emitter.emit_now("invoice_paid", {"amount": 10}) is not None


async def test_emit_now_swallows_store_errors() -> None:
    emitter = EventEmitter(FlakyStore(failures=1))
    assert await emitter.emit_now("invoice_paid", {"id": "inv-1"}) is None


async def test_drain_retries_transient_append_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "arbor.application.use_cases.events.emitter._APPEND_RETRY_DELAY_SECONDS", 0
    )
    store = FlakyStore(failures=2)
    emitter = EventEmitter(store)
    emitter.emit("lead_created", {"id": "lead-1"})
    assert await emitter.drain() == 1
    assert await _payload_ids(store) == {"lead-1"}


async def test_drain_gives_up_after_repeated_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "arbor.application.use_cases.events.emitter._APPEND_RETRY_DELAY_SECONDS", 0
    )
    store = FlakyStore(failures=10)
    emitter = EventEmitter(store)
    emitter.emit("lead_created", {"id": "lead-1"})
    assert await emitter.drain() == 0
    assert emitter.queued == 0


async def test_event_dropped_on_overflow_can_be_emitted_again() -> None:
    store = InMemoryEventStore()
    emitter = EventEmitter(store, max_queue_size=1, overflow_policy=OverflowPolicy.DROP_NEW)
    assert emitter.emit("quote_sent", {"id": "a"}) is True
    assert emitter.emit("quote_sent", {"id": "b"}) is False
    await emitter.drain()

    assert emitter.emit("quote_sent", {"id": "b"}) is True
    await emitter.drain()
    assert await _payload_ids(store) == {"a", "b"}
    assert emitter.deduplicated_count == 0


async def test_oldest_event_dropped_on_overflow_can_be_emitted_again() -> None:
    store = InMemoryEventStore()
    emitter = EventEmitter(store, max_queue_size=1)
    assert emitter.emit("quote_sent", {"id": "a"}) is True
    assert emitter.emit("quote_sent", {"id": "b"}) is True

    assert emitter.emit("quote_sent", {"id": "a"}) is True
    assert emitter.emit("quote_sent", {"id": "a"}) is False
    await emitter.drain()
    assert await _payload_ids(store) == {"a"}


async def test_failed_append_does_not_suppress_a_later_emit(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        "arbor.application.use_cases.events.emitter._APPEND_RETRY_DELAY_SECONDS", 0
    )
    store = FlakyStore(failures=4)
    emitter = EventEmitter(store)

    assert await emitter.emit_now("invoice_paid", {"id": "inv-1"}) is None
    emitter.emit("invoice_paid", {"id": "inv-1"})
    assert await emitter.drain() == 0

    assert await emitter.emit_now("invoice_paid", {"id": "inv-1"}) is not None
    assert await _payload_ids(store) == {"inv-1"}
    assert emitter.deduplicated_count == 0
