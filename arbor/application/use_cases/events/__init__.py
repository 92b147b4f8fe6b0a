"""Event use cases: emitter (write side) and processor (claim, match, execute)."""

from arbor.application.use_cases.events.emitter import EventEmitter
from arbor.application.use_cases.events.processor import EventProcessor

__all__ = ["EventEmitter", "EventProcessor"]
