"""Shared telemetry: logging setup, OpenTelemetry config, and tracing helpers."""

from arbor.shared.telemetry.logging import get_logger, setup_logging
from arbor.shared.telemetry.telemetry import (
    TelemetryConfig,
    get_telemetry,
    set_telemetry,
)
from arbor.shared.telemetry.tracing import (
    add_span_attributes,
    add_span_event,
    get_trace_id,
    traced,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "TelemetryConfig",
    "get_telemetry",
    "set_telemetry",
    "traced",
    "add_span_attributes",
    "add_span_event",
    "get_trace_id",
]
