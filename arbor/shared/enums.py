"""Shared enumerations for the automation engine.

Cross-cutting status enums used by application and infrastructure (event
lifecycle, execution log, scheduled actions). Domain vocabulary (event
types, action types, condition operators) lives in arbor.domain.enums.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class EventStatus(_ValuesMixin, str, Enum):
    """Domain event lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DISMISSED = "dismissed"


class ExecutionLogStatus(_ValuesMixin, str, Enum):
    """Outcome of a single action attempt (or a skipped run)."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ExecutionStatus(_ValuesMixin, str, Enum):
    """Derived status of one workflow execution (never stored)."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionOutcome(_ValuesMixin, str, Enum):
    """Result of one executor invocation, returned to callers."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    SCHEDULED = "scheduled"


class ScheduledActionStatus(_ValuesMixin, str, Enum):
    """Lifecycle of a persisted delayed action."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class OverflowPolicy(_ValuesMixin, str, Enum):
    """What the emitter does when its in-process queue is full."""

    DROP_OLDEST = "drop_oldest"
    DROP_NEW = "drop_new"
