"""Process-local backend (DATABASE_BACKEND=memory): every port kept in dicts.

State is lost on restart; use for development and tests.
"""

from arbor.infrastructure.memory.event_store import InMemoryEventStore
from arbor.infrastructure.memory.execution_store import InMemoryExecutionStore
from arbor.infrastructure.memory.scheduled_action_store import (
    InMemoryScheduledActionStore,
)
from arbor.infrastructure.memory.scheduled_job_store import InMemoryScheduledJobStore
from arbor.infrastructure.memory.workflow_store import InMemoryWorkflowRepository

__all__ = [
    "InMemoryEventStore",
    "InMemoryExecutionStore",
    "InMemoryScheduledActionStore",
    "InMemoryScheduledJobStore",
    "InMemoryWorkflowRepository",
]
