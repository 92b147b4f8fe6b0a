"""SQL (PostgreSQL) implementations of the repository ports."""

from arbor.infrastructure.persistence.stores.event_store import SqlEventStore
from arbor.infrastructure.persistence.stores.execution_store import SqlExecutionStore
from arbor.infrastructure.persistence.stores.scheduled_action_store import (
    SqlScheduledActionStore,
)
from arbor.infrastructure.persistence.stores.scheduled_job_store import SqlScheduledJobStore
from arbor.infrastructure.persistence.stores.workflow_store import SqlWorkflowRepository

__all__ = [
    "SqlEventStore",
    "SqlExecutionStore",
    "SqlScheduledActionStore",
    "SqlScheduledJobStore",
    "SqlWorkflowRepository",
]
