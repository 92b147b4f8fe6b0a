"""ORM models. Importing this package registers every table on Base.metadata."""

from arbor.infrastructure.persistence.models.event import DomainEvent
from arbor.infrastructure.persistence.models.execution import (
    AutomationExecution,
    AutomationLog,
    AutomationScheduledAction,
    AutomationScheduledJob,
)
from arbor.infrastructure.persistence.models.workflow import (
    AutomationAction,
    AutomationTrigger,
    AutomationWorkflow,
)

__all__ = [
    "AutomationAction",
    "AutomationExecution",
    "AutomationLog",
    "AutomationScheduledAction",
    "AutomationScheduledJob",
    "AutomationTrigger",
    "AutomationWorkflow",
    "DomainEvent",
]
