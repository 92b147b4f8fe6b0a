"""Ports (Protocols) implemented by infrastructure."""

from arbor.application.interfaces.repositories import (
    IEventStore,
    IExecutionStore,
    IScheduledActionStore,
    IScheduledJobStore,
    IWorkflowRepository,
)
from arbor.application.interfaces.services import (
    IActionHandler,
    IActionRegistry,
    IConfigRenderer,
    IEmailSender,
    IEntityMutator,
    ISmsSender,
    ITaskSink,
)

__all__ = [
    "IActionHandler",
    "IActionRegistry",
    "IConfigRenderer",
    "IEmailSender",
    "IEntityMutator",
    "IEventStore",
    "IExecutionStore",
    "IScheduledActionStore",
    "IScheduledJobStore",
    "ISmsSender",
    "ITaskSink",
    "IWorkflowRepository",
]
