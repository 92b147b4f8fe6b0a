"""Action handlers, their collaborators, the registry and the config renderer."""

from arbor.infrastructure.actions.entities import (
    InMemoryEntityMutator,
    SqlEntityMutator,
    UpdateEntityFieldAction,
)
from arbor.infrastructure.actions.factory import build_default_registry, wait_action
from arbor.infrastructure.actions.messaging import (
    LogOnlyEmailSender,
    LogOnlySmsSender,
    SendEmailAction,
    SendSmsAction,
)
from arbor.infrastructure.actions.registry import ActionRegistry
from arbor.infrastructure.actions.renderer import JinjaConfigRenderer
from arbor.infrastructure.actions.tasks import (
    CreateReminderAction,
    CreateTaskAction,
    InMemoryTaskSink,
)
from arbor.infrastructure.actions.webhook import WebhookAction

__all__ = [
    "ActionRegistry",
    "CreateReminderAction",
    "CreateTaskAction",
    "InMemoryEntityMutator",
    "InMemoryTaskSink",
    "JinjaConfigRenderer",
    "LogOnlyEmailSender",
    "LogOnlySmsSender",
    "SendEmailAction",
    "SendSmsAction",
    "SqlEntityMutator",
    "UpdateEntityFieldAction",
    "WebhookAction",
    "build_default_registry",
    "wait_action",
]
