"""Builds the action registry with the built-in handlers."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx

from arbor.application.dtos.execution import ActionContext
from arbor.application.interfaces.services import (
    IEmailSender,
    IEntityMutator,
    ISmsSender,
    ITaskSink,
)
from arbor.domain.enums import ActionType
from arbor.infrastructure.actions.entities import UpdateEntityFieldAction
from arbor.infrastructure.actions.messaging import SendEmailAction, SendSmsAction
from arbor.infrastructure.actions.registry import ActionRegistry
from arbor.infrastructure.actions.tasks import CreateReminderAction, CreateTaskAction
from arbor.infrastructure.actions.webhook import WebhookAction
from arbor.shared.utils.datetime import utc_now


async def wait_action(config: dict[str, Any], context: ActionContext) -> dict[str, Any]:
    """wait: no-op step; the pause itself comes from the action's delay_minutes."""
    return {"waited": True}


def build_default_registry(
    *,
    email_sender: IEmailSender,
    sms_sender: ISmsSender,
    task_sink: ITaskSink,
    entity_mutator: IEntityMutator,
    http_client: httpx.AsyncClient | None = None,
    timeout_seconds: float = 30.0,
    webhook_timeout_seconds: float = 10.0,
    clock: Callable[[], datetime] = utc_now,
) -> ActionRegistry:
    """Registry with every ActionType handler wired to the given collaborators."""
    return ActionRegistry(
        {
            ActionType.SEND_EMAIL.value: SendEmailAction(email_sender),
            ActionType.SEND_SMS.value: SendSmsAction(sms_sender),
            ActionType.CREATE_TASK.value: CreateTaskAction(task_sink, clock=clock),
            ActionType.CREATE_REMINDER.value: CreateReminderAction(task_sink, clock=clock),
            ActionType.UPDATE_JOB_STATUS.value: UpdateEntityFieldAction(
                entity_mutator,
                action_type=ActionType.UPDATE_JOB_STATUS.value,
                entity_type="job",
                field="status",
                config_key="new_status",
            ),
            ActionType.UPDATE_LEAD_STAGE.value: UpdateEntityFieldAction(
                entity_mutator,
                action_type=ActionType.UPDATE_LEAD_STAGE.value,
                entity_type="lead",
                field="stage",
                config_key="new_stage",
            ),
            ActionType.UPDATE_INVOICE_STATUS.value: UpdateEntityFieldAction(
                entity_mutator,
                action_type=ActionType.UPDATE_INVOICE_STATUS.value,
                entity_type="invoice",
                field="status",
                config_key="new_status",
            ),
            ActionType.WEBHOOK.value: WebhookAction(
                http_client=http_client, timeout_seconds=webhook_timeout_seconds
            ),
            ActionType.WAIT.value: wait_action,
        },
        timeout_seconds=timeout_seconds,
    )
