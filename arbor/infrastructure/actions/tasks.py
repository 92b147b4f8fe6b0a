"""Follow-up task and reminder actions."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from arbor.application.dtos.execution import ActionContext
from arbor.application.interfaces.services import ITaskSink
from arbor.domain.enums import ActionType
from arbor.domain.exceptions import ActionConfigError
from arbor.shared.telemetry.logging import get_logger
from arbor.shared.utils.datetime import ensure_utc, utc_now
from arbor.shared.utils.generators import generate_cuid

logger = get_logger(__name__)

DEFAULT_TASK_DUE_DAYS = 3
DEFAULT_REMINDER_DAYS = 1


def _number(config: dict[str, Any], key: str, action_type: ActionType) -> float | None:
    raw = config.get(key)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ActionConfigError(f"{key} must be a number", action_type.value) from e


class InMemoryTaskSink:
    """ITaskSink that keeps records in memory and logs them."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    async def create(self, kind: str, data: dict[str, Any]) -> dict[str, Any]:
        record = {"id": generate_cuid(), "kind": kind, **data}
        self.records.append(record)
        logger.info("Created %s %s: %r", kind, record["id"], data.get("title"))
        return record


class CreateTaskAction:
    """create_task: config {title, description?, due_in_days=3, assign_to?, priority=normal}."""

    def __init__(
        self, sink: ITaskSink, *, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._sink = sink
        self._clock = clock

    async def __call__(
        self, config: dict[str, Any], context: ActionContext
    ) -> dict[str, Any]:
        title = config.get("title")
        if not title:
            raise ActionConfigError("Task title is required", ActionType.CREATE_TASK.value)
        due_in_days = _number(config, "due_in_days", ActionType.CREATE_TASK)
        due_at = self._clock() + timedelta(
            days=DEFAULT_TASK_DUE_DAYS if due_in_days is None else due_in_days
        )
        record = await self._sink.create(
            "task",
            {
                "title": str(title),
                "description": config.get("description"),
                "due_at": due_at.isoformat(),
                "assigned_to": config.get("assign_to"),
                "priority": config.get("priority") or "normal",
                "entity_type": context.trigger.entity_type,
                "entity_id": context.trigger.entity_id,
                "execution_id": context.execution_id,
            },
        )
        return {"task_id": record.get("id"), "title": str(title), "due_at": due_at.isoformat()}


class CreateReminderAction:
    """create_reminder: remind_at (ISO), else remind_in_hours, else remind_in_days (default 1)."""

    def __init__(
        self, sink: ITaskSink, *, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._sink = sink
        self._clock = clock

    def remind_time(self, config: dict[str, Any]) -> datetime:
        remind_at = config.get("remind_at")
        if remind_at:
            try:
                return ensure_utc(datetime.fromisoformat(str(remind_at)))
            except ValueError as e:
                raise ActionConfigError(
                    f"remind_at is not an ISO datetime: {remind_at}",
                    ActionType.CREATE_REMINDER.value,
                ) from e
        hours = _number(config, "remind_in_hours", ActionType.CREATE_REMINDER)
        if hours:
            return self._clock() + timedelta(hours=hours)
        days = _number(config, "remind_in_days", ActionType.CREATE_REMINDER)
        return self._clock() + timedelta(days=days or DEFAULT_REMINDER_DAYS)

    async def __call__(
        self, config: dict[str, Any], context: ActionContext
    ) -> dict[str, Any]:
        title = config.get("title")
        if not title:
            raise ActionConfigError(
                "Reminder title is required", ActionType.CREATE_REMINDER.value
            )
        remind_at = self.remind_time(config)
        record = await self._sink.create(
            "reminder",
            {
                "title": str(title),
                "remind_at": remind_at.isoformat(),
                "entity_type": context.trigger.entity_type,
                "entity_id": context.trigger.entity_id,
                "execution_id": context.execution_id,
            },
        )
        return {
            "reminder_id": record.get("id"),
            "title": str(title),
            "remind_at": remind_at.isoformat(),
        }
