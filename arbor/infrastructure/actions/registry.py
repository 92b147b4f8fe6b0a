"""Action registry: action_type tag -> handler, with a per-call timeout."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from arbor.application.dtos.execution import ActionContext, ActionOutcome
from arbor.application.interfaces.services import IActionHandler
from arbor.domain.exceptions import (
    ActionError,
    ActionTimeoutError,
    UnknownActionTypeError,
)
from arbor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class ActionRegistry:
    """IActionRegistry. execute() turns every handler failure into a failed outcome."""

    def __init__(
        self,
        handlers: Mapping[str, IActionHandler] | None = None,
        *,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._handlers: dict[str, IActionHandler] = dict(handlers or {})
        self._timeout_seconds = timeout_seconds

    def register(self, action_type: str, handler: IActionHandler) -> None:
        """Add or replace the handler for action_type."""
        self._handlers[action_type] = handler

    def is_registered(self, action_type: str) -> bool:
        return action_type in self._handlers

    def registered_types(self) -> list[str]:
        return sorted(self._handlers)

    async def execute(
        self,
        action_type: str,
        config: dict[str, Any],
        context: ActionContext,
    ) -> ActionOutcome:
        handler = self._handlers.get(action_type)
        if handler is None:
            return ActionOutcome.failed(UnknownActionTypeError(action_type).message)
        try:
            async with asyncio.timeout(self._timeout_seconds):
                output = await handler(config, context)
        except TimeoutError:
            return ActionOutcome.failed(
                ActionTimeoutError(action_type, self._timeout_seconds).message
            )
        except ActionError as e:
            return ActionOutcome.failed(e.message, e.details or None)
        except Exception as e:
            logger.exception(
                "Action handler %s raised in execution %s", action_type, context.execution_id
            )
            return ActionOutcome.failed(str(e) or type(e).__name__)
        return ActionOutcome.completed(output)
