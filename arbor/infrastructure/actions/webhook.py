"""webhook action: POST (or another method) the run's data to a URL with httpx."""

from __future__ import annotations

from typing import Any

import httpx

from arbor.application.dtos.execution import ActionContext
from arbor.domain.enums import ActionType
from arbor.domain.exceptions import ActionConfigError, ActionError
from arbor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

ALLOWED_METHODS = frozenset({"POST", "PUT", "PATCH"})


class WebhookAction:
    """config {url, method=POST, headers?, body?}. Non-2xx/3xx responses fail the action.

    Without a body the request carries the event type, entity and payload.
    An Idempotency-Key header identifies the (execution, action) step.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._http = http_client
        self._timeout_seconds = timeout_seconds

    async def __call__(
        self, config: dict[str, Any], context: ActionContext
    ) -> dict[str, Any]:
        url = config.get("url")
        if not url or not str(url).startswith(("http://", "https://")):
            raise ActionConfigError("Webhook url must be http(s)", ActionType.WEBHOOK.value)
        method = str(config.get("method") or "POST").upper()
        if method not in ALLOWED_METHODS:
            raise ActionConfigError(
                f"Unsupported webhook method: {method}", ActionType.WEBHOOK.value
            )
        body = config.get("body")
        if body is None:
            body = {
                "event_type": context.trigger.event_type,
                "trigger_type": context.trigger.trigger_type,
                "entity_type": context.trigger.entity_type,
                "entity_id": context.trigger.entity_id,
                "payload": context.trigger.payload,
                "execution_id": context.execution_id,
            }
        headers = {
            **{str(k): str(v) for k, v in (config.get("headers") or {}).items()},
            "Idempotency-Key": context.idempotency_key,
        }

        try:
            if self._http is not None:
                response = await self._http.request(
                    method, url, json=body, headers=headers, timeout=self._timeout_seconds
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                    response = await client.request(method, url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ActionError(
                f"Webhook request failed: {e.__class__.__name__}", ActionType.WEBHOOK.value
            ) from e

        if response.status_code >= 400:
            raise ActionError(
                f"Webhook returned HTTP {response.status_code}", ActionType.WEBHOOK.value
            )
        logger.info(
            "Execution %s: webhook %s %s -> %d",
            context.execution_id,
            method,
            url,
            response.status_code,
        )
        return {"url": url, "method": method, "status_code": response.status_code}
