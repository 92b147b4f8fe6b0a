"""Email and SMS actions with log-only senders.

Senders are keyed by idempotency key (execution id + action id), so a
redelivered step does not send twice.
"""

from __future__ import annotations

import logging
from typing import Any

from arbor.application.dtos.execution import ActionContext
from arbor.application.interfaces.services import IEmailSender, ISmsSender
from arbor.domain.enums import ActionType
from arbor.domain.exceptions import ActionConfigError
from arbor.shared.telemetry.logging import get_logger
from arbor.shared.utils.datetime import utc_now

logger = get_logger(__name__)

EMAIL_PAYLOAD_KEYS = ("email", "customer_email", "primary_email")
PHONE_PAYLOAD_KEYS = ("phone", "customer_phone", "primary_phone")
SMS_SEGMENT_LENGTH = 160


def _first_present(payload: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if payload.get(key):
            return payload[key]
    return None


class LogOnlyEmailSender:
    """IEmailSender that logs instead of sending. Used when no provider is configured."""

    def __init__(self) -> None:
        self.sent: dict[str, dict[str, Any]] = {}

    async def send(
        self,
        to: list[str],
        subject: str,
        body: str,
        *,
        idempotency_key: str,
    ) -> dict[str, Any]:
        if idempotency_key in self.sent:
            logger.info("Email %s already sent, skipping", idempotency_key)
            return {**self.sent[idempotency_key], "duplicate": True}
        logger.info(
            "Email: would send to %d recipients (subject=%r)", len(to), (subject or "")[:80]
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Email recipients: %s", to)
        logger.debug("Email body (first 500 chars): %s", (body or "")[:500])
        record = {
            "simulated": True,
            "recipients": list(to),
            "subject": subject,
            "sent_at": utc_now().isoformat(),
        }
        self.sent[idempotency_key] = record
        return record


class LogOnlySmsSender:
    """ISmsSender that logs instead of sending."""

    def __init__(self) -> None:
        self.sent: dict[str, dict[str, Any]] = {}

    async def send(
        self, to: str, message: str, *, idempotency_key: str
    ) -> dict[str, Any]:
        if idempotency_key in self.sent:
            logger.info("SMS %s already sent, skipping", idempotency_key)
            return {**self.sent[idempotency_key], "duplicate": True}
        logger.info("SMS: would send %d chars to %s", len(message), to)
        record = {
            "simulated": True,
            "recipient": to,
            "message": message,
            "sent_at": utc_now().isoformat(),
        }
        self.sent[idempotency_key] = record
        return record


class SendEmailAction:
    """send_email: config {to?, subject, body}. Recipient defaults to the payload's email."""

    def __init__(self, sender: IEmailSender) -> None:
        self._sender = sender

    async def __call__(
        self, config: dict[str, Any], context: ActionContext
    ) -> dict[str, Any]:
        recipients = config.get("to") or _first_present(
            context.trigger.payload, EMAIL_PAYLOAD_KEYS
        )
        if isinstance(recipients, str):
            recipients = [r.strip() for r in recipients.split(",") if r.strip()]
        if not recipients:
            raise ActionConfigError("No recipient email address", ActionType.SEND_EMAIL.value)
        subject = config.get("subject")
        if not subject:
            raise ActionConfigError("Email subject is required", ActionType.SEND_EMAIL.value)
        return await self._sender.send(
            list(recipients),
            str(subject),
            str(config.get("body") or ""),
            idempotency_key=context.idempotency_key,
        )


class SendSmsAction:
    """send_sms: config {to?, message}. Recipient defaults to the payload's phone."""

    def __init__(self, sender: ISmsSender) -> None:
        self._sender = sender

    async def __call__(
        self, config: dict[str, Any], context: ActionContext
    ) -> dict[str, Any]:
        recipient = config.get("to") or _first_present(
            context.trigger.payload, PHONE_PAYLOAD_KEYS
        )
        if not recipient:
            raise ActionConfigError("No recipient phone number", ActionType.SEND_SMS.value)
        message = config.get("message")
        if not message:
            raise ActionConfigError("SMS message is required", ActionType.SEND_SMS.value)
        message = str(message)
        if len(message) > SMS_SEGMENT_LENGTH:
            logger.warning(
                "SMS for execution %s is %d chars and may be split",
                context.execution_id,
                len(message),
            )
        return await self._sender.send(
            str(recipient).strip(), message, idempotency_key=context.idempotency_key
        )
