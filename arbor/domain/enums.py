"""Domain vocabulary: business event types, trigger/action types, condition operators."""

from enum import Enum

from arbor.shared.enums import _ValuesMixin


class BusinessEventType(_ValuesMixin, str, Enum):
    """Event types emitted by business operations.

    The emitter accepts other strings too (logged as unknown) so new
    producers can ship before this list is updated.
    """

    QUOTE_SENT = "quote_sent"
    QUOTE_NOT_RESPONDED = "quote_not_responded"
    QUOTE_APPROVED = "quote_approved"
    QUOTE_REJECTED = "quote_rejected"
    JOB_CREATED = "job_created"
    JOB_SCHEDULED = "job_scheduled"
    JOB_STARTED = "job_started"
    JOB_COMPLETED = "job_completed"
    JOB_CANCELLED = "job_cancelled"
    INVOICE_CREATED = "invoice_created"
    INVOICE_SENT = "invoice_sent"
    INVOICE_OVERDUE = "invoice_overdue"
    INVOICE_PAID = "invoice_paid"
    LEAD_CREATED = "lead_created"
    LEAD_STAGE_CHANGED = "lead_stage_changed"


class SpecialTriggerType(_ValuesMixin, str, Enum):
    """Trigger types that are not domain event types."""

    MANUAL = "manual"
    SCHEDULE = "schedule"


class ActionType(_ValuesMixin, str, Enum):
    """Built-in action handler tags."""

    SEND_EMAIL = "send_email"
    SEND_SMS = "send_sms"
    CREATE_TASK = "create_task"
    CREATE_REMINDER = "create_reminder"
    UPDATE_JOB_STATUS = "update_job_status"
    UPDATE_LEAD_STAGE = "update_lead_stage"
    UPDATE_INVOICE_STATUS = "update_invoice_status"
    WEBHOOK = "webhook"
    WAIT = "wait"


class ConditionOperator(_ValuesMixin, str, Enum):
    """Canonical condition operators. Use ConditionOperator.parse() for aliases."""

    EQUALS = "equals"
    STRICT_EQUALS = "strict_equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUALS = "greater_than_or_equals"
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUALS = "less_than_or_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IN = "in"
    NOT_IN = "not_in"

    @classmethod
    def parse(cls, raw: object) -> "ConditionOperator | None":
        """Return the operator for a canonical name or alias, or None if unknown."""
        if not isinstance(raw, str):
            return None
        key = raw.strip().lower()
        if key in _OPERATOR_ALIASES:
            return _OPERATOR_ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            return None


_OPERATOR_ALIASES: dict[str, ConditionOperator] = {
    "==": ConditionOperator.EQUALS,
    "===": ConditionOperator.STRICT_EQUALS,
    "eq": ConditionOperator.EQUALS,
    "!=": ConditionOperator.NOT_EQUALS,
    "!==": ConditionOperator.NOT_EQUALS,
    "ne": ConditionOperator.NOT_EQUALS,
    ">": ConditionOperator.GREATER_THAN,
    "gt": ConditionOperator.GREATER_THAN,
    ">=": ConditionOperator.GREATER_THAN_OR_EQUALS,
    "gte": ConditionOperator.GREATER_THAN_OR_EQUALS,
    "<": ConditionOperator.LESS_THAN,
    "lt": ConditionOperator.LESS_THAN,
    "<=": ConditionOperator.LESS_THAN_OR_EQUALS,
    "lte": ConditionOperator.LESS_THAN_OR_EQUALS,
}


def entity_type_for(event_type: str) -> str | None:
    """Derive the entity type from an event type prefix (invoice_paid -> invoice)."""
    for separator in ("_", "."):
        if separator in event_type:
            prefix = event_type.split(separator, 1)[0]
            return prefix or None
    return None
