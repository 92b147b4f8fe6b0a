"""Domain exceptions for the automation engine.

Defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns. Presentation
layer maps them to HTTP responses in exception handlers.

Action-level failures (ActionError and subclasses) never reach the API:
the action registry catches them and records a failed execution log.
"""

from typing import Any


class ArborException(Exception):
    """Base exception for all automation engine errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(ArborException):
    """Raised when input validation fails (unknown operator, unknown action type, bad range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class ResourceNotFoundException(ArborException):
    """Raised when a requested resource (event, workflow, execution) does not exist."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidEventTransitionException(ArborException):
    """Raised when an admin operation is not allowed from the event's current status."""

    def __init__(self, event_id: str, current_status: str, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} event {event_id} in status '{current_status}'",
            "INVALID_EVENT_TRANSITION",
            {
                "event_id": event_id,
                "current_status": current_status,
                "operation": operation,
            },
        )


class WorkflowNotExecutableException(ArborException):
    """Raised when a manual run targets an inactive, deleted or template workflow."""

    def __init__(self, workflow_id: str, reason: str) -> None:
        super().__init__(
            f"Workflow {workflow_id} cannot be executed: {reason}",
            "WORKFLOW_NOT_EXECUTABLE",
            {"workflow_id": workflow_id, "reason": reason},
        )


class SqlNotConfiguredException(ArborException):
    """Raised when the postgres backend is needed but DATABASE_URL is not configured."""

    def __init__(self) -> None:
        super().__init__(
            "SQL database not configured. Set DATABASE_BACKEND=postgres and DATABASE_URL, "
            "then run: alembic upgrade head",
            "SQL_NOT_CONFIGURED",
        )


class ActionError(ArborException):
    """Base for failures raised by action handlers (recorded as failed logs)."""

    def __init__(self, message: str, action_type: str | None = None) -> None:
        details = {"action_type": action_type} if action_type else {}
        super().__init__(message, "ACTION_ERROR", details)


class ActionConfigError(ActionError):
    """Raised when an action's rendered config is missing required fields."""


class UnknownActionTypeError(ActionError):
    """Raised when no handler is registered for an action type."""

    def __init__(self, action_type: str) -> None:
        super().__init__(f"Unknown action type: {action_type}", action_type)


class ActionTimeoutError(ActionError):
    """Raised when an action handler exceeds its timeout."""

    def __init__(self, action_type: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Action '{action_type}' timed out after {timeout_seconds:g}s",
            action_type,
        )
