"""Trigger condition value object.

Conditions are stored as JSON ({"field", "operator", "value"}) and
validated on write with Condition.from_dict; the evaluator re-parses
stored JSON leniently and fails closed on anything malformed.
"""

from dataclasses import dataclass
from typing import Any

from arbor.domain.enums import ConditionOperator
from arbor.domain.exceptions import ValidationException

# Operators that ignore "value".
UNARY_OPERATORS = frozenset({ConditionOperator.IS_EMPTY, ConditionOperator.IS_NOT_EMPTY})


@dataclass(frozen=True)
class Condition:
    """One predicate over an event payload field (dotted path)."""

    field: str
    operator: ConditionOperator
    value: Any = None

    @classmethod
    def from_dict(cls, raw: Any) -> "Condition":
        """Build a Condition from stored/request JSON. Raises ValidationException when malformed."""
        if not isinstance(raw, dict):
            raise ValidationException("Condition must be an object", "conditions")
        field = raw.get("field")
        if not isinstance(field, str) or not field.strip():
            raise ValidationException("Condition field is required", "conditions.field")
        operator = ConditionOperator.parse(raw.get("operator"))
        if operator is None:
            raise ValidationException(
                f"Unknown condition operator: {raw.get('operator')!r}",
                "conditions.operator",
            )
        value = raw.get("value")
        if operator in (ConditionOperator.IN, ConditionOperator.NOT_IN) and not isinstance(
            value, (list, tuple, str)
        ):
            raise ValidationException(
                f"Operator '{operator.value}' needs a list or comma-separated string",
                "conditions.value",
            )
        return cls(field=field.strip(), operator=operator, value=value)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the stored JSON shape (canonical operator name)."""
        data: dict[str, Any] = {"field": self.field, "operator": self.operator.value}
        if self.operator not in UNARY_OPERATORS:
            data["value"] = self.value
        return data


def parse_conditions(raw: Any) -> list[Condition]:
    """Validate a list of condition dicts. None or [] yields []."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationException("Conditions must be a list", "conditions")
    return [Condition.from_dict(item) for item in raw]
