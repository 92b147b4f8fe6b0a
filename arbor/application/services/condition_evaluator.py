"""Trigger condition evaluation (pure, fail-closed).

evaluate_conditions() ANDs every condition against the event payload. It
never raises and never mutates its inputs: malformed conditions, unknown
operators and missing fields all evaluate to False with a warning.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from arbor.domain.enums import ConditionOperator
from arbor.domain.exceptions import ValidationException
from arbor.domain.value_objects.condition import Condition
from arbor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_MISSING = object()


def resolve_field(payload: Mapping[str, Any], path: str) -> Any:
    """Look up a dotted path (client.address.city, items.0.price). Returns _MISSING when absent."""
    current: Any = payload
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                index = int(part)
            except ValueError:
                return _MISSING
            if index >= len(current) or index < -len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _loose_equals(left: Any, right: Any) -> bool:
    if left == right:
        return True
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    if isinstance(left, bool) or isinstance(right, bool):
        return str(left).lower() == str(right).lower()
    return False


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _as_members(value: Any) -> list[str] | None:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",")]
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value]
    return None


def _contains(field_value: Any, expected: Any) -> bool:
    if isinstance(field_value, str):
        return str(expected).lower() in field_value.lower()
    if isinstance(field_value, (list, tuple, set)):
        return any(_loose_equals(item, expected) for item in field_value)
    return False


def _compare(field_value: Any, expected: Any, op: ConditionOperator) -> bool:
    left, right = _as_number(field_value), _as_number(expected)
    if left is None or right is None:
        return False
    if op is ConditionOperator.GREATER_THAN:
        return left > right
    if op is ConditionOperator.GREATER_THAN_OR_EQUALS:
        return left >= right
    if op is ConditionOperator.LESS_THAN:
        return left < right
    return left <= right


def evaluate_condition(condition: Condition, payload: Mapping[str, Any]) -> bool:
    """Evaluate one typed condition against the payload."""
    field_value = resolve_field(payload, condition.field)
    if field_value is _MISSING:
        return False
    op = condition.operator
    expected = condition.value

    if op is ConditionOperator.EQUALS:
        return _loose_equals(field_value, expected)
    if op is ConditionOperator.STRICT_EQUALS:
        return type(field_value) is type(expected) and field_value == expected
    if op is ConditionOperator.NOT_EQUALS:
        return not _loose_equals(field_value, expected)
    if op in (
        ConditionOperator.GREATER_THAN,
        ConditionOperator.GREATER_THAN_OR_EQUALS,
        ConditionOperator.LESS_THAN,
        ConditionOperator.LESS_THAN_OR_EQUALS,
    ):
        return _compare(field_value, expected, op)
    if op is ConditionOperator.CONTAINS:
        return _contains(field_value, expected)
    if op is ConditionOperator.NOT_CONTAINS:
        return not _contains(field_value, expected)
    if op is ConditionOperator.STARTS_WITH:
        return isinstance(field_value, str) and field_value.lower().startswith(
            str(expected).lower()
        )
    if op is ConditionOperator.ENDS_WITH:
        return isinstance(field_value, str) and field_value.lower().endswith(
            str(expected).lower()
        )
    if op is ConditionOperator.IS_EMPTY:
        return _is_empty(field_value)
    if op is ConditionOperator.IS_NOT_EMPTY:
        return not _is_empty(field_value)
    if op in (ConditionOperator.IN, ConditionOperator.NOT_IN):
        members = _as_members(expected)
        if members is None:
            return False
        found = str(field_value) in members
        return found if op is ConditionOperator.IN else not found
    return False


def evaluate_conditions(
    conditions: Sequence[Condition | Mapping[str, Any]] | None,
    payload: Mapping[str, Any],
) -> bool:
    """Return True when every condition holds. Empty or None means unconditional."""
    if not conditions:
        return True
    for raw in conditions:
        if isinstance(raw, Condition):
            condition = raw
        else:
            try:
                condition = Condition.from_dict(raw)
            except ValidationException as e:
                logger.warning(
                    "Malformed trigger condition %r (%s); failing closed", raw, e.message
                )
                return False
        if not evaluate_condition(condition, payload):
            return False
    return True
