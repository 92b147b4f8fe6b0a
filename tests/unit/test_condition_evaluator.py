"""Condition evaluator unit tests (pure, fail-closed)."""

import copy

import pytest

from arbor.application.services.condition_evaluator import (
    evaluate_condition,
    evaluate_conditions,
    resolve_field,
)
from arbor.domain.enums import ConditionOperator
from arbor.domain.value_objects.condition import Condition

PAYLOAD = {
    "invoiceId": "X",
    "amount": 500,
    "status": "Paid",
    "tags": ["vip", "commercial"],
    "notes": "",
    "client": {"name": "Acme Tree Care", "address": {"city": "Portland"}},
    "items": [{"price": 120}, {"price": "15.50"}],
}


def _cond(field: str, operator: str, value=None) -> dict:
    return {"field": field, "operator": operator, "value": value}


def test_empty_conditions_always_match() -> None:
    assert evaluate_conditions([], PAYLOAD) is True
    assert evaluate_conditions(None, {}) is True


@pytest.mark.parametrize(
    ("condition", "expected"),
    [
        (_cond("amount", "gte", 100), True),
        (_cond("amount", "gte", 1000), False),
        (_cond("amount", ">", "499.5"), True),
        (_cond("amount", "less_than", 500), False),
        (_cond("amount", "lte", 500), True),
        (_cond("amount", "equals", "500"), True),
        (_cond("amount", "strict_equals", "500"), False),
        (_cond("amount", "strict_equals", 500), True),
        (_cond("status", "not_equals", "sent"), True),
        (_cond("status", "contains", "pai"), True),
        (_cond("tags", "contains", "vip"), True),
        (_cond("tags", "not_contains", "residential"), True),
        (_cond("status", "starts_with", "pa"), True),
        (_cond("status", "ends_with", "ID"), True),
        (_cond("notes", "is_empty"), True),
        (_cond("status", "is_not_empty"), True),
        (_cond("status", "in", ["Paid", "Sent"]), True),
        (_cond("status", "in", "Sent, Draft"), False),
        (_cond("status", "not_in", ["Draft"]), True),
        (_cond("client.address.city", "equals", "Portland"), True),
        (_cond("items.0.price", "gt", 100), True),
        (_cond("items.1.price", "lt", 20), True),
    ],
)
def test_operators(condition: dict, expected: bool) -> None:
    assert evaluate_conditions([condition], PAYLOAD) is expected


def test_conditions_are_anded() -> None:
    conditions = [_cond("amount", "gte", 100), _cond("status", "equals", "Paid")]
    assert evaluate_conditions(conditions, PAYLOAD) is True
    conditions.append(_cond("client.name", "contains", "oak"))
    assert evaluate_conditions(conditions, PAYLOAD) is False


def test_missing_field_fails_closed() -> None:
    assert evaluate_conditions([_cond("customer.email", "is_not_empty")], PAYLOAD) is False
    assert evaluate_conditions([_cond("items.5.price", "gt", 0)], PAYLOAD) is False
    assert evaluate_conditions([_cond("amount.value", "equals", 1)], PAYLOAD) is False


def test_unknown_operator_fails_closed() -> None:
    assert evaluate_conditions([_cond("amount", "roughly", 500)], PAYLOAD) is False


@pytest.mark.parametrize(
    "malformed",
    [
        "amount >= 100",
        {"operator": "equals", "value": 1},
        {"field": "", "operator": "equals"},
        {"field": "status", "operator": "in", "value": 5},
    ],
)
def test_malformed_condition_fails_closed(malformed) -> None:
    assert evaluate_conditions([malformed], PAYLOAD) is False


def test_non_numeric_comparison_is_false() -> None:
    assert evaluate_conditions([_cond("status", "gt", 1)], PAYLOAD) is False
    assert evaluate_conditions([_cond("amount", "gt", "lots")], PAYLOAD) is False


def test_evaluation_is_pure() -> None:
    payload = copy.deepcopy(PAYLOAD)
    conditions = [_cond("amount", "gte", 100), _cond("tags", "contains", "vip")]
    snapshot = copy.deepcopy(conditions)
    first = evaluate_conditions(conditions, payload)
    second = evaluate_conditions(conditions, payload)
    assert first == second is True
    assert payload == PAYLOAD
    assert conditions == snapshot


def test_typed_condition_accepted() -> None:
    condition = Condition("amount", ConditionOperator.GREATER_THAN_OR_EQUALS, 100)
    assert evaluate_condition(condition, PAYLOAD) is True
    assert evaluate_conditions([condition], {"amount": 10}) is False


def test_resolve_field_walks_mappings_and_lists() -> None:
    assert resolve_field(PAYLOAD, "client.address.city") == "Portland"
    assert resolve_field(PAYLOAD, "items.-1.price") == "15.50"


@pytest.mark.parametrize("path", ["items.².price", "items.--1.price", "items.x.price", "items.9"])
def test_bad_list_index_fails_closed(path: str) -> None:
    assert evaluate_conditions([_cond(path, "is_not_empty")], PAYLOAD) is False
    assert evaluate_conditions([_cond(path, "equals", 120)], PAYLOAD) is False
