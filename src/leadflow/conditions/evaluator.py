"""Pure condition evaluator.

Conditions fold left to right with no precedence or grouping::

    evaluate([
        Condition(field="status", operator="equals", value="new", logical_operator="OR"),
        Condition(field="score.value", operator="greater_than", value=80),
    ], lead, {})

The result of condition *i+1* is combined with the accumulator using the
logical operator declared on condition *i*. An empty list is ``True``.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from leadflow.conditions.models import Condition
from leadflow.core.constants import ConditionOperator, LogicalOperator


class _Undefined:
    """Sentinel for a field path that resolves to nothing."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED: Any = _Undefined()

_COLLECTION_TYPES = (list, tuple, set, frozenset)


def resolve_field(field: str, subject: Any, context: Mapping[str, Any]) -> Any:
    """Return the value addressed by ``field``.

    An exact key in ``context`` wins. Otherwise ``field`` is split on dots
    and walked through ``subject``; mappings are indexed by key and
    pydantic models by field name (including extra fields). A key that is
    present with a ``None`` value resolves to ``None``; a missing key
    anywhere on the path resolves to :data:`UNDEFINED`.
    """
    if field in context:
        return context[field]

    value: Any = subject
    for part in field.split("."):
        if isinstance(value, Mapping):
            if part not in value:
                return UNDEFINED
            value = value[part]
        elif isinstance(value, BaseModel):
            extra = value.model_extra or {}
            if part in type(value).model_fields:
                value = getattr(value, part)
            elif part in extra:
                value = extra[part]
            else:
                return UNDEFINED
        else:
            return UNDEFINED
    return value


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _compare_numbers(actual: Any, expected: Any, operator: ConditionOperator) -> bool:
    left = _to_number(actual)
    right = _to_number(expected)
    if left is None or right is None:
        return False
    if operator == ConditionOperator.GREATER_THAN:
        return left > right
    return left < right


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return isinstance(expected, str) and expected in actual
    if isinstance(actual, _COLLECTION_TYPES):
        return expected in actual
    return False


def evaluate_condition(
    condition: Condition, subject: Any, context: Mapping[str, Any]
) -> bool:
    """Evaluate a single condition against ``subject`` and ``context``."""
    actual = resolve_field(condition.field, subject, context)
    operator = condition.operator
    expected = condition.value

    if actual is UNDEFINED:
        return operator in (ConditionOperator.NOT_EQUALS, ConditionOperator.NOT_IN)

    if operator == ConditionOperator.EQUALS:
        return bool(actual == expected)
    elif operator == ConditionOperator.NOT_EQUALS:
        return bool(actual != expected)
    elif operator == ConditionOperator.CONTAINS:
        return _contains(actual, expected)
    elif operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        return _compare_numbers(actual, expected, operator)
    elif operator == ConditionOperator.IN:
        return isinstance(expected, _COLLECTION_TYPES) and actual in expected
    elif operator == ConditionOperator.NOT_IN:
        return isinstance(expected, _COLLECTION_TYPES) and actual not in expected
    return False


def evaluate(
    conditions: Sequence[Condition],
    subject: Any,
    context: Mapping[str, Any] | None = None,
) -> bool:
    """Fold ``conditions`` left to right and return the combined result."""
    ctx = context or {}
    result = True
    pending_operator = LogicalOperator.AND

    for condition in conditions:
        outcome = evaluate_condition(condition, subject, ctx)
        if pending_operator == LogicalOperator.AND:
            result = result and outcome
        else:
            result = result or outcome
        pending_operator = condition.logical_operator or LogicalOperator.AND

    return result
