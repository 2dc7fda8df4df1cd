"""Condition data model."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from leadflow.core.constants import ConditionOperator, LogicalOperator


class Condition(BaseModel):
    """One field-comparison predicate.

    ``field`` is either an exact key of the evaluation context or a
    dot-path into the subject record (``"assignment.assigned_to"``).
    ``logical_operator`` describes how the *next* condition in the list
    combines with the running result; it is ignored on the last one.
    """

    field: str
    operator: ConditionOperator
    value: Any = None
    logical_operator: LogicalOperator | None = None
