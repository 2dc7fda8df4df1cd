"""Condition evaluation shared by workflow triggers and assignment rules."""
from leadflow.conditions.evaluator import UNDEFINED, evaluate, evaluate_condition, resolve_field
from leadflow.conditions.models import Condition

__all__ = [
    "Condition",
    "UNDEFINED",
    "evaluate",
    "evaluate_condition",
    "resolve_field",
]
