"""Lead routing: rule matching, working hours and workload-balanced assignment."""
from leadflow.routing.availability import is_user_available, is_within_working_hours
from leadflow.routing.engine import RoutingEngine
from leadflow.routing.models import (
    AssignmentResult,
    AssignmentRule,
    ReassignmentRequest,
    RuleAction,
    Territory,
    WorkloadInfo,
)
from leadflow.routing.rules import AssignmentRuleManager

__all__ = [
    "AssignmentResult",
    "AssignmentRule",
    "AssignmentRuleManager",
    "ReassignmentRequest",
    "RoutingEngine",
    "RuleAction",
    "Territory",
    "WorkloadInfo",
    "is_user_available",
    "is_within_working_hours",
]
