from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from leadflow.conditions.models import Condition
from leadflow.core.constants import RuleActionType
from leadflow.core.types import WorkingHours, new_id, utcnow


class Territory(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    regions: list[str] = Field(default_factory=list)
    countries: list[str] = Field(default_factory=list)


class RuleAction(BaseModel):
    """``assign_to_user`` reads ``parameters["user_id"]``; ``assign_to_team`` reads ``parameters["team_id"]``.

    A team is a user department.
    """

    type: RuleActionType
    parameters: dict[str, Any] = Field(default_factory=dict)


class AssignmentRule(BaseModel):
    """A prioritized, condition-gated policy for picking a lead's owner.

    Lower ``priority`` values are evaluated first.
    """

    id: str = Field(default_factory=new_id)
    name: str
    priority: int = 1
    conditions: list[Condition] = Field(default_factory=list)
    actions: list[RuleAction] = Field(default_factory=list)
    is_active: bool = True
    working_hours: WorkingHours | None = None
    territories: list[Territory] = Field(default_factory=list)
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class AssignmentResult(BaseModel):
    lead_id: str
    assigned_to: str
    reason: str
    rule_id: str | None = None
    previous_assignee: str | None = None


class WorkloadInfo(BaseModel):
    """Derived per-user load; lowest ``workload_score`` wins round-robin."""

    user_id: str
    user_name: str = ""
    active_leads: int = 0
    overdue_tasks: int = 0
    workload_score: float = 0.0


class ReassignmentRequest(BaseModel):
    lead_id: str
    new_assignee_id: str
    reason: str
    reassigned_by: str
