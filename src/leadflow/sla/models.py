from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from leadflow.core.types import utcnow


class SLAStatus(BaseModel):
    """Derived deadline status of one assigned lead. Recomputed on every check."""

    lead_id: str
    assigned_at: datetime
    sla_deadline: datetime
    is_overdue: bool
    hours_remaining: float
    """Hours left before the deadline, never below zero."""
    hours_overdue: float = 0.0
    """Hours past the deadline, zero while within it."""
    escalation_level: int = 0
    """Number of escalation thresholds crossed since assignment."""


class EscalationRecord(BaseModel):
    lead_id: str
    escalation_level: int
    hours_overdue: float
    original_assignee: str
    escalated_to: list[str] = Field(default_factory=list)
    escalated_to_admin: bool = False
    escalated_at: datetime = Field(default_factory=utcnow)
