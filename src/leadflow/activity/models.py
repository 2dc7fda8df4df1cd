"""Activity data models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from leadflow.core.constants import ActivityType


class Activity(BaseModel):
    """An immutable entry on a lead's audit trail.

    Every assignment, reassignment and SLA escalation produced by the
    automation core is recorded as an :class:`Activity` on the lead's
    timeline in :class:`~leadflow.activity.log.ActivityLog`.
    """

    activity_id: str = Field(default_factory=lambda: uuid4().hex[:16])
    lead_id: str
    type: ActivityType
    subject: str
    details: dict[str, Any] = Field(default_factory=dict)
    performed_by: str = "system"
    performed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ActivityStatistics(BaseModel):
    """Counts over a lead's timeline, or over every lead."""

    lead_id: str | None = None
    total_activities: int = 0
    activities_by_type: dict[str, int] = Field(default_factory=dict)
    activities_by_performer: dict[str, int] = Field(default_factory=dict)
    last_activity_at: datetime | None = None
