from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leadflow.core.constants import CLOSED_LEAD_STATUSES, LeadStatus, UserRole


def utcnow() -> datetime:
    """Default clock used by every component that accepts ``clock=``."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def as_utc(value: datetime) -> datetime:
    """Read a timestamp without tzinfo as UTC; aware ones pass through."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# --------------------------------------------------------------------------- #
# Working hours
# --------------------------------------------------------------------------- #


class DaySchedule(BaseModel):
    """One weekday of a working-hours calendar. Times are ``HH:MM`` strings."""

    is_working_day: bool = False
    start_time: str | None = None
    end_time: str | None = None


class WorkingHours(BaseModel):
    """Weekly working-hours calendar evaluated in ``timezone``."""

    timezone: str = "UTC"
    monday: DaySchedule = Field(default_factory=DaySchedule)
    tuesday: DaySchedule = Field(default_factory=DaySchedule)
    wednesday: DaySchedule = Field(default_factory=DaySchedule)
    thursday: DaySchedule = Field(default_factory=DaySchedule)
    friday: DaySchedule = Field(default_factory=DaySchedule)
    saturday: DaySchedule = Field(default_factory=DaySchedule)
    sunday: DaySchedule = Field(default_factory=DaySchedule)

    def for_weekday(self, weekday: int) -> DaySchedule:
        """Return the schedule for ``weekday`` (0 = Monday, as :meth:`datetime.weekday`)."""
        names = (
            "monday",
            "tuesday",
            "wednesday",
            "thursday",
            "friday",
            "saturday",
            "sunday",
        )
        schedule: DaySchedule = getattr(self, names[weekday])
        return schedule


# --------------------------------------------------------------------------- #
# Leads
# --------------------------------------------------------------------------- #


class LeadCompany(BaseModel):
    name: str = ""
    industry: str | None = None
    size: str | None = None


class LeadContact(BaseModel):
    name: str = ""
    email: str | None = None
    phone: str | None = None


class LeadSource(BaseModel):
    channel: str | None = None
    campaign: str | None = None


class LeadAssignment(BaseModel):
    assigned_to: str | None = None
    assigned_at: datetime | None = None
    assignment_reason: str | None = None

    @field_validator("assigned_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return None if value is None else as_utc(value)


class LeadScore(BaseModel):
    value: float = 0
    band: str | None = None


class LeadLocation(BaseModel):
    region: str | None = None
    country: str | None = None


class Lead(BaseModel):
    """The subject record workflows and routing operate on.

    Owned by the lead collaborator; this core only reads it and issues
    whole-field updates. Unknown keys are kept (``extra="allow"``) so
    conditions can address custom fields by dot-path.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    status: LeadStatus = LeadStatus.NEW
    company: LeadCompany = Field(default_factory=LeadCompany)
    contact: LeadContact = Field(default_factory=LeadContact)
    source: LeadSource = Field(default_factory=LeadSource)
    assignment: LeadAssignment = Field(default_factory=LeadAssignment)
    score: LeadScore = Field(default_factory=LeadScore)
    location: LeadLocation = Field(default_factory=LeadLocation)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        """Active and not in a closed (won/lost/disqualified) status."""
        return self.is_active and self.status not in CLOSED_LEAD_STATUSES


# --------------------------------------------------------------------------- #
# Users, tasks, notifications
# --------------------------------------------------------------------------- #


class User(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    email: str | None = None
    role: UserRole = UserRole.SALES
    is_active: bool = True
    department: str | None = None
    territory: str | None = None
    working_hours: WorkingHours | None = None


class TaskSpec(BaseModel):
    """Parameters for the task collaborator's ``create_task``."""

    lead_id: str
    subject: str
    description: str | None = None
    type: str = "follow_up"
    priority: str = "medium"
    assigned_to: str | None = None
    due_date: datetime
    created_by: str | None = None


class Task(TaskSpec):
    id: str = Field(default_factory=new_id)
    completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Notification(BaseModel):
    recipient_id: str
    message: str
    type: str = "info"
    related_entity_type: str | None = None
    related_entity_id: str | None = None
