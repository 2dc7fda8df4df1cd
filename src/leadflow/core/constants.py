from __future__ import annotations

from enum import StrEnum


class TriggerEvent(StrEnum):
    LEAD_CREATED = "lead_created"
    LEAD_ASSIGNED = "lead_assigned"
    SCORE_CHANGED = "score_changed"
    STATUS_UPDATED = "status_updated"
    TASK_COMPLETED = "task_completed"
    MANUAL = "manual"


class ConditionOperator(StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"


class LogicalOperator(StrEnum):
    AND = "AND"
    OR = "OR"


class ActionType(StrEnum):
    SEND_EMAIL = "send_email"
    CREATE_TASK = "create_task"
    UPDATE_FIELD = "update_field"
    ASSIGN_LEAD = "assign_lead"
    SEND_NOTIFICATION = "send_notification"
    REQUEST_APPROVAL = "request_approval"


class ExecutionStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OutcomeStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ApprovalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class RuleActionType(StrEnum):
    ASSIGN_TO_USER = "assign_to_user"
    ASSIGN_TO_TEAM = "assign_to_team"


class UserRole(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    SALES = "sales"
    MARKETING = "marketing"
    READ_ONLY = "read_only"
    GUEST = "guest"


class LeadStatus(StrEnum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"
    DISQUALIFIED = "disqualified"
    NURTURE = "nurture"


CLOSED_LEAD_STATUSES = frozenset(
    {LeadStatus.WON, LeadStatus.LOST, LeadStatus.DISQUALIFIED}
)


class ActivityType(StrEnum):
    LEAD_ASSIGNED = "lead_assigned"
    LEAD_REASSIGNED = "lead_reassigned"
    LEAD_ESCALATED = "lead_escalated"


class EscalationPolicy(StrEnum):
    SKIP = "skip"
    ESCALATE_TO_ADMIN = "escalate_to_admin"
