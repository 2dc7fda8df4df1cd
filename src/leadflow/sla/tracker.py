"""SLA deadline tracking and multi-level escalation for assigned leads."""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from leadflow.activity.models import Activity
from leadflow.collaborators.base import (
    ActivityRecorder,
    LeadRepository,
    NotificationService,
    UserDirectory,
)
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import ActivityType, EscalationPolicy, UserRole
from leadflow.core.exceptions import BusinessLogicError, NotFoundError
from leadflow.core.types import Lead, Notification, User, as_utc, utcnow
from leadflow.sla.models import EscalationRecord, SLAStatus

logger = structlog.get_logger(__name__)

_SECONDS_PER_HOUR = 3600.0


class SLATracker:
    """Computes :class:`SLAStatus` per lead and escalates overdue ones.

    Escalation goes to active managers in the assignee's department. When
    there are none, :attr:`AutomationConfig.escalation_policy` decides:
    ``skip`` leaves the lead alone, ``escalate_to_admin`` sends it to the
    active admins instead. A lead with no recipient at all is skipped with a
    warning; that is never an error.
    """

    def __init__(
        self,
        leads: LeadRepository,
        users: UserDirectory,
        activities: ActivityRecorder,
        notifications: NotificationService,
        *,
        config: AutomationConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._leads = leads
        self._users = users
        self._activities = activities
        self._notifications = notifications
        self._config = config or AutomationConfig()
        self._clock = clock

    def compute_status(self, lead: Lead, now: datetime) -> SLAStatus:
        """Build the SLA status of an assigned ``lead`` as of ``now``."""
        assigned_at = lead.assignment.assigned_at
        if assigned_at is None:
            raise BusinessLogicError(
                f"Lead {lead.id} has not been assigned yet", code="LEAD_NOT_ASSIGNED"
            )

        assigned_at = as_utc(assigned_at)
        sla_hours = self._config.sla_hours
        elapsed = (as_utc(now) - assigned_at).total_seconds() / _SECONDS_PER_HOUR
        remaining = sla_hours - elapsed
        level = sum(1 for t in self._config.escalation_thresholds_hours if elapsed >= t)

        return SLAStatus(
            lead_id=lead.id,
            assigned_at=assigned_at,
            sla_deadline=assigned_at + timedelta(hours=sla_hours),
            is_overdue=remaining < 0,
            hours_remaining=max(0.0, remaining),
            hours_overdue=max(0.0, -remaining),
            escalation_level=level,
        )

    async def check_sla_compliance(self, lead_id: str) -> SLAStatus:
        """Return the SLA status of ``lead_id``.

        Raises:
            NotFoundError: If the lead does not exist.
            BusinessLogicError: If the lead has never been assigned.
        """
        lead = await self._leads.get_lead_by_id(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {lead_id} not found", code="LEAD_NOT_FOUND")
        return self.compute_status(lead, self._clock())

    async def get_overdue_leads(self) -> list[SLAStatus]:
        now = self._clock()
        cutoff = now - timedelta(hours=self._config.sla_hours)
        statuses = [
            self.compute_status(lead, now)
            for lead in await self._leads.find_assigned_before(cutoff)
            if lead.assignment.assigned_at is not None
        ]
        return [s for s in statuses if s.is_overdue]

    async def escalate_overdue_leads(self) -> list[EscalationRecord]:
        """Escalate every overdue lead and return what was escalated.

        Best effort per lead: a failure while escalating one lead is logged
        as ``sla_escalation_failed`` and the sweep moves on to the next.
        """
        records: list[EscalationRecord] = []
        failed = 0
        for status in await self.get_overdue_leads():
            try:
                record = await self._escalate(status)
            except Exception as exc:
                failed += 1
                logger.error(
                    "sla_escalation_failed",
                    lead_id=status.lead_id,
                    escalation_level=status.escalation_level,
                    error=str(exc),
                    exc_info=True,
                )
                continue
            if record is not None:
                records.append(record)
        if records or failed:
            logger.info("sla_escalation_sweep", escalated=len(records), failed=failed)
        return records

    async def _escalate(self, status: SLAStatus) -> EscalationRecord | None:
        lead = await self._leads.get_lead_by_id(status.lead_id)
        if lead is None or not lead.assignment.assigned_to:
            return None
        assignee_id = lead.assignment.assigned_to
        assignee = await self._users.find_by_id(assignee_id)
        if assignee is None:
            logger.warning("sla_escalation_skipped", lead_id=lead.id, reason="assignee_not_found")
            return None

        recipients, to_admin = await self._find_recipients(assignee)
        if not recipients:
            logger.warning(
                "sla_escalation_skipped",
                lead_id=lead.id,
                reason="no_manager",
                department=assignee.department,
                policy=self._config.escalation_policy.value,
            )
            return None

        now = self._clock()
        hours_overdue = round(status.hours_overdue, 2)
        record = EscalationRecord(
            lead_id=lead.id,
            escalation_level=status.escalation_level,
            hours_overdue=hours_overdue,
            original_assignee=assignee_id,
            escalated_to=[u.id for u in recipients],
            escalated_to_admin=to_admin,
            escalated_at=now,
        )
        await self._activities.create(
            Activity(
                lead_id=lead.id,
                type=ActivityType.LEAD_ESCALATED,
                subject=f"Lead escalated - SLA breach (Level {status.escalation_level})",
                details=record.model_dump(mode="json"),
                performed_by="system",
                performed_at=now,
            )
        )
        for user in recipients:
            try:
                await self._notifications.send_notification(
                    Notification(
                        recipient_id=user.id,
                        message=(
                            f"Lead {lead.id} breached its SLA by {hours_overdue} hours "
                            f"(escalation level {status.escalation_level})"
                        ),
                        type="escalation",
                        related_entity_type="lead",
                        related_entity_id=lead.id,
                    )
                )
            except Exception as exc:
                logger.warning(
                    "sla_escalation_notify_failed",
                    lead_id=lead.id,
                    recipient_id=user.id,
                    error=str(exc),
                )
        logger.info(
            "lead_escalated",
            lead_id=lead.id,
            escalation_level=status.escalation_level,
            hours_overdue=hours_overdue,
            escalated_to=record.escalated_to,
        )
        return record

    async def _find_recipients(self, assignee: User) -> tuple[list[User], bool]:
        managers = [
            m for m in await self._users.find_managers_by_department(assignee.department)
            if m.is_active
        ]
        if managers:
            return managers, False
        if self._config.escalation_policy == EscalationPolicy.ESCALATE_TO_ADMIN:
            admins = [a for a in await self._users.find_by_role(UserRole.ADMIN) if a.is_active]
            return admins, True
        return [], False
