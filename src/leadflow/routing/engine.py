"""Routing engine: rule-based lead assignment with workload-balanced fallback.

Assignment order for :meth:`RoutingEngine.assign_lead`:

1. An explicit assignee is validated and assigned directly.
2. Active rules whose conditions (and territory constraint) match the lead
   are tried in priority order; the first rule whose action yields an
   available user wins.
3. Otherwise the active sales user with the lowest workload score is
   picked (ties keep directory order).

The read-check-write on the lead's assignment is not guarded by a version
check, so concurrent assignments of the same lead are last-writer-wins.
"""
from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from leadflow.activity.models import Activity
from leadflow.collaborators.base import (
    ActivityRecorder,
    LeadRepository,
    TaskService,
    UserDirectory,
)
from leadflow.conditions import evaluate
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import ActivityType, RuleActionType, UserRole
from leadflow.core.exceptions import BusinessLogicError, NotFoundError, ValidationError
from leadflow.core.types import Lead, utcnow
from leadflow.routing.availability import is_user_available
from leadflow.routing.models import (
    AssignmentResult,
    AssignmentRule,
    ReassignmentRequest,
    WorkloadInfo,
)

if TYPE_CHECKING:
    from leadflow.storage.base import RuleStore

logger = structlog.get_logger(__name__)

_REASSIGN_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER})


def _matches_territory(rule: AssignmentRule, lead: Lead) -> bool:
    if not rule.territories:
        return True
    region = lead.location.region
    country = lead.location.country
    return any(
        (region is not None and region in t.regions)
        or (country is not None and country in t.countries)
        for t in rule.territories
    )


class RoutingEngine:
    """Picks an owner for a lead and records the assignment.

    Args:
        rules: Store holding :class:`AssignmentRule` definitions.
        leads: Lead collaborator; receives whole-field ``assignment`` updates.
        users: User directory.
        tasks: Task collaborator, queried for overdue-task counts.
        activities: Audit trail receiving assigned/reassigned entries.
        config: Supplies the workload weights.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        rules: RuleStore,
        leads: LeadRepository,
        users: UserDirectory,
        tasks: TaskService,
        activities: ActivityRecorder,
        *,
        config: AutomationConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._rules = rules
        self._leads = leads
        self._users = users
        self._tasks = tasks
        self._activities = activities
        self._config = config or AutomationConfig()
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Assignment
    # ------------------------------------------------------------------ #

    async def assign_lead(
        self,
        lead_id: str,
        assignee_id: str | None = None,
        *,
        reason: str | None = None,
        performed_by: str = "system",
    ) -> AssignmentResult:
        """Assign ``lead_id`` and return who got it and why.

        Args:
            lead_id: The lead to assign.
            assignee_id: Explicit target. Skips rule matching when given.
            reason: Overrides ``"Manual assignment"`` for explicit targets.
            performed_by: Actor recorded on the activity entry.

        Raises:
            NotFoundError: If the lead does not exist.
            ValidationError: If the explicit assignee is unknown or inactive.
            BusinessLogicError: If round-robin is needed and no active sales
                user exists.
        """
        lead = await self._require_lead(lead_id)
        previous = lead.assignment.assigned_to

        if assignee_id:
            assignee = await self._users.find_by_id(assignee_id)
            if assignee is None or not assignee.is_active:
                raise ValidationError(
                    "Invalid or inactive assignee",
                    code="INVALID_ASSIGNEE",
                    details={"assignee_id": assignee_id},
                )
            return await self._perform_assignment(
                lead_id,
                assignee_id,
                reason or "Manual assignment",
                previous_assignee=previous,
                performed_by=performed_by,
            )

        for rule in await self.find_matching_rules(lead):
            chosen = await self._execute_rule(rule)
            if chosen is not None:
                return await self._perform_assignment(
                    lead_id,
                    chosen,
                    f"Rule-based assignment: {rule.name}",
                    rule_id=rule.id,
                    previous_assignee=previous,
                    performed_by=performed_by,
                )
            logger.debug("assignment_rule_unavailable", rule_id=rule.id, lead_id=lead_id)

        return await self._round_robin(lead_id, previous, performed_by)

    async def find_matching_rules(self, lead: Lead) -> list[AssignmentRule]:
        """Active rules whose conditions and territories match, lowest priority first."""
        return [
            rule
            for rule in await self._rules.list_active_rules()
            if _matches_territory(rule, lead) and evaluate(rule.conditions, lead, {})
        ]

    async def _execute_rule(self, rule: AssignmentRule) -> str | None:
        now = self._clock()
        for action in rule.actions:
            if action.type == RuleActionType.ASSIGN_TO_USER:
                user_id = action.parameters.get("user_id")
                if not user_id:
                    continue
                user = await self._users.find_by_id(user_id)
                if is_user_available(user, now, rule.working_hours):
                    return str(user_id)
            elif action.type == RuleActionType.ASSIGN_TO_TEAM:
                team_id = action.parameters.get("team_id")
                if not team_id:
                    continue
                for member in await self._users.find_by_department(team_id):
                    if is_user_available(member, now, rule.working_hours):
                        return member.id
        return None

    async def _round_robin(
        self, lead_id: str, previous: str | None, performed_by: str
    ) -> AssignmentResult:
        candidates = [u for u in await self._users.find_by_role(UserRole.SALES) if u.is_active]
        if not candidates:
            raise BusinessLogicError(
                "No active sales users available for assignment",
                code="NO_AVAILABLE_ASSIGNEE",
            )
        workloads = [await self.get_user_workload(u.id) for u in candidates]
        # min() returns the first of equal scores, so ties follow directory order
        chosen = min(workloads, key=lambda w: w.workload_score)
        return await self._perform_assignment(
            lead_id,
            chosen.user_id,
            "Round-robin assignment based on workload",
            previous_assignee=previous,
            performed_by=performed_by,
        )

    async def _perform_assignment(
        self,
        lead_id: str,
        assignee_id: str,
        reason: str,
        *,
        rule_id: str | None = None,
        previous_assignee: str | None = None,
        performed_by: str = "system",
    ) -> AssignmentResult:
        now = self._clock()
        await self._leads.update_lead(
            lead_id,
            {
                "assignment": {
                    "assigned_to": assignee_id,
                    "assigned_at": now,
                    "assignment_reason": reason,
                }
            },
            performed_by,
        )

        reassigned = previous_assignee is not None
        await self._activities.create(
            Activity(
                lead_id=lead_id,
                type=ActivityType.LEAD_REASSIGNED if reassigned else ActivityType.LEAD_ASSIGNED,
                subject="Lead reassigned" if reassigned else "Lead assigned",
                details={
                    "assigned_to": assignee_id,
                    "previous_assignee": previous_assignee,
                    "reason": reason,
                    "rule_id": rule_id,
                    "assigned_at": now.isoformat(),
                },
                performed_by=performed_by,
                performed_at=now,
            )
        )
        logger.info(
            "lead_assigned",
            lead_id=lead_id,
            assigned_to=assignee_id,
            previous_assignee=previous_assignee,
            rule_id=rule_id,
            reason=reason,
        )
        return AssignmentResult(
            lead_id=lead_id,
            assigned_to=assignee_id,
            reason=reason,
            rule_id=rule_id,
            previous_assignee=previous_assignee,
        )

    async def reassign_lead(self, request: ReassignmentRequest) -> AssignmentResult:
        """Manually move a lead to a new owner.

        Raises:
            NotFoundError: If the lead does not exist.
            ValidationError: If the target is unknown or inactive, or the
                acting user is not an admin or manager.
        """
        lead = await self._require_lead(request.lead_id)

        assignee = await self._users.find_by_id(request.new_assignee_id)
        if assignee is None or not assignee.is_active:
            raise ValidationError(
                "Invalid or inactive assignee",
                code="INVALID_ASSIGNEE",
                details={"assignee_id": request.new_assignee_id},
            )

        actor = await self._users.find_by_id(request.reassigned_by)
        if actor is None or actor.role not in _REASSIGN_ROLES:
            raise ValidationError(
                "Insufficient permissions for reassignment",
                code="INSUFFICIENT_PERMISSIONS",
                details={"reassigned_by": request.reassigned_by},
            )

        now = self._clock()
        previous = lead.assignment.assigned_to
        reason = f"Manual reassignment: {request.reason}"
        await self._leads.update_lead(
            request.lead_id,
            {
                "assignment": {
                    "assigned_to": request.new_assignee_id,
                    "assigned_at": now,
                    "assignment_reason": reason,
                }
            },
            request.reassigned_by,
        )
        await self._activities.create(
            Activity(
                lead_id=request.lead_id,
                type=ActivityType.LEAD_REASSIGNED,
                subject="Lead manually reassigned",
                details={
                    "assigned_to": request.new_assignee_id,
                    "previous_assignee": previous,
                    "reason": request.reason,
                    "reassigned_by": request.reassigned_by,
                    "reassigned_at": now.isoformat(),
                },
                performed_by=request.reassigned_by,
                performed_at=now,
            )
        )
        logger.info(
            "lead_reassigned",
            lead_id=request.lead_id,
            assigned_to=request.new_assignee_id,
            previous_assignee=previous,
            reassigned_by=request.reassigned_by,
        )
        return AssignmentResult(
            lead_id=request.lead_id,
            assigned_to=request.new_assignee_id,
            reason=reason,
            previous_assignee=previous,
        )

    # ------------------------------------------------------------------ #
    # Workload
    # ------------------------------------------------------------------ #

    async def get_user_workload(self, user_id: str) -> WorkloadInfo:
        user = await self._users.find_by_id(user_id)
        active_leads = await self._leads.count_open_by_assignee(user_id)
        overdue_tasks = await self._tasks.count_overdue_by_assignee(user_id, self._clock())
        score = (
            active_leads * self._config.active_lead_weight
            + overdue_tasks * self._config.overdue_task_weight
        )
        return WorkloadInfo(
            user_id=user_id,
            user_name=user.name if user is not None else "",
            active_leads=active_leads,
            overdue_tasks=overdue_tasks,
            workload_score=score,
        )

    async def get_all_user_workloads(self) -> list[WorkloadInfo]:
        """Workload of every sales user, most loaded first."""
        workloads = [
            await self.get_user_workload(u.id)
            for u in await self._users.find_by_role(UserRole.SALES)
        ]
        workloads.sort(key=lambda w: w.workload_score, reverse=True)
        return workloads

    async def _require_lead(self, lead_id: str) -> Lead:
        lead = await self._leads.get_lead_by_id(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {lead_id} not found", code="LEAD_NOT_FOUND")
        return lead
