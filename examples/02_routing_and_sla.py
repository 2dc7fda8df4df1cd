# RUN: python examples/02_routing_and_sla.py
"""Routing and SLA — rule-based assignment, round-robin, then an SLA breach.

Demonstrates: AssignmentRuleManager, working-hours fallthrough, workload
balancing, SLATracker escalation driven by a hand-moved clock and the
lead timeline kept by ActivityLog.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from leadflow import (
    ActivityLog,
    AssignmentRule,
    AutomationCore,
    DaySchedule,
    InMemoryEmailService,
    InMemoryLeadRepository,
    InMemoryNotificationService,
    InMemoryTaskService,
    InMemoryUserDirectory,
    Lead,
    User,
    UserRole,
    WorkingHours,
)
from leadflow.core.types import LeadLocation


class ManualClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


async def main() -> None:
    # Monday morning in UTC
    clock = ManualClock(datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc))
    leads = InMemoryLeadRepository(
        [
            Lead(id="lead-de", location=LeadLocation(region="EMEA", country="DE")),
            Lead(id="lead-us", location=LeadLocation(region="AMER", country="US")),
        ]
    )
    users = InMemoryUserDirectory(
        [
            User(id="mgr-1", name="Max Manager", role=UserRole.MANAGER, department="sales"),
            User(id="alice", name="Alice", role=UserRole.SALES, department="sales"),
            User(id="bob", name="Bob", role=UserRole.SALES, department="sales"),
        ]
    )
    notifications = InMemoryNotificationService()
    activities = ActivityLog()

    async with AutomationCore(
        leads=leads,
        users=users,
        tasks=InMemoryTaskService(),
        notifications=notifications,
        emails=InMemoryEmailService(),
        activities=activities,
        clock=clock,
    ) as core:
        # Alice covers EMEA, but only in the afternoon; Bob is the backup
        await core.rules.create_rule(
            AssignmentRule(
                name="EMEA afternoon desk",
                priority=1,
                territories=[{"name": "EMEA", "regions": ["EMEA"]}],
                working_hours=WorkingHours(
                    timezone="Europe/Berlin",
                    monday=DaySchedule(is_working_day=True, start_time="13:00", end_time="18:00"),
                ),
                actions=[{"type": "assign_to_user", "parameters": {"user_id": "alice"}}],
            )
        )
        await core.rules.create_rule(
            AssignmentRule(
                name="EMEA backup",
                priority=2,
                territories=[{"name": "EMEA", "regions": ["EMEA"]}],
                actions=[{"type": "assign_to_user", "parameters": {"user_id": "bob"}}],
            )
        )

        for lead_id in ("lead-de", "lead-us"):
            result = await core.routing.assign_lead(lead_id)
            print(f"{lead_id}: -> {result.assigned_to} ({result.reason})")

        for workload in await core.routing.get_all_user_workloads():
            print(f"  {workload.user_name:<6} score={workload.workload_score}")

        # Nobody touches the leads for 25 hours
        clock.now += timedelta(hours=25)
        status = await core.sla.check_sla_compliance("lead-de")
        print(f"\nlead-de overdue={status.is_overdue} level={status.escalation_level}")

        for record in await core.sla.escalate_overdue_leads():
            print(
                f"Escalated {record.lead_id} (level {record.escalation_level}, "
                f"{record.hours_overdue}h late) to {record.escalated_to}"
            )
        print(f"Notifications sent: {len(notifications.sent)}")

        print("\nlead-de timeline:")
        for entry in await activities.get_lead_timeline("lead-de"):
            print(f"  {entry.performed_at:%Y-%m-%d %H:%M}  {entry.subject}")


if __name__ == "__main__":
    asyncio.run(main())
