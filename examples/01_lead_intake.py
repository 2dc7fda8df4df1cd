# RUN: python examples/01_lead_intake.py
"""Lead intake — a lead_created workflow with a delayed follow-up task.

Demonstrates: WorkflowService.create_workflow, the lead_created trigger,
delayed actions, an approval gate, and reading the execution record back.
"""

import asyncio

from leadflow import (
    AutomationConfig,
    AutomationCore,
    InMemoryEmailService,
    InMemoryLeadRepository,
    InMemoryNotificationService,
    InMemoryTaskService,
    InMemoryUserDirectory,
    Lead,
    User,
    UserRole,
    configure_logging,
)
from leadflow.core.types import LeadCompany


async def main() -> None:
    configure_logging("INFO", json=False)

    leads = InMemoryLeadRepository()
    users = InMemoryUserDirectory(
        [
            User(id="mgr-1", name="Max Manager", role=UserRole.MANAGER, department="sales"),
            User(id="alice", name="Alice", role=UserRole.SALES, department="sales"),
        ]
    )
    tasks = InMemoryTaskService()
    emails = InMemoryEmailService()
    notifications = InMemoryNotificationService()

    # One action-delay "minute" lasts 50 ms here
    config = AutomationConfig(delay_unit_seconds=0.05)

    async with AutomationCore(
        leads=leads,
        users=users,
        tasks=tasks,
        notifications=notifications,
        emails=emails,
        config=config,
    ) as core:
        await core.workflows.create_workflow(
            "New lead intake",
            {
                "event": "lead_created",
                "conditions": [
                    {"field": "company.industry", "operator": "equals", "value": "manufacturing"}
                ],
            },
            [
                {"type": "assign_lead"},
                {"type": "send_email", "parameters": {"template_id": "welcome"}},
                {"type": "create_task", "parameters": {"subject": "Discovery call"}, "delay": 5},
                {
                    "type": "request_approval",
                    "parameters": {"approver_role": "manager", "request_data": {"discount": 10}},
                },
            ],
            created_by="mgr-1",
        )

        lead = leads.add(
            Lead(id="lead-42", company=LeadCompany(name="Acme Corp", industry="manufacturing"))
        )
        executions = await core.triggers.on_lead_created(lead.id, "mgr-1", {"source": "web"})
        print(f"Started {len(executions)} execution(s); status={executions[0].status}")

        final = await core.engine.wait_for_execution(executions[0].id)
        print(f"Execution finished: {final.status}")
        for outcome in final.executed_actions:
            print(f"  action {outcome.action_index}: {outcome.status}")

        print(f"Emails sent       : {[m['template_id'] for m in emails.sent]}")
        print(f"Tasks created     : {[t.subject for t in tasks.tasks]}")

        [request] = await core.approvals.list_requests(lead_id=lead.id)
        decided = await core.approvals.respond(request.id, "mgr-1", "approved", "Standard discount")
        print(f"Approval {decided.id[:8]}: {decided.status} by {decided.responded_by}")


if __name__ == "__main__":
    asyncio.run(main())
