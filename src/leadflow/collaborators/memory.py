"""In-memory collaborators for tests, demos and local development.

Usage::

    leads = InMemoryLeadRepository([Lead(id="l1", status="new")])
    users = InMemoryUserDirectory([User(id="u1", role=UserRole.SALES)])
    core = AutomationCore(leads=leads, users=users, tasks=InMemoryTaskService(), ...)

Lead and user reads return deep copies so callers observe changes only
through the collaborator, the way a persisted store behaves.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from leadflow.core.constants import UserRole
from leadflow.core.exceptions import NotFoundError
from leadflow.core.types import Lead, Notification, Task, TaskSpec, User, as_utc


class InMemoryLeadRepository:
    def __init__(self, leads: list[Lead] | None = None) -> None:
        self._leads: dict[str, Lead] = {}
        self.updates: list[tuple[str, dict[str, Any], str | None]] = []
        for lead in leads or []:
            self.add(lead)

    def add(self, lead: Lead) -> Lead:
        self._leads[lead.id] = lead.model_copy(deep=True)
        return lead

    def remove(self, lead_id: str) -> None:
        self._leads.pop(lead_id, None)

    async def get_lead_by_id(self, lead_id: str) -> Lead | None:
        lead = self._leads.get(lead_id)
        return lead.model_copy(deep=True) if lead is not None else None

    async def update_lead(
        self, lead_id: str, fields: dict[str, Any], actor_id: str | None
    ) -> Lead:
        current = self._leads.get(lead_id)
        if current is None:
            raise NotFoundError(f"Lead {lead_id} not found", code="LEAD_NOT_FOUND")
        data = current.model_dump()
        data.update(fields)
        updated = Lead.model_validate(data)
        self._leads[lead_id] = updated
        self.updates.append((lead_id, dict(fields), actor_id))
        return updated.model_copy(deep=True)

    async def count_open_by_assignee(self, user_id: str) -> int:
        return sum(
            1
            for lead in self._leads.values()
            if lead.assignment.assigned_to == user_id and lead.is_open
        )

    async def find_assigned_before(self, cutoff: datetime) -> list[Lead]:
        return [
            lead.model_copy(deep=True)
            for lead in self._leads.values()
            if lead.is_active
            and lead.assignment.assigned_at is not None
            and as_utc(lead.assignment.assigned_at) <= as_utc(cutoff)
        ]


class InMemoryUserDirectory:
    def __init__(self, users: list[User] | None = None) -> None:
        self._users: dict[str, User] = {}
        for user in users or []:
            self.add(user)

    def add(self, user: User) -> User:
        self._users[user.id] = user.model_copy(deep=True)
        return user

    async def find_by_id(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user is not None else None

    async def find_by_role(self, role: UserRole) -> list[User]:
        return [u.model_copy(deep=True) for u in self._users.values() if u.role == role]

    async def find_by_department(self, department: str) -> list[User]:
        return [
            u.model_copy(deep=True) for u in self._users.values() if u.department == department
        ]

    async def find_managers_by_department(self, department: str | None) -> list[User]:
        if not department:
            return []
        return [
            u.model_copy(deep=True)
            for u in self._users.values()
            if u.department == department
            and u.role == UserRole.MANAGER
            and u.is_active
        ]


class InMemoryTaskService:
    def __init__(self) -> None:
        self.tasks: list[Task] = []

    async def create_task(self, spec: TaskSpec) -> Task:
        task = Task(**spec.model_dump())
        self.tasks.append(task)
        return task

    async def count_overdue_by_assignee(self, user_id: str, now: datetime) -> int:
        return sum(
            1
            for t in self.tasks
            if t.assigned_to == user_id and not t.completed and as_utc(t.due_date) < as_utc(now)
        )


class InMemoryNotificationService:
    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send_notification(self, notification: Notification) -> dict[str, Any]:
        self.sent.append(notification)
        return {"delivered": True, "recipient_id": notification.recipient_id}


class InMemoryEmailService:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send_email(
        self, template_id: str, lead_id: str, variables: dict[str, Any]
    ) -> dict[str, Any]:
        message = {
            "template_id": template_id,
            "lead_id": lead_id,
            "variables": dict(variables),
        }
        self.sent.append(message)
        return {"queued": True, "template_id": template_id}
