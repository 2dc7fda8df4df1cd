"""Structural types for the services the automation core depends on.

Every engine accepts these Protocols so it works with any backend (a
database-backed repository, an HTTP client for a CRM, or the in-memory
implementations in :mod:`leadflow.collaborators.memory`) without importing
concrete classes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from leadflow.activity.models import Activity
from leadflow.core.constants import UserRole
from leadflow.core.types import Lead, Notification, Task, TaskSpec, User


@runtime_checkable
class LeadRepository(Protocol):
    async def get_lead_by_id(self, lead_id: str) -> Lead | None: ...

    async def update_lead(
        self, lead_id: str, fields: dict[str, Any], actor_id: str | None
    ) -> Lead: ...

    async def count_open_by_assignee(self, user_id: str) -> int: ...

    async def find_assigned_before(self, cutoff: datetime) -> list[Lead]: ...


@runtime_checkable
class UserDirectory(Protocol):
    async def find_by_id(self, user_id: str) -> User | None: ...

    async def find_by_role(self, role: UserRole) -> list[User]: ...

    async def find_by_department(self, department: str) -> list[User]: ...

    async def find_managers_by_department(self, department: str | None) -> list[User]: ...


@runtime_checkable
class TaskService(Protocol):
    async def create_task(self, spec: TaskSpec) -> Task: ...

    async def count_overdue_by_assignee(self, user_id: str, now: datetime) -> int: ...


@runtime_checkable
class ActivityRecorder(Protocol):
    """Append-only audit trail used for assignments and escalations."""

    async def create(self, entry: Activity) -> Activity: ...


@runtime_checkable
class NotificationService(Protocol):
    async def send_notification(self, notification: Notification) -> Any: ...


@runtime_checkable
class EmailService(Protocol):
    async def send_email(
        self, template_id: str, lead_id: str, variables: dict[str, Any]
    ) -> Any: ...
