"""Shared test fixtures."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone

import pytest

from leadflow.activity.log import ActivityLog
from leadflow.collaborators.memory import (
    InMemoryEmailService,
    InMemoryLeadRepository,
    InMemoryNotificationService,
    InMemoryTaskService,
    InMemoryUserDirectory,
)
from leadflow.core.automation import AutomationCore
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import LeadStatus, UserRole
from leadflow.core.types import Lead, LeadCompany, LeadContact, LeadLocation, User

# Monday 2 March 2026, 10:00 UTC
START = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class GatedSleep:
    """Stand-in for ``asyncio.sleep`` that blocks until :meth:`release` is called."""

    def __init__(self) -> None:
        self.calls: list[float] = []
        self._released = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self._released.wait()

    def release(self) -> None:
        self._released.set()


async def instant_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


async def _settle(predicate: Callable[[], bool], attempts: int = 200) -> None:
    """Yield to the event loop until *predicate* holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gated_sleep() -> GatedSleep:
    return GatedSleep()


@pytest.fixture
def settle() -> Callable[..., Awaitable[None]]:
    return _settle


@pytest.fixture
def leads() -> InMemoryLeadRepository:
    return InMemoryLeadRepository()


@pytest.fixture
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory(
        [
            User(id="admin-1", name="Ada Admin", role=UserRole.ADMIN, department="ops"),
            User(id="mgr-1", name="Max Manager", role=UserRole.MANAGER, department="sales"),
            User(id="alice", name="Alice", role=UserRole.SALES, department="sales"),
            User(id="bob", name="Bob", role=UserRole.SALES, department="sales"),
        ]
    )


@pytest.fixture
def tasks() -> InMemoryTaskService:
    return InMemoryTaskService()


@pytest.fixture
def notifications() -> InMemoryNotificationService:
    return InMemoryNotificationService()


@pytest.fixture
def emails() -> InMemoryEmailService:
    return InMemoryEmailService()


@pytest.fixture
def activity_log() -> ActivityLog:
    return ActivityLog()


@pytest.fixture
def config() -> AutomationConfig:
    return AutomationConfig()


@pytest.fixture
def lead(leads: InMemoryLeadRepository) -> Lead:
    return leads.add(
        Lead(
            id="lead-1",
            status=LeadStatus.NEW,
            company=LeadCompany(name="Acme Corp", industry="manufacturing"),
            contact=LeadContact(name="Jane Roe", email="jane@acme.test"),
            location=LeadLocation(region="EMEA", country="DE"),
        )
    )


@pytest.fixture
def make_core(
    leads: InMemoryLeadRepository,
    users: InMemoryUserDirectory,
    tasks: InMemoryTaskService,
    notifications: InMemoryNotificationService,
    emails: InMemoryEmailService,
    activity_log: ActivityLog,
    config: AutomationConfig,
    clock: FakeClock,
) -> Callable[..., AutomationCore]:
    """Factory building an :class:`AutomationCore` over the shared fakes."""

    def _make(**overrides: object) -> AutomationCore:
        kwargs: dict[str, object] = {
            "leads": leads,
            "users": users,
            "tasks": tasks,
            "notifications": notifications,
            "emails": emails,
            "activities": activity_log,
            "config": config,
            "clock": clock,
            "sleep": instant_sleep,
        }
        kwargs.update(overrides)
        return AutomationCore(**kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture
async def core(make_core: Callable[..., AutomationCore]) -> AsyncGenerator[AutomationCore, None]:
    c = make_core()
    yield c
    await c.close()
