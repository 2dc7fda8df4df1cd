"""Tests for scheduling/sweeper.py — job registration and sweep error isolation."""
from __future__ import annotations

from datetime import timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger
from structlog.testing import capture_logs

from leadflow.collaborators.memory import InMemoryLeadRepository
from leadflow.core.automation import AutomationCore
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import ApprovalStatus, UserRole
from leadflow.core.types import Lead, LeadAssignment
from leadflow.scheduling.sweeper import APPROVAL_JOB_ID, SLA_JOB_ID, AutomationSweeper


class _FailingSLA:
    async def escalate_overdue_leads(self) -> list[Any]:
        raise RuntimeError("lead store offline")


class _FailingApprovals:
    async def expire_stale_requests(self) -> int:
        raise RuntimeError("approval store offline")


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


async def test_start_registers_interval_jobs_and_stop_shuts_down() -> None:
    config = AutomationConfig(sla_sweep_interval_seconds=120, approval_sweep_interval_seconds=30)
    sweeper = AutomationSweeper(_FailingSLA(), _FailingApprovals(), config=config)  # type: ignore[arg-type]

    await sweeper.start()
    try:
        assert sweeper.running
        assert sweeper.scheduler.running
        sla_job = sweeper.scheduler.get_job(SLA_JOB_ID)
        approval_job = sweeper.scheduler.get_job(APPROVAL_JOB_ID)
        assert sla_job is not None and approval_job is not None
        assert isinstance(sla_job.trigger, IntervalTrigger)
        assert sla_job.trigger.interval == timedelta(seconds=120)
        assert approval_job.trigger.interval == timedelta(seconds=30)
        assert sla_job.name == "SLA escalation sweep"
    finally:
        await sweeper.stop()

    assert not sweeper.running


async def test_start_is_idempotent() -> None:
    sweeper = AutomationSweeper(_FailingSLA(), _FailingApprovals())  # type: ignore[arg-type]
    await sweeper.start()
    await sweeper.start()
    assert len(sweeper.scheduler.get_jobs()) == 2
    await sweeper.stop()
    await sweeper.stop()


# ---------------------------------------------------------------------------
# On-demand sweeps
# ---------------------------------------------------------------------------


async def test_failing_sweeps_are_logged_and_return_zero() -> None:
    sweeper = AutomationSweeper(_FailingSLA(), _FailingApprovals())  # type: ignore[arg-type]
    with capture_logs() as logs:
        assert await sweeper.run_sla_sweep() == 0
        assert await sweeper.run_approval_sweep() == 0
    events = [(e["event"], e["log_level"]) for e in logs]
    assert ("sla_sweep_failed", "error") in events
    assert ("approval_sweep_failed", "error") in events


async def test_sweeps_report_counts(
    core: AutomationCore, leads: InMemoryLeadRepository, clock: Any
) -> None:
    leads.add(Lead(id="l1", assignment=LeadAssignment(assigned_to="alice", assigned_at=clock.now)))
    request = await core.approvals.create_request(
        lead_id="l1", requested_by="alice", approver_role=UserRole.MANAGER, expires_in_hours=1
    )
    clock.advance(hours=25)

    assert await core.sweeper.run_sla_sweep() == 1
    assert await core.sweeper.run_approval_sweep() == 1
    assert (await core.approvals.get_request(request.id)).status == ApprovalStatus.EXPIRED
