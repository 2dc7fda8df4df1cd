"""AutomationSweeper -- APScheduler jobs for the periodic SLA and approval sweeps.

Two interval jobs run on the process event loop:

- **sla_escalation** -- :meth:`SLATracker.escalate_overdue_leads`
- **approval_expiry** -- :meth:`ApprovalManager.expire_stale_requests`

Both sweeps can also be run on demand. A failing sweep is logged and the
schedule keeps going.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from leadflow.core.config import AutomationConfig

if TYPE_CHECKING:
    from leadflow.approvals.manager import ApprovalManager
    from leadflow.sla.tracker import SLATracker

logger = structlog.get_logger(__name__)

SLA_JOB_ID = "leadflow:sla_escalation"
APPROVAL_JOB_ID = "leadflow:approval_expiry"
_MISFIRE_GRACE_TIME_S = 60


class AutomationSweeper:
    def __init__(
        self,
        sla: SLATracker,
        approvals: ApprovalManager,
        *,
        config: AutomationConfig | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._sla = sla
        self._approvals = approvals
        self._config = config or AutomationConfig()
        self.scheduler = scheduler or AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": _MISFIRE_GRACE_TIME_S,
            }
        )
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Schedule both sweeps and start the scheduler. Must run inside the event loop."""
        if self._running:
            return
        self.scheduler.add_job(
            self.run_sla_sweep,
            trigger=IntervalTrigger(seconds=self._config.sla_sweep_interval_seconds),
            id=SLA_JOB_ID,
            name="SLA escalation sweep",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_approval_sweep,
            trigger=IntervalTrigger(seconds=self._config.approval_sweep_interval_seconds),
            id=APPROVAL_JOB_ID,
            name="Approval expiry sweep",
            replace_existing=True,
        )
        self.scheduler.start()
        self._running = True
        logger.info(
            "automation_sweeper_started",
            sla_interval_s=self._config.sla_sweep_interval_seconds,
            approval_interval_s=self._config.approval_sweep_interval_seconds,
        )

    async def stop(self) -> None:
        if self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("automation_sweeper_stopped")

    async def run_sla_sweep(self) -> int:
        """Escalate overdue leads once. Returns how many were escalated."""
        try:
            records = await self._sla.escalate_overdue_leads()
        except Exception as exc:
            logger.error("sla_sweep_failed", error=str(exc), exc_info=True)
            return 0
        logger.debug("sla_sweep_done", escalated=len(records))
        return len(records)

    async def run_approval_sweep(self) -> int:
        """Expire stale approval requests once. Returns how many were expired."""
        try:
            expired = await self._approvals.expire_stale_requests()
        except Exception as exc:
            logger.error("approval_sweep_failed", error=str(exc), exc_info=True)
            return 0
        logger.debug("approval_sweep_done", expired=expired)
        return expired
