from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from leadflow.activity.log import ActivityLog
from leadflow.approvals.manager import ApprovalManager
from leadflow.collaborators.base import (
    ActivityRecorder,
    EmailService,
    LeadRepository,
    NotificationService,
    TaskService,
    UserDirectory,
)
from leadflow.core.config import AutomationConfig
from leadflow.core.types import utcnow
from leadflow.routing.engine import RoutingEngine
from leadflow.routing.rules import AssignmentRuleManager
from leadflow.scheduling.sweeper import AutomationSweeper
from leadflow.sla.tracker import SLATracker
from leadflow.storage.memory import (
    InMemoryApprovalStore,
    InMemoryRuleStore,
    InMemoryWorkflowStore,
)
from leadflow.workflows.actions import ActionRegistry, build_default_registry
from leadflow.workflows.engine import WorkflowEngine
from leadflow.workflows.service import WorkflowService
from leadflow.workflows.triggers import WorkflowTriggers

if TYPE_CHECKING:
    from leadflow.storage.base import ApprovalStore, RuleStore, WorkflowStore

logger = structlog.get_logger(__name__)


class AutomationCore:
    """Composition root wiring the workflow, routing, SLA and approval components.

    Every collaborator is passed in; nothing is looked up globally, so tests
    substitute the in-memory implementations::

        core = AutomationCore(
            leads=InMemoryLeadRepository(),
            users=InMemoryUserDirectory(),
            tasks=InMemoryTaskService(),
            notifications=InMemoryNotificationService(),
            emails=InMemoryEmailService(),
        )
        async with core:
            await core.triggers.on_lead_created(lead.id, "u1", lead.model_dump())

    Stores default to the in-memory ones and ``activities`` to an
    :class:`ActivityLog` with no external sinks.
    """

    def __init__(
        self,
        *,
        leads: LeadRepository,
        users: UserDirectory,
        tasks: TaskService,
        notifications: NotificationService,
        emails: EmailService,
        activities: ActivityRecorder | None = None,
        config: AutomationConfig | None = None,
        workflow_store: WorkflowStore | None = None,
        approval_store: ApprovalStore | None = None,
        rule_store: RuleStore | None = None,
        registry: ActionRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config or AutomationConfig()
        self._leads = leads
        self._users = users
        self._activities: ActivityRecorder = (
            activities if activities is not None else ActivityLog()
        )
        self._workflow_store = workflow_store or InMemoryWorkflowStore()
        self._approval_store = approval_store or InMemoryApprovalStore()
        self._rule_store = rule_store or InMemoryRuleStore()

        self._approvals = ApprovalManager(
            self._approval_store, users, notifications, config=self._config, clock=clock
        )
        self._routing = RoutingEngine(
            self._rule_store,
            leads,
            users,
            tasks,
            self._activities,
            config=self._config,
            clock=clock,
        )
        self._rules = AssignmentRuleManager(self._rule_store)
        self._sla = SLATracker(
            leads, users, self._activities, notifications, config=self._config, clock=clock
        )
        self._registry = registry or build_default_registry(
            leads=leads,
            tasks=tasks,
            emails=emails,
            notifications=notifications,
            routing=self._routing,
            approvals=self._approvals,
            config=self._config,
            clock=clock,
        )
        self._engine = WorkflowEngine(
            self._workflow_store,
            leads,
            self._registry,
            config=self._config,
            clock=clock,
            sleep=sleep,
        )
        self._triggers = WorkflowTriggers(self._engine)
        self._workflows = WorkflowService(self._workflow_store, self._engine)
        self._sweeper = AutomationSweeper(self._sla, self._approvals, config=self._config)

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> AutomationConfig:
        return self._config

    @property
    def activities(self) -> ActivityRecorder:
        return self._activities

    @property
    def registry(self) -> ActionRegistry:
        return self._registry

    @property
    def engine(self) -> WorkflowEngine:
        return self._engine

    @property
    def triggers(self) -> WorkflowTriggers:
        """Entry points for lead lifecycle, task and manual events."""
        return self._triggers

    @property
    def workflows(self) -> WorkflowService:
        return self._workflows

    @property
    def routing(self) -> RoutingEngine:
        return self._routing

    @property
    def rules(self) -> AssignmentRuleManager:
        return self._rules

    @property
    def sla(self) -> SLATracker:
        return self._sla

    @property
    def approvals(self) -> ApprovalManager:
        return self._approvals

    @property
    def sweeper(self) -> AutomationSweeper:
        return self._sweeper

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self, *, sweeps: bool = True) -> None:
        """Start the periodic SLA and approval sweeps when ``sweeps`` is true."""
        if sweeps:
            await self._sweeper.start()
        logger.info("automation_core_started", sweeps=sweeps)

    async def close(self) -> None:
        """Stop sweeps, cancel live workflow runs and close activity sinks."""
        await self._sweeper.stop()
        await self._engine.shutdown()
        if isinstance(self._activities, ActivityLog):
            await self._activities.close()
        logger.info("automation_core_closed")

    async def __aenter__(self) -> AutomationCore:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
