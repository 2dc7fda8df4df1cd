"""Structural types for the stores owned by the automation core."""
from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from leadflow.approvals.models import ApprovalRequest
from leadflow.core.constants import TriggerEvent
from leadflow.routing.models import AssignmentRule
from leadflow.workflows.models import WorkflowDefinition, WorkflowExecution


@runtime_checkable
class WorkflowStore(Protocol):
    async def save_workflow(self, workflow: WorkflowDefinition) -> WorkflowDefinition: ...

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None: ...

    async def list_workflows(self) -> list[WorkflowDefinition]:
        """All definitions in creation order."""
        ...

    async def list_active_for_event(self, event: TriggerEvent) -> list[WorkflowDefinition]:
        """Active definitions for ``event``, highest priority first, ties in creation order."""
        ...

    async def create_execution(
        self, execution: WorkflowExecution, *, executed_at: datetime
    ) -> WorkflowExecution:
        """Persist a new execution and bump the workflow's usage counters atomically."""
        ...

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None: ...

    async def save_execution(self, execution: WorkflowExecution) -> WorkflowExecution: ...

    async def list_executions(self) -> list[WorkflowExecution]:
        """All executions in creation order."""
        ...


@runtime_checkable
class ApprovalStore(Protocol):
    async def save_request(self, request: ApprovalRequest) -> ApprovalRequest: ...

    async def get_request(self, request_id: str) -> ApprovalRequest | None: ...

    async def list_requests(self) -> list[ApprovalRequest]: ...


@runtime_checkable
class RuleStore(Protocol):
    async def save_rule(self, rule: AssignmentRule) -> AssignmentRule: ...

    async def get_rule(self, rule_id: str) -> AssignmentRule | None: ...

    async def list_rules(self) -> list[AssignmentRule]:
        """All rules in creation order."""
        ...

    async def list_active_rules(self) -> list[AssignmentRule]:
        """Active rules, lowest priority value first, ties in creation order."""
        ...
