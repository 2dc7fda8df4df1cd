"""In-memory stores for workflow definitions, executions, approvals and rules.

Every read and write copies the model, so a caller holding a record sees
later changes only after fetching it again.
"""
from __future__ import annotations

import asyncio
from datetime import datetime

from leadflow.approvals.models import ApprovalRequest
from leadflow.core.constants import TriggerEvent
from leadflow.core.exceptions import NotFoundError
from leadflow.routing.models import AssignmentRule
from leadflow.workflows.models import WorkflowDefinition, WorkflowExecution


class InMemoryWorkflowStore:
    def __init__(self) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {}
        self._executions: dict[str, WorkflowExecution] = {}
        self._lock = asyncio.Lock()

    async def save_workflow(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        self._workflows[workflow.id] = workflow.model_copy(deep=True)
        return workflow

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        wf = self._workflows.get(workflow_id)
        return wf.model_copy(deep=True) if wf is not None else None

    async def list_workflows(self) -> list[WorkflowDefinition]:
        return [wf.model_copy(deep=True) for wf in self._workflows.values()]

    async def list_active_for_event(self, event: TriggerEvent) -> list[WorkflowDefinition]:
        matching = [
            wf.model_copy(deep=True)
            for wf in self._workflows.values()
            if wf.is_active and wf.trigger.event == event
        ]
        # sorted() is stable, so equal priorities keep creation order
        return sorted(matching, key=lambda wf: -wf.priority)

    async def create_execution(
        self, execution: WorkflowExecution, *, executed_at: datetime
    ) -> WorkflowExecution:
        async with self._lock:
            workflow = self._workflows.get(execution.workflow_id)
            if workflow is None:
                raise NotFoundError(
                    f"Workflow {execution.workflow_id} not found",
                    code="WORKFLOW_NOT_FOUND",
                )
            workflow.execution_count += 1
            workflow.last_executed = executed_at
            self._executions[execution.id] = execution.model_copy(deep=True)
        return execution

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        execution = self._executions.get(execution_id)
        return execution.model_copy(deep=True) if execution is not None else None

    async def save_execution(self, execution: WorkflowExecution) -> WorkflowExecution:
        self._executions[execution.id] = execution.model_copy(deep=True)
        return execution

    async def list_executions(self) -> list[WorkflowExecution]:
        return [e.model_copy(deep=True) for e in self._executions.values()]


class InMemoryApprovalStore:
    def __init__(self) -> None:
        self._requests: dict[str, ApprovalRequest] = {}

    async def save_request(self, request: ApprovalRequest) -> ApprovalRequest:
        self._requests[request.id] = request.model_copy(deep=True)
        return request

    async def get_request(self, request_id: str) -> ApprovalRequest | None:
        request = self._requests.get(request_id)
        return request.model_copy(deep=True) if request is not None else None

    async def list_requests(self) -> list[ApprovalRequest]:
        return [r.model_copy(deep=True) for r in self._requests.values()]


class InMemoryRuleStore:
    def __init__(self) -> None:
        self._rules: dict[str, AssignmentRule] = {}

    async def save_rule(self, rule: AssignmentRule) -> AssignmentRule:
        self._rules[rule.id] = rule.model_copy(deep=True)
        return rule

    async def get_rule(self, rule_id: str) -> AssignmentRule | None:
        rule = self._rules.get(rule_id)
        return rule.model_copy(deep=True) if rule is not None else None

    async def list_rules(self) -> list[AssignmentRule]:
        return [r.model_copy(deep=True) for r in self._rules.values()]

    async def list_active_rules(self) -> list[AssignmentRule]:
        active = [r.model_copy(deep=True) for r in self._rules.values() if r.is_active]
        return sorted(active, key=lambda r: r.priority)
