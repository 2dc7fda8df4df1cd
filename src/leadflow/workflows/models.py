"""Workflow data models: definitions, actions, executions and per-action outcomes."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from leadflow.conditions.models import Condition
from leadflow.core.constants import ExecutionStatus, OutcomeStatus, TriggerEvent
from leadflow.core.exceptions import WorkflowError
from leadflow.core.types import new_id, utcnow

_TERMINAL_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)

_ALLOWED_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    ExecutionStatus.PENDING: frozenset(
        {ExecutionStatus.RUNNING, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
    ),
    ExecutionStatus.RUNNING: _TERMINAL_STATUSES,
}


class WorkflowTrigger(BaseModel):
    """The business event plus conditions that activate a workflow."""

    event: TriggerEvent
    conditions: list[Condition] = Field(default_factory=list)


class WorkflowAction(BaseModel):
    """One step of a workflow.

    ``type`` is kept as a plain string so that a definition carrying an
    action type this process does not know about still loads; dispatch
    then records a per-action failure instead of rejecting the workflow.
    Known tags are listed in :class:`~leadflow.core.constants.ActionType`.
    """

    type: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    delay: float | None = Field(default=None, ge=0)
    """Minutes to wait before this action runs."""


class WorkflowDefinition(BaseModel):
    """An automation rule: a trigger and an ordered list of actions."""

    id: str = Field(default_factory=new_id)
    name: str
    description: str | None = None
    trigger: WorkflowTrigger
    actions: list[WorkflowAction] = Field(default_factory=list)
    is_active: bool = True
    priority: int = 0
    """Higher runs first among definitions matching the same event."""
    created_by: str
    created_at: datetime = Field(default_factory=utcnow)
    last_executed: datetime | None = None
    execution_count: int = 0

    @model_validator(mode="after")
    def _active_needs_actions(self) -> WorkflowDefinition:
        if self.is_active and not self.actions:
            raise ValueError("an active workflow must define at least one action")
        return self


class ActionOutcome(BaseModel):
    """Recorded result of one action, indexed by its position in the workflow."""

    action_index: int
    status: OutcomeStatus = OutcomeStatus.PENDING
    result: Any = None
    error: str | None = None
    executed_at: datetime | None = None


class WorkflowExecution(BaseModel):
    """One run of a workflow definition against one lead.

    ``executed_actions`` holds one :class:`ActionOutcome` per action from the
    moment the execution is created, so its length always matches the
    definition's action list.
    """

    id: str = Field(default_factory=new_id)
    workflow_id: str
    lead_id: str
    triggered_by: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    context: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    error: str | None = None
    executed_actions: list[ActionOutcome] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL_STATUSES

    @property
    def has_failed_actions(self) -> bool:
        return any(o.status == OutcomeStatus.FAILED for o in self.executed_actions)

    def transition(
        self,
        status: ExecutionStatus,
        *,
        at: datetime | None = None,
        error: str | None = None,
    ) -> None:
        """Move to ``status``, refusing backward or post-terminal moves.

        Terminal statuses stamp ``completed_at`` with ``at``.

        Raises:
            WorkflowError: If the transition is not allowed.
        """
        allowed = _ALLOWED_TRANSITIONS.get(self.status, frozenset())
        if status not in allowed:
            raise WorkflowError(
                f"Cannot move execution {self.id} from {self.status} to {status}",
                code="ILLEGAL_TRANSITION",
                details={"from": self.status.value, "to": status.value},
            )
        self.status = status
        if status in _TERMINAL_STATUSES:
            self.completed_at = at or utcnow()
        if error is not None:
            self.error = error
