"""Management of workflow definitions and their execution history.

Definitions are never deleted; :meth:`WorkflowService.deactivate_workflow`
takes one out of matching while keeping its executions auditable.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from leadflow.core.constants import ExecutionStatus, TriggerEvent
from leadflow.core.exceptions import NotFoundError, ValidationError
from leadflow.workflows.engine import WorkflowEngine
from leadflow.workflows.models import (
    WorkflowAction,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowTrigger,
)

if TYPE_CHECKING:
    from leadflow.storage.base import WorkflowStore

logger = structlog.get_logger(__name__)

_IMMUTABLE_FIELDS = frozenset(
    {"id", "created_by", "created_at", "last_executed", "execution_count"}
)


def _invalid(exc: PydanticValidationError) -> ValidationError:
    return ValidationError(
        "Invalid workflow definition",
        errors=[f"{'.'.join(map(str, e['loc'])) or 'workflow'}: {e['msg']}" for e in exc.errors()],
        code="INVALID_WORKFLOW",
    )


def _page(items: list[Any], limit: int | None, offset: int) -> list[Any]:
    end = None if limit is None else offset + limit
    return items[offset:end]


class WorkflowService:
    """CRUD for :class:`WorkflowDefinition` plus execution queries.

    Usage counters (``execution_count``, ``last_executed``) are owned by the
    engine and cannot be changed through :meth:`update_workflow`.
    """

    def __init__(self, store: WorkflowStore, engine: WorkflowEngine) -> None:
        self._store = store
        self._engine = engine

    # ------------------------------------------------------------------ #
    # Definitions
    # ------------------------------------------------------------------ #

    async def create_workflow(
        self,
        name: str,
        trigger: WorkflowTrigger | dict[str, Any],
        actions: list[WorkflowAction | dict[str, Any]],
        *,
        created_by: str,
        priority: int = 0,
        description: str | None = None,
        is_active: bool = True,
    ) -> WorkflowDefinition:
        """Validate and store a new definition.

        Raises:
            ValidationError: If the trigger, an action or the definition as a
                whole is invalid (for example active with no actions).
        """
        try:
            workflow = WorkflowDefinition(
                name=name,
                description=description,
                trigger=trigger,
                actions=actions,
                is_active=is_active,
                priority=priority,
                created_by=created_by,
            )
        except PydanticValidationError as exc:
            raise _invalid(exc) from exc
        await self._store.save_workflow(workflow)
        logger.info("workflow_created", workflow_id=workflow.id, trigger_event=workflow.trigger.event.value)
        return workflow

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        workflow = await self._store.get_workflow(workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow {workflow_id} not found", code="WORKFLOW_NOT_FOUND")
        return workflow

    async def list_workflows(
        self,
        *,
        is_active: bool | None = None,
        created_by: str | None = None,
        event: TriggerEvent | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[WorkflowDefinition], int]:
        """Filtered definitions, highest priority first, and the unpaginated total."""
        workflows = [
            wf
            for wf in await self._store.list_workflows()
            if (is_active is None or wf.is_active == is_active)
            and (created_by is None or wf.created_by == created_by)
            and (event is None or wf.trigger.event == event)
        ]
        workflows.sort(key=lambda wf: -wf.priority)
        return _page(workflows, limit, offset), len(workflows)

    async def update_workflow(self, workflow_id: str, **changes: Any) -> WorkflowDefinition:
        """Apply ``changes`` and re-validate the whole definition.

        Raises:
            NotFoundError: If the workflow does not exist.
            ValidationError: If a change names an engine-owned or immutable
                field, or the result is invalid.
        """
        blocked = _IMMUTABLE_FIELDS.intersection(changes)
        if blocked:
            raise ValidationError(
                "Cannot change immutable workflow fields",
                errors=[f"{name} is immutable" for name in sorted(blocked)],
                code="IMMUTABLE_FIELD",
            )
        current = await self.get_workflow(workflow_id)
        data = current.model_dump()
        data.update(changes)
        try:
            updated = WorkflowDefinition.model_validate(data)
        except PydanticValidationError as exc:
            raise _invalid(exc) from exc
        await self._store.save_workflow(updated)
        logger.info("workflow_updated", workflow_id=workflow_id, fields=sorted(changes))
        return updated

    async def activate_workflow(self, workflow_id: str) -> WorkflowDefinition:
        return await self.update_workflow(workflow_id, is_active=True)

    async def deactivate_workflow(self, workflow_id: str) -> WorkflowDefinition:
        return await self.update_workflow(workflow_id, is_active=False)

    # ------------------------------------------------------------------ #
    # Executions
    # ------------------------------------------------------------------ #

    async def execute_workflow(
        self,
        workflow_id: str,
        lead_id: str,
        triggered_by: str,
        context: dict[str, Any] | None = None,
    ) -> WorkflowExecution:
        return await self._engine.execute_workflow(workflow_id, lead_id, triggered_by, context)

    async def get_execution(self, execution_id: str) -> WorkflowExecution:
        return await self._engine.get_execution(execution_id)

    async def list_executions(
        self,
        *,
        workflow_id: str | None = None,
        lead_id: str | None = None,
        status: ExecutionStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[WorkflowExecution], int]:
        """Filtered executions, most recently started first, and the unpaginated total."""
        executions = [
            e
            for e in await self._store.list_executions()
            if (workflow_id is None or e.workflow_id == workflow_id)
            and (lead_id is None or e.lead_id == lead_id)
            and (status is None or e.status == status)
        ]
        executions.sort(key=lambda e: e.started_at, reverse=True)
        return _page(executions, limit, offset), len(executions)

    async def cancel_execution(self, execution_id: str) -> WorkflowExecution:
        return await self._engine.cancel_execution(execution_id)
