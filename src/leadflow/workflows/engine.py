"""Workflow engine -- event matching and the asynchronous action loop.

:meth:`WorkflowEngine.execute_workflow` creates the execution record and
returns at once; the actions run in an :class:`asyncio.Task` keyed by the
execution id. Progress is observable only through the stored execution,
which is saved after every action.

Action loop, per execution::

    pending -> running -> (for each action: cancel check, delay, dispatch, save)
            -> completed | failed | cancelled

A failed action does not stop the run; the execution ends ``failed`` if
any action failed. A lead that disappears mid-run, or any other error
outside action dispatch, ends the run ``failed`` with the error text.
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel

from leadflow.collaborators.base import LeadRepository
from leadflow.conditions import evaluate
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import ExecutionStatus, OutcomeStatus, TriggerEvent
from leadflow.core.exceptions import (
    BusinessLogicError,
    NotFoundError,
    ValidationError,
)
from leadflow.core.types import Lead, utcnow
from leadflow.workflows.actions import ActionRegistry
from leadflow.workflows.models import (
    ActionOutcome,
    WorkflowAction,
    WorkflowExecution,
)

if TYPE_CHECKING:
    from leadflow.storage.base import WorkflowStore

logger = structlog.get_logger(__name__)


@dataclass
class _LiveRun:
    task: asyncio.Task[None]
    cancel: asyncio.Event


def _audit_result(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


class WorkflowEngine:
    """Runs workflow definitions against leads.

    Args:
        store: Workflow definition and execution persistence.
        leads: Lead collaborator, read before every action.
        registry: Action handlers keyed by type tag.
        config: Supplies ``delay_unit_seconds``.
        clock: Returns the current UTC time.
        sleep: Awaitable used for action delays; replaced in tests.
    """

    def __init__(
        self,
        store: WorkflowStore,
        leads: LeadRepository,
        registry: ActionRegistry,
        *,
        config: AutomationConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._leads = leads
        self._registry = registry
        self._config = config or AutomationConfig()
        self._clock = clock
        self._sleep = sleep
        self._runs: dict[str, _LiveRun] = {}

    def __repr__(self) -> str:
        return f"WorkflowEngine(live_runs={len(self._runs)})"

    @property
    def live_execution_ids(self) -> list[str]:
        return list(self._runs)

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    async def execute_triggered_workflows(
        self,
        event: TriggerEvent | str,
        lead_id: str,
        triggered_by: str,
        context: dict[str, Any] | None = None,
    ) -> list[WorkflowExecution]:
        """Start every active workflow for ``event`` whose conditions match the lead.

        Workflows are considered highest priority first. Conditions see the
        lead as subject and ``context`` as the supplementary map.

        Returns:
            One execution per matching workflow, in start order.

        Raises:
            ValidationError: If ``event`` is not a known trigger event.
            NotFoundError: If the lead does not exist.
        """
        try:
            trigger_event = TriggerEvent(event)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown trigger event: {event!r}", code="INVALID_TRIGGER_EVENT"
            ) from exc

        lead = await self._require_lead(lead_id)
        ctx = dict(context or {})

        executions: list[WorkflowExecution] = []
        for workflow in await self._store.list_active_for_event(trigger_event):
            if not evaluate(workflow.trigger.conditions, lead, ctx):
                logger.debug(
                    "workflow_conditions_not_met",
                    workflow_id=workflow.id,
                    lead_id=lead_id,
                    trigger_event=trigger_event.value,
                )
                continue
            executions.append(
                await self.execute_workflow(workflow.id, lead_id, triggered_by, ctx)
            )
        return executions

    async def execute_workflow(
        self,
        workflow_id: str,
        lead_id: str,
        triggered_by: str,
        context: dict[str, Any] | None = None,
    ) -> WorkflowExecution:
        """Create a pending execution and start its action loop in the background.

        Returns without waiting for any action.

        Raises:
            NotFoundError: If the workflow or the lead does not exist.
            BusinessLogicError: If the workflow is inactive.
        """
        workflow = await self._store.get_workflow(workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow {workflow_id} not found", code="WORKFLOW_NOT_FOUND")
        if not workflow.is_active:
            raise BusinessLogicError(
                f"Workflow {workflow_id} is inactive", code="WORKFLOW_INACTIVE"
            )
        await self._require_lead(lead_id)

        now = self._clock()
        execution = WorkflowExecution(
            workflow_id=workflow_id,
            lead_id=lead_id,
            triggered_by=triggered_by,
            context=dict(context or {}),
            started_at=now,
            executed_actions=[ActionOutcome(action_index=i) for i in range(len(workflow.actions))],
        )
        await self._store.create_execution(execution, executed_at=now)

        cancel = asyncio.Event()
        task = asyncio.create_task(
            self._run_actions(execution.id, list(workflow.actions), cancel),
            name=f"workflow-execution-{execution.id}",
        )
        self._runs[execution.id] = _LiveRun(task=task, cancel=cancel)
        task.add_done_callback(lambda _t, eid=execution.id: self._runs.pop(eid, None))

        logger.info(
            "workflow_execution_started",
            workflow_id=workflow_id,
            execution_id=execution.id,
            lead_id=lead_id,
            triggered_by=triggered_by,
            actions=len(workflow.actions),
        )
        return execution

    # ------------------------------------------------------------------ #
    # Execution control
    # ------------------------------------------------------------------ #

    async def cancel_execution(self, execution_id: str) -> WorkflowExecution:
        """Cancel a pending or running execution.

        A run live in this process is signalled and stops before its next
        action (or during a delay). Otherwise the stored record is moved to
        ``cancelled`` directly.

        Raises:
            NotFoundError: If the execution does not exist.
            BusinessLogicError: If the execution already finished.
        """
        execution = await self.get_execution(execution_id)
        if execution.is_terminal:
            raise BusinessLogicError(
                f"Execution {execution_id} is already {execution.status}",
                code="EXECUTION_FINISHED",
                details={"status": execution.status.value},
            )

        run = self._runs.get(execution_id)
        if run is not None:
            run.cancel.set()
            logger.info("workflow_execution_cancel_requested", execution_id=execution_id)
            await asyncio.wait({run.task})
            return await self.get_execution(execution_id)

        execution.transition(ExecutionStatus.CANCELLED, at=self._clock())
        await self._store.save_execution(execution)
        logger.info("workflow_execution_cancelled", execution_id=execution_id)
        return execution

    async def get_execution(self, execution_id: str) -> WorkflowExecution:
        execution = await self._store.get_execution(execution_id)
        if execution is None:
            raise NotFoundError(
                f"Workflow execution {execution_id} not found", code="EXECUTION_NOT_FOUND"
            )
        return execution

    async def wait_for_execution(
        self, execution_id: str, timeout: float | None = None
    ) -> WorkflowExecution:
        """Wait until the live run for ``execution_id`` finishes, then return its record."""
        run = self._runs.get(execution_id)
        if run is not None:
            await asyncio.wait({run.task}, timeout=timeout)
        return await self.get_execution(execution_id)

    async def drain(self) -> None:
        """Wait for every live run to finish."""
        while True:
            pending = {run.task for run in self._runs.values() if not run.task.done()}
            if not pending:
                return
            await asyncio.wait(pending)

    async def shutdown(self) -> None:
        """Signal cancellation to every live run and wait for them to stop."""
        for run in self._runs.values():
            run.cancel.set()
        await self.drain()

    # ------------------------------------------------------------------ #
    # Action loop
    # ------------------------------------------------------------------ #

    async def _run_actions(
        self,
        execution_id: str,
        actions: list[WorkflowAction],
        cancel: asyncio.Event,
    ) -> None:
        log = logger.bind(execution_id=execution_id)
        execution: WorkflowExecution | None = None
        try:
            execution = await self.get_execution(execution_id)
            if cancel.is_set():
                await self._finish_cancelled(execution)
                return

            execution.transition(ExecutionStatus.RUNNING)
            await self._store.save_execution(execution)

            for index, action in enumerate(actions):
                if cancel.is_set() or (action.delay and await self._delay(action.delay, cancel)):
                    await self._finish_cancelled(execution)
                    return

                lead = await self._leads.get_lead_by_id(execution.lead_id)
                if lead is None:
                    raise NotFoundError(
                        f"Lead {execution.lead_id} not found before action {index}",
                        code="LEAD_NOT_FOUND",
                    )

                outcome = await self._dispatch(index, action, lead, execution)
                execution.executed_actions[index] = outcome
                await self._store.save_execution(execution)
                log.debug("workflow_action_recorded", action_index=index, status=outcome.status.value)

            failed = sum(1 for o in execution.executed_actions if o.status == OutcomeStatus.FAILED)
            if failed:
                execution.transition(
                    ExecutionStatus.FAILED,
                    at=self._clock(),
                    error=f"{failed} of {len(actions)} actions failed",
                )
            else:
                execution.transition(ExecutionStatus.COMPLETED, at=self._clock())
            await self._store.save_execution(execution)
            log.info("workflow_execution_finished", status=execution.status.value)
        except asyncio.CancelledError:
            if execution is not None and not execution.is_terminal:
                await self._finish_cancelled(execution)
            raise
        except Exception as exc:
            log.error("workflow_execution_error", error=str(exc))
            if execution is not None and not execution.is_terminal:
                execution.transition(ExecutionStatus.FAILED, at=self._clock(), error=str(exc))
                try:
                    await self._store.save_execution(execution)
                except Exception as persist_exc:
                    log.error(
                        "workflow_execution_persist_failed",
                        status=execution.status.value,
                        error=str(persist_exc),
                        exc_info=True,
                    )

    async def _delay(self, minutes: float, cancel: asyncio.Event) -> bool:
        """Wait ``minutes`` action-delay minutes. Returns True if cancelled meanwhile."""
        sleeper = asyncio.ensure_future(self._sleep(minutes * self._config.delay_unit_seconds))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (sleeper, waiter):
                if not fut.done():
                    fut.cancel()
            await asyncio.gather(sleeper, waiter, return_exceptions=True)
        return cancel.is_set()

    async def _dispatch(
        self,
        index: int,
        action: WorkflowAction,
        lead: Lead,
        execution: WorkflowExecution,
    ) -> ActionOutcome:
        handler = self._registry.get(action.type)
        if handler is None:
            logger.error(
                "workflow_action_unknown",
                execution_id=execution.id,
                action_index=index,
                action_type=action.type,
            )
            return ActionOutcome(
                action_index=index,
                status=OutcomeStatus.FAILED,
                error=f"Unknown action type: {action.type}",
                executed_at=self._clock(),
            )

        try:
            result = await handler.execute(dict(action.parameters), lead, execution)
        except Exception as exc:
            logger.error(
                "workflow_action_failed",
                execution_id=execution.id,
                action_index=index,
                action_type=action.type,
                error=str(exc),
            )
            return ActionOutcome(
                action_index=index,
                status=OutcomeStatus.FAILED,
                error=str(exc) or type(exc).__name__,
                executed_at=self._clock(),
            )

        return ActionOutcome(
            action_index=index,
            status=OutcomeStatus.COMPLETED,
            result=_audit_result(result),
            executed_at=self._clock(),
        )

    async def _finish_cancelled(self, execution: WorkflowExecution) -> None:
        execution.transition(ExecutionStatus.CANCELLED, at=self._clock())
        await self._store.save_execution(execution)
        logger.info("workflow_execution_cancelled", execution_id=execution.id)

    async def _require_lead(self, lead_id: str) -> Lead:
        lead = await self._leads.get_lead_by_id(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {lead_id} not found", code="LEAD_NOT_FOUND")
        return lead
