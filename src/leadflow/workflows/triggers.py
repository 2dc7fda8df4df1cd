"""Trigger entry points called by lead lifecycle, task and UI code.

Each method forwards a fixed event and context payload to
:meth:`WorkflowEngine.execute_triggered_workflows`. Failures are logged and
an empty list is returned, so automation never aborts the business
operation that raised the event.
"""
from __future__ import annotations

from typing import Any

import structlog

from leadflow.core.constants import TriggerEvent
from leadflow.workflows.engine import WorkflowEngine
from leadflow.workflows.models import WorkflowExecution

logger = structlog.get_logger(__name__)


class WorkflowTriggers:
    def __init__(self, engine: WorkflowEngine) -> None:
        self._engine = engine

    async def _fire(
        self,
        event: TriggerEvent,
        lead_id: str,
        triggered_by: str,
        context: dict[str, Any],
    ) -> list[WorkflowExecution]:
        try:
            return await self._engine.execute_triggered_workflows(
                event, lead_id, triggered_by, context
            )
        except Exception as exc:
            logger.warning(
                "workflow_trigger_failed",
                trigger_event=event.value,
                lead_id=lead_id,
                error=str(exc),
                exc_info=True,
            )
            return []

    async def on_lead_created(
        self, lead_id: str, created_by: str, lead_data: dict[str, Any] | None = None
    ) -> list[WorkflowExecution]:
        return await self._fire(
            TriggerEvent.LEAD_CREATED, lead_id, created_by, {"lead_data": lead_data or {}}
        )

    async def on_lead_assigned(
        self,
        lead_id: str,
        assigned_by: str,
        assigned_to: str,
        previous_assignee: str | None = None,
    ) -> list[WorkflowExecution]:
        return await self._fire(
            TriggerEvent.LEAD_ASSIGNED,
            lead_id,
            assigned_by,
            {"assigned_to": assigned_to, "previous_assignee": previous_assignee},
        )

    async def on_score_changed(
        self,
        lead_id: str,
        triggered_by: str,
        new_score: float,
        previous_score: float,
        score_band: str | None = None,
    ) -> list[WorkflowExecution]:
        return await self._fire(
            TriggerEvent.SCORE_CHANGED,
            lead_id,
            triggered_by,
            {"new_score": new_score, "previous_score": previous_score, "score_band": score_band},
        )

    async def on_status_updated(
        self, lead_id: str, updated_by: str, new_status: str, previous_status: str
    ) -> list[WorkflowExecution]:
        return await self._fire(
            TriggerEvent.STATUS_UPDATED,
            lead_id,
            updated_by,
            {"new_status": new_status, "previous_status": previous_status},
        )

    async def on_task_completed(
        self,
        lead_id: str,
        completed_by: str,
        task_id: str,
        task_data: dict[str, Any] | None = None,
    ) -> list[WorkflowExecution]:
        return await self._fire(
            TriggerEvent.TASK_COMPLETED,
            lead_id,
            completed_by,
            {"task_id": task_id, "task_data": task_data or {}},
        )

    async def trigger_manual(
        self, lead_id: str, triggered_by: str, context: dict[str, Any] | None = None
    ) -> list[WorkflowExecution]:
        return await self._fire(TriggerEvent.MANUAL, lead_id, triggered_by, dict(context or {}))
