"""Tests for workflows/service.py — definition CRUD and execution queries."""
from __future__ import annotations

from typing import Any

import pytest

from leadflow.core.automation import AutomationCore
from leadflow.core.constants import ExecutionStatus, TriggerEvent
from leadflow.core.exceptions import BusinessLogicError, NotFoundError, ValidationError
from leadflow.core.types import Lead

_EMAIL = [{"type": "send_email", "parameters": {"template_id": "t"}}]


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


async def test_create_and_get_workflow(core: AutomationCore) -> None:
    wf = await core.workflows.create_workflow(
        "Welcome",
        {"event": "lead_created", "conditions": [{"field": "status", "operator": "equals", "value": "new"}]},
        _EMAIL,
        created_by="admin-1",
        description="Greets new leads",
        priority=3,
    )
    fetched = await core.workflows.get_workflow(wf.id)
    assert fetched == wf
    assert fetched.trigger.event == TriggerEvent.LEAD_CREATED
    assert fetched.trigger.conditions[0].field == "status"


async def test_create_rejects_active_workflow_without_actions(core: AutomationCore) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await core.workflows.create_workflow("Empty", {"event": "manual"}, [], created_by="admin-1")
    assert exc_info.value.code == "INVALID_WORKFLOW"
    assert exc_info.value.errors


async def test_create_rejects_unknown_event_and_operator(core: AutomationCore) -> None:
    with pytest.raises(ValidationError):
        await core.workflows.create_workflow(
            "Bad", {"event": "lead_deleted"}, _EMAIL, created_by="admin-1"
        )
    with pytest.raises(ValidationError):
        await core.workflows.create_workflow(
            "Bad",
            {"event": "manual", "conditions": [{"field": "x", "operator": "matches", "value": 1}]},
            _EMAIL,
            created_by="admin-1",
        )


async def test_get_unknown_workflow(core: AutomationCore) -> None:
    with pytest.raises(NotFoundError):
        await core.workflows.get_workflow("missing")


async def test_list_workflows_filters_orders_and_paginates(core: AutomationCore) -> None:
    low = await core.workflows.create_workflow("low", {"event": "manual"}, _EMAIL, created_by="a", priority=1)
    high = await core.workflows.create_workflow("high", {"event": "manual"}, _EMAIL, created_by="a", priority=9)
    other = await core.workflows.create_workflow(
        "other", {"event": "lead_created"}, _EMAIL, created_by="b", priority=5
    )
    await core.workflows.deactivate_workflow(other.id)

    items, total = await core.workflows.list_workflows()
    assert [w.id for w in items] == [high.id, other.id, low.id]
    assert total == 3

    items, total = await core.workflows.list_workflows(is_active=True)
    assert [w.id for w in items] == [high.id, low.id]

    items, _ = await core.workflows.list_workflows(created_by="b")
    assert [w.id for w in items] == [other.id]

    items, _ = await core.workflows.list_workflows(event=TriggerEvent.MANUAL)
    assert {w.id for w in items} == {high.id, low.id}

    items, total = await core.workflows.list_workflows(limit=1, offset=1)
    assert [w.id for w in items] == [other.id]
    assert total == 3


async def test_update_workflow_revalidates(core: AutomationCore) -> None:
    wf = await core.workflows.create_workflow("Welcome", {"event": "manual"}, _EMAIL, created_by="a")
    updated = await core.workflows.update_workflow(wf.id, name="Hello", priority=4)
    assert (updated.name, updated.priority) == ("Hello", 4)
    assert (await core.workflows.get_workflow(wf.id)).name == "Hello"

    with pytest.raises(ValidationError):
        await core.workflows.update_workflow(wf.id, actions=[])


@pytest.mark.parametrize(
    "field", ["id", "created_by", "created_at", "last_executed", "execution_count"]
)
async def test_update_rejects_immutable_fields(core: AutomationCore, field: str) -> None:
    wf = await core.workflows.create_workflow("Welcome", {"event": "manual"}, _EMAIL, created_by="a")
    with pytest.raises(ValidationError) as exc_info:
        await core.workflows.update_workflow(wf.id, **{field: None})
    assert exc_info.value.code == "IMMUTABLE_FIELD"


async def test_update_unknown_workflow(core: AutomationCore) -> None:
    with pytest.raises(NotFoundError):
        await core.workflows.update_workflow("missing", name="x")


async def test_activate_and_deactivate(core: AutomationCore, lead: Lead) -> None:
    wf = await core.workflows.create_workflow("Welcome", {"event": "manual"}, _EMAIL, created_by="a")
    assert (await core.workflows.deactivate_workflow(wf.id)).is_active is False
    with pytest.raises(BusinessLogicError):
        await core.workflows.execute_workflow(wf.id, lead.id, "admin-1")
    assert (await core.workflows.activate_workflow(wf.id)).is_active is True
    execution = await core.workflows.execute_workflow(wf.id, lead.id, "admin-1")
    assert execution.workflow_id == wf.id


# ---------------------------------------------------------------------------
# Executions
# ---------------------------------------------------------------------------


async def test_list_executions_filters_and_orders_newest_first(
    core: AutomationCore, lead: Lead, leads: Any, clock: Any
) -> None:
    leads.add(Lead(id="lead-2"))
    wf_a = await core.workflows.create_workflow("a", {"event": "manual"}, _EMAIL, created_by="x")
    wf_b = await core.workflows.create_workflow(
        "b", {"event": "manual"}, [{"type": "fax_lead"}], created_by="x"
    )

    first = await core.workflows.execute_workflow(wf_a.id, lead.id, "admin-1")
    clock.advance(minutes=1)
    second = await core.workflows.execute_workflow(wf_b.id, lead.id, "admin-1")
    clock.advance(minutes=1)
    third = await core.workflows.execute_workflow(wf_a.id, "lead-2", "admin-1")
    await core.engine.drain()

    items, total = await core.workflows.list_executions()
    assert [e.id for e in items] == [third.id, second.id, first.id]
    assert total == 3

    items, _ = await core.workflows.list_executions(workflow_id=wf_a.id)
    assert [e.id for e in items] == [third.id, first.id]

    items, _ = await core.workflows.list_executions(lead_id="lead-2")
    assert [e.id for e in items] == [third.id]

    items, total = await core.workflows.list_executions(status=ExecutionStatus.FAILED)
    assert [e.id for e in items] == [second.id]
    assert total == 1

    items, total = await core.workflows.list_executions(limit=2)
    assert len(items) == 2
    assert total == 3


async def test_get_and_cancel_execution_through_service(
    core: AutomationCore, lead: Lead
) -> None:
    wf = await core.workflows.create_workflow("a", {"event": "manual"}, _EMAIL, created_by="x")
    execution = await core.workflows.execute_workflow(wf.id, lead.id, "admin-1")
    cancelled = await core.workflows.cancel_execution(execution.id)
    assert cancelled.status == ExecutionStatus.CANCELLED
    assert (await core.workflows.get_execution(execution.id)).status == ExecutionStatus.CANCELLED
    with pytest.raises(NotFoundError):
        await core.workflows.get_execution("missing")
