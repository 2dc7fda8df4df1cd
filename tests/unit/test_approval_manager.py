"""Tests for ApprovalManager -- creation, decisions and lazy/persisted expiry."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest

from leadflow.approvals.manager import ApprovalManager
from leadflow.collaborators.memory import InMemoryNotificationService, InMemoryUserDirectory
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import ApprovalStatus, UserRole
from leadflow.core.exceptions import BusinessLogicError, NotFoundError, ValidationError
from leadflow.core.types import User
from leadflow.storage.memory import InMemoryApprovalStore


def _make_manager(
    users: InMemoryUserDirectory,
    notifications: InMemoryNotificationService,
    clock: Any,
    **config: Any,
) -> tuple[InMemoryApprovalStore, ApprovalManager]:
    store = InMemoryApprovalStore()
    return store, ApprovalManager(
        store, users, notifications, config=AutomationConfig(**config), clock=clock
    )


@pytest.fixture
def manager(
    users: InMemoryUserDirectory, notifications: InMemoryNotificationService, clock: Any
) -> ApprovalManager:
    return _make_manager(users, notifications, clock)[1]


async def _request(manager: ApprovalManager, **kwargs: Any) -> Any:
    defaults: dict[str, Any] = {
        "lead_id": "lead-1",
        "requested_by": "alice",
        "approver_role": UserRole.MANAGER,
    }
    defaults.update(kwargs)
    return await manager.create_request(**defaults)


# ---------------------------------------------------------------------------
# create_request
# ---------------------------------------------------------------------------


async def test_create_request_defaults(manager: ApprovalManager, clock: Any) -> None:
    request = await _request(manager, request_data={"discount": 20})
    assert request.status == ApprovalStatus.PENDING
    assert request.created_at == clock.now
    assert request.expires_at == clock.now + timedelta(hours=24)
    assert request.request_data == {"discount": 20}
    assert request.responded_by is None
    assert await manager.get_request(request.id) == request


async def test_create_request_custom_expiry(manager: ApprovalManager, clock: Any) -> None:
    request = await _request(manager, expires_in_hours=2)
    assert request.expires_at == clock.now + timedelta(hours=2)


async def test_create_request_uses_configured_default_expiry(
    users: InMemoryUserDirectory, notifications: InMemoryNotificationService, clock: Any
) -> None:
    _, manager = _make_manager(users, notifications, clock, approval_expiry_hours=48)
    request = await _request(manager)
    assert request.expires_at == clock.now + timedelta(hours=48)


async def test_create_request_rejects_bad_role_and_expiry(manager: ApprovalManager) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await _request(manager, approver_role="overlord")
    assert exc_info.value.code == "INVALID_APPROVER_ROLE"
    with pytest.raises(ValidationError) as exc_info:
        await _request(manager, expires_in_hours=0)
    assert exc_info.value.code == "INVALID_EXPIRY"


async def test_create_request_notifies_active_role_holders(
    manager: ApprovalManager,
    users: InMemoryUserDirectory,
    notifications: InMemoryNotificationService,
) -> None:
    users.add(User(id="mgr-2", role=UserRole.MANAGER, department="sales"))
    users.add(User(id="mgr-off", role=UserRole.MANAGER, is_active=False))

    request = await _request(manager)

    assert sorted(n.recipient_id for n in notifications.sent) == ["mgr-1", "mgr-2"]
    note = notifications.sent[0]
    assert note.message == "Approval required for lead assignment"
    assert note.type == "approval_request"
    assert (note.related_entity_type, note.related_entity_id) == ("approval_request", request.id)


async def test_create_request_with_named_approver_notifies_only_them(
    manager: ApprovalManager, notifications: InMemoryNotificationService
) -> None:
    await _request(manager, approver_role=UserRole.ADMIN, approver="admin-1")
    assert [n.recipient_id for n in notifications.sent] == ["admin-1"]


# ---------------------------------------------------------------------------
# respond
# ---------------------------------------------------------------------------


async def test_approve_records_decision(manager: ApprovalManager, clock: Any) -> None:
    request = await _request(manager)
    clock.advance(hours=1)

    decided = await manager.respond(request.id, "mgr-1", "approved", "Within discount policy")

    assert decided.status == ApprovalStatus.APPROVED
    assert decided.responded_by == "mgr-1"
    assert decided.responded_at == clock.now
    assert decided.reason == "Within discount policy"
    assert (await manager.get_request(request.id)).status == ApprovalStatus.APPROVED


async def test_admin_may_decide_any_role(manager: ApprovalManager) -> None:
    request = await _request(manager)
    decided = await manager.respond(request.id, "admin-1", ApprovalStatus.REJECTED)
    assert decided.status == ApprovalStatus.REJECTED


async def test_respond_rejects_invalid_decision(manager: ApprovalManager) -> None:
    request = await _request(manager)
    for decision in ("maybe", "pending", "expired"):
        with pytest.raises(ValidationError) as exc_info:
            await manager.respond(request.id, "mgr-1", decision)
        assert exc_info.value.code == "INVALID_DECISION"


async def test_respond_unknown_request(manager: ApprovalManager) -> None:
    with pytest.raises(NotFoundError):
        await manager.respond("missing", "mgr-1", "approved")


async def test_respond_requires_matching_role(manager: ApprovalManager) -> None:
    request = await _request(manager)
    with pytest.raises(ValidationError) as exc_info:
        await manager.respond(request.id, "alice", "approved")
    assert exc_info.value.code == "INSUFFICIENT_PERMISSIONS"


async def test_respond_requires_active_known_user(
    manager: ApprovalManager, users: InMemoryUserDirectory
) -> None:
    users.add(User(id="mgr-off", role=UserRole.MANAGER, is_active=False))
    request = await _request(manager)
    for approver in ("ghost", "mgr-off"):
        with pytest.raises(ValidationError) as exc_info:
            await manager.respond(request.id, approver, "approved")
        assert exc_info.value.code == "INVALID_APPROVER"


async def test_respond_enforces_named_approver(
    manager: ApprovalManager, users: InMemoryUserDirectory
) -> None:
    users.add(User(id="mgr-2", role=UserRole.MANAGER, department="sales"))
    request = await _request(manager, approver="mgr-2")
    with pytest.raises(ValidationError):
        await manager.respond(request.id, "mgr-1", "approved")
    assert (await manager.respond(request.id, "mgr-2", "approved")).status == ApprovalStatus.APPROVED


async def test_decision_is_final(manager: ApprovalManager) -> None:
    request = await _request(manager)
    await manager.respond(request.id, "mgr-1", "approved")
    with pytest.raises(BusinessLogicError) as exc_info:
        await manager.respond(request.id, "mgr-1", "rejected")
    assert exc_info.value.code == "APPROVAL_NOT_PENDING"


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


async def test_expiry_boundary_is_inclusive_of_deadline(manager: ApprovalManager, clock: Any) -> None:
    request = await _request(manager, expires_in_hours=1)
    clock.advance(hours=1)
    assert (await manager.get_request(request.id)).status == ApprovalStatus.PENDING
    clock.advance(seconds=1)
    assert (await manager.get_request(request.id)).status == ApprovalStatus.EXPIRED


async def test_stale_request_cannot_be_decided(manager: ApprovalManager, clock: Any) -> None:
    request = await _request(manager)
    clock.advance(hours=25)
    with pytest.raises(BusinessLogicError) as exc_info:
        await manager.respond(request.id, "mgr-1", "approved")
    assert exc_info.value.details == {"status": "expired"}


async def test_expire_stale_requests_persists_and_counts(
    users: InMemoryUserDirectory, notifications: InMemoryNotificationService, clock: Any
) -> None:
    store, manager = _make_manager(users, notifications, clock)
    stale = await _request(manager, expires_in_hours=1)
    fresh = await _request(manager, expires_in_hours=48)
    decided = await _request(manager, expires_in_hours=1)
    await manager.respond(decided.id, "mgr-1", "approved")
    clock.advance(hours=2)

    assert await manager.expire_stale_requests() == 1
    assert await manager.expire_stale_requests() == 0

    persisted = await store.get_request(stale.id)
    assert persisted is not None
    assert persisted.status == ApprovalStatus.EXPIRED
    assert persisted.responded_at == clock.now
    assert (await manager.get_request(fresh.id)).status == ApprovalStatus.PENDING
    assert (await manager.get_request(decided.id)).status == ApprovalStatus.APPROVED


# ---------------------------------------------------------------------------
# list_requests
# ---------------------------------------------------------------------------


async def test_list_requests_filters_newest_first(manager: ApprovalManager, clock: Any) -> None:
    first = await _request(manager, expires_in_hours=1)
    clock.advance(minutes=5)
    second = await _request(manager, lead_id="lead-2", approver_role=UserRole.ADMIN)
    clock.advance(minutes=5)
    third = await _request(manager, approver="mgr-1")

    assert [r.id for r in await manager.list_requests()] == [third.id, second.id, first.id]
    assert [r.id for r in await manager.list_requests(lead_id="lead-2")] == [second.id]
    assert [r.id for r in await manager.list_requests(approver_role=UserRole.ADMIN)] == [second.id]
    assert [r.id for r in await manager.list_requests(approver="mgr-1")] == [third.id]

    clock.advance(hours=1)
    expired = await manager.list_requests(status=ApprovalStatus.EXPIRED)
    assert [r.id for r in expired] == [first.id]
    pending = await manager.list_requests(status=ApprovalStatus.PENDING)
    assert {r.id for r in pending} == {second.id, third.id}
