"""ApprovalManager -- lifecycle of human approval gates.

Provides the full approval lifecycle:

- **create_request** -- open a time-boxed request addressed to a role and
  notify every active user holding it
- **get_request / list_requests** -- read requests with lazy expiry applied
- **respond** -- record an approve/reject decision
- **expire_stale_requests** -- persist ``expired`` for requests past their deadline

State machine::

    pending --> approved | rejected      (explicit decision)
    pending --> expired                  (now > expires_at, no decision)

Terminal states are final. A decision never changes the status of the
workflow execution that opened the request.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from leadflow.approvals.models import ApprovalRequest
from leadflow.collaborators.base import NotificationService, UserDirectory
from leadflow.core.config import AutomationConfig
from leadflow.core.constants import ApprovalStatus, UserRole
from leadflow.core.exceptions import (
    BusinessLogicError,
    NotFoundError,
    ValidationError,
)
from leadflow.core.types import Notification, utcnow

if TYPE_CHECKING:
    from leadflow.storage.base import ApprovalStore

logger = structlog.get_logger(__name__)

_DECISIONS = frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED})


class ApprovalManager:
    """Create, read and resolve :class:`ApprovalRequest` records.

    Args:
        store: Persistence for approval requests.
        users: Directory used to find approvers and validate responders.
        notifications: Delivers the "approval required" message.
        config: Supplies the default expiry window.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: ApprovalStore,
        users: UserDirectory,
        notifications: NotificationService,
        *,
        config: AutomationConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._users = users
        self._notifications = notifications
        self._config = config or AutomationConfig()
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #

    async def create_request(
        self,
        *,
        lead_id: str,
        requested_by: str,
        approver_role: UserRole | str,
        request_data: dict[str, Any] | None = None,
        workflow_execution_id: str | None = None,
        approver: str | None = None,
        expires_in_hours: float | None = None,
    ) -> ApprovalRequest:
        """Persist a pending request and notify all active holders of ``approver_role``.

        ``expires_at`` is exactly ``expires_in_hours`` (default
        :attr:`AutomationConfig.approval_expiry_hours`) after creation.

        Raises:
            ValidationError: If the role is unknown or the expiry is not positive.
        """
        try:
            role = UserRole(approver_role)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown approver role: {approver_role!r}",
                code="INVALID_APPROVER_ROLE",
            ) from exc

        hours = (
            self._config.approval_expiry_hours
            if expires_in_hours is None
            else float(expires_in_hours)
        )
        if hours <= 0:
            raise ValidationError(
                "expires_in_hours must be positive",
                code="INVALID_EXPIRY",
                details={"expires_in_hours": hours},
            )

        now = self._clock()
        request = ApprovalRequest(
            workflow_execution_id=workflow_execution_id,
            lead_id=lead_id,
            requested_by=requested_by,
            approver_role=role,
            approver=approver,
            request_data=dict(request_data or {}),
            expires_at=now + timedelta(hours=hours),
            created_at=now,
        )
        await self._store.save_request(request)
        logger.info(
            "approval_requested",
            approval_id=request.id,
            lead_id=lead_id,
            approver_role=role.value,
            expires_at=request.expires_at.isoformat(),
        )

        await self._notify_approvers(request)
        return request

    async def _notify_approvers(self, request: ApprovalRequest) -> None:
        if request.approver is not None:
            user = await self._users.find_by_id(request.approver)
            recipients = [user] if user is not None and user.is_active else []
        else:
            recipients = [
                u for u in await self._users.find_by_role(request.approver_role) if u.is_active
            ]

        for user in recipients:
            await self._notifications.send_notification(
                Notification(
                    recipient_id=user.id,
                    message="Approval required for lead assignment",
                    type="approval_request",
                    related_entity_type="approval_request",
                    related_entity_id=request.id,
                )
            )

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def _with_effective_status(self, request: ApprovalRequest, now: datetime) -> ApprovalRequest:
        status = request.effective_status(now)
        if status != request.status:
            request = request.model_copy(update={"status": status})
        return request

    async def get_request(self, request_id: str) -> ApprovalRequest:
        """Return the request with its logical status applied.

        Raises:
            NotFoundError: If no request has this id.
        """
        request = await self._store.get_request(request_id)
        if request is None:
            raise NotFoundError(
                f"Approval request {request_id} not found", code="APPROVAL_NOT_FOUND"
            )
        return self._with_effective_status(request, self._clock())

    async def list_requests(
        self,
        *,
        status: ApprovalStatus | None = None,
        approver_role: UserRole | None = None,
        approver: str | None = None,
        lead_id: str | None = None,
    ) -> list[ApprovalRequest]:
        """Return requests matching every given filter, newest first.

        ``status`` filters on the logical status, so a stale pending request
        is listed under ``expired``.
        """
        now = self._clock()
        results: list[ApprovalRequest] = []
        for request in await self._store.list_requests():
            request = self._with_effective_status(request, now)
            if status is not None and request.status != status:
                continue
            if approver_role is not None and request.approver_role != approver_role:
                continue
            if approver is not None and request.approver != approver:
                continue
            if lead_id is not None and request.lead_id != lead_id:
                continue
            results.append(request)
        results.sort(key=lambda r: r.created_at, reverse=True)
        return results

    # ------------------------------------------------------------------ #
    # Decisions
    # ------------------------------------------------------------------ #

    async def respond(
        self,
        request_id: str,
        approver_id: str,
        decision: ApprovalStatus | str,
        reason: str | None = None,
    ) -> ApprovalRequest:
        """Approve or reject a pending request.

        Args:
            request_id: The approval request identifier.
            approver_id: The user recording the decision.
            decision: ``"approved"`` or ``"rejected"``.
            reason: Optional free-text justification.

        Raises:
            ValidationError: If the decision is not approve/reject, or the
                responder is not an active holder of the target role (or an
                admin), or a specific approver was named and it is someone else.
            NotFoundError: If the request does not exist.
            BusinessLogicError: If the request is no longer pending.
        """
        if decision not in _DECISIONS:
            raise ValidationError(
                f"Invalid approval decision: {decision!r}",
                errors=["decision must be 'approved' or 'rejected'"],
                code="INVALID_DECISION",
            )
        status = ApprovalStatus(decision)

        request = await self._store.get_request(request_id)
        if request is None:
            raise NotFoundError(
                f"Approval request {request_id} not found", code="APPROVAL_NOT_FOUND"
            )

        responder = await self._users.find_by_id(approver_id)
        if responder is None or not responder.is_active:
            raise ValidationError(
                "Approver must be an active user", code="INVALID_APPROVER"
            )
        if responder.role not in (request.approver_role, UserRole.ADMIN):
            raise ValidationError(
                f"User {approver_id} does not hold the {request.approver_role} role",
                code="INSUFFICIENT_PERMISSIONS",
            )
        if request.approver is not None and request.approver != approver_id:
            raise ValidationError(
                f"Approval request {request_id} is addressed to another approver",
                code="INSUFFICIENT_PERMISSIONS",
            )

        now = self._clock()
        current = request.effective_status(now)
        if current != ApprovalStatus.PENDING:
            raise BusinessLogicError(
                f"Approval request {request_id} is already {current}",
                code="APPROVAL_NOT_PENDING",
                details={"status": current.value},
            )

        request.status = status
        request.responded_by = approver_id
        request.responded_at = now
        request.reason = reason
        await self._store.save_request(request)
        logger.info(
            "approval_decided",
            approval_id=request_id,
            decision=status.value,
            approver_id=approver_id,
        )
        return request

    async def expire_stale_requests(self) -> int:
        """Persist ``expired`` on every pending request past its deadline.

        Returns:
            The number of requests expired by this call.
        """
        now = self._clock()
        expired = 0
        for request in await self._store.list_requests():
            if request.status != ApprovalStatus.PENDING or now <= request.expires_at:
                continue
            request.status = ApprovalStatus.EXPIRED
            request.responded_at = now
            await self._store.save_request(request)
            expired += 1
        if expired:
            logger.info("approval_requests_expired", count=expired)
        return expired
