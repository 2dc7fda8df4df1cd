from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from leadflow.core.constants import ApprovalStatus, UserRole
from leadflow.core.types import new_id, utcnow


class ApprovalRequest(BaseModel):
    """A human decision requested by a ``request_approval`` workflow action.

    ``status`` is the persisted value. A pending request whose
    ``expires_at`` has passed is logically expired even before a sweep
    persists it, so readers should use :meth:`effective_status`.
    """

    id: str = Field(default_factory=new_id)
    workflow_execution_id: str | None = None
    lead_id: str
    requested_by: str
    approver_role: UserRole
    approver: str | None = None
    status: ApprovalStatus = ApprovalStatus.PENDING
    request_data: dict[str, Any] = Field(default_factory=dict)
    reason: str | None = None
    responded_by: str | None = None
    responded_at: datetime | None = None
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)

    def effective_status(self, now: datetime) -> ApprovalStatus:
        if self.status == ApprovalStatus.PENDING and now > self.expires_at:
            return ApprovalStatus.EXPIRED
        return self.status

    def is_pending(self, now: datetime) -> bool:
        return self.effective_status(now) == ApprovalStatus.PENDING
