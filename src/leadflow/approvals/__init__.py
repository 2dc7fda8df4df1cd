"""Human approval gates opened by workflow actions."""
from leadflow.approvals.manager import ApprovalManager
from leadflow.approvals.models import ApprovalRequest

__all__ = ["ApprovalManager", "ApprovalRequest"]
