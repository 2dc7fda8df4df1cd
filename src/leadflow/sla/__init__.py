from leadflow.sla.models import EscalationRecord, SLAStatus
from leadflow.sla.tracker import SLATracker

__all__ = ["EscalationRecord", "SLAStatus", "SLATracker"]
