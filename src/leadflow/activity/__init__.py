"""Append-only activity log for assignments, reassignments and escalations."""
from leadflow.activity.log import ActivityLog
from leadflow.activity.models import Activity, ActivityStatistics
from leadflow.activity.sinks import ActivitySink, WebhookActivitySink

__all__ = [
    "Activity",
    "ActivityLog",
    "ActivitySink",
    "ActivityStatistics",
    "WebhookActivitySink",
]
