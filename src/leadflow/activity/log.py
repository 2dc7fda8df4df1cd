"""Per-lead activity timelines with forwarding to external sinks."""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import Iterable
from datetime import datetime

import structlog

from leadflow.activity.models import Activity, ActivityStatistics
from leadflow.activity.sinks import ActivitySink
from leadflow.core.constants import ActivityType

logger = structlog.get_logger(__name__)


def _newest_first(entries: Iterable[Activity]) -> list[Activity]:
    # reversed() first so entries sharing a timestamp keep latest-recorded first
    return sorted(reversed(list(entries)), key=lambda e: e.performed_at, reverse=True)


class ActivityLog:
    """The activity recorder handed to routing and SLA tracking.

    Each :class:`Activity` is appended to its lead's timeline, which is what
    :meth:`get_lead_timeline`, :meth:`query` and
    :meth:`get_activity_statistics` read back. The entry is then forwarded
    to every registered :class:`ActivitySink`; a sink failure is logged and
    never undoes the write, so an unreachable CRM cannot roll back an
    assignment.

    Example::

        activities = ActivityLog([WebhookActivitySink("https://crm.example/hooks")])
        core = AutomationCore(..., activities=activities)
        await core.routing.assign_lead("lead-1")
        timeline = await activities.get_lead_timeline("lead-1")
    """

    def __init__(
        self,
        sinks: list[ActivitySink] | None = None,
        *,
        max_entries_per_lead: int = 500,
    ) -> None:
        self._sinks: list[ActivitySink] = list(sinks) if sinks else []
        self._max_per_lead = max_entries_per_lead
        self._timelines: dict[str, deque[Activity]] = {}

    def add_sink(self, sink: ActivitySink) -> ActivityLog:
        """Register a new sink.  Returns ``self`` for chaining."""
        self._sinks.append(sink)
        return self

    @property
    def entries(self) -> list[Activity]:
        """Every retained activity, oldest first."""
        merged = [e for timeline in self._timelines.values() for e in timeline]
        return sorted(merged, key=lambda e: e.performed_at)

    async def create(self, entry: Activity) -> Activity:
        """Record *entry* on its lead's timeline and forward it to the sinks."""
        timeline = self._timelines.get(entry.lead_id)
        if timeline is None:
            timeline = self._timelines[entry.lead_id] = deque(maxlen=self._max_per_lead)
        timeline.append(entry)

        for sink in self._sinks:
            try:
                await sink.write(entry)
            except Exception:
                logger.warning(
                    "activity_sink_error",
                    sink=type(sink).__name__,
                    activity_id=entry.activity_id,
                    lead_id=entry.lead_id,
                    exc_info=True,
                )
        return entry

    async def get_lead_timeline(self, lead_id: str, limit: int = 100) -> list[Activity]:
        """Return the newest ``limit`` activities of one lead, newest first."""
        return _newest_first(self._timelines.get(lead_id, ()))[:limit]

    async def query(
        self,
        lead_id: str | None = None,
        activity_type: ActivityType | None = None,
        performed_by: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 100,
    ) -> list[Activity]:
        """Filter activities across leads, newest first."""
        if lead_id is not None:
            candidates: Iterable[Activity] = self._timelines.get(lead_id, ())
        else:
            candidates = self.entries
        results = [
            e
            for e in candidates
            if (activity_type is None or e.type == activity_type)
            and (performed_by is None or e.performed_by == performed_by)
            and (since is None or e.performed_at >= since)
            and (until is None or e.performed_at <= until)
        ]
        return _newest_first(results)[:limit]

    async def get_activity_statistics(self, lead_id: str | None = None) -> ActivityStatistics:
        if lead_id is not None:
            entries = list(self._timelines.get(lead_id, ()))
        else:
            entries = self.entries
        return ActivityStatistics(
            lead_id=lead_id,
            total_activities=len(entries),
            activities_by_type=dict(Counter(e.type.value for e in entries)),
            activities_by_performer=dict(Counter(e.performed_by for e in entries)),
            last_activity_at=max((e.performed_at for e in entries), default=None),
        )

    async def close(self) -> None:
        """Close all registered sinks."""
        for sink in self._sinks:
            try:
                await sink.close()
            except Exception:
                logger.warning(
                    "activity_sink_close_error",
                    sink=type(sink).__name__,
                    exc_info=True,
                )
