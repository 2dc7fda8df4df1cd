"""Tests for activity/ — lead timelines, statistics and webhook forwarding."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
from structlog.testing import capture_logs

from leadflow.activity.log import ActivityLog
from leadflow.activity.models import Activity
from leadflow.activity.sinks import ActivitySink, WebhookActivitySink
from leadflow.core.constants import ActivityType

_T0 = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _entry(
    lead_id: str = "lead-1",
    type: ActivityType = ActivityType.LEAD_ASSIGNED,
    at: datetime = _T0,
    **kwargs: object,
) -> Activity:
    return Activity(lead_id=lead_id, type=type, subject="Lead assigned", performed_at=at, **kwargs)  # type: ignore[arg-type]


class _RecordingSink(ActivitySink):
    def __init__(self) -> None:
        self.written: list[Activity] = []

    async def write(self, entry: Activity) -> None:
        self.written.append(entry)


class _BrokenSink(ActivitySink):
    async def write(self, entry: Activity) -> None:
        raise RuntimeError("crm unreachable")

    async def close(self) -> None:
        raise RuntimeError("crm unreachable")


# ---------------------------------------------------------------------------
# Activity model
# ---------------------------------------------------------------------------


def test_activity_defaults() -> None:
    entry = Activity(lead_id="lead-1", type=ActivityType.LEAD_ASSIGNED, subject="Lead assigned")
    assert len(entry.activity_id) == 16
    assert entry.details == {}
    assert entry.performed_by == "system"
    assert entry.performed_at.tzinfo is not None


# ---------------------------------------------------------------------------
# Timelines
# ---------------------------------------------------------------------------


async def test_lead_timeline_is_per_lead_newest_first() -> None:
    log = ActivityLog()
    await log.create(_entry("l1", at=_T0))
    await log.create(_entry("l2", at=_T0 + timedelta(minutes=5)))
    await log.create(_entry("l1", ActivityType.LEAD_ESCALATED, at=_T0 + timedelta(hours=25)))

    timeline = await log.get_lead_timeline("l1")

    assert [e.type for e in timeline] == [ActivityType.LEAD_ESCALATED, ActivityType.LEAD_ASSIGNED]
    assert await log.get_lead_timeline("unknown") == []
    assert len(await log.get_lead_timeline("l1", limit=1)) == 1


async def test_same_timestamp_keeps_latest_recorded_first() -> None:
    log = ActivityLog()
    first = await log.create(_entry("l1"))
    second = await log.create(_entry("l1", ActivityType.LEAD_REASSIGNED))
    assert [e.activity_id for e in await log.get_lead_timeline("l1")] == [
        second.activity_id,
        first.activity_id,
    ]
    assert [e.activity_id for e in log.entries] == [first.activity_id, second.activity_id]


async def test_timeline_retention_is_per_lead() -> None:
    log = ActivityLog(max_entries_per_lead=2)
    for i in range(4):
        await log.create(_entry("busy", at=_T0 + timedelta(minutes=i)))
    await log.create(_entry("quiet"))

    busy = await log.get_lead_timeline("busy")
    assert [e.performed_at.minute for e in busy] == [3, 2]
    assert len(await log.get_lead_timeline("quiet")) == 1


async def test_query_filters_across_leads() -> None:
    log = ActivityLog()
    await log.create(_entry("l1", at=_T0, performed_by="mgr-1"))
    await log.create(_entry("l1", ActivityType.LEAD_ESCALATED, at=_T0 + timedelta(days=1)))
    await log.create(_entry("l2", at=_T0 + timedelta(days=2), performed_by="mgr-1"))

    assert [e.lead_id for e in await log.query(performed_by="mgr-1")] == ["l2", "l1"]
    assert len(await log.query(activity_type=ActivityType.LEAD_ESCALATED)) == 1
    assert len(await log.query(since=_T0 + timedelta(hours=1))) == 2
    assert len(await log.query(until=_T0 + timedelta(days=1))) == 2
    assert [e.lead_id for e in await log.query(lead_id="l2")] == ["l2"]
    assert [e.lead_id for e in await log.query(limit=1)] == ["l2"]


async def test_activity_statistics() -> None:
    log = ActivityLog()
    await log.create(_entry("l1", at=_T0, performed_by="mgr-1"))
    await log.create(_entry("l1", ActivityType.LEAD_REASSIGNED, at=_T0 + timedelta(hours=2), performed_by="mgr-1"))
    await log.create(_entry("l2", ActivityType.LEAD_ESCALATED, at=_T0 + timedelta(hours=30)))

    per_lead = await log.get_activity_statistics("l1")
    assert per_lead.lead_id == "l1"
    assert per_lead.total_activities == 2
    assert per_lead.activities_by_type == {"lead_assigned": 1, "lead_reassigned": 1}
    assert per_lead.activities_by_performer == {"mgr-1": 2}
    assert per_lead.last_activity_at == _T0 + timedelta(hours=2)

    overall = await log.get_activity_statistics()
    assert overall.total_activities == 3
    assert overall.activities_by_performer == {"mgr-1": 2, "system": 1}

    empty = await log.get_activity_statistics("nobody")
    assert (empty.total_activities, empty.last_activity_at) == (0, None)


# ---------------------------------------------------------------------------
# Forwarding to sinks
# ---------------------------------------------------------------------------


async def test_create_forwards_to_every_sink() -> None:
    a, b = _RecordingSink(), _RecordingSink()
    log = ActivityLog([a])
    assert log.add_sink(b) is log

    entry = await log.create(_entry())

    assert a.written == [entry]
    assert b.written == [entry]


async def test_sink_failure_is_logged_and_entry_kept() -> None:
    recording = _RecordingSink()
    log = ActivityLog([_BrokenSink(), recording])

    with capture_logs() as logs:
        entry = await log.create(_entry("l1"))

    assert await log.get_lead_timeline("l1") == [entry]
    assert recording.written == [entry]
    [event] = logs
    assert event["event"] == "activity_sink_error"
    assert event["sink"] == "_BrokenSink"
    assert event["lead_id"] == "l1"


async def test_close_tolerates_sink_errors() -> None:
    log = ActivityLog([_BrokenSink(), _RecordingSink()])
    with capture_logs() as logs:
        await log.close()
    assert [e["event"] for e in logs] == ["activity_sink_close_error"]


# ---------------------------------------------------------------------------
# WebhookActivitySink
# ---------------------------------------------------------------------------


async def test_webhook_sink_posts_signed_envelope() -> None:
    received: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(204)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sink = WebhookActivitySink(
        "https://crm.example.test/hooks/activity",
        headers={"X-Token": "secret"},
        secret="s3cret",
        http_client=client,
    )
    entry = _entry("l1", details={"reason": "Manual assignment"})
    await sink.write(entry)
    await sink.close()

    [request] = received
    assert request.method == "POST"
    assert request.headers["X-Token"] == "secret"
    assert request.headers["X-Leadflow-Event"] == "lead_assigned"
    assert request.headers["X-Leadflow-Signature"] == WebhookActivitySink.compute_signature(
        request.content, "s3cret"
    )
    body = json.loads(request.content)
    assert body["event"] == "lead_assigned"
    assert body["lead_id"] == "l1"
    assert body["activity"]["activity_id"] == entry.activity_id
    assert body["activity"]["details"] == {"reason": "Manual assignment"}
    assert client.is_closed


async def test_webhook_sink_without_secret_is_unsigned() -> None:
    received: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    await WebhookActivitySink("https://crm.example.test/x", http_client=client).write(_entry())
    assert "X-Leadflow-Signature" not in received[0].headers
    await client.aclose()


async def test_webhook_http_error_surfaces_through_log_as_warning() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    log = ActivityLog([WebhookActivitySink("https://crm.example.test/x", http_client=client)])

    with capture_logs() as logs:
        await log.create(_entry())

    assert len(log.entries) == 1
    assert [e["event"] for e in logs] == ["activity_sink_error"]
    assert logs[0]["sink"] == "WebhookActivitySink"
    await client.aclose()
