"""Working-hours checks used when a rule targets a specific user or team."""
from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from leadflow.core.exceptions import ConfigurationError
from leadflow.core.types import User, WorkingHours

logger = structlog.get_logger(__name__)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(
            f"Unknown working-hours timezone: {name!r}",
            code="INVALID_TIMEZONE",
            details={"timezone": name},
        ) from exc


def is_within_working_hours(hours: WorkingHours, now: datetime) -> bool:
    """Return True when ``now`` falls inside the calendar's window for that day.

    ``now`` must be timezone-aware; it is converted to ``hours.timezone``
    before the weekday and ``HH:MM`` comparison. Both window ends are
    inclusive. A day without a start and end time is not a working day.
    """
    local = now.astimezone(_zone(hours.timezone))
    day = hours.for_weekday(local.weekday())
    if not day.is_working_day or not day.start_time or not day.end_time:
        return False
    current = local.strftime("%H:%M")
    return day.start_time <= current <= day.end_time


def is_user_available(
    user: User | None,
    now: datetime,
    rule_hours: WorkingHours | None = None,
) -> bool:
    """Active, and inside the rule's working hours or else the user's own.

    A user with no calendar on either side is always available.
    """
    if user is None or not user.is_active:
        return False
    hours = rule_hours or user.working_hours
    if hours is None:
        return True
    available = is_within_working_hours(hours, now)
    if not available:
        logger.debug("user_outside_working_hours", user_id=user.id, timezone=hours.timezone)
    return available
