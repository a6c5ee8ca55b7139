from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import tz

from config import ScheduledSurface
from errors import CandidateErrorName, SchedulingError
from validation import format_path, parse_calendar_date


logger = logging.getLogger(__name__)

CANNOT_COMPUTE = "cannot compute the time difference"


@dataclass(frozen=True)
class ScheduleCheck:
    scheduled_date: Any
    surface_guid: str
    iana_timezone: str
    hours_until: Optional[float] = None
    required_hours: Optional[int] = None
    day_range: str = ""
    failure_reason: str = ""

    @property
    def ok(self) -> bool:
        return not self.failure_reason

    @property
    def error_name(self) -> Optional[CandidateErrorName]:
        if self.required_hours is None or self.ok:
            return None
        return CandidateErrorName.INSUFFICIENT_TIME_BEFORE_SCHEDULED_DATE


def scheduled_publish_time(scheduled_date: Any, surface: ScheduledSurface) -> Optional[datetime]:
    """Local publish time for a ``YYYY-MM-DD`` date on a surface, or None if unusable."""
    day = parse_calendar_date(scheduled_date)
    zone = tz.gettz(surface.iana_timezone)
    if day is None or zone is None:
        return None
    return datetime(day.year, day.month, day.day, surface.publish_hour_local, tzinfo=zone)


def hours_between(start: datetime, end: datetime) -> float:
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    # convert both sides so DST transitions count in real elapsed hours
    delta = end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return delta.total_seconds() / 3600.0


def check_scheduled_date(scheduled_date: Any, surface: ScheduledSurface, now: Optional[datetime] = None) -> ScheduleCheck:
    base = dict(scheduled_date=scheduled_date, surface_guid=surface.guid, iana_timezone=surface.iana_timezone)
    publish_at = scheduled_publish_time(scheduled_date, surface)
    if publish_at is None:
        return ScheduleCheck(failure_reason=CANNOT_COMPUTE, **base)

    now = now or datetime.now(timezone.utc)
    hours_until = hours_between(now, publish_at)
    if not math.isfinite(hours_until):
        return ScheduleCheck(failure_reason=CANNOT_COMPUTE, **base)

    rule = surface.rule_for(publish_at.isoweekday())
    reason = ""
    if hours_until < rule.min_hours:
        reason = (
            f"candidate scheduled for {rule.label} needs to arrive minimum "
            f"{rule.min_hours} hours in advance ({surface.iana_timezone})"
        )
    return ScheduleCheck(
        hours_until=hours_until,
        required_hours=rule.min_hours,
        day_range=rule.label,
        failure_reason=reason,
        **base,
    )


def validate_scheduled_date(
    scheduled_date: Any,
    surface: ScheduledSurface,
    now: Optional[datetime] = None,
    candidate_id: str = "",
) -> ScheduleCheck:
    """Raise SchedulingError unless the date leaves the surface's lead time for its weekday."""
    check = check_scheduled_date(scheduled_date, surface, now)
    if not check.ok:
        logger.info(
            "scheduled_date_rejected id=%s surface=%s date=%s hours_until=%s required=%s",
            candidate_id,
            surface.guid,
            scheduled_date,
            "nan" if check.hours_until is None else f"{check.hours_until:.2f}",
            check.required_hours,
        )
        raise SchedulingError(
            f"validateScheduledDate: {check.failure_reason}",
            candidate_id=candidate_id,
            path=format_path(("scheduled_corpus_item", "scheduled_date")),
            field="scheduled_date",
            error_name=check.error_name,
        )
    return check
