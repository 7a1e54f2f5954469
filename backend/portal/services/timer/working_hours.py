"""College working-hours arithmetic.

Instants are compared in absolute time; weekday and time-of-day checks are
made in the institution's zone. College runs Monday to Saturday, 08:45 to
16:20. There are no holidays or per-scope overrides.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Tuple, Union
from zoneinfo import ZoneInfo


WORKDAY_START = time(8, 45)
WORKDAY_END = time(16, 20)
SUNDAY = 6  # datetime.weekday()
DEFAULT_TIMEZONE = 'Asia/Kolkata'
# 08:45 -> 16:20
WORKDAY_SECONDS = 7 * 3600 + 35 * 60

TzLike = Union[str, tzinfo, None]


def resolve_timezone(tz: TzLike = None) -> tzinfo:
    if tz is None:
        tz = DEFAULT_TIMEZONE
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def as_aware(instant: datetime) -> datetime:
    """Naive datetimes are taken as UTC, which is how SQLite hands them back."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(value) -> datetime:
    """ISO-8601 string (``Z`` suffix allowed) or datetime, returned aware."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    return as_aware(value)


def is_working_moment(instant: datetime, tz: TzLike = None) -> bool:
    local = as_aware(instant).astimezone(resolve_timezone(tz))
    if local.weekday() == SUNDAY:
        return False
    return WORKDAY_START <= local.time() < WORKDAY_END


def _working_window(day: date, zone: tzinfo) -> Tuple[datetime, datetime]:
    opens = datetime.combine(day, WORKDAY_START, tzinfo=zone)
    closes = datetime.combine(day, WORKDAY_END, tzinfo=zone)
    return opens.astimezone(timezone.utc), closes.astimezone(timezone.utc)


def working_seconds_between(start: datetime, end: datetime, tz: TzLike = None) -> int:
    """Whole seconds of ``[start, end)`` that fall inside working windows.

    Walks the local calendar one day at a time and sums the overlap with
    each non-Sunday ``[08:45, 16:20)`` window. The total is floored once at
    the end so sub-second slivers never round up.
    """
    start = as_aware(start).astimezone(timezone.utc)
    end = as_aware(end).astimezone(timezone.utc)
    if end <= start:
        return 0

    zone = resolve_timezone(tz)
    day = start.astimezone(zone).date()
    last_day = end.astimezone(zone).date()
    total = timedelta(0)
    while day <= last_day:
        if day.weekday() != SUNDAY:
            opens, closes = _working_window(day, zone)
            active_start = max(start, opens)
            active_end = min(end, closes)
            if active_start < active_end:
                total += active_end - active_start
        day += timedelta(days=1)
    return total // timedelta(seconds=1)
