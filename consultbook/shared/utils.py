"""Shared utility functions."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone, tzinfo

MINUTES_PER_DAY = 24 * 60

_HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_minute_of_day(value: str | None) -> int | None:
    """Parse HH:MM into minutes since midnight, None when malformed."""
    if not value:
        return None
    match = _HHMM_PATTERN.match(value.strip())
    if match is None:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def weekday_sunday_first(day: date) -> int:
    """Return day of week with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def to_local_parts(instant: datetime, zone: tzinfo) -> tuple[date, int]:
    """Split an instant into regional (date, minute-of-day)."""
    local = ensure_utc(instant).astimezone(zone)
    return local.date(), local.hour * 60 + local.minute


def local_day_bounds(day: date, zone: tzinfo) -> tuple[datetime, datetime]:
    """Return UTC [start, end) of a regional calendar day."""
    start_local = datetime.combine(day, time.min, tzinfo=zone)
    end_local = datetime.combine(date.fromordinal(day.toordinal() + 1), time.min, tzinfo=zone)
    return ensure_utc(start_local), ensure_utc(end_local)


def combine_local(day: date, hhmm: str, zone: tzinfo) -> datetime:
    """Build a UTC instant from a regional date and HH:MM string."""
    minute = parse_minute_of_day(hhmm)
    if minute is None:
        raise ValueError(f"Invalid time '{hhmm}', expected HH:MM")
    local = datetime.combine(day, time(minute // 60, minute % 60), tzinfo=zone)
    return ensure_utc(local)
