"""Time and timezone helpers for slot math.

All interval arithmetic is done on aware UTC datetimes. The database stores
naive UTC; ``to_db`` and ``from_db`` convert at the persistence boundary.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ...shared.validators import validate_timezone_name

UTC = timezone.utc


def utcnow() -> datetime:
    return datetime.now(UTC)


def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(validate_timezone_name(name))


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to already be UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_db(value: datetime) -> datetime:
    """Naive UTC for storage"""
    return as_utc(value).replace(tzinfo=None)


def from_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=UTC)


def day_of_week(day: date) -> int:
    """0=Sunday ... 6=Saturday"""
    return (day.weekday() + 1) % 7


def localize(day: date, wall_time: time, zone: ZoneInfo) -> Optional[datetime]:
    """
    Attach ``zone`` to a local wall-clock time and return the UTC instant.

    Returns None for wall-clock times that do not exist in the zone (the hour
    skipped when DST starts). Repeated wall-clock times resolve to their first
    occurrence (fold=0).
    """
    local = datetime.combine(day, wall_time, tzinfo=zone)
    instant = local.astimezone(UTC)
    if instant.astimezone(zone).replace(tzinfo=None) != local.replace(tzinfo=None):
        return None
    return instant


def local_day_bounds(day: date, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants of [00:00, next day 00:00) for a calendar day in ``zone``"""
    start = datetime.combine(day, time.min, tzinfo=zone).astimezone(UTC)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone).astimezone(UTC)
    return start, end


def local_dates_between(start: datetime, end: datetime, zone: ZoneInfo) -> list[date]:
    """Calendar dates in ``zone`` touched by the instant range [start, end)"""
    first = start.astimezone(zone).date()
    last = (end - timedelta(microseconds=1)).astimezone(zone).date()
    days = []
    current = first
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


def format_hhmm(instant: datetime, zone: ZoneInfo) -> str:
    return instant.astimezone(zone).strftime("%H:%M")


def format_display_time(instant: datetime, zone: ZoneInfo) -> str:
    """12h display form, e.g. '9:00 AM'"""
    local = instant.astimezone(zone)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


COMMON_TIMEZONES = [
    {"value": "America/New_York", "label": "Eastern Time (ET)", "offset": "UTC-5/-4"},
    {"value": "America/Chicago", "label": "Central Time (CT)", "offset": "UTC-6/-5"},
    {"value": "America/Denver", "label": "Mountain Time (MT)", "offset": "UTC-7/-6"},
    {"value": "America/Los_Angeles", "label": "Pacific Time (PT)", "offset": "UTC-8/-7"},
    {"value": "America/Phoenix", "label": "Arizona Time (MST)", "offset": "UTC-7"},
    {"value": "America/Anchorage", "label": "Alaska Time (AKT)", "offset": "UTC-9/-8"},
    {"value": "Pacific/Honolulu", "label": "Hawaii Time (HST)", "offset": "UTC-10"},
    {"value": "Europe/London", "label": "Greenwich Mean Time (GMT)", "offset": "UTC+0/+1"},
    {"value": "Europe/Paris", "label": "Central European Time (CET)", "offset": "UTC+1/+2"},
    {"value": "Europe/Berlin", "label": "Central European Time (CET)", "offset": "UTC+1/+2"},
    {"value": "Asia/Tokyo", "label": "Japan Standard Time (JST)", "offset": "UTC+9"},
    {"value": "Asia/Shanghai", "label": "China Standard Time (CST)", "offset": "UTC+8"},
    {"value": "Asia/Dubai", "label": "Gulf Standard Time (GST)", "offset": "UTC+4"},
    {"value": "Asia/Kolkata", "label": "India Standard Time (IST)", "offset": "UTC+5:30"},
    {"value": "Australia/Sydney", "label": "Australian Eastern Time (AET)", "offset": "UTC+10/+11"},
    {"value": "UTC", "label": "Coordinated Universal Time (UTC)", "offset": "UTC+0"},
]


def get_common_timezones() -> list[dict]:
    return list(COMMON_TIMEZONES)
