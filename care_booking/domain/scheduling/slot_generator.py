"""Pure slot computation - no database, no network"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, Optional, Sequence

from ...shared.validators import time_to_minutes
from .timezones import (
    UTC,
    as_utc,
    day_of_week,
    format_display_time,
    format_hhmm,
    get_zone,
    local_dates_between,
    local_day_bounds,
    localize,
)

Interval = tuple[datetime, datetime]


@dataclass(frozen=True)
class Slot:
    """A bookable start instant, rendered in the viewer's timezone"""

    utc_instant: datetime
    local_time: str  # HH:MM in viewer zone
    display_time: str  # "9:00 AM" in viewer zone


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open interval overlap: touching intervals do not overlap"""
    return start < other_end and end > other_start


def _is_active(window) -> bool:
    return getattr(window, "is_active", True) is not False


def _window_starts(
    window, local_date: date, stride_minutes: int, duration_minutes: int
) -> Iterator[datetime]:
    """Candidate start instants for one window on one expert-local date"""
    zone = get_zone(window.timezone)
    start_minute = time_to_minutes(window.start_time)
    end_minute = time_to_minutes(window.end_time)
    if end_minute - start_minute < duration_minutes:
        return

    length = timedelta(minutes=duration_minutes)
    window_end = datetime.combine(local_date, time(end_minute // 60, end_minute % 60), tzinfo=zone).astimezone(UTC)

    for minute in range(start_minute, end_minute - duration_minutes + 1, stride_minutes):
        instant = localize(local_date, time(minute // 60, minute % 60), zone)
        if instant is None:
            # Skipped by a DST jump
            continue
        if instant + length > window_end:
            continue
        yield instant


def generate_slots(
    windows: Iterable,
    blocked: Sequence[Interval],
    appointments: Sequence[Interval],
    busy: Sequence[Interval],
    day: date,
    viewer_timezone: str,
    stride_minutes: int,
    duration_minutes: int,
    now: datetime,
) -> list[Slot]:
    """
    Compute the ordered slots for ``day`` (a calendar date in the viewer's zone).

    Args:
        windows: availability windows with day_of_week (0=Sunday), start_time,
            end_time (HH:MM local) and timezone attributes
        blocked, appointments, busy: taken intervals as (start, end) instants
        stride_minutes: spacing between candidate starts
        duration_minutes: length of the appointment being booked
        now: candidates at or before this instant are dropped

    Returns:
        Slots sorted by absolute instant, deduplicated across overlapping windows
    """
    if stride_minutes <= 0 or duration_minutes <= 0:
        raise ValueError("stride and duration must be positive")

    viewer_zone = get_zone(viewer_timezone)
    day_start, day_end = local_day_bounds(day, viewer_zone)
    length = timedelta(minutes=duration_minutes)
    now = as_utc(now)
    taken = [(as_utc(s), as_utc(e)) for s, e in (*appointments, *blocked, *busy)]

    candidates: set[datetime] = set()
    for window in windows:
        if not _is_active(window):
            continue
        zone = get_zone(window.timezone)
        for local_date in local_dates_between(day_start, day_end, zone):
            if day_of_week(local_date) != window.day_of_week:
                continue
            candidates.update(_window_starts(window, local_date, stride_minutes, duration_minutes))

    slots = []
    for instant in sorted(candidates):
        if not day_start <= instant < day_end:
            continue
        if instant <= now:
            continue
        if any(overlaps(instant, instant + length, s, e) for s, e in taken):
            continue
        slots.append(
            Slot(
                utc_instant=instant,
                local_time=format_hhmm(instant, viewer_zone),
                display_time=format_display_time(instant, viewer_zone),
            )
        )
    return slots


def fits_availability(windows: Iterable, start: datetime, duration_minutes: int) -> bool:
    """True when [start, start+duration) lies inside an active window on its expert-local day"""
    start = as_utc(start)
    end = start + timedelta(minutes=duration_minutes)

    for window in windows:
        if not _is_active(window):
            continue
        zone = get_zone(window.timezone)
        local = start.astimezone(zone)
        if day_of_week(local.date()) != window.day_of_week:
            continue
        start_minute = time_to_minutes(window.start_time)
        end_minute = time_to_minutes(window.end_time)
        local_minute = local.hour * 60 + local.minute
        if local.second or local.microsecond:
            continue
        if local_minute < start_minute or local_minute + duration_minutes > end_minute:
            continue
        window_end = datetime.combine(
            local.date(), time(end_minute // 60, end_minute % 60), tzinfo=zone
        ).astimezone(UTC)
        if end <= window_end:
            return True
    return False


def first_conflict(
    start: datetime, duration_minutes: int, taken: Iterable[Interval]
) -> Optional[Interval]:
    """The first taken interval overlapping [start, start+duration), if any"""
    start = as_utc(start)
    end = start + timedelta(minutes=duration_minutes)
    for other_start, other_end in taken:
        if overlaps(start, end, as_utc(other_start), as_utc(other_end)):
            return other_start, other_end
    return None
