"""Tests for the pure slot computation"""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from care_booking.domain.scheduling.slot_generator import (
    first_conflict,
    fits_availability,
    generate_slots,
    overlaps,
)
from care_booking.domain.scheduling.timezones import day_of_week, localize, get_zone

UTC = timezone.utc
NY = "America/New_York"
MONDAY = date(2030, 1, 7)
EARLIER = datetime(2030, 1, 1, tzinfo=UTC)


def window(day, start, end, tz=NY, active=True):
    return SimpleNamespace(day_of_week=day, start_time=start, end_time=end, timezone=tz, is_active=active)


def slots_for(windows, day=MONDAY, viewer=NY, duration=30, stride=30, now=EARLIER, appointments=(), blocked=(), busy=()):
    return generate_slots(
        windows,
        blocked=list(blocked),
        appointments=list(appointments),
        busy=list(busy),
        day=day,
        viewer_timezone=viewer,
        stride_minutes=stride,
        duration_minutes=duration,
        now=now,
    )


class TestGenerateSlots:
    def test_existing_appointment_removes_overlapping_slot(self):
        # 10:00-10:30 New York on Monday 2030-01-07 (EST)
        booked = (datetime(2030, 1, 7, 15, 0, tzinfo=UTC), datetime(2030, 1, 7, 15, 30, tzinfo=UTC))
        slots = slots_for([window(1, "09:00", "12:00")], appointments=[booked])
        assert [s.local_time for s in slots] == ["09:00", "09:30", "10:30", "11:00", "11:30"]

    def test_slots_carry_utc_instant_and_display_time(self):
        slots = slots_for([window(1, "09:00", "10:00")])
        assert slots[0].utc_instant == datetime(2030, 1, 7, 14, 0, tzinfo=UTC)
        assert slots[0].display_time == "9:00 AM"
        assert slots[1].display_time == "9:30 AM"

    def test_no_window_on_requested_day_returns_empty(self):
        assert slots_for([window(1, "09:00", "12:00")], day=date(2030, 1, 8)) == []

    def test_no_windows_at_all_returns_empty(self):
        assert slots_for([]) == []

    def test_inactive_windows_are_ignored(self):
        assert slots_for([window(1, "09:00", "12:00", active=False)]) == []

    def test_zero_length_window_yields_nothing(self):
        assert slots_for([window(1, "09:00", "09:00")]) == []

    def test_window_shorter_than_duration_yields_nothing(self):
        assert slots_for([window(1, "09:00", "09:45")], duration=60) == []

    def test_last_start_is_end_minus_duration(self):
        slots = slots_for([window(1, "09:00", "11:00")], duration=60, stride=30)
        assert [s.local_time for s in slots] == ["09:00", "09:30", "10:00"]

    def test_viewer_day_is_resolved_in_viewer_timezone(self):
        # Monday 09:00-12:00 EST is 23:00 Monday - 02:00 Tuesday in Tokyo
        windows = [window(1, "09:00", "12:00")]
        monday_tokyo = slots_for(windows, day=date(2030, 1, 7), viewer="Asia/Tokyo")
        tuesday_tokyo = slots_for(windows, day=date(2030, 1, 8), viewer="Asia/Tokyo")
        assert [s.local_time for s in monday_tokyo] == ["23:00", "23:30"]
        assert [s.local_time for s in tuesday_tokyo] == ["00:00", "00:30", "01:00", "01:30"]

    def test_viewer_day_can_reach_previous_expert_day(self):
        # Tuesday 01:00-02:00 in Tokyo is Monday 11:00-12:00 in New York
        windows = [window(2, "01:00", "02:00", tz="Asia/Tokyo")]
        slots = slots_for(windows, day=MONDAY, viewer=NY)
        assert [s.local_time for s in slots] == ["11:00", "11:30"]

    def test_overlapping_windows_are_unioned_without_duplicates(self):
        windows = [window(1, "09:00", "11:00"), window(1, "10:00", "12:00")]
        slots = slots_for(windows)
        instants = [s.utc_instant for s in slots]
        assert len(instants) == len(set(instants))
        assert [s.local_time for s in slots] == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]

    def test_blocked_slot_and_busy_time_are_excluded(self):
        blocked = (datetime(2030, 1, 7, 14, 0, tzinfo=UTC), datetime(2030, 1, 7, 15, 0, tzinfo=UTC))
        busy = (datetime(2030, 1, 7, 16, 0, tzinfo=UTC), datetime(2030, 1, 7, 16, 30, tzinfo=UTC))
        slots = slots_for([window(1, "09:00", "12:00")], blocked=[blocked], busy=[busy])
        assert [s.local_time for s in slots] == ["10:00", "10:30", "11:30"]

    def test_touching_intervals_do_not_conflict(self):
        booked = (datetime(2030, 1, 7, 14, 30, tzinfo=UTC), datetime(2030, 1, 7, 15, 0, tzinfo=UTC))
        slots = slots_for([window(1, "09:00", "10:00")], appointments=[booked])
        assert [s.local_time for s in slots] == ["09:00"]

    def test_slots_at_or_before_now_are_dropped(self):
        now = datetime(2030, 1, 7, 15, 0, tzinfo=UTC)  # exactly 10:00 New York
        slots = slots_for([window(1, "09:00", "12:00")], now=now)
        assert [s.local_time for s in slots] == ["10:30", "11:00", "11:30"]
        assert all(s.utc_instant > now for s in slots)

    def test_spring_forward_skips_nonexistent_times(self):
        # 2030-03-10: New York clocks jump from 02:00 to 03:00
        sunday = date(2030, 3, 10)
        slots = slots_for([window(0, "01:00", "04:00")], day=sunday)
        assert [s.local_time for s in slots] == ["01:00", "01:30", "03:00", "03:30"]

    def test_fall_back_ambiguous_time_uses_first_occurrence(self):
        # 2030-11-03: New York clocks fall back from 02:00 EDT to 01:00 EST
        sunday = date(2030, 11, 3)
        slots = slots_for([window(0, "00:00", "03:00")], day=sunday, duration=60, stride=60)
        assert [s.local_time for s in slots] == ["00:00", "01:00", "02:00"]
        assert slots[1].utc_instant == datetime(2030, 11, 3, 5, 0, tzinfo=UTC)

    def test_slots_are_strictly_increasing(self):
        windows = [window(1, "09:00", "12:00"), window(1, "13:00", "17:00", tz="America/Chicago")]
        slots = slots_for(windows, duration=45, stride=15)
        instants = [s.utc_instant for s in slots]
        assert instants == sorted(instants)
        assert all(a < b for a, b in zip(instants, instants[1:]))

    def test_every_slot_fits_an_active_window(self):
        windows = [window(1, "09:00", "12:00"), window(1, "14:00", "16:30")]
        for slot in slots_for(windows, duration=60, stride=20):
            assert fits_availability(windows, slot.utc_instant, 60)

    def test_invalid_stride_is_rejected(self):
        with pytest.raises(ValueError):
            slots_for([window(1, "09:00", "12:00")], stride=0)


class TestFitsAvailability:
    def test_inside_window(self):
        assert fits_availability([window(1, "09:00", "12:00")], datetime(2030, 1, 7, 16, 0, tzinfo=UTC), 60)

    def test_running_past_window_end(self):
        assert not fits_availability([window(1, "09:00", "12:00")], datetime(2030, 1, 7, 16, 30, tzinfo=UTC), 60)

    def test_wrong_day(self):
        assert not fits_availability([window(1, "09:00", "12:00")], datetime(2030, 1, 8, 15, 0, tzinfo=UTC), 30)

    def test_naive_datetime_is_read_as_utc(self):
        assert fits_availability([window(1, "09:00", "12:00")], datetime(2030, 1, 7, 14, 0), 30)


class TestIntervalHelpers:
    def test_overlaps_is_half_open(self):
        a = datetime(2030, 1, 7, 9, 0, tzinfo=UTC)
        b = a + timedelta(minutes=30)
        c = b + timedelta(minutes=30)
        assert not overlaps(a, b, b, c)
        assert overlaps(a, c, b, c)

    def test_first_conflict(self):
        start = datetime(2030, 1, 7, 9, 0, tzinfo=UTC)
        taken = [(start + timedelta(hours=2), start + timedelta(hours=3)), (start, start + timedelta(minutes=15))]
        assert first_conflict(start, 30, taken) == taken[1]
        assert first_conflict(start + timedelta(minutes=30), 30, taken) is None


class TestTimezones:
    def test_day_of_week_starts_on_sunday(self):
        assert day_of_week(date(2030, 1, 6)) == 0  # Sunday
        assert day_of_week(date(2030, 1, 7)) == 1  # Monday
        assert day_of_week(date(2030, 1, 12)) == 6  # Saturday

    def test_localize_returns_none_for_skipped_time(self):
        from datetime import time

        assert localize(date(2030, 3, 10), time(2, 30), get_zone(NY)) is None
        assert localize(date(2030, 3, 10), time(3, 0), get_zone(NY)) == datetime(2030, 3, 10, 7, 0, tzinfo=UTC)

    def test_unknown_timezone_is_rejected(self):
        with pytest.raises(ValueError):
            get_zone("Mars/Olympus_Mons")
