from datetime import datetime

import pytest

from conftest import make_event
from src.scheduler.slot_finder import get_events, get_free_slots, sweep_free_intervals
from utils.errors import FormatError, RangeError


def test_two_free_slots_around_seeded_events(seeded_calendar):
    slots = get_free_slots(seeded_calendar, "2026-02-16", 60)
    assert slots == [
        {"start": "2026-02-16T10:00:00", "end": "2026-02-16T12:00:00"},
        {"start": "2026-02-16T13:00:00", "end": "2026-02-16T18:00:00"},
    ]


def test_gaps_shorter_than_duration_are_skipped(seeded_calendar):
    slots = get_free_slots(seeded_calendar, "2026-02-16", 180)
    assert slots == [{"start": "2026-02-16T13:00:00", "end": "2026-02-16T18:00:00"}]


def test_custom_time_range(seeded_calendar):
    slots = get_free_slots(seeded_calendar, "2026-02-16", 30, ["08:00", "09:30"])
    assert slots == [{"start": "2026-02-16T08:00:00", "end": "2026-02-16T09:00:00"}]


def test_nested_events_keep_cursor_at_furthest_end(calendar):
    calendar.create_event(make_event("Long", "2026-02-16T09:00:00", "2026-02-16T12:00:00"))
    calendar.create_event(make_event("Inner", "2026-02-16T10:00:00", "2026-02-16T11:00:00"))

    slots = get_free_slots(calendar, "2026-02-16", 30)
    assert slots == [{"start": "2026-02-16T12:00:00", "end": "2026-02-16T18:00:00"}]


def test_empty_day_is_one_slot(calendar):
    assert get_free_slots(calendar, "2026-02-17", 60) == [
        {"start": "2026-02-17T09:00:00", "end": "2026-02-17T18:00:00"},
    ]


def test_malformed_inputs_raise_before_store_access(calendar):
    with pytest.raises(FormatError):
        get_free_slots(calendar, "16/02/2026", 60)
    with pytest.raises(RangeError):
        get_free_slots(calendar, "2026-02-16", 60, ["09:00", "25:00"])


def test_sweep_input_order_is_by_start():
    window_start = datetime(2026, 2, 16, 9)
    window_end = datetime(2026, 2, 16, 18)
    busy = [
        (datetime(2026, 2, 16, 9, 30), datetime(2026, 2, 16, 10)),
        (datetime(2026, 2, 16, 11), datetime(2026, 2, 16, 17, 45)),
    ]
    gaps = sweep_free_intervals(window_start, window_end, busy, 30)
    assert gaps == [
        (datetime(2026, 2, 16, 9), datetime(2026, 2, 16, 9, 30)),
        (datetime(2026, 2, 16, 10), datetime(2026, 2, 16, 11)),
    ]


def test_get_events_extends_date_only_end(seeded_calendar):
    seeded_calendar.create_event(make_event("Evening", "2026-02-16T20:00:00", "2026-02-16T21:00:00"))
    events = get_events(seeded_calendar, "2026-02-16", "2026-02-16")
    assert [e.title for e in events] == ["Standup", "Lunch", "Evening"]
