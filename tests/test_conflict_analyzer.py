from conftest import make_event
from src.scheduler.conflict_analyzer import (
    check_conflicts, find_related_events, get_event_context,
)


def test_conflict_with_overlapping_event(seeded_calendar):
    conflicts = check_conflicts(seeded_calendar, "2026-02-16T09:30:00", "2026-02-16T10:30:00")
    assert [e.id for e in conflicts] == ["evt_standup"]


def test_touching_boundaries_do_not_conflict(seeded_calendar):
    assert check_conflicts(seeded_calendar, "2026-02-16T10:00:00", "2026-02-16T12:00:00") == []


def test_long_event_from_previous_day_is_found(calendar):
    calendar.create_event(make_event("Offsite", "2026-02-15T20:00:00", "2026-02-16T11:00:00",
                                     event_id="evt_offsite"))
    conflicts = check_conflicts(calendar, "2026-02-16T10:00:00", "2026-02-16T10:30:00")
    assert [e.id for e in conflicts] == ["evt_offsite"]


def test_related_events_case_insensitive_with_limit(calendar):
    for day in range(16, 20):
        calendar.create_event(make_event("Design Review", f"2026-02-{day}T15:00:00",
                                         f"2026-02-{day}T16:00:00"))
    calendar.create_event(make_event("Gym", "2026-02-16T18:00:00", "2026-02-16T19:00:00"))

    related = find_related_events(calendar, "design", limit=3)
    assert len(related) == 3
    assert [e.start for e in related] == [
        "2026-02-16T15:00:00", "2026-02-17T15:00:00", "2026-02-18T15:00:00",
    ]


class TestEventContext:
    def test_partitions_before_and_after(self, seeded_calendar):
        seeded_calendar.create_event(make_event("Overlapping", "2026-02-16T12:30:00",
                                                "2026-02-16T14:00:00", event_id="evt_overlap"))
        seeded_calendar.create_event(make_event("Review", "2026-02-16T14:00:00",
                                                "2026-02-16T15:00:00", event_id="evt_review"))

        context = get_event_context(seeded_calendar, "evt_lunch")

        assert context["event"]["id"] == "evt_lunch"
        assert [e["id"] for e in context["before"]] == ["evt_standup"]
        assert [e["id"] for e in context["after"]] == ["evt_review"]

    def test_window_is_respected(self, seeded_calendar):
        context = get_event_context(seeded_calendar, "evt_lunch", hours_before=1, hours_after=1)
        assert context["before"] == []

    def test_missing_event_is_soft_error(self, seeded_calendar):
        context = get_event_context(seeded_calendar, "nope")
        assert context == {
            "error": "Event not found: nope",
            "event": None,
            "before": [],
            "after": [],
        }
