import pytest

from conftest import make_event
from src.scheduler.recommender import (
    format_time_diff, propose_schedule_adjustment, suggest_optimal_times,
)
from utils.date_utils import parse_date


class TestSuggestOptimalTimes:
    def test_slots_ranked_by_static_score(self, seeded_calendar):
        suggestions = suggest_optimal_times(seeded_calendar, 60, ["2026-02-16"])
        assert [s["start"] for s in suggestions] == [
            "2026-02-16T10:00:00", "2026-02-16T13:00:00",
        ]
        first = suggestions[0]
        assert first == {
            "date": "2026-02-16",
            "start": "2026-02-16T10:00:00",
            "end": "2026-02-16T11:00:00",
            "available_until": "2026-02-16T12:00:00",
            "score": 100,
        }

    def test_merges_dates_and_caps_results(self, calendar):
        dates = ["2026-02-%02d" % day for day in range(16, 23)]
        suggestions = suggest_optimal_times(calendar, 30, dates)
        assert len(suggestions) == 5
        # equal scores keep date order
        assert [s["date"] for s in suggestions] == dates[:5]

    def test_avoided_categories_do_not_block(self, seeded_calendar):
        suggestions = suggest_optimal_times(
            seeded_calendar, 60, ["2026-02-16"], {"avoid_categories": ["meeting"]})
        assert suggestions[0]["start"] == "2026-02-16T09:00:00"
        assert suggestions[0]["available_until"] == "2026-02-16T12:00:00"

    def test_buffer_expands_busy_time(self, seeded_calendar):
        suggestions = suggest_optimal_times(
            seeded_calendar, 60, ["2026-02-16"], {"buffer_minutes": 15})
        assert [(s["start"], s["available_until"]) for s in suggestions] == [
            ("2026-02-16T10:15:00", "2026-02-16T11:45:00"),
            ("2026-02-16T13:15:00", "2026-02-16T18:00:00"),
        ]

    def test_persona_changes_ranking(self, seeded_calendar, make_persona):
        persona = make_persona(preferred_meeting_times=["13:00"])
        suggestions = suggest_optimal_times(
            seeded_calendar, 60, ["2026-02-16"], persona=persona)
        # 13:00 sits inside the lunch buffer (12:20-13:40) and scores 30
        scores = {s["start"]: s["score"] for s in suggestions}
        assert scores == {"2026-02-16T10:00:00": 80, "2026-02-16T13:00:00": 30}


class TestProposeScheduleAdjustment:
    def test_no_conflict_is_single_create(self, seeded_calendar):
        for strategy in ("minimize_moves", "respect_priority", "keep_buffer"):
            proposals = propose_schedule_adjustment(seeded_calendar, {
                "title": "1:1", "start": "2026-02-16T11:00:00", "end": "2026-02-16T12:00:00",
            }, strategy)
            assert len(proposals) == 1
            assert proposals[0]["action"] == "create"
            assert proposals[0]["event_id"] is None
            assert proposals[0]["proposed"] == {
                "title": "1:1", "start": "2026-02-16T11:00:00", "end": "2026-02-16T12:00:00",
            }

    def test_minimize_moves_moves_and_prepends_create(self, seeded_calendar):
        proposals = propose_schedule_adjustment(seeded_calendar, {
            "title": "Planning", "start": "2026-02-16T08:30:00", "end": "2026-02-16T09:30:00",
        })
        assert [p["action"] for p in proposals] == ["create", "move"]
        move = proposals[1]
        assert move["event_id"] == "evt_standup"
        assert move["proposed"] == {"start": "2026-02-16T09:30:00", "end": "2026-02-16T10:30:00"}
        assert "30m later" in move["reason"]

    def test_minimize_moves_immovable_is_conflict(self, seeded_calendar):
        proposals = propose_schedule_adjustment(seeded_calendar, {
            "title": "Call", "start": "2026-02-16T11:30:00", "end": "2026-02-16T12:30:00",
        }, "minimize_moves")
        assert [p["action"] for p in proposals] == ["conflict"]
        assert proposals[0]["event_id"] == "evt_lunch"
        assert proposals[0]["proposed"] is None

    def test_unknown_strategy_falls_back(self, seeded_calendar):
        proposals = propose_schedule_adjustment(seeded_calendar, {
            "title": "Planning", "start": "2026-02-16T08:30:00", "end": "2026-02-16T09:30:00",
        }, "shuffle_everything")
        assert [p["action"] for p in proposals] == ["create", "move"]

    def test_respect_priority(self, calendar):
        calendar.create_event(make_event("Low", "2026-02-16T10:00:00", "2026-02-16T11:00:00",
                                         event_id="evt_low", priority=4))
        calendar.create_event(make_event("High", "2026-02-16T10:30:00", "2026-02-16T11:30:00",
                                         event_id="evt_high", priority=1))

        proposals = propose_schedule_adjustment(calendar, {
            "title": "New", "start": "2026-02-16T10:00:00", "end": "2026-02-16T11:00:00",
            "priority": 2,
        }, "respect_priority")

        assert [(p["action"], p["event_id"]) for p in proposals] == [
            ("move", "evt_low"), ("conflict", "evt_high"),
        ]
        assert proposals[1]["priority"] == 1
        assert "priority 1" in proposals[1]["reason"] and "priority 2" in proposals[1]["reason"]

    def test_respect_priority_equal_priority_does_not_move(self, seeded_calendar):
        proposals = propose_schedule_adjustment(seeded_calendar, {
            "title": "New", "start": "2026-02-16T09:00:00", "end": "2026-02-16T09:30:00",
        }, "respect_priority")
        assert [p["action"] for p in proposals] == ["conflict"]

    def test_keep_buffer_adds_gap_without_create(self, seeded_calendar):
        proposals = propose_schedule_adjustment(seeded_calendar, {
            "title": "Planning", "start": "2026-02-16T08:30:00", "end": "2026-02-16T09:30:00",
        }, "keep_buffer")
        assert [p["action"] for p in proposals] == ["move"]
        assert proposals[0]["proposed"]["start"] == "2026-02-16T09:45:00"

    def test_default_title(self, calendar):
        proposals = propose_schedule_adjustment(calendar, {
            "start": "2026-02-16T09:00:00", "end": "2026-02-16T10:00:00",
        })
        assert proposals[0]["proposed"]["title"] == "New event"


@pytest.mark.parametrize("original,proposed,expected", [
    ("2026-02-16T09:00:00", "2026-02-16T10:30:00", "1h 30m later"),
    ("2026-02-16T09:00:00", "2026-02-16T11:00:00", "2h later"),
    ("2026-02-16T09:00:00", "2026-02-16T08:15:00", "45m earlier"),
])
def test_format_time_diff(original, proposed, expected):
    assert format_time_diff(parse_date(original), parse_date(proposed)) == expected
