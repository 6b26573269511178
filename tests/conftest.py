"""
Pytest fixtures for the Smart Calendar engine.

Provides:
- An in-memory LocalCalendar seeded with two events on 2026-02-16
- A SQLitePersonaStore sharing the calendar's connection
- A persona factory
- A SmartScheduler wired to both
"""

import pytest

from src.calendar.local_calendar import LocalCalendar
from src.calendar.models import CalendarEvent
from src.calendar.persona_store import SQLitePersonaStore
from src.persona.models import ActiveHours, RoutinePattern, UserPersona
from src.scheduler.smart_scheduler import SmartScheduler


def make_event(title, start, end, **kwargs) -> CalendarEvent:
    return CalendarEvent(title=title, start=start, end=end, **kwargs)


@pytest.fixture
def calendar():
    cal = LocalCalendar(":memory:")
    yield cal
    cal.close()


@pytest.fixture
def seeded_calendar(calendar):
    """Events [09:00-10:00) and [12:00-13:00) on Monday 2026-02-16"""
    calendar.create_event(make_event(
        "Standup", "2026-02-16T09:00:00", "2026-02-16T10:00:00",
        event_id="evt_standup", category="meeting"))
    calendar.create_event(make_event(
        "Lunch", "2026-02-16T12:00:00", "2026-02-16T13:00:00",
        event_id="evt_lunch", is_movable=False))
    return calendar


@pytest.fixture
def persona_store(calendar):
    return SQLitePersonaStore(calendar.connection, calendar.lock)


@pytest.fixture
def make_persona():
    def factory(style="moderate", buffer_preference=15, routines=None,
                preferred_meeting_times=None, **hours) -> UserPersona:
        active_hours = ActiveHours(**hours) if hours else ActiveHours()
        return UserPersona(
            active_hours=active_hours,
            routines=routines or [],
            weekday_profile={},
            scheduling_style=style,
            preferred_meeting_times=preferred_meeting_times or [],
            avg_daily_events=4.0,
            buffer_preference=buffer_preference,
        )
    return factory


@pytest.fixture
def lunch_routine():
    return RoutinePattern(keyword="lunch", day_of_week=[1, 2, 3, 4, 5],
                          typical_start="12:00", typical_end="13:00", confidence=0.8)


@pytest.fixture
def scheduler(seeded_calendar, persona_store):
    engine = SmartScheduler(seeded_calendar, persona_store)
    yield engine
    engine.drift_detector.shutdown(wait=True)
