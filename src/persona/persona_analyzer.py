"""
Derives a UserPersona from calendar history and applies explicit persona patches
"""
import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from config.settings import Config
from src.calendar.calendar_base import CalendarBase
from src.calendar.models import CalendarEvent
from src.calendar.persona_store import PersonaStore
from src.persona.models import (
    WEEKDAY_NAMES, ActiveHours, NoteType, PersonaNote, RoutinePattern,
    SchedulingStyle, UserPersona, WeekdayProfile, weekday_index,
)
from utils.date_utils import minute_of_day, minutes_to_hhmm, round_half_up, to_local_iso
from utils.errors import NoDataError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_WORK_START = 9 * 60
DEFAULT_WORK_END = 18 * 60
DEFAULT_LUNCH_START = 12 * 60 + 30
DEFAULT_LUNCH_END = 13 * 60 + 30
MIN_LUNCH_SAMPLES = 3

MIN_ROUTINE_OCCURRENCES = 3
MIN_TITLE_OCCURRENCES = 4
MAX_TITLE_SPREAD_MINUTES = 90
ROUTINE_DAY_SHARE = 0.3
DEFAULT_EXPECTED_PER_WEEK = 5

PROFILE_HOURS = range(8, 20)
BUSY_SHARE = 0.5
FREE_SHARE = 0.15

MAX_GAP_MINUTES = 120
DEFAULT_BUFFER_MINUTES = 15

STYLE_LABELS = {
    SchedulingStyle.CONSERVATIVE.value: "conservative (prefers slack between events)",
    SchedulingStyle.MODERATE.value: "moderate",
    SchedulingStyle.AGGRESSIVE.value: "aggressive (densely packed days)",
}


# ==================== Order statistics ====================

def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    ``floor(n * p)``-th element of a numerically sorted sequence.

    The index is clamped to the last element, so p=1.0 returns the maximum.
    """
    if not sorted_values:
        raise ValueError("percentile of an empty sequence")
    index = min(len(sorted_values) - 1, max(0, math.floor(len(sorted_values) * p)))
    return sorted_values[index]


def median(sorted_values: Sequence[float]) -> float:
    """Middle element, or the half-up rounded mean of the two middle ones"""
    if not sorted_values:
        return 0
    mid = len(sorted_values) // 2
    if len(sorted_values) % 2:
        return sorted_values[mid]
    return round_half_up((sorted_values[mid - 1] + sorted_values[mid]) / 2)


# ==================== Helpers ====================

def title_matches_keywords(title: str, keywords: Sequence[str]) -> bool:
    lower = title.lower()
    return any(keyword in lower for keyword in keywords)


def is_all_day_event(event: CalendarEvent) -> bool:
    """Start at midnight and end at 00:00/23:59, or span at least 23 hours"""
    start, end = event.start_dt, event.end_dt
    if minute_of_day(start) != 0:
        return False
    if minute_of_day(end) in (0, 1439):
        return True
    return (end - start) >= timedelta(hours=23)


def _event_minutes(event: CalendarEvent) -> Tuple[int, int]:
    return minute_of_day(event.start_dt), minute_of_day(event.end_dt)


class _Cluster:
    def __init__(self):
        self.starts: List[int] = []
        self.ends: List[int] = []
        self.day_counts: Counter = Counter()

    @property
    def total(self) -> int:
        return len(self.starts)

    def add(self, event: CalendarEvent):
        start_min, end_min = _event_minutes(event)
        self.starts.append(start_min)
        self.ends.append(end_min)
        self.day_counts[weekday_index(event.start_dt)] += 1


# ==================== Extractors ====================

def extract_active_hours(events: List[CalendarEvent]) -> ActiveHours:
    starts, ends, lunch_starts, lunch_ends = [], [], [], []

    for event in events:
        start_min, end_min = _event_minutes(event)
        starts.append(start_min)
        ends.append(end_min)
        if title_matches_keywords(event.title, Config.LUNCH_KEYWORDS):
            lunch_starts.append(start_min)
            lunch_ends.append(end_min)

    starts.sort()
    ends.sort()
    lunch_starts.sort()
    lunch_ends.sort()

    work_start = percentile(starts, 0.1) if starts else DEFAULT_WORK_START
    work_end = percentile(ends, 0.9) if ends else DEFAULT_WORK_END
    lunch_start = median(lunch_starts) if len(lunch_starts) >= MIN_LUNCH_SAMPLES else DEFAULT_LUNCH_START
    lunch_end = median(lunch_ends) if len(lunch_ends) >= MIN_LUNCH_SAMPLES else DEFAULT_LUNCH_END

    return ActiveHours(
        work_start=minutes_to_hhmm(work_start),
        work_end=minutes_to_hhmm(work_end),
        lunch_start=minutes_to_hhmm(lunch_start),
        lunch_end=minutes_to_hhmm(lunch_end),
    )


def extract_routines(events: List[CalendarEvent],
                     weeks: int = Config.ANALYSIS_WEEKS) -> List[RoutinePattern]:
    """
    Recurring patterns from two sources:

    1. keyword clusters, where each event joins the cluster of the first
       lunch/meeting keyword its title contains;
    2. exact-title clusters for titles without any keyword, kept when they
       occur at least 4 times with start times spread over at most 90 minutes.
    """
    all_keywords = Config.LUNCH_KEYWORDS + Config.MEETING_KEYWORDS
    clusters: Dict[str, _Cluster] = {}

    for event in events:
        lower = event.title.lower()
        for keyword in all_keywords:
            if keyword in lower:
                clusters.setdefault(keyword, _Cluster()).add(event)
                break

    by_title: Dict[str, _Cluster] = {}
    for event in events:
        key = event.title.strip().lower()
        if any(keyword in key for keyword in all_keywords):
            continue
        by_title.setdefault(key, _Cluster()).add(event)

    for title, cluster in by_title.items():
        if cluster.total < MIN_TITLE_OCCURRENCES:
            continue
        if max(cluster.starts) - min(cluster.starts) <= MAX_TITLE_SPREAD_MINUTES:
            clusters[title] = cluster

    routines = []
    for keyword, cluster in clusters.items():
        if cluster.total < MIN_ROUTINE_OCCURRENCES:
            continue

        days = sorted(day for day, count in cluster.day_counts.items()
                      if count / cluster.total >= ROUTINE_DAY_SHARE)
        expected_per_week = len(days) if days else DEFAULT_EXPECTED_PER_WEEK
        confidence = min(1, cluster.total / (weeks * expected_per_week))

        routines.append(RoutinePattern(
            keyword=keyword,
            day_of_week=days,
            typical_start=minutes_to_hhmm(median(sorted(cluster.starts))),
            typical_end=minutes_to_hhmm(median(sorted(cluster.ends))),
            confidence=round_half_up(confidence, 2),
        ))

    routines.sort(key=lambda r: r.confidence, reverse=True)
    return routines[:Config.MAX_ROUTINES]


def extract_weekday_profile(events: List[CalendarEvent]) -> Dict[str, WeekdayProfile]:
    hour_counts = [Counter() for _ in WEEKDAY_NAMES]
    dates = [set() for _ in WEEKDAY_NAMES]

    for event in events:
        start = event.start_dt
        day = weekday_index(start)
        dates[day].add(start.date())
        hour_counts[day][start.hour] += 1

    profile = {}
    for day, name in enumerate(WEEKDAY_NAMES):
        occurrences = max(1, len(dates[day]))
        counts = hour_counts[day]

        busy_hours, free_hours = [], []
        for hour in PROFILE_HOURS:
            share = counts[hour] / occurrences
            if share >= BUSY_SHARE:
                busy_hours.append(f"{hour:02d}:00")
            elif share <= FREE_SHARE:
                free_hours.append(f"{hour:02d}:00")

        profile[name] = WeekdayProfile(
            avg_events=round_half_up(sum(counts.values()) / occurrences, 1),
            busy_hours=busy_hours,
            free_hours=free_hours,
        )
    return profile


def extract_scheduling_metrics(events: List[CalendarEvent]) -> Tuple[float, int, str]:
    """(avgDailyEvents, bufferPreference, schedulingStyle)"""
    by_date: Dict[Any, List[CalendarEvent]] = {}
    for event in events:
        by_date.setdefault(event.start_dt.date(), []).append(event)

    daily_counts = [len(day_events) for day_events in by_date.values()]
    avg_daily = round_half_up(sum(daily_counts) / len(daily_counts), 1) if daily_counts else 0

    gaps = []
    for day_events in by_date.values():
        ordered = sorted(day_events, key=lambda e: e.start_dt)
        for previous, current in zip(ordered, ordered[1:]):
            gap = (current.start_dt - previous.end_dt).total_seconds() / 60
            if 0 <= gap <= MAX_GAP_MINUTES:
                gaps.append(gap)

    gaps.sort()
    buffer_preference = round_half_up(median(gaps)) if gaps else DEFAULT_BUFFER_MINUTES

    if avg_daily >= 6 and buffer_preference <= 10:
        style = SchedulingStyle.AGGRESSIVE.value
    elif avg_daily <= 3 or buffer_preference >= 30:
        style = SchedulingStyle.CONSERVATIVE.value
    else:
        style = SchedulingStyle.MODERATE.value

    return avg_daily, buffer_preference, style


def extract_preferred_meeting_times(events: List[CalendarEvent]) -> List[str]:
    hours = Counter(
        f"{event.start_dt.hour:02d}:00"
        for event in events
        if title_matches_keywords(event.title, Config.MEETING_KEYWORDS)
    )
    # most_common keeps first-seen order among equal counts
    return [hour for hour, _ in hours.most_common(3)]


def build_summary(persona: UserPersona, event_count: int) -> str:
    hours = persona.active_hours
    lines = [
        f"📊 Analyzed {event_count} events.",
        "",
        f"⏰ Active hours: {hours.work_start} - {hours.work_end}",
        f"🍽️ Lunch: {hours.lunch_start} - {hours.lunch_end}",
        f"📅 Daily average: {persona.avg_daily_events} events",
        f"⏱️ Typical gap between events: {persona.buffer_preference} min",
        f"📐 Scheduling style: {STYLE_LABELS.get(persona.scheduling_style, persona.scheduling_style)}",
    ]

    if persona.routines:
        lines.append("")
        lines.append("🔄 Routines found:")
        for routine in persona.routines[:5]:
            lines.append(
                f"  • {routine.keyword}: {routine.days_label()} "
                f"{routine.typical_start}-{routine.typical_end} "
                f"(confidence {round_half_up(routine.confidence * 100)}%)"
            )

    return "\n".join(lines) + "\n"


# ==================== Operations ====================

def analyze_user_patterns(calendar: CalendarBase, persona_store: PersonaStore,
                          now: Optional[datetime] = None) -> Tuple[UserPersona, str]:
    """
    Rebuild the persona from the trailing analysis window and persist it.

    Raises NoDataError when no timed events fall in the window.
    """
    now = now or datetime.now()
    range_start = now - timedelta(weeks=Config.ANALYSIS_WEEKS)

    all_events = calendar.get_events(to_local_iso(range_start), to_local_iso(now))
    events = [event for event in all_events if not is_all_day_event(event)]

    if not events:
        raise NoDataError(
            "No events to analyze. Recent events are needed to learn your patterns.")

    avg_daily, buffer_preference, style = extract_scheduling_metrics(events)
    timestamp = now.isoformat()

    persona = UserPersona(
        active_hours=extract_active_hours(events),
        routines=extract_routines(events),
        weekday_profile=extract_weekday_profile(events),
        scheduling_style=style,
        preferred_meeting_times=extract_preferred_meeting_times(events),
        avg_daily_events=avg_daily,
        buffer_preference=buffer_preference,
        notes=[],
        created_at=timestamp,
        updated_at=timestamp,
    )

    persona_store.set_persona(persona)
    logger.info(f"🧠 Persona rebuilt from {len(events)} events "
                f"({len(persona.routines)} routines, style={style})")
    return persona, build_summary(persona, len(events))


def update_persona(persona_store: PersonaStore, changes: Dict[str, Any],
                   reason: str) -> UserPersona:
    """
    Apply a validated partial patch and record ``reason`` as an explicit note.

    ``changes`` may carry ``activeHours`` (partial), ``schedulingStyle``,
    ``bufferPreference`` and ``routines`` (full replacement).
    """
    current = persona_store.get_persona()
    if current is None:
        raise NotFoundError(
            "No persona has been set up yet. Run the pattern analysis first.")

    updated = current.copy()

    if changes.get("activeHours"):
        merged = updated.active_hours.to_dict()
        merged.update(changes["activeHours"])
        updated.active_hours = ActiveHours.from_dict(merged)
    if changes.get("schedulingStyle"):
        updated.scheduling_style = changes["schedulingStyle"]
    if changes.get("bufferPreference") is not None:
        updated.buffer_preference = changes["bufferPreference"]
    if changes.get("routines") is not None:
        updated.routines = [
            r if isinstance(r, RoutinePattern) else RoutinePattern.from_dict(r)
            for r in changes["routines"]
        ]

    updated.notes.append(PersonaNote(NoteType.EXPLICIT.value, reason))
    updated.trim_notes(Config.MAX_PERSONA_NOTES)
    updated.touch()

    persona_store.set_persona(updated)
    logger.info(f"✏️  Persona updated: {reason}")
    return updated
