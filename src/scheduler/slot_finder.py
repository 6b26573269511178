"""
Free-slot search and range queries
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config.settings import Config
from src.calendar.calendar_base import CalendarBase
from src.calendar.models import CalendarEvent
from utils.date_utils import (
    at_time, end_of_day_if_date_only, parse_date, parse_time, to_local_iso,
)

logger = logging.getLogger(__name__)


def sweep_free_intervals(window_start: datetime, window_end: datetime,
                         intervals: Iterable[Tuple[datetime, datetime]],
                         min_minutes: float) -> List[Tuple[datetime, datetime]]:
    """
    Gaps of at least ``min_minutes`` inside [window_start, window_end].

    ``intervals`` must be sorted by start. A single left-to-right pass keeps a
    cursor at the end of the busy time seen so far.
    """
    min_gap = timedelta(minutes=min_minutes)
    gaps = []
    cursor = window_start

    for busy_start, busy_end in intervals:
        if busy_start > cursor and busy_start - cursor >= min_gap:
            gaps.append((cursor, busy_start))
        if busy_end > cursor:
            cursor = busy_end

    if cursor < window_end and window_end - cursor >= min_gap:
        gaps.append((cursor, window_end))

    return gaps


def day_window(date: str, time_range: Optional[Sequence[str]] = None) -> Tuple[datetime, datetime]:
    """Resolve a date plus optional (HH:MM, HH:MM) range to datetimes"""
    start_str, end_str = time_range if time_range else Config.DEFAULT_WORK_HOURS
    start_hour, start_min = parse_time(start_str)
    end_hour, end_min = parse_time(end_str)

    target = parse_date(date)
    return at_time(target, start_hour, start_min), at_time(target, end_hour, end_min)


def get_free_slots(calendar: CalendarBase, date: str, duration_minutes: int,
                   time_range: Optional[Sequence[str]] = None) -> List[Dict[str, str]]:
    """Free slots on ``date`` of at least ``duration_minutes`` (default 09:00-18:00)"""
    day_start, day_end = day_window(date, time_range)

    events = calendar.get_events(to_local_iso(day_start), to_local_iso(day_end))
    busy = [(event.start_dt, event.end_dt) for event in events]

    slots = [
        {"start": to_local_iso(start), "end": to_local_iso(end)}
        for start, end in sweep_free_intervals(day_start, day_end, busy, duration_minutes)
    ]
    logger.info(f"🕒 {len(slots)} free slot(s) of {duration_minutes}+ min on {date}")
    return slots


def get_events(calendar: CalendarBase, start_date: str, end_date: str,
               category: Optional[str] = None,
               tags: Optional[List[str]] = None) -> List[CalendarEvent]:
    return calendar.get_events(start_date, end_of_day_if_date_only(end_date), category, tags)


def search_events(calendar: CalendarBase, query: str, start_date: Optional[str] = None,
                  end_date: Optional[str] = None) -> List[CalendarEvent]:
    adjusted_end = end_of_day_if_date_only(end_date) if end_date else None
    return calendar.search_events(query, start_date, adjusted_end)
