"""
Conflict and context analysis over calendar events
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List

from config.settings import Config
from src.calendar.calendar_base import CalendarBase
from src.calendar.models import CalendarEvent
from utils.date_utils import parse_date, to_local_iso

logger = logging.getLogger(__name__)


def find_overlapping(events: List[CalendarEvent], start: datetime,
                     end: datetime) -> List[CalendarEvent]:
    """Keep events strictly overlapping [start, end), in input order"""
    return [event for event in events if event.overlaps_with(start, end)]


def check_conflicts(calendar: CalendarBase, start: str, end: str) -> List[CalendarEvent]:
    """Events that overlap the proposed [start, end) interval"""
    new_start = parse_date(start)
    new_end = parse_date(end)

    # Widened window so long events starting the day before are fetched too
    window = timedelta(hours=Config.CONFLICT_WINDOW_HOURS)
    events = calendar.get_events(to_local_iso(new_start - window), to_local_iso(new_end + window))

    conflicts = find_overlapping(events, new_start, new_end)
    logger.info(f"🔍 {len(conflicts)} conflict(s) for {start} to {end}")
    return conflicts


def find_related_events(calendar: CalendarBase, title_keyword: str,
                        limit: int = Config.RELATED_EVENTS_LIMIT) -> List[CalendarEvent]:
    keyword = title_keyword.lower()
    related = []

    for event in calendar.get_all_events():
        if keyword in event.title.lower():
            related.append(event)
            if len(related) >= limit:
                break

    return related


def get_event_context(calendar: CalendarBase, event_id: str,
                      hours_before: float = Config.CONTEXT_HOURS,
                      hours_after: float = Config.CONTEXT_HOURS) -> Dict[str, Any]:
    """
    Events surrounding ``event_id``.

    A missing event yields an error entry with empty lists rather than an
    exception, since callers are tool consumers expecting a usable payload.
    """
    target = calendar.get_event_by_id(event_id)
    if target is None:
        logger.info(f"Event not found for context lookup: {event_id}")
        return {
            "error": f"Event not found: {event_id}",
            "event": None,
            "before": [],
            "after": [],
        }

    target_start = target.start_dt
    target_end = target.end_dt
    events = calendar.get_events(
        to_local_iso(target_start - timedelta(hours=hours_before)),
        to_local_iso(target_end + timedelta(hours=hours_after)),
    )

    before, after = [], []
    for event in events:
        if event.id == event_id:
            continue
        if event.end_dt <= target_start:
            before.append(event)
        elif event.start_dt >= target_end:
            after.append(event)

    return {
        "event": target.to_dict(),
        "before": [e.to_dict() for e in before],
        "after": [e.to_dict() for e in after],
    }
