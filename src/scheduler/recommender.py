"""
Slot recommendation and non-destructive schedule adjustment proposals
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from config.settings import Config
from src.calendar.calendar_base import CalendarBase
from src.calendar.models import CalendarEvent
from src.persona.models import UserPersona
from src.scheduler.conflict_analyzer import find_overlapping
from src.scheduler.slot_finder import day_window, sweep_free_intervals
from src.scheduler.time_scorer import calculate_time_score
from utils.date_utils import parse_date, to_local_iso

logger = logging.getLogger(__name__)

STRATEGIES = ("minimize_moves", "respect_priority", "keep_buffer")


def suggest_optimal_times(calendar: CalendarBase, duration_minutes: int,
                          preferred_dates: List[str],
                          constraints: Optional[Dict[str, Any]] = None,
                          persona: Optional[UserPersona] = None) -> List[Dict[str, Any]]:
    """
    Best-scoring candidate slots across ``preferred_dates``.

    Constraints: ``time_range`` [HH:MM, HH:MM], ``avoid_categories`` (events
    of these categories do not block time), ``buffer_minutes`` (padding kept
    around every blocking event).
    """
    constraints = constraints or {}
    time_range = constraints.get("time_range") or list(Config.DEFAULT_WORK_HOURS)
    avoid_categories = constraints.get("avoid_categories") or []
    buffer = timedelta(minutes=constraints.get("buffer_minutes") or 0)
    duration = timedelta(minutes=duration_minutes)

    suggestions = []
    for date_str in preferred_dates:
        day_start, day_end = day_window(date_str, time_range)
        events = calendar.get_events(to_local_iso(day_start), to_local_iso(day_end))
        if avoid_categories:
            events = [e for e in events if e.category not in avoid_categories]

        busy = [(e.start_dt - buffer, e.end_dt + buffer) for e in events]
        for slot_start, available_until in sweep_free_intervals(day_start, day_end, busy,
                                                                duration_minutes):
            suggestions.append({
                "date": date_str,
                "start": to_local_iso(slot_start),
                "end": to_local_iso(slot_start + duration),
                "available_until": to_local_iso(available_until),
                "score": calculate_time_score(slot_start, persona),
            })

    # sorted() is stable: equal scores keep date/position order
    ranked = sorted(suggestions, key=lambda s: s["score"], reverse=True)
    logger.info(f"🎯 {len(suggestions)} candidate slot(s) across {len(preferred_dates)} date(s)")
    return ranked[:Config.MAX_SUGGESTIONS]


def format_time_diff(original: datetime, proposed: datetime) -> str:
    """Human-readable signed shift, e.g. '1h 30m later' or '45m earlier'"""
    minutes = round((proposed - original).total_seconds() / 60)
    direction = "later" if minutes >= 0 else "earlier"
    minutes = abs(minutes)

    if minutes >= 60:
        hours, mins = divmod(minutes, 60)
        amount = f"{hours}h {mins}m" if mins else f"{hours}h"
    else:
        amount = f"{minutes}m"
    return f"{amount} {direction}"


def _create_proposal(title: str, start: datetime, end: datetime, reason: str) -> Dict[str, Any]:
    return {
        "action": "create",
        "event_id": None,
        "proposed": {"title": title, "start": to_local_iso(start), "end": to_local_iso(end)},
        "reason": reason,
    }


def _move_proposal(event: CalendarEvent, new_start: datetime, reason: str) -> Dict[str, Any]:
    return {
        "action": "move",
        "event_id": event.id,
        "event_title": event.title,
        "original": {"start": event.start, "end": event.end},
        "proposed": {
            "start": to_local_iso(new_start),
            "end": to_local_iso(new_start + event.duration()),
        },
        "reason": reason,
    }


def _conflict_entry(event: CalendarEvent, reason: str) -> Dict[str, Any]:
    return {
        "action": "conflict",
        "event_id": event.id,
        "event_title": event.title,
        "original": {"start": event.start, "end": event.end},
        "proposed": None,
        "reason": reason,
    }


def strategy_minimize_moves(conflicts: List[CalendarEvent], new_start: datetime,
                            new_end: datetime, new_title: str) -> List[Dict[str, Any]]:
    proposals = []
    for event in conflicts:
        if event.is_movable:
            shift = format_time_diff(event.start_dt, new_end)
            proposals.append(_move_proposal(
                event, new_end, f"Move '{event.title}' {shift} to make room for '{new_title}'"))
        else:
            proposals.append(_conflict_entry(
                event, f"'{event.title}' cannot be moved. Please choose another time."))

    if all(p["action"] == "move" for p in proposals):
        proposals.insert(0, _create_proposal(
            new_title, new_start, new_end,
            f"Create '{new_title}' and move the conflicting events."))
    return proposals


def strategy_respect_priority(conflicts: List[CalendarEvent], new_end: datetime,
                              new_title: str, new_priority: int) -> List[Dict[str, Any]]:
    proposals = []
    for event in conflicts:
        # 1 is the highest priority, so a larger number ranks lower
        if event.is_movable and event.priority > new_priority:
            proposals.append(_move_proposal(
                event, new_end,
                f"'{new_title}' (priority {new_priority}) outranks "
                f"'{event.title}' (priority {event.priority}), so it moves"))
        else:
            entry = _conflict_entry(
                event,
                f"'{event.title}' (priority {event.priority}) is at least as important as "
                f"'{new_title}' (priority {new_priority}) and cannot be moved")
            entry["priority"] = event.priority
            proposals.append(entry)
    return proposals


def strategy_keep_buffer(conflicts: List[CalendarEvent], new_end: datetime, new_title: str,
                         buffer_minutes: int = Config.KEEP_BUFFER_MINUTES) -> List[Dict[str, Any]]:
    proposals = []
    moved_start = new_end + timedelta(minutes=buffer_minutes)
    for event in conflicts:
        if event.is_movable:
            proposals.append(_move_proposal(
                event, moved_start,
                f"Move '{event.title}' to {buffer_minutes} min after '{new_title}'"))
        else:
            proposals.append(_conflict_entry(event, f"'{event.title}' cannot be moved."))
    return proposals


def propose_schedule_adjustment(calendar: CalendarBase, new_event: Dict[str, Any],
                                strategy: str = "minimize_moves",
                                buffer_minutes: int = Config.KEEP_BUFFER_MINUTES) -> List[Dict[str, Any]]:
    """
    Proposals for fitting ``new_event`` ({title, start, end, priority}) in.

    Nothing is written to the calendar; each entry is a ``create``, ``move``
    or ``conflict`` suggestion for the caller to confirm.
    """
    new_start = parse_date(new_event["start"])
    new_end = parse_date(new_event["end"])
    new_title = new_event.get("title") or "New event"
    new_priority = new_event.get("priority") or Config.DEFAULT_PRIORITY

    window = timedelta(hours=Config.ADJUSTMENT_WINDOW_HOURS)
    events = calendar.get_events(to_local_iso(new_start - window), to_local_iso(new_end + window))
    conflicts = find_overlapping(events, new_start, new_end)

    if not conflicts:
        return [_create_proposal(new_title, new_start, new_end,
                                 "No conflicting events, it can be created directly.")]

    logger.info(f"⚠️  {len(conflicts)} conflict(s) for '{new_title}', strategy={strategy}")

    if strategy == "respect_priority":
        return strategy_respect_priority(conflicts, new_end, new_title, new_priority)
    if strategy == "keep_buffer":
        return strategy_keep_buffer(conflicts, new_end, new_title, buffer_minutes)
    return strategy_minimize_moves(conflicts, new_start, new_end, new_title)
