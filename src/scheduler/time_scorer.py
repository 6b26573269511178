"""
Time-of-day scoring for candidate meeting slots
"""
from datetime import datetime
from typing import Optional

from src.persona.models import SchedulingStyle, UserPersona
from utils.date_utils import hhmm_to_minutes, minute_of_day, round_half_up

MIN_SCORE = 10
MAX_SCORE = 100
OUTSIDE_ACTIVE_HOURS_SCORE = 20
LUNCH_SCORE = 30
BASELINE_SCORE = 70
PREFERRED_TIME_BONUS = 25
ROUTINE_PENALTY = 30
ROUTINE_MIN_CONFIDENCE = 0.3


def default_time_score(dt: datetime) -> int:
    """Fixed preference curve used when no persona exists"""
    hour = dt.hour
    if 10 <= hour <= 11:
        return 100
    if 14 <= hour <= 15:
        return 95
    if 9 <= hour <= 12:
        return 80
    if 13 <= hour <= 17:
        return 70
    return 50


def protection_buffer(persona: UserPersona) -> int:
    """Minutes kept clear around lunch and routines"""
    if persona.scheduling_style == SchedulingStyle.CONSERVATIVE.value:
        return max(15, persona.buffer_preference)
    return 10


def personalized_time_score(dt: datetime, persona: UserPersona) -> int:
    """Score a slot start against the persona's hours, routines and style"""
    mins = minute_of_day(dt)
    hours = persona.active_hours

    work_start = hhmm_to_minutes(hours.work_start)
    work_end = hhmm_to_minutes(hours.work_end)
    if mins < work_start or mins >= work_end:
        return OUTSIDE_ACTIVE_HOURS_SCORE

    buffer = protection_buffer(persona)
    lunch_start = hhmm_to_minutes(hours.lunch_start)
    lunch_end = hhmm_to_minutes(hours.lunch_end)
    if lunch_start - buffer <= mins < lunch_end + buffer:
        return LUNCH_SCORE

    score = BASELINE_SCORE

    if f"{dt.hour:02d}:00" in persona.preferred_meeting_times:
        score += PREFERRED_TIME_BONUS

    for routine in persona.routines:
        if routine.confidence < ROUTINE_MIN_CONFIDENCE:
            continue
        routine_start = hhmm_to_minutes(routine.typical_start)
        routine_end = hhmm_to_minutes(routine.typical_end)
        if routine_start - buffer <= mins < routine_end + buffer:
            score -= round_half_up(ROUTINE_PENALTY * routine.confidence)
            break

    hour = dt.hour
    style = persona.scheduling_style
    if style == SchedulingStyle.CONSERVATIVE.value:
        if 10 <= hour <= 11:
            score += 15
        if 14 <= hour <= 15:
            score += 10
        if hour == work_start // 60 or hour == work_end // 60 - 1:
            score -= 10
    elif style == SchedulingStyle.AGGRESSIVE.value:
        score += 5
        if 10 <= hour <= 11:
            score += 5
    else:
        if 10 <= hour <= 11:
            score += 10
        if 14 <= hour <= 15:
            score += 5

    return max(MIN_SCORE, min(MAX_SCORE, score))


def calculate_time_score(dt: datetime, persona: Optional[UserPersona] = None) -> int:
    if persona is not None:
        return personalized_time_score(dt, persona)
    return default_time_score(dt)
