"""
Validation utilities for event and persona patches
"""
import re
from typing import Any, Dict, List, Optional

from src.calendar.models import EVENT_FIELDS, CalendarEvent, Category
from src.persona.models import SchedulingStyle
from utils.date_utils import parse_date, parse_time
from utils.errors import FormatError

ACTIVE_HOURS_KEYS = ("workStart", "workEnd", "lunchStart", "lunchEnd")
PERSONA_CHANGE_KEYS = ("activeHours", "schedulingStyle", "bufferPreference", "routines")


class EventChangesValidator:
    """
    Field-by-field checks for event creation and partial updates.

    Each method returns a list of error messages; an empty list means the
    fields may be merged. Unparseable timestamps raise FormatError instead.
    """

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format"""
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(email_pattern, email))

    @staticmethod
    def _timestamp_errors(fields: Dict[str, Any]) -> List[str]:
        return [
            f"'{key}' must be a non-empty timestamp string"
            for key in ("start", "end")
            if key in fields and (not isinstance(fields[key], str) or not fields[key].strip())
        ]

    @staticmethod
    def validate_fields(fields: Dict[str, Any]) -> List[str]:
        errors = EventChangesValidator._timestamp_errors(fields)

        if "title" in fields and (not isinstance(fields["title"], str) or not fields["title"].strip()):
            errors.append("'title' must be a non-empty string")

        if "category" in fields and not Category.is_valid(fields["category"]):
            errors.append(
                f"Invalid category: {fields['category']}. "
                f"Allowed values: {', '.join(Category.values())}"
            )

        if "tags" in fields:
            tags = fields["tags"]
            if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
                errors.append("'tags' must be a list of strings")

        if "is_movable" in fields and not isinstance(fields["is_movable"], bool):
            errors.append("'is_movable' must be true or false")

        if "priority" in fields:
            priority = fields["priority"]
            if isinstance(priority, bool) or not isinstance(priority, int) or not 1 <= priority <= 5:
                errors.append(f"'priority' must be an integer from 1 (highest) to 5, got {priority}")

        for key in ("description", "location"):
            if fields.get(key) is not None and not isinstance(fields[key], str):
                errors.append(f"'{key}' must be a string")

        if fields.get("attendees") is not None:
            for i, attendee in enumerate(fields["attendees"]):
                if not isinstance(attendee, dict) or "email" not in attendee:
                    errors.append(f"Attendee {i} must have 'email' field")
                elif not EventChangesValidator.validate_email(attendee["email"]):
                    errors.append(f"Invalid email format in attendee {i}: {attendee['email']}")

        return errors

    @staticmethod
    def validate_create(fields: Dict[str, Any]) -> List[str]:
        errors = []
        for key in ("title", "start", "end"):
            if not fields.get(key):
                errors.append(f"Missing required field: {key}")
        if errors:
            return errors

        errors.extend(EventChangesValidator.validate_fields(fields))
        if EventChangesValidator._timestamp_errors(fields):
            return errors
        if parse_date(fields["start"]) >= parse_date(fields["end"]):
            errors.append(f"Event must end after it starts: {fields['start']} >= {fields['end']}")
        return errors

    @staticmethod
    def validate_update(existing: CalendarEvent, changes: Dict[str, Any]) -> List[str]:
        errors = [f"Unknown field: {key}" for key in changes if key not in EVENT_FIELDS]
        errors.extend(EventChangesValidator.validate_fields(changes))

        if ("start" in changes or "end" in changes) and not EventChangesValidator._timestamp_errors(changes):
            start = parse_date(changes["start"] if "start" in changes else existing.start)
            end = parse_date(changes["end"] if "end" in changes else existing.end)
            if start >= end:
                errors.append(f"Event must end after it starts: {start.isoformat()} >= {end.isoformat()}")
        return errors


class PersonaChangesValidator:
    """Checks an explicit persona patch before it is merged"""

    @staticmethod
    def validate(changes: Dict[str, Any]) -> List[str]:
        errors = [f"Unknown persona field: {key}" for key in changes if key not in PERSONA_CHANGE_KEYS]

        active_hours = changes.get("activeHours")
        if active_hours is not None:
            if not isinstance(active_hours, dict):
                errors.append("'activeHours' must be an object")
            else:
                for key, value in active_hours.items():
                    if key not in ACTIVE_HOURS_KEYS:
                        errors.append(f"Unknown activeHours field: {key}")
                        continue
                    error = PersonaChangesValidator._check_hhmm(f"activeHours.{key}", value)
                    if error:
                        errors.append(error)

        style = changes.get("schedulingStyle")
        if style is not None and style not in SchedulingStyle.values():
            errors.append(
                f"Invalid schedulingStyle: {style}. "
                f"Allowed values: {', '.join(SchedulingStyle.values())}"
            )

        buffer = changes.get("bufferPreference")
        if buffer is not None and (isinstance(buffer, bool) or not isinstance(buffer, int) or buffer < 0):
            errors.append("'bufferPreference' must be a non-negative integer (minutes)")

        routines = changes.get("routines")
        if routines is not None:
            if not isinstance(routines, list):
                errors.append("'routines' must be a list")
            else:
                for i, routine in enumerate(routines):
                    errors.extend(PersonaChangesValidator._check_routine(i, routine))

        return errors

    @staticmethod
    def _check_hhmm(label: str, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not re.match(r'^\d{2}:\d{2}$', value):
            return f"'{label}' must be HH:MM, got {value}"
        try:
            parse_time(value)
        except FormatError as e:
            return str(e)
        return None

    @staticmethod
    def _check_routine(index: int, routine: Any) -> List[str]:
        if not isinstance(routine, dict):
            return [f"Routine {index} must be an object"]

        errors = []
        if not routine.get("keyword") or not isinstance(routine["keyword"], str):
            errors.append(f"Routine {index} must have a 'keyword'")
        for key in ("typicalStart", "typicalEnd"):
            error = PersonaChangesValidator._check_hhmm(f"routines[{index}].{key}", routine.get(key))
            if error:
                errors.append(error)

        days = routine.get("dayOfWeek", [])
        if not isinstance(days, list) or not all(isinstance(d, int) and 0 <= d <= 6 for d in days):
            errors.append(f"Routine {index} 'dayOfWeek' must list weekdays 0 (Sun) to 6 (Sat)")

        confidence = routine.get("confidence", 0)
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or not 0 <= confidence <= 1:
            errors.append(f"Routine {index} 'confidence' must be between 0 and 1")
        return errors
