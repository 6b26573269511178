"""
User persona model: active hours, routines, weekday profile and notes
"""
import copy
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


class SchedulingStyle(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class NoteType(str, Enum):
    DRIFT = "drift"
    EXPLICIT = "explicit"


def weekday_index(dt: datetime) -> int:
    """0=Sunday .. 6=Saturday"""
    return dt.isoweekday() % 7


class ActiveHours:
    def __init__(self, work_start: str = "09:00", work_end: str = "18:00",
                 lunch_start: str = "12:30", lunch_end: str = "13:30"):
        self.work_start = work_start
        self.work_end = work_end
        self.lunch_start = lunch_start
        self.lunch_end = lunch_end

    def to_dict(self) -> Dict[str, str]:
        return {
            "workStart": self.work_start,
            "workEnd": self.work_end,
            "lunchStart": self.lunch_start,
            "lunchEnd": self.lunch_end,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "ActiveHours":
        return cls(
            work_start=data.get("workStart", "09:00"),
            work_end=data.get("workEnd", "18:00"),
            lunch_start=data.get("lunchStart", "12:30"),
            lunch_end=data.get("lunchEnd", "13:30"),
        )


class RoutinePattern:
    """A recurring event pattern with its typical time window"""

    def __init__(self, keyword: str, day_of_week: List[int], typical_start: str,
                 typical_end: str, confidence: float):
        self.keyword = keyword
        self.day_of_week = sorted(set(day_of_week))
        self.typical_start = typical_start
        self.typical_end = typical_end
        self.confidence = confidence

    def days_label(self) -> str:
        if not self.day_of_week:
            return "every day"
        return "·".join(WEEKDAY_LABELS[d] for d in self.day_of_week)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "dayOfWeek": list(self.day_of_week),
            "typicalStart": self.typical_start,
            "typicalEnd": self.typical_end,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutinePattern":
        return cls(
            keyword=data["keyword"],
            day_of_week=data.get("dayOfWeek", []),
            typical_start=data["typicalStart"],
            typical_end=data["typicalEnd"],
            confidence=float(data.get("confidence", 0)),
        )


class WeekdayProfile:
    def __init__(self, avg_events: float, busy_hours: List[str], free_hours: List[str]):
        self.avg_events = avg_events
        self.busy_hours = busy_hours
        self.free_hours = free_hours

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avgEvents": self.avg_events,
            "busyHours": list(self.busy_hours),
            "freeHours": list(self.free_hours),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeekdayProfile":
        return cls(data.get("avgEvents", 0), data.get("busyHours", []), data.get("freeHours", []))


class PersonaNote:
    def __init__(self, note_type: str, content: str, related_routine: Optional[str] = None,
                 count: int = 1, created_at: Optional[str] = None):
        self.created_at = created_at or datetime.now().isoformat()
        self.type = note_type
        self.content = content
        self.related_routine = related_routine
        self.count = count

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "createdAt": self.created_at,
            "type": self.type,
            "content": self.content,
            "count": self.count,
        }
        if self.related_routine is not None:
            data["relatedRoutine"] = self.related_routine
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersonaNote":
        return cls(
            note_type=data["type"],
            content=data.get("content", ""),
            related_routine=data.get("relatedRoutine"),
            count=data.get("count", 1),
            created_at=data.get("createdAt"),
        )


class UserPersona:
    """Versioned behavioral profile derived from calendar history"""

    VERSION = 1

    def __init__(self, active_hours: ActiveHours, routines: List[RoutinePattern],
                 weekday_profile: Dict[str, WeekdayProfile], scheduling_style: str,
                 preferred_meeting_times: List[str], avg_daily_events: float,
                 buffer_preference: int, notes: Optional[List[PersonaNote]] = None,
                 created_at: Optional[str] = None, updated_at: Optional[str] = None,
                 version: int = VERSION):
        now = datetime.now().isoformat()
        self.version = version
        self.created_at = created_at or now
        self.updated_at = updated_at or self.created_at
        self.active_hours = active_hours
        self.routines = routines
        self.weekday_profile = weekday_profile
        self.scheduling_style = scheduling_style
        self.preferred_meeting_times = preferred_meeting_times
        self.avg_daily_events = avg_daily_events
        self.buffer_preference = buffer_preference
        self.notes = notes or []

    def touch(self):
        self.updated_at = datetime.now().isoformat()

    def trim_notes(self, max_notes: int):
        """Keep only the most recent ``max_notes`` notes"""
        if len(self.notes) > max_notes:
            self.notes = self.notes[-max_notes:]

    def copy(self) -> "UserPersona":
        return UserPersona.from_dict(copy.deepcopy(self.to_dict()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "activeHours": self.active_hours.to_dict(),
            "routines": [r.to_dict() for r in self.routines],
            "weekdayProfile": {day: p.to_dict() for day, p in self.weekday_profile.items()},
            "schedulingStyle": self.scheduling_style,
            "preferredMeetingTimes": list(self.preferred_meeting_times),
            "avgDailyEvents": self.avg_daily_events,
            "bufferPreference": self.buffer_preference,
            "notes": [n.to_dict() for n in self.notes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserPersona":
        return cls(
            version=data.get("version", cls.VERSION),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            active_hours=ActiveHours.from_dict(data.get("activeHours", {})),
            routines=[RoutinePattern.from_dict(r) for r in data.get("routines", [])],
            weekday_profile={
                day: WeekdayProfile.from_dict(p)
                for day, p in data.get("weekdayProfile", {}).items()
            },
            scheduling_style=data.get("schedulingStyle", SchedulingStyle.MODERATE.value),
            preferred_meeting_times=data.get("preferredMeetingTimes", []),
            avg_daily_events=data.get("avgDailyEvents", 0),
            buffer_preference=data.get("bufferPreference", 15),
            notes=[PersonaNote.from_dict(n) for n in data.get("notes", [])],
        )
