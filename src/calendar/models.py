"""
Calendar data model: events, undo snapshots and changesets
"""
import copy
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from utils.date_utils import parse_date


class Category(str, Enum):
    DAX_WEB = "dax-web"
    DAX_SL = "dax-sl"
    ETC = "etc"
    MEETING = "meeting"
    AI = "ai"
    GENERAL = "general"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        return value in cls.values()


# Field names accepted in partial updates (``id`` is never patchable)
EVENT_FIELDS = (
    "title", "start", "end", "description", "location", "category", "tags",
    "is_movable", "priority", "colorId", "attendees", "reminders", "recurrence",
)


def _unique(tags) -> List[str]:
    seen = []
    for tag in tags or []:
        if tag not in seen:
            seen.append(tag)
    return seen


class CalendarEvent:
    """Represents a calendar event as handed out by a calendar store"""

    def __init__(self, title: str, start: str, end: str, event_id: str = "",
                 description: Optional[str] = None, location: Optional[str] = None,
                 category: str = Category.GENERAL.value, tags: Optional[List[str]] = None,
                 is_movable: bool = True, priority: int = 3,
                 color_id: Optional[str] = None,
                 attendees: Optional[List[Dict[str, Any]]] = None,
                 reminders: Optional[Dict[str, Any]] = None,
                 recurrence: Optional[List[str]] = None):
        self.id = event_id
        self.title = title
        self.start = start
        self.end = end
        self.description = description
        self.location = location
        self.category = category
        self.tags = _unique(tags)
        self.is_movable = is_movable
        self.priority = priority
        self.color_id = color_id
        self.attendees = attendees
        self.reminders = reminders
        self.recurrence = recurrence

    @property
    def start_dt(self) -> datetime:
        return parse_date(self.start)

    @property
    def end_dt(self) -> datetime:
        return parse_date(self.end)

    def overlaps_with(self, other_start: datetime, other_end: datetime) -> bool:
        """Strict overlap: touching boundaries do not overlap"""
        return self.start_dt < other_end and self.end_dt > other_start

    def duration(self):
        return self.end_dt - self.start_dt

    def with_changes(self, changes: Dict[str, Any]) -> "CalendarEvent":
        """Return a new event with ``changes`` applied (``id`` is kept)"""
        data = self.to_dict()
        for key, value in changes.items():
            if key == "id":
                continue
            data[key] = value
        return CalendarEvent.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for JSON serialization"""
        data = {
            "id": self.id,
            "title": self.title,
            "start": self.start,
            "end": self.end,
            "description": self.description,
            "location": self.location,
            "category": self.category,
            "tags": list(self.tags),
            "is_movable": self.is_movable,
            "priority": self.priority,
        }
        if self.color_id is not None:
            data["colorId"] = self.color_id
        if self.attendees is not None:
            data["attendees"] = copy.deepcopy(self.attendees)
        if self.reminders is not None:
            data["reminders"] = copy.deepcopy(self.reminders)
        if self.recurrence is not None:
            data["recurrence"] = list(self.recurrence)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalendarEvent":
        return cls(
            event_id=data.get("id") or "",
            title=data.get("title", ""),
            start=data["start"],
            end=data["end"],
            description=data.get("description"),
            location=data.get("location"),
            category=data.get("category") or Category.GENERAL.value,
            tags=data.get("tags"),
            is_movable=data.get("is_movable", True),
            priority=data.get("priority", 3),
            color_id=data.get("colorId"),
            attendees=copy.deepcopy(data.get("attendees")),
            reminders=copy.deepcopy(data.get("reminders")),
            recurrence=data.get("recurrence"),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, CalendarEvent):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"CalendarEvent(id={self.id!r}, title={self.title!r}, start={self.start!r}, end={self.end!r})"


class UndoLog:
    """One changeset: before-snapshots of every event a mutation touched"""

    def __init__(self, change_set_id: str, snapshots: List[Dict[str, Any]],
                 undo_id: Optional[str] = None, created_at: Optional[str] = None,
                 consumed_at: Optional[str] = None):
        self.undo_id = undo_id or str(uuid.uuid4())
        self.change_set_id = change_set_id
        self.created_at = created_at or datetime.now().isoformat()
        self.snapshots = snapshots
        self.consumed_at = consumed_at

    @classmethod
    def record(cls, change_set_id: str, event_id: str,
               before: Optional[CalendarEvent]) -> "UndoLog":
        return cls(change_set_id, [{
            "event_id": event_id,
            "before": before.to_dict() if before is not None else None,
        }])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "undoId": self.undo_id,
            "changeSetId": self.change_set_id,
            "createdAt": self.created_at,
            "snapshots": copy.deepcopy(self.snapshots),
            "consumedAt": self.consumed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UndoLog":
        return cls(
            change_set_id=data["changeSetId"],
            snapshots=data.get("snapshots", []),
            undo_id=data.get("undoId"),
            created_at=data.get("createdAt"),
            consumed_at=data.get("consumedAt"),
        )


def new_change_set_id() -> str:
    return str(uuid.uuid4())


def new_event_id() -> str:
    return f"evt_{uuid.uuid4().hex[:8]}"
