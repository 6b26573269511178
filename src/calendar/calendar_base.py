"""
Calendar store interface shared by the local and Google backends
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from src.calendar.models import CalendarEvent


class CalendarBase(ABC):
    """
    Calendar store collaborator consumed by the scheduling engine.

    Every mutating call sets ``last_change_set_id`` to the changeset that can
    be handed to ``undo``. ``supports_full_undo`` tells callers whether undo
    reverses updates and deletions too, or only creations.
    """

    supports_full_undo = True

    def __init__(self):
        self.last_change_set_id: Optional[str] = None

    @abstractmethod
    def get_events(self, start_date: str, end_date: str, category: Optional[str] = None,
                   tags: Optional[List[str]] = None) -> List[CalendarEvent]:
        """Events intersecting [start_date, end_date], sorted by start"""

    @abstractmethod
    def search_events(self, query: str, start_date: Optional[str] = None,
                      end_date: Optional[str] = None) -> List[CalendarEvent]:
        """Events whose title, description or tags contain ``query``"""

    @abstractmethod
    def get_event_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        pass

    @abstractmethod
    def create_event(self, event: CalendarEvent) -> CalendarEvent:
        pass

    @abstractmethod
    def update_event(self, event_id: str, changes: Dict[str, Any]) -> Optional[CalendarEvent]:
        pass

    @abstractmethod
    def delete_event(self, event_id: str) -> bool:
        pass

    @abstractmethod
    def get_all_events(self) -> List[CalendarEvent]:
        pass

    @abstractmethod
    def undo(self, change_set_id: str) -> bool:
        """Reverse a changeset; False when there is nothing to undo"""

    @staticmethod
    def filter_events(events: List[CalendarEvent], category: Optional[str] = None,
                      tags: Optional[List[str]] = None) -> List[CalendarEvent]:
        if category:
            events = [e for e in events if e.category == category]
        if tags:
            events = [e for e in events if any(tag in e.tags for tag in tags)]
        return events

    @staticmethod
    def matches_query(event: CalendarEvent, query: str) -> bool:
        pattern = query.lower()
        if pattern in event.title.lower():
            return True
        if event.description and pattern in event.description.lower():
            return True
        return any(pattern in tag.lower() for tag in event.tags)
