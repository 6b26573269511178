"""
Smart Scheduler - engine object tying the calendar, persona and drift worker together
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from config.settings import Config
from src.calendar.calendar_base import CalendarBase
from src.calendar.models import CalendarEvent
from src.calendar.persona_store import PersonaStore
from src.persona import persona_analyzer
from src.persona.drift_detector import DriftDetector
from src.persona.models import UserPersona
from src.persona.prompt_builder import build_persona_prompt_section
from src.scheduler import conflict_analyzer, recommender, slot_finder
from utils.errors import ConcurrencyTimeout

logger = logging.getLogger(__name__)


class SmartScheduler:
    """
    Main scheduling coordinator.

    One instance per process owns the calendar store, the persona store, the
    persona lock and the drift worker. Nothing is kept in module globals.
    """

    def __init__(self, calendar: Optional[CalendarBase] = None,
                 persona_store: Optional[PersonaStore] = None):
        self.config = Config()
        self.calendar = calendar if calendar is not None else Config.create_calendar()
        self.persona_store = (persona_store if persona_store is not None
                              else Config.create_persona_store(self.calendar))

        self.persona_lock = threading.RLock()
        # Guards a mutation and the read of its last_change_set_id
        self._mutation_lock = threading.Lock()
        self.drift_detector = DriftDetector(self.persona_store, self.persona_lock)

        logger.info(f"SmartScheduler initialized ({type(self.calendar).__name__}, "
                    f"full undo: {self.calendar.supports_full_undo})")

    # ==================== Queries ====================

    def get_events(self, start_date: str, end_date: str, category: Optional[str] = None,
                   tags: Optional[List[str]] = None) -> List[CalendarEvent]:
        return slot_finder.get_events(self.calendar, start_date, end_date, category, tags)

    def search_events(self, query: str, start_date: Optional[str] = None,
                      end_date: Optional[str] = None) -> List[CalendarEvent]:
        return slot_finder.search_events(self.calendar, query, start_date, end_date)

    def get_free_slots(self, date: str, duration_minutes: int,
                       time_range: Optional[List[str]] = None) -> List[Dict[str, str]]:
        return slot_finder.get_free_slots(self.calendar, date, duration_minutes, time_range)

    def check_conflicts(self, start: str, end: str) -> List[CalendarEvent]:
        return conflict_analyzer.check_conflicts(self.calendar, start, end)

    def find_related_events(self, title_keyword: str,
                            limit: int = Config.RELATED_EVENTS_LIMIT) -> List[CalendarEvent]:
        return conflict_analyzer.find_related_events(self.calendar, title_keyword, limit)

    def get_event_context(self, event_id: str, hours_before: float = Config.CONTEXT_HOURS,
                          hours_after: float = Config.CONTEXT_HOURS) -> Dict[str, Any]:
        return conflict_analyzer.get_event_context(self.calendar, event_id, hours_before, hours_after)

    def get_event_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        return self.calendar.get_event_by_id(event_id)

    # ==================== Mutations ====================

    def create_event(self, event: CalendarEvent) -> Tuple[CalendarEvent, Optional[str]]:
        """Create ``event``; returns the stored copy and its changeset id"""
        with self._mutation_lock:
            created = self.calendar.create_event(event)
            change_set_id = self.calendar.last_change_set_id
        self.schedule_drift_detection(created)
        return created, change_set_id

    def update_event(self, event_id: str,
                     changes: Dict[str, Any]) -> Tuple[Optional[CalendarEvent], Optional[str]]:
        with self._mutation_lock:
            updated = self.calendar.update_event(event_id, changes)
            change_set_id = self.calendar.last_change_set_id if updated else None
        if updated is not None:
            self.schedule_drift_detection(updated)
        return updated, change_set_id

    def delete_event(self, event_id: str) -> Tuple[bool, Optional[str]]:
        with self._mutation_lock:
            deleted = self.calendar.delete_event(event_id)
            change_set_id = self.calendar.last_change_set_id if deleted else None
        return deleted, change_set_id

    def undo(self, change_set_id: str) -> bool:
        with self._mutation_lock:
            return self.calendar.undo(change_set_id)

    def schedule_drift_detection(self, event: CalendarEvent):
        """Fire-and-forget drift check; never fails the caller"""
        try:
            self.drift_detector.submit(event.title, event.start, event.end)
        except ConcurrencyTimeout as e:
            logger.warning(f"⚠️  Drift check dropped: {e}")
        except RuntimeError as e:
            logger.warning(f"⚠️  Drift worker unavailable: {e}")

    # ==================== Recommendations ====================

    def suggest_optimal_times(self, duration_minutes: int, preferred_dates: List[str],
                              constraints: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        persona = self.get_persona()
        return recommender.suggest_optimal_times(
            self.calendar, duration_minutes, preferred_dates, constraints, persona)

    def propose_schedule_adjustment(self, new_event: Dict[str, Any],
                                    strategy: str = "minimize_moves") -> List[Dict[str, Any]]:
        return recommender.propose_schedule_adjustment(self.calendar, new_event, strategy)

    # ==================== Persona ====================

    def get_persona(self) -> Optional[UserPersona]:
        return self.persona_store.get_persona()

    def analyze_user_patterns(self) -> Tuple[UserPersona, str]:
        with self.persona_lock:
            return persona_analyzer.analyze_user_patterns(self.calendar, self.persona_store)

    def update_persona(self, changes: Dict[str, Any], reason: str) -> UserPersona:
        with self.persona_lock:
            return persona_analyzer.update_persona(self.persona_store, changes, reason)

    def persona_prompt_section(self) -> Optional[str]:
        persona = self.get_persona()
        return build_persona_prompt_section(persona) if persona else None

    # ==================== Lifecycle ====================

    def get_status(self) -> Dict[str, Any]:
        return {
            "calendar": type(self.calendar).__name__,
            "supports_full_undo": self.calendar.supports_full_undo,
            "has_persona": self.get_persona() is not None,
            "pending_drift_checks": self.drift_detector.pending,
        }

    def close(self):
        self.drift_detector.shutdown(wait=True)
        if hasattr(self.calendar, "close"):
            self.calendar.close()
        logger.info("SmartScheduler stopped")
