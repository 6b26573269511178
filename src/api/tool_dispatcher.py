"""
Tool definitions and dispatcher for driving the engine from an LLM tool-use loop
"""
import logging
import time
from typing import Any, Callable, Dict, List

from src.calendar.models import CalendarEvent, Category
from src.persona.models import SchedulingStyle
from src.scheduler.recommender import STRATEGIES
from src.scheduler.smart_scheduler import SmartScheduler
from utils.errors import NoDataError, NotFoundError
from utils.logger import SmartCalendarLogger
from utils.validators import EventChangesValidator, PersonaChangesValidator

logger = logging.getLogger(__name__)

CATEGORY_VALUES = Category.values()
UPDATABLE_FIELDS = (
    "title", "start", "end", "category", "description", "location",
    "tags", "is_movable", "priority",
)

_DATE_DESC = "Date (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)"
_TIME_DESC = "Local timestamp (YYYY-MM-DDTHH:MM:SS)"

_ROUTINE_SCHEMA = {
    "type": "object",
    "properties": {
        "keyword": {"type": "string"},
        "dayOfWeek": {"type": "array", "items": {"type": "integer"},
                      "description": "Weekdays, 0=Sunday .. 6=Saturday; empty means every day"},
        "typicalStart": {"type": "string", "description": "HH:MM"},
        "typicalEnd": {"type": "string", "description": "HH:MM"},
        "confidence": {"type": "number"},
    },
    "required": ["keyword", "typicalStart", "typicalEnd"],
}


def _schema(properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "ping",
        "description": "Connectivity check, returns a short status message",
        "input_schema": _schema({}, []),
    },
    {
        "name": "get_events",
        "description": "List events in a date range",
        "input_schema": _schema({
            "start_date": {"type": "string", "description": _DATE_DESC},
            "end_date": {"type": "string", "description": _DATE_DESC},
            "category": {"type": "string", "enum": CATEGORY_VALUES,
                         "description": "(optional) category filter"},
            "tags": {"type": "array", "items": {"type": "string"},
                     "description": "(optional) events carrying any of these tags"},
        }, ["start_date", "end_date"]),
    },
    {
        "name": "search_events",
        "description": "Search events by keyword in title, description and tags",
        "input_schema": _schema({
            "query": {"type": "string", "description": "Search keyword"},
            "start_date": {"type": "string", "description": "(optional) " + _DATE_DESC},
            "end_date": {"type": "string", "description": "(optional) " + _DATE_DESC},
        }, ["query"]),
    },
    {
        "name": "get_free_slots",
        "description": "Find free time slots of at least the given length on a date",
        "input_schema": _schema({
            "date": {"type": "string", "description": "Date (YYYY-MM-DD)"},
            "duration_minutes": {"type": "integer", "description": "Minimum slot length in minutes"},
            "time_range_start": {"type": "string", "description": "(optional) window start HH:MM, default 09:00"},
            "time_range_end": {"type": "string", "description": "(optional) window end HH:MM, default 18:00"},
        }, ["date", "duration_minutes"]),
    },
    {
        "name": "check_conflicts",
        "description": "List events overlapping a proposed time range",
        "input_schema": _schema({
            "start": {"type": "string", "description": _TIME_DESC},
            "end": {"type": "string", "description": _TIME_DESC},
        }, ["start", "end"]),
    },
    {
        "name": "find_related_events",
        "description": "Find events whose title contains a keyword",
        "input_schema": _schema({
            "title_keyword": {"type": "string"},
            "limit": {"type": "integer", "description": "(optional) maximum results, default 10"},
        }, ["title_keyword"]),
    },
    {
        "name": "get_event_context",
        "description": "Events just before and after a given event",
        "input_schema": _schema({
            "event_id": {"type": "string"},
            "hours_before": {"type": "integer", "description": "(optional) default 3"},
            "hours_after": {"type": "integer", "description": "(optional) default 3"},
        }, ["event_id"]),
    },
    {
        "name": "create_event",
        "description": "Create an event. The result carries a change_set_id usable with undo_event",
        "input_schema": _schema({
            "title": {"type": "string"},
            "start": {"type": "string", "description": _TIME_DESC},
            "end": {"type": "string", "description": _TIME_DESC},
            "category": {"type": "string", "enum": CATEGORY_VALUES,
                         "description": "(optional) default general"},
            "tags": {"type": "array", "items": {"type": "string"}},
            "description": {"type": "string"},
            "location": {"type": "string"},
            "is_movable": {"type": "boolean", "description": "(optional) default true"},
            "priority": {"type": "integer", "description": "(optional) 1 (highest) to 5, default 3"},
        }, ["title", "start", "end"]),
    },
    {
        "name": "update_event",
        "description": "Change fields of an existing event; omitted fields stay as they are",
        "input_schema": _schema({
            "event_id": {"type": "string"},
            "title": {"type": "string"},
            "start": {"type": "string", "description": _TIME_DESC},
            "end": {"type": "string", "description": _TIME_DESC},
            "category": {"type": "string", "enum": CATEGORY_VALUES},
            "tags": {"type": "array", "items": {"type": "string"}},
            "description": {"type": "string"},
            "location": {"type": "string"},
            "is_movable": {"type": "boolean"},
            "priority": {"type": "integer"},
        }, ["event_id"]),
    },
    {
        "name": "delete_event",
        "description": "Delete an event",
        "input_schema": _schema({"event_id": {"type": "string"}}, ["event_id"]),
    },
    {
        "name": "suggest_optimal_times",
        "description": "Rank candidate times for a new event across preferred dates, "
                       "using the learned user profile when available",
        "input_schema": _schema({
            "duration_minutes": {"type": "integer"},
            "preferred_dates": {"type": "array", "items": {"type": "string"},
                                "description": "Candidate dates (YYYY-MM-DD)"},
            "time_range_start": {"type": "string", "description": "(optional) HH:MM"},
            "time_range_end": {"type": "string", "description": "(optional) HH:MM"},
            "avoid_categories": {"type": "array", "items": {"type": "string"},
                                 "description": "(optional) events of these categories do not block time"},
            "buffer_minutes": {"type": "integer",
                               "description": "(optional) free minutes to keep around existing events"},
        }, ["duration_minutes", "preferred_dates"]),
    },
    {
        "name": "propose_schedule_adjustment",
        "description": "Propose how to move existing events to fit a new one. Nothing is changed",
        "input_schema": _schema({
            "title": {"type": "string"},
            "start": {"type": "string", "description": _TIME_DESC},
            "end": {"type": "string", "description": _TIME_DESC},
            "priority": {"type": "integer", "description": "(optional) 1 (highest) to 5, default 3"},
            "strategy": {"type": "string", "enum": list(STRATEGIES),
                         "description": "(optional) default minimize_moves"},
        }, ["title", "start", "end"]),
    },
    {
        "name": "undo_event",
        "description": "Revert a create/update/delete by the change_set_id from its result",
        "input_schema": _schema({"change_set_id": {"type": "string"}}, ["change_set_id"]),
    },
    {
        "name": "analyze_user_patterns",
        "description": "Learn the user's profile (active hours, routines, style) from the last 10 weeks",
        "input_schema": _schema({}, []),
    },
    {
        "name": "update_persona",
        "description": "Apply an explicit correction to the user profile",
        "input_schema": _schema({
            "activeHours": {
                "type": "object",
                "properties": {key: {"type": "string", "description": "HH:MM"}
                               for key in ("workStart", "workEnd", "lunchStart", "lunchEnd")},
            },
            "schedulingStyle": {"type": "string", "enum": SchedulingStyle.values()},
            "bufferPreference": {"type": "integer", "description": "Minutes"},
            "routines": {"type": "array", "items": _ROUTINE_SCHEMA,
                         "description": "Replaces the whole routine list"},
            "reason": {"type": "string", "description": "Why the profile is being changed"},
        }, ["reason"]),
    },
    {
        "name": "get_persona",
        "description": "Return the learned user profile",
        "input_schema": _schema({}, []),
    },
]

TOOLS_BY_NAME = {tool["name"]: tool for tool in TOOL_DEFINITIONS}


class ToolDispatcher:
    """Routes (tool name, flat argument dict) to the engine and shapes the response"""

    def __init__(self, scheduler: SmartScheduler):
        self.scheduler = scheduler
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "ping": self._ping,
            "get_events": self._get_events,
            "search_events": self._search_events,
            "get_free_slots": self._get_free_slots,
            "check_conflicts": self._check_conflicts,
            "find_related_events": self._find_related_events,
            "get_event_context": self._get_event_context,
            "create_event": self._create_event,
            "update_event": self._update_event,
            "delete_event": self._delete_event,
            "suggest_optimal_times": self._suggest_optimal_times,
            "propose_schedule_adjustment": self._propose_schedule_adjustment,
            "undo_event": self._undo_event,
            "analyze_user_patterns": self._analyze_user_patterns,
            "update_persona": self._update_persona,
            "get_persona": self._get_persona,
        }

    def execute_tool(self, name: str, args: Dict[str, Any] = None) -> Any:
        """
        Run one tool call.

        Expected failures come back as ``{error}`` or ``{success: False, error}``.
        FormatError (unparseable dates/times) and StorageError propagate.
        """
        args = args or {}
        start_time = time.time()

        handler = self._handlers.get(name)
        if handler is None:
            result = {"error": f"Unknown tool: {name}"}
        else:
            missing = [key for key in TOOLS_BY_NAME[name]["input_schema"]["required"]
                       if args.get(key) in (None, "")]
            if missing:
                result = {"error": f"Missing required argument(s) for {name}: {', '.join(missing)}"}
            else:
                result = handler(args)

        SmartCalendarLogger.log_tool_call(name, args, result, time.time() - start_time)
        return result

    # ==================== Query tools ====================

    def _ping(self, args):
        return {"status": "ok", "message": "Smart Calendar engine is running."}

    def _get_events(self, args):
        events = self.scheduler.get_events(
            args["start_date"], args["end_date"], args.get("category"), args.get("tags"))
        return [event.to_dict() for event in events]

    def _search_events(self, args):
        events = self.scheduler.search_events(
            args["query"], args.get("start_date"), args.get("end_date"))
        return [event.to_dict() for event in events]

    def _get_free_slots(self, args):
        return self.scheduler.get_free_slots(
            args["date"], args["duration_minutes"], self._time_range(args))

    def _check_conflicts(self, args):
        return [event.to_dict() for event in self.scheduler.check_conflicts(args["start"], args["end"])]

    def _find_related_events(self, args):
        events = self.scheduler.find_related_events(
            args["title_keyword"], args.get("limit") or self.scheduler.config.RELATED_EVENTS_LIMIT)
        return [event.to_dict() for event in events]

    def _get_event_context(self, args):
        hours = self.scheduler.config.CONTEXT_HOURS
        return self.scheduler.get_event_context(
            args["event_id"],
            args["hours_before"] if args.get("hours_before") is not None else hours,
            args["hours_after"] if args.get("hours_after") is not None else hours,
        )

    # ==================== Mutation tools ====================

    def _create_event(self, args):
        fields = {key: args[key] for key in UPDATABLE_FIELDS if args.get(key) is not None}
        fields.setdefault("category", Category.GENERAL.value)

        errors = EventChangesValidator.validate_create(fields)
        if errors:
            return {"success": False, "error": "; ".join(errors)}

        created, change_set_id = self.scheduler.create_event(CalendarEvent.from_dict(fields))
        result = {
            "success": True,
            "message": f"Event '{created.title}' was created.",
            "event": created.to_dict(),
        }
        if change_set_id:
            result["change_set_id"] = change_set_id
        return result

    def _update_event(self, args):
        event_id = args["event_id"]
        existing = self.scheduler.get_event_by_id(event_id)
        if existing is None:
            return {"success": False, "error": f"Event not found: {event_id}"}

        changes = {key: args[key] for key in UPDATABLE_FIELDS if key in args}
        errors = EventChangesValidator.validate_update(existing, changes)
        if errors:
            return {"success": False, "error": "; ".join(errors)}

        updated, change_set_id = self.scheduler.update_event(event_id, changes)
        if updated is None:
            return {"success": False, "error": "Failed to update the event."}

        result = {
            "success": True,
            "message": f"Event '{updated.title}' was updated.",
            "event": updated.to_dict(),
            "changes": changes,
        }
        if change_set_id:
            result["change_set_id"] = change_set_id
        return result

    def _delete_event(self, args):
        event_id = args["event_id"]
        existing = self.scheduler.get_event_by_id(event_id)
        if existing is None:
            return {"success": False, "error": f"Event not found: {event_id}"}

        deleted, change_set_id = self.scheduler.delete_event(event_id)
        if not deleted:
            return {"success": False, "error": "Failed to delete the event."}

        result = {
            "success": True,
            "message": f"Event '{existing.title}' was deleted.",
            "deleted_event": {"id": existing.id, "title": existing.title},
        }
        if change_set_id:
            result["change_set_id"] = change_set_id
        return result

    def _undo_event(self, args):
        change_set_id = args["change_set_id"]
        if self.scheduler.undo(change_set_id):
            return {"success": True, "message": f"Change reverted (change_set_id: {change_set_id})."}

        error = f"No change to revert for change_set_id: {change_set_id}"
        if not self.scheduler.calendar.supports_full_undo:
            error += " (this calendar can only revert event creation)"
        return {"success": False, "error": error}

    # ==================== Recommendation tools ====================

    def _suggest_optimal_times(self, args):
        constraints = {}
        time_range = self._time_range(args)
        if time_range:
            constraints["time_range"] = time_range
        if args.get("avoid_categories"):
            constraints["avoid_categories"] = args["avoid_categories"]
        if args.get("buffer_minutes"):
            constraints["buffer_minutes"] = args["buffer_minutes"]

        return self.scheduler.suggest_optimal_times(
            args["duration_minutes"], args["preferred_dates"], constraints or None)

    def _propose_schedule_adjustment(self, args):
        new_event = {
            "title": args["title"],
            "start": args["start"],
            "end": args["end"],
            "priority": args.get("priority") or self.scheduler.config.DEFAULT_PRIORITY,
        }
        return self.scheduler.propose_schedule_adjustment(
            new_event, args.get("strategy") or "minimize_moves")

    # ==================== Persona tools ====================

    def _analyze_user_patterns(self, args):
        try:
            persona, summary = self.scheduler.analyze_user_patterns()
        except NoDataError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "persona": persona.to_dict(), "summary": summary}

    def _update_persona(self, args):
        changes = {key: args[key] for key in ("activeHours", "schedulingStyle",
                                              "bufferPreference", "routines") if key in args}
        errors = PersonaChangesValidator.validate(changes)
        if errors:
            return {"success": False, "error": "; ".join(errors)}

        try:
            persona = self.scheduler.update_persona(changes, args["reason"])
        except NotFoundError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "message": "Profile updated.", "persona": persona.to_dict()}

    def _get_persona(self, args):
        persona = self.scheduler.get_persona()
        if persona is None:
            return {"success": False,
                    "error": "No persona has been set up yet. Run the pattern analysis first."}
        return {
            "success": True,
            "persona": persona.to_dict(),
            "prompt_section": self.scheduler.persona_prompt_section(),
        }

    @staticmethod
    def _time_range(args):
        if args.get("time_range_start") and args.get("time_range_end"):
            return [args["time_range_start"], args["time_range_end"]]
        return None
