"""
Configuration settings for the Smart Calendar scheduling engine
"""
import os
from typing import Dict, List


class Config:
    # Calendar backend: "local" (SQLite with full undo) or "google"
    CALENDAR_BACKEND = os.getenv("SMART_CALENDAR_BACKEND", "local")
    DATABASE_PATH = os.getenv("SMART_CALENDAR_DB", "smart_calendar.db")
    PERSONA_PATH = os.getenv("SMART_CALENDAR_PERSONA", "persona.json")

    # Google Calendar
    GOOGLE_TOKEN_PATH = os.getenv("SMART_CALENDAR_GOOGLE_TOKEN", "google.token")
    GOOGLE_CALENDAR_ID = os.getenv("SMART_CALENDAR_GOOGLE_CALENDAR_ID", "primary")
    CALENDAR_TIMEZONE = os.getenv("SMART_CALENDAR_TIMEZONE")  # IANA name, optional
    GOOGLE_MAX_RESULTS = 250

    # API Configuration
    API_HOST = os.getenv("SMART_CALENDAR_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("SMART_CALENDAR_PORT", "5000"))
    LOG_LEVEL = os.getenv("SMART_CALENDAR_LOG_LEVEL", "INFO")

    # Scheduling Configuration
    DEFAULT_WORK_HOURS = ("09:00", "18:00")
    CONFLICT_WINDOW_HOURS = 24
    ADJUSTMENT_WINDOW_HOURS = 2
    KEEP_BUFFER_MINUTES = 15
    MAX_SUGGESTIONS = 5
    DEFAULT_PRIORITY = 3
    RELATED_EVENTS_LIMIT = 10
    CONTEXT_HOURS = 3

    # Persona analysis
    ANALYSIS_WEEKS = 10
    MAX_PERSONA_NOTES = 50
    MAX_ROUTINES = 20
    DRIFT_THRESHOLD_MINUTES = 30
    DRIFT_ADOPT_COUNT = 3
    DRIFT_CONFIDENCE_BOOST = 0.1
    DRIFT_MAX_PENDING = 100

    LUNCH_KEYWORDS: List[str] = ["점심", "lunch", "런치", "식사"]
    MEETING_KEYWORDS: List[str] = [
        "회의", "meeting", "미팅", "sync", "standup", "스탠드업", "데일리", "daily"
    ]

    @classmethod
    def get_backend_config(cls) -> Dict[str, str]:
        """Describe the configured storage backend"""
        if cls.CALENDAR_BACKEND == "google":
            return {
                "backend": "google",
                "calendar_id": cls.GOOGLE_CALENDAR_ID,
                "token_path": cls.GOOGLE_TOKEN_PATH,
                "persona_path": cls.PERSONA_PATH,
            }
        return {
            "backend": "local",
            "database_path": cls.DATABASE_PATH,
        }

    @classmethod
    def get_token_path(cls) -> str:
        """Get the Google authorized-user token file"""
        if not os.path.exists(cls.GOOGLE_TOKEN_PATH):
            raise FileNotFoundError(f"Token file not found: {cls.GOOGLE_TOKEN_PATH}")
        return cls.GOOGLE_TOKEN_PATH

    @classmethod
    def create_calendar(cls):
        """Build the configured calendar store"""
        if cls.CALENDAR_BACKEND == "google":
            from src.calendar.google_calendar import GoogleCalendar
            return GoogleCalendar.from_token_file(cls.get_token_path(), cls.GOOGLE_CALENDAR_ID)

        from src.calendar.local_calendar import LocalCalendar
        return LocalCalendar(cls.DATABASE_PATH)

    @classmethod
    def create_persona_store(cls, calendar=None):
        """Build the persona store matching the calendar backend"""
        from src.calendar.persona_store import JsonFilePersonaStore, SQLitePersonaStore

        if cls.CALENDAR_BACKEND == "google":
            return JsonFilePersonaStore(cls.PERSONA_PATH)

        if calendar is not None and hasattr(calendar, "connection"):
            return SQLitePersonaStore(calendar.connection, calendar.lock)
        return SQLitePersonaStore.open(cls.DATABASE_PATH)
