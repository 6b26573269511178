"""
Google Calendar integration for the Smart Calendar engine
"""
import json
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config.settings import Config
from src.calendar.calendar_base import CalendarBase
from src.calendar.models import CalendarEvent, Category, new_change_set_id
from utils.errors import StorageError

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]
_TZ_SUFFIX = re.compile(r'(Z|[+-]\d{2}:\d{2})$')


def strip_timezone(date_time: str) -> str:
    """Drop a trailing ``Z`` or ``+HH:MM`` so times compare as local"""
    return _TZ_SUFFIX.sub('', date_time)


def local_offset() -> str:
    offset = datetime.now().astimezone().strftime('%z')
    return f"{offset[:3]}:{offset[3:]}"


def to_rfc3339(date_str: str) -> str:
    if 'T' in date_str and _TZ_SUFFIX.search(date_str):
        return date_str
    if 'T' in date_str:
        return date_str + local_offset()
    return f"{date_str}T00:00:00{local_offset()}"


def gcal_to_event(item: Dict[str, Any]) -> CalendarEvent:
    """Convert a Google Calendar resource into a CalendarEvent"""
    private = item.get('extendedProperties', {}).get('private', {})
    start = item.get('start', {})
    end = item.get('end', {})

    attendees = None
    if 'attendees' in item:
        attendees = [
            {k: a[k] for k in ('email', 'displayName', 'responseStatus', 'optional') if k in a}
            for a in item['attendees']
        ]

    return CalendarEvent(
        event_id=item.get('id', ''),
        title=item.get('summary', '(no title)'),
        start=strip_timezone(start.get('dateTime') or f"{start.get('date')}T00:00:00"),
        end=strip_timezone(end.get('dateTime') or f"{end.get('date')}T23:59:59"),
        description=item.get('description'),
        location=item.get('location'),
        category=private.get('sc_category', Category.GENERAL.value),
        tags=json.loads(private['sc_tags']) if private.get('sc_tags') else [],
        is_movable=private.get('sc_is_movable') != 'false',
        priority=int(private['sc_priority']) if private.get('sc_priority') else 3,
        color_id=item.get('colorId'),
        attendees=attendees,
        reminders=item.get('reminders'),
        recurrence=item.get('recurrence'),
    )


def event_to_gcal(fields: Dict[str, Any], timezone: Optional[str] = None) -> Dict[str, Any]:
    """Convert (partial) event fields into a Google Calendar resource body"""
    body: Dict[str, Any] = {}

    if 'title' in fields:
        body['summary'] = fields['title']
    for key in ('description', 'location', 'colorId', 'reminders', 'recurrence'):
        if fields.get(key) is not None:
            body[key] = fields[key]
    for key in ('start', 'end'):
        if fields.get(key):
            body[key] = {'dateTime': to_rfc3339(fields[key])}
            if timezone:
                body[key]['timeZone'] = timezone
    if fields.get('attendees') is not None:
        body['attendees'] = [dict(a) for a in fields['attendees']]

    # SmartCalendar-only fields live in private extended properties
    private = {}
    if 'category' in fields:
        private['sc_category'] = fields['category']
    if 'tags' in fields:
        private['sc_tags'] = json.dumps(fields['tags'] or [], ensure_ascii=False)
    if 'is_movable' in fields:
        private['sc_is_movable'] = 'true' if fields['is_movable'] else 'false'
    if 'priority' in fields:
        private['sc_priority'] = str(fields['priority'])
    if private:
        body['extendedProperties'] = {'private': private}

    return body


class GoogleCalendar(CalendarBase):
    """
    Calendar store backed by the Google Calendar API.

    Google keeps no undo log, so undo here is best-effort: a creation can be
    reversed by deleting the event, updates and deletions cannot.
    """

    supports_full_undo = False

    def __init__(self, service, calendar_id: str = "primary", timezone: Optional[str] = None):
        super().__init__()
        self.service = service
        self.calendar_id = calendar_id
        self.timezone = timezone if timezone is not None else Config.CALENDAR_TIMEZONE
        # change_set_id -> (kind, event_id), process memory only
        self._change_sets: Dict[str, tuple] = {}

    @classmethod
    def from_token_file(cls, token_path: str, calendar_id: str = "primary") -> "GoogleCalendar":
        """Build the Calendar service from an authorized-user token file"""
        try:
            credentials = Credentials.from_authorized_user_file(token_path, CALENDAR_SCOPES)
        except (ValueError, FileNotFoundError) as e:
            logger.error(f"❌ Calendar token not available at {token_path}: {e}")
            raise StorageError(f"Google Calendar credentials unavailable: {e}") from e
        service = build("calendar", "v3", credentials=credentials, cache_discovery=False)
        logger.info(f"✅ Using Google Calendar '{calendar_id}'")
        return cls(service, calendar_id)

    def _execute(self, request, action: str):
        try:
            return request.execute()
        except HttpError as e:
            logger.error(f"HTTP error during {action}: {e}")
            raise StorageError(f"Google Calendar {action} failed: {e}") from e

    def _list(self, time_min: str, time_max: str, query: Optional[str] = None,
              max_results: Optional[int] = None) -> List[CalendarEvent]:
        params = {
            'calendarId': self.calendar_id,
            'timeMin': to_rfc3339(time_min),
            'timeMax': to_rfc3339(time_max),
            'singleEvents': True,
            'orderBy': 'startTime',
            'maxResults': max_results or Config.GOOGLE_MAX_RESULTS,
        }
        if query:
            params['q'] = query

        items = []
        page_token = None
        while True:
            if page_token:
                params['pageToken'] = page_token
            result = self._execute(self.service.events().list(**params), "list")
            items.extend(result.get('items', []))
            page_token = result.get('nextPageToken')
            if not page_token:
                break

        return [gcal_to_event(item) for item in items if item.get('status') != 'cancelled']

    def _remember(self, kind: str, event_id: str) -> str:
        change_set_id = new_change_set_id()
        self._change_sets[change_set_id] = (kind, event_id)
        self.last_change_set_id = change_set_id
        return change_set_id

    # ==================== Queries ====================

    def get_events(self, start_date: str, end_date: str, category: Optional[str] = None,
                   tags: Optional[List[str]] = None) -> List[CalendarEvent]:
        events = self._list(start_date, end_date)
        logger.info(f"📅 Retrieved {len(events)} events from {start_date} to {end_date}")
        events = self.filter_events(events, category, tags)
        return sorted(events, key=lambda e: e.start)

    def search_events(self, query: str, start_date: Optional[str] = None,
                      end_date: Optional[str] = None) -> List[CalendarEvent]:
        return self._list(start_date or "2020-01-01", end_date or "2030-12-31",
                          query=query, max_results=100)

    def get_event_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        try:
            item = self.service.events().get(calendarId=self.calendar_id, eventId=event_id).execute()
        except HttpError as e:
            if e.resp.status in (404, 410):
                return None
            logger.error(f"HTTP error getting event {event_id}: {e}")
            raise StorageError(f"Google Calendar get failed: {e}") from e
        if item.get('status') == 'cancelled':
            return None
        return gcal_to_event(item)

    def get_all_events(self) -> List[CalendarEvent]:
        now = datetime.now()
        return self.get_events(
            (now - timedelta(days=365)).strftime('%Y-%m-%d'),
            (now + timedelta(days=365)).strftime('%Y-%m-%d'),
        )

    # ==================== Mutations ====================

    def create_event(self, event: CalendarEvent) -> CalendarEvent:
        body = event_to_gcal(event.to_dict(), self.timezone)
        created = self._execute(
            self.service.events().insert(calendarId=self.calendar_id, body=body), "insert")
        new_event = gcal_to_event(created)
        change_set_id = self._remember('create', new_event.id)
        logger.info(f"📅 Created Google event {new_event.id} '{new_event.title}' (changeset {change_set_id})")
        return new_event

    def update_event(self, event_id: str, changes: Dict[str, Any]) -> Optional[CalendarEvent]:
        existing = self.get_event_by_id(event_id)
        if existing is None:
            return None

        fields = {k: v for k, v in changes.items() if k != 'id'}
        if 'category' in fields and not Category.is_valid(fields['category']):
            fields['category'] = existing.category
        body = event_to_gcal(fields, self.timezone)

        # patch replaces the private map wholesale, so merge it first
        if 'extendedProperties' in body:
            merged = {
                'sc_category': existing.category,
                'sc_tags': json.dumps(existing.tags, ensure_ascii=False),
                'sc_is_movable': 'true' if existing.is_movable else 'false',
                'sc_priority': str(existing.priority),
            }
            merged.update(body['extendedProperties']['private'])
            body['extendedProperties']['private'] = merged

        updated = self._execute(
            self.service.events().patch(calendarId=self.calendar_id, eventId=event_id, body=body),
            "patch")
        self._remember('update', event_id)
        return gcal_to_event(updated)

    def delete_event(self, event_id: str) -> bool:
        try:
            self.service.events().delete(calendarId=self.calendar_id, eventId=event_id).execute()
        except HttpError as e:
            if e.resp.status in (404, 410):
                return False
            logger.error(f"HTTP error deleting event {event_id}: {e}")
            raise StorageError(f"Google Calendar delete failed: {e}") from e
        self._remember('delete', event_id)
        return True

    def undo(self, change_set_id: str) -> bool:
        entry = self._change_sets.get(change_set_id)
        if entry is None:
            return False

        kind, event_id = entry
        if kind != 'create':
            logger.warning(f"⚠️  Google Calendar cannot undo a {kind} (changeset {change_set_id})")
            return False

        try:
            self.service.events().delete(calendarId=self.calendar_id, eventId=event_id).execute()
        except HttpError as e:
            if e.resp.status not in (404, 410):
                logger.error(f"HTTP error undoing changeset {change_set_id}: {e}")
                raise StorageError(f"Google Calendar undo failed: {e}") from e
        self._change_sets.pop(change_set_id, None)
        logger.info(f"↩️  Undid creation of Google event {event_id}")
        return True
