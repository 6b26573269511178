from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from conftest import make_event
from src.calendar.google_calendar import GoogleCalendar, event_to_gcal, gcal_to_event
from utils.errors import StorageError

GCAL_ITEM = {
    "id": "g1",
    "summary": "Standup",
    "start": {"dateTime": "2026-02-16T09:00:00+09:00"},
    "end": {"dateTime": "2026-02-16T09:15:00+09:00"},
    "extendedProperties": {"private": {
        "sc_category": "meeting", "sc_tags": '["daily"]',
        "sc_is_movable": "false", "sc_priority": "2",
    }},
}


def http_error(status):
    return HttpError(MagicMock(status=status, reason="error"), b"")


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def gcal(service):
    return GoogleCalendar(service, "primary", timezone="Asia/Seoul")


class TestConversion:
    def test_gcal_to_event(self):
        event = gcal_to_event(GCAL_ITEM)
        assert event.id == "g1"
        assert event.start == "2026-02-16T09:00:00"
        assert event.end == "2026-02-16T09:15:00"
        assert event.category == "meeting"
        assert event.tags == ["daily"]
        assert event.is_movable is False
        assert event.priority == 2

    def test_all_day_item_and_defaults(self):
        event = gcal_to_event({"id": "g2", "start": {"date": "2026-02-16"}, "end": {"date": "2026-02-17"}})
        assert event.title == "(no title)"
        assert event.start == "2026-02-16T00:00:00"
        assert event.category == "general"
        assert event.is_movable is True
        assert event.priority == 3

    def test_event_to_gcal(self):
        body = event_to_gcal({
            "title": "Review", "start": "2026-02-16T10:00:00+09:00",
            "end": "2026-02-16T11:00:00+09:00", "category": "ai", "is_movable": False,
        }, "Asia/Seoul")
        assert body["summary"] == "Review"
        assert body["start"] == {"dateTime": "2026-02-16T10:00:00+09:00", "timeZone": "Asia/Seoul"}
        assert body["extendedProperties"]["private"] == {"sc_category": "ai", "sc_is_movable": "false"}


class TestGoogleCalendar:
    def test_get_events_follows_pages_and_skips_cancelled(self, gcal, service):
        second = dict(GCAL_ITEM, id="g3", start={"dateTime": "2026-02-16T08:00:00+09:00"})
        service.events().list().execute.side_effect = [
            {"items": [GCAL_ITEM], "nextPageToken": "p2"},
            {"items": [second, {"id": "gx", "status": "cancelled"}]},
        ]

        events = gcal.get_events("2026-02-16", "2026-02-16T23:59:59")

        assert [e.id for e in events] == ["g3", "g1"]

    def test_list_failure_is_storage_error(self, gcal, service):
        service.events().list().execute.side_effect = http_error(500)
        with pytest.raises(StorageError):
            gcal.get_events("2026-02-16", "2026-02-17")

    def test_missing_event(self, gcal, service):
        service.events().get().execute.side_effect = http_error(404)
        assert gcal.get_event_by_id("nope") is None

    def test_delete_missing_event(self, gcal, service):
        service.events().delete().execute.side_effect = http_error(410)
        assert gcal.delete_event("nope") is False
        assert gcal.last_change_set_id is None

    def test_undo_creation_deletes_event(self, gcal, service):
        service.events().insert().execute.return_value = GCAL_ITEM

        created = gcal.create_event(make_event("Standup", "2026-02-16T09:00:00", "2026-02-16T09:15:00"))
        change_set_id = gcal.last_change_set_id

        assert created.id == "g1"
        assert gcal.undo(change_set_id) is True
        service.events().delete.assert_called_with(calendarId="primary", eventId="g1")
        assert gcal.undo(change_set_id) is False

    def test_update_cannot_be_undone(self, gcal, service):
        service.events().get().execute.return_value = GCAL_ITEM
        service.events().patch().execute.return_value = dict(GCAL_ITEM, summary="Daily")

        updated = gcal.update_event("g1", {"title": "Daily"})

        assert updated.title == "Daily"
        assert gcal.supports_full_undo is False
        assert gcal.undo(gcal.last_change_set_id) is False

    def test_update_merges_private_properties(self, gcal, service):
        service.events().get().execute.return_value = GCAL_ITEM
        service.events().patch().execute.return_value = GCAL_ITEM

        gcal.update_event("g1", {"priority": 1, "category": "bogus"})

        body = service.events().patch.call_args.kwargs["body"]
        assert body["extendedProperties"]["private"] == {
            "sc_category": "meeting", "sc_tags": '["daily"]',
            "sc_is_movable": "false", "sc_priority": "1",
        }
