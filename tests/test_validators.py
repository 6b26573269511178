import pytest

from conftest import make_event
from utils.errors import FormatError
from utils.validators import EventChangesValidator, PersonaChangesValidator

EXISTING = make_event("Standup", "2026-02-16T09:00:00", "2026-02-16T10:00:00", event_id="evt_standup")


class TestEventChangesValidator:
    def test_valid_create(self):
        assert EventChangesValidator.validate_create({
            "title": "Review", "start": "2026-02-16T10:00:00", "end": "2026-02-16T11:00:00",
            "category": "meeting", "tags": ["q1"], "priority": 2,
            "attendees": [{"email": "kim@example.com"}],
        }) == []

    def test_create_missing_required_fields(self):
        errors = EventChangesValidator.validate_create({"title": "Review"})
        assert errors == ["Missing required field: start", "Missing required field: end"]

    def test_create_end_before_start(self):
        errors = EventChangesValidator.validate_create({
            "title": "Review", "start": "2026-02-16T11:00:00", "end": "2026-02-16T10:00:00",
        })
        assert len(errors) == 1 and "end after it starts" in errors[0]

    def test_create_malformed_date_raises(self):
        with pytest.raises(FormatError):
            EventChangesValidator.validate_create({
                "title": "Review", "start": "tomorrow", "end": "2026-02-16T10:00:00",
            })

    @pytest.mark.parametrize("fields,fragment", [
        ({"title": "  "}, "'title'"),
        ({"category": "party"}, "Invalid category"),
        ({"tags": "q1"}, "'tags'"),
        ({"tags": ["q1", 2]}, "'tags'"),
        ({"is_movable": "yes"}, "'is_movable'"),
        ({"priority": 0}, "'priority'"),
        ({"priority": 6}, "'priority'"),
        ({"priority": True}, "'priority'"),
        ({"location": 42}, "'location'"),
        ({"attendees": [{"name": "Kim"}]}, "must have 'email'"),
        ({"attendees": [{"email": "not-an-email"}]}, "Invalid email"),
        ({"start": ""}, "'start'"),
        ({"end": None}, "'end'"),
    ])
    def test_field_errors(self, fields, fragment):
        errors = EventChangesValidator.validate_fields(fields)
        assert len(errors) == 1
        assert fragment in errors[0]

    def test_update_unknown_field(self):
        errors = EventChangesValidator.validate_update(EXISTING, {"id": "evt_other", "owner": "me"})
        assert errors == ["Unknown field: id", "Unknown field: owner"]

    def test_update_checks_against_existing_times(self):
        errors = EventChangesValidator.validate_update(EXISTING, {"end": "2026-02-16T08:30:00"})
        assert len(errors) == 1 and "end after it starts" in errors[0]
        assert EventChangesValidator.validate_update(EXISTING, {"end": "2026-02-16T09:30:00"}) == []

    def test_update_without_times_skips_order_check(self):
        assert EventChangesValidator.validate_update(EXISTING, {"title": "Daily", "priority": 1}) == []

    @pytest.mark.parametrize("changes", [{"start": ""}, {"start": None}, {"end": "   "}])
    def test_update_rejects_blank_times(self, changes):
        errors = EventChangesValidator.validate_update(EXISTING, changes)
        assert len(errors) == 1
        assert "non-empty timestamp" in errors[0]


class TestPersonaChangesValidator:
    def test_valid_patch(self):
        assert PersonaChangesValidator.validate({
            "activeHours": {"workStart": "08:30", "lunchEnd": "13:15"},
            "schedulingStyle": "conservative",
            "bufferPreference": 0,
            "routines": [{
                "keyword": "gym", "dayOfWeek": [2, 4], "typicalStart": "19:00",
                "typicalEnd": "20:00", "confidence": 1,
            }],
        }) == []

    def test_unknown_keys(self):
        errors = PersonaChangesValidator.validate({"mood": "happy", "activeHours": {"nap": "14:00"}})
        assert errors == ["Unknown persona field: mood", "Unknown activeHours field: nap"]

    @pytest.mark.parametrize("value", ["9:00", "0900", "25:00", "12:60", 900])
    def test_bad_hhmm(self, value):
        errors = PersonaChangesValidator.validate({"activeHours": {"workStart": value}})
        assert len(errors) == 1

    def test_bad_style_and_buffer(self):
        errors = PersonaChangesValidator.validate({"schedulingStyle": "chaotic", "bufferPreference": -5})
        assert len(errors) == 2
        assert "Invalid schedulingStyle" in errors[0]
        assert "bufferPreference" in errors[1]

    def test_bad_routine(self):
        errors = PersonaChangesValidator.validate({"routines": [{
            "keyword": "", "dayOfWeek": [7], "typicalStart": "19:00",
            "typicalEnd": "later", "confidence": 1.5,
        }]})
        assert len(errors) == 4
        assert errors[0] == "Routine 0 must have a 'keyword'"

    def test_routines_must_be_list(self):
        assert PersonaChangesValidator.validate({"routines": {"keyword": "gym"}}) == [
            "'routines' must be a list",
        ]
