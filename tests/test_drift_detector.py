import threading
from unittest.mock import MagicMock

import pytest

from src.persona.drift_detector import DriftDetector, apply_drift
from src.persona.models import PersonaNote, RoutinePattern
from utils.date_utils import parse_date
from utils.errors import ConcurrencyTimeout, StorageError


def shift(persona, title="Team lunch", start="2026-02-16T12:45:00", end="2026-02-16T13:45:00"):
    return apply_drift(persona, title, parse_date(start), parse_date(end))


class TestApplyDrift:
    def test_small_shift_is_ignored(self, make_persona, lunch_routine):
        persona = make_persona(routines=[lunch_routine])
        assert not shift(persona, start="2026-02-16T12:20:00", end="2026-02-16T13:20:00")
        assert persona.notes == []

    def test_unrelated_title_is_ignored(self, make_persona, lunch_routine):
        persona = make_persona(routines=[lunch_routine])
        assert not shift(persona, title="Dentist")

    def test_end_shift_alone_counts(self, make_persona, lunch_routine):
        persona = make_persona(routines=[lunch_routine])
        assert shift(persona, start="2026-02-16T12:00:00", end="2026-02-16T13:40:00")
        assert len(persona.notes) == 1

    def test_first_shift_creates_note(self, make_persona, lunch_routine):
        persona = make_persona(routines=[lunch_routine])

        assert shift(persona)

        note = persona.notes[0]
        assert note.type == "drift"
        assert note.related_routine == "lunch"
        assert note.count == 1
        assert note.content == '"lunch" time shift detected: 12:00→12:45'
        assert persona.routines[0].typical_start == "12:00"

    def test_second_shift_increments_note(self, make_persona, lunch_routine):
        persona = make_persona(routines=[lunch_routine])
        shift(persona)
        shift(persona, start="2026-02-16T12:50:00", end="2026-02-16T13:50:00")

        assert len(persona.notes) == 1
        assert persona.notes[0].count == 2
        assert persona.notes[0].content.endswith("12:00→12:50")

    def test_third_shift_adopts_new_time(self, make_persona, lunch_routine):
        persona = make_persona(routines=[lunch_routine])
        for _ in range(3):
            shift(persona)

        routine = persona.routines[0]
        assert (routine.typical_start, routine.typical_end) == ("12:45", "13:45")
        assert routine.confidence == pytest.approx(0.9)
        assert persona.notes == []
        # lunch routines carry the persona's lunch hours along
        assert persona.active_hours.lunch_start == "12:45"
        assert persona.active_hours.lunch_end == "13:45"

    def test_confidence_is_capped(self, make_persona):
        routine = RoutinePattern("lunch", [1], "12:00", "13:00", 0.95)
        persona = make_persona(routines=[routine])
        for _ in range(3):
            shift(persona)
        assert routine.confidence == 1

    def test_non_lunch_adoption_keeps_lunch_hours(self, make_persona):
        routine = RoutinePattern("sync", [1], "10:00", "10:30", 0.5)
        persona = make_persona(routines=[routine])
        for _ in range(3):
            shift(persona, title="Team sync", start="2026-02-16T11:00:00",
                  end="2026-02-16T11:30:00")

        assert routine.typical_start == "11:00"
        assert persona.active_hours.lunch_start == "12:30"

    def test_other_explicit_notes_are_kept(self, make_persona, lunch_routine):
        persona = make_persona(routines=[lunch_routine])
        persona.notes.append(PersonaNote("explicit", "prefers short lunches"))
        for _ in range(3):
            shift(persona)
        assert [n.content for n in persona.notes] == ["prefers short lunches"]


class TestDriftDetector:
    def test_no_persona_is_a_no_op(self, persona_store):
        detector = DriftDetector(persona_store)
        try:
            assert detector.detect_drift("Lunch", "2026-02-16T14:00:00", "2026-02-16T15:00:00") is False
        finally:
            detector.shutdown()

    def test_jobs_run_in_submission_order(self, persona_store, make_persona, lunch_routine):
        persona_store.set_persona(make_persona(routines=[lunch_routine]))
        detector = DriftDetector(persona_store)
        try:
            futures = [
                detector.submit("Lunch", f"2026-02-{day}T12:45:00", f"2026-02-{day}T13:45:00")
                for day in (16, 17, 18)
            ]
            assert [f.result(timeout=5) for f in futures] == [True, True, True]
        finally:
            detector.shutdown()

        persona = persona_store.get_persona()
        assert persona.routines[0].typical_start == "12:45"
        assert persona.active_hours.lunch_start == "12:45"
        assert detector.pending == 0

    def test_queue_cap_raises(self, persona_store):
        lock = threading.RLock()
        detector = DriftDetector(persona_store, lock=lock, max_pending=2)
        lock.acquire()
        try:
            first = detector.submit("Lunch", "2026-02-16T12:45:00", "2026-02-16T13:45:00")
            second = detector.submit("Lunch", "2026-02-17T12:45:00", "2026-02-17T13:45:00")
            with pytest.raises(ConcurrencyTimeout):
                detector.submit("Lunch", "2026-02-18T12:45:00", "2026-02-18T13:45:00")
        finally:
            lock.release()

        assert first.result(timeout=5) is False
        assert second.result(timeout=5) is False
        detector.shutdown()
        assert detector.pending == 0

    def test_failures_are_logged_not_raised(self):
        store = MagicMock()
        store.get_persona.side_effect = StorageError("disk gone")
        detector = DriftDetector(store)

        future = detector.submit("Lunch", "2026-02-16T12:45:00", "2026-02-16T13:45:00")

        assert future.result(timeout=5) is False
        detector.shutdown()
        assert detector.pending == 0

    def test_submit_after_shutdown(self, persona_store):
        detector = DriftDetector(persona_store)
        detector.shutdown()
        with pytest.raises(RuntimeError):
            detector.submit("Lunch", "2026-02-16T12:45:00", "2026-02-16T13:45:00")
        assert detector.pending == 0
