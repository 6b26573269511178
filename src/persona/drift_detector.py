"""
Routine drift detection, serialized on a single background worker
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Optional

from config.settings import Config
from src.calendar.persona_store import PersonaStore
from src.persona.models import NoteType, PersonaNote, UserPersona
from src.persona.persona_analyzer import title_matches_keywords
from utils.date_utils import hhmm_to_minutes, minute_of_day, parse_date, to_hhmm
from utils.errors import ConcurrencyTimeout

logger = logging.getLogger(__name__)


def apply_drift(persona: UserPersona, title: str, start: datetime, end: datetime) -> bool:
    """
    Record or adopt drift for every routine whose keyword is in ``title``.

    Returns True when the persona was modified. A routine adopts the observed
    times once its drift note reaches ``Config.DRIFT_ADOPT_COUNT``; adopting a
    lunch routine also moves the persona's lunch hours.
    """
    start_min = minute_of_day(start)
    end_min = minute_of_day(end)
    threshold = Config.DRIFT_THRESHOLD_MINUTES
    changed = False

    for routine in persona.routines:
        if not title_matches_keywords(title, [routine.keyword]):
            continue

        start_diff = abs(start_min - hhmm_to_minutes(routine.typical_start))
        end_diff = abs(end_min - hhmm_to_minutes(routine.typical_end))
        if start_diff < threshold and end_diff < threshold:
            continue

        content = f'"{routine.keyword}" time shift detected: {routine.typical_start}→{to_hhmm(start)}'
        note_index = next(
            (i for i, note in enumerate(persona.notes)
             if note.type == NoteType.DRIFT.value and note.related_routine == routine.keyword),
            None,
        )

        if note_index is None:
            persona.notes.append(PersonaNote(NoteType.DRIFT.value, content,
                                             related_routine=routine.keyword))
            logger.info(f"📝 Drift noted for routine '{routine.keyword}'")
        else:
            note = persona.notes[note_index]
            note.count += 1
            note.content = content
            note.created_at = datetime.now().isoformat()

            if note.count >= Config.DRIFT_ADOPT_COUNT:
                routine.typical_start = to_hhmm(start)
                routine.typical_end = to_hhmm(end)
                routine.confidence = min(1, routine.confidence + Config.DRIFT_CONFIDENCE_BOOST)
                del persona.notes[note_index]

                if title_matches_keywords(routine.keyword, Config.LUNCH_KEYWORDS):
                    persona.active_hours.lunch_start = routine.typical_start
                    persona.active_hours.lunch_end = routine.typical_end

                logger.info(f"🔄 Routine '{routine.keyword}' adopted new time "
                            f"{routine.typical_start}-{routine.typical_end}")

        changed = True

    if changed:
        persona.trim_notes(Config.MAX_PERSONA_NOTES)
        persona.touch()
    return changed


class DriftDetector:
    """
    Runs drift detection jobs one at a time, in submission order.

    The single worker thread makes the jobs a FIFO queue; ``lock`` is the
    persona lock shared with analysis and explicit updates so a drift
    read-modify-write never interleaves with them.
    """

    def __init__(self, persona_store: PersonaStore, lock: Optional[threading.RLock] = None,
                 max_pending: int = Config.DRIFT_MAX_PENDING):
        self.persona_store = persona_store
        self.lock = lock or threading.RLock()
        self.max_pending = max_pending
        self._pending = 0
        self._pending_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="drift")

    @property
    def pending(self) -> int:
        return self._pending

    def detect_drift(self, title: str, start: str, end: str) -> bool:
        """Synchronous read-modify-write of the stored persona"""
        with self.lock:
            persona = self.persona_store.get_persona()
            if persona is None:
                return False
            if not apply_drift(persona, title, parse_date(start), parse_date(end)):
                return False
            self.persona_store.set_persona(persona)
            return True

    def submit(self, title: str, start: str, end: str) -> Future:
        """
        Queue a drift check behind any earlier ones.

        Raises ConcurrencyTimeout when ``max_pending`` jobs are already queued.
        """
        with self._pending_lock:
            if self._pending >= self.max_pending:
                raise ConcurrencyTimeout(
                    f"{self._pending} drift checks already queued, dropping '{title}'")
            self._pending += 1

        try:
            return self._executor.submit(self._run, title, start, end)
        except RuntimeError:
            # executor already shut down
            with self._pending_lock:
                self._pending -= 1
            raise

    def _run(self, title: str, start: str, end: str) -> bool:
        try:
            return self.detect_drift(title, start, end)
        except Exception as e:
            # Best-effort: the mutation that triggered this already succeeded
            logger.warning(f"⚠️  Drift detection failed for '{title}': {e}")
            return False
        finally:
            with self._pending_lock:
                self._pending -= 1

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
