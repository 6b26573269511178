"""
Local SQLite calendar store with a transactional undo log
"""
import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.calendar.calendar_base import CalendarBase
from src.calendar.models import (
    CalendarEvent, Category, UndoLog, new_change_set_id, new_event_id,
)
from utils.errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    start_at TEXT NOT NULL,
    end_at TEXT NOT NULL,
    category TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_start ON events (start_at);
CREATE TABLE IF NOT EXISTS undo_logs (
    undo_id TEXT PRIMARY KEY,
    change_set_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    snapshots TEXT NOT NULL,
    consumed_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_undo_change_set ON undo_logs (change_set_id);
"""


class LocalCalendar(CalendarBase):
    """
    Calendar store backed by SQLite.

    Each mutation writes the event row and its undo-log row in one
    transaction, so a change is never durable without its undo record.
    """

    supports_full_undo = True

    def __init__(self, db_path: str = ":memory:"):
        super().__init__()
        self.db_path = db_path
        self.lock = threading.RLock()
        try:
            self.connection = sqlite3.connect(db_path, check_same_thread=False)
            self.connection.row_factory = sqlite3.Row
            self.connection.executescript(SCHEMA)
        except sqlite3.Error as e:
            logger.error(f"❌ Failed to open calendar database {db_path}: {e}")
            raise StorageError(f"Failed to open calendar database: {e}") from e
        logger.info(f"✅ Local calendar ready (db: {db_path})")

    # ==================== Connection helpers ====================

    @contextmanager
    def _transaction(self):
        """Commit on success, roll back everything on any storage error"""
        with self.lock:
            try:
                with self.connection:
                    yield self.connection
            except sqlite3.Error as e:
                logger.error(f"❌ Calendar transaction rolled back: {e}")
                raise StorageError(f"Calendar storage failure: {e}") from e

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.lock:
            try:
                return self.connection.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.error(f"❌ Calendar query failed: {e}")
                raise StorageError(f"Calendar storage failure: {e}") from e

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> CalendarEvent:
        return CalendarEvent.from_dict(json.loads(row["data"]))

    @staticmethod
    def _write_event(conn: sqlite3.Connection, event: CalendarEvent, insert: bool):
        payload = json.dumps(event.to_dict(), ensure_ascii=False)
        if insert:
            conn.execute(
                "INSERT INTO events (id, start_at, end_at, category, data) VALUES (?, ?, ?, ?, ?)",
                (event.id, event.start, event.end, event.category, payload),
            )
        else:
            conn.execute(
                "UPDATE events SET start_at = ?, end_at = ?, category = ?, data = ? WHERE id = ?",
                (event.start, event.end, event.category, payload, event.id),
            )

    @staticmethod
    def _fetch(conn: sqlite3.Connection, event_id: str) -> Optional[CalendarEvent]:
        row = conn.execute("SELECT data FROM events WHERE id = ?", (event_id,)).fetchone()
        return CalendarEvent.from_dict(json.loads(row["data"])) if row else None

    @staticmethod
    def _write_undo_log(conn: sqlite3.Connection, undo_log: UndoLog):
        conn.execute(
            "INSERT INTO undo_logs (undo_id, change_set_id, created_at, snapshots, consumed_at) "
            "VALUES (?, ?, ?, ?, NULL)",
            (undo_log.undo_id, undo_log.change_set_id, undo_log.created_at,
             json.dumps(undo_log.snapshots, ensure_ascii=False)),
        )

    # ==================== Queries ====================

    def get_events(self, start_date: str, end_date: str, category: Optional[str] = None,
                   tags: Optional[List[str]] = None) -> List[CalendarEvent]:
        rows = self._query(
            "SELECT data FROM events WHERE start_at <= ? AND end_at >= ? ORDER BY start_at, rowid",
            (end_date, start_date),
        )
        events = [self._row_to_event(row) for row in rows]
        return self.filter_events(events, category, tags)

    def search_events(self, query: str, start_date: Optional[str] = None,
                      end_date: Optional[str] = None) -> List[CalendarEvent]:
        events = [e for e in self.get_all_events() if self.matches_query(e, query)]
        if start_date:
            events = [e for e in events if e.end >= start_date]
        if end_date:
            events = [e for e in events if e.start <= end_date]
        return events

    def get_event_by_id(self, event_id: str) -> Optional[CalendarEvent]:
        rows = self._query("SELECT data FROM events WHERE id = ?", (event_id,))
        return self._row_to_event(rows[0]) if rows else None

    def get_all_events(self) -> List[CalendarEvent]:
        rows = self._query("SELECT data FROM events ORDER BY start_at, rowid")
        return [self._row_to_event(row) for row in rows]

    def get_undo_logs(self, change_set_id: str) -> List[UndoLog]:
        rows = self._query(
            "SELECT * FROM undo_logs WHERE change_set_id = ? ORDER BY created_at",
            (change_set_id,),
        )
        return [UndoLog(
            change_set_id=row["change_set_id"],
            snapshots=json.loads(row["snapshots"]),
            undo_id=row["undo_id"],
            created_at=row["created_at"],
            consumed_at=row["consumed_at"],
        ) for row in rows]

    # ==================== Mutations ====================

    def create_event(self, event: CalendarEvent) -> CalendarEvent:
        new_event = event.with_changes({})
        new_event.id = event.id or new_event_id()
        change_set_id = new_change_set_id()
        undo_log = UndoLog.record(change_set_id, new_event.id, None)

        with self._transaction() as conn:
            self._write_event(conn, new_event, insert=True)
            self._write_undo_log(conn, undo_log)

        self.last_change_set_id = change_set_id
        logger.info(f"📅 Created event {new_event.id} '{new_event.title}' (changeset {change_set_id})")
        return new_event

    def update_event(self, event_id: str, changes: Dict[str, Any]) -> Optional[CalendarEvent]:
        change_set_id = new_change_set_id()
        updated = None

        with self._transaction() as conn:
            existing = self._fetch(conn, event_id)
            if existing is None:
                return None

            fields = dict(changes)
            if "category" in fields and not Category.is_valid(fields["category"]):
                fields["category"] = existing.category

            updated = existing.with_changes(fields)
            self._write_event(conn, updated, insert=False)
            self._write_undo_log(conn, UndoLog.record(change_set_id, event_id, existing))

        self.last_change_set_id = change_set_id
        logger.info(f"✏️  Updated event {event_id} fields {sorted(changes.keys())} (changeset {change_set_id})")
        return updated

    def delete_event(self, event_id: str) -> bool:
        change_set_id = new_change_set_id()

        with self._transaction() as conn:
            existing = self._fetch(conn, event_id)
            if existing is None:
                return False
            conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
            self._write_undo_log(conn, UndoLog.record(change_set_id, event_id, existing))

        self.last_change_set_id = change_set_id
        logger.info(f"🗑️  Deleted event {event_id} '{existing.title}' (changeset {change_set_id})")
        return True

    def undo(self, change_set_id: str) -> bool:
        """
        Reverse every snapshot of a changeset in one transaction.

        Logs are marked consumed afterwards; undoing the same changeset again
        finds nothing and returns False without touching any event.
        """
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT undo_id, snapshots FROM undo_logs "
                "WHERE change_set_id = ? AND consumed_at IS NULL ORDER BY created_at",
                (change_set_id,),
            ).fetchall()

            if not rows:
                logger.info(f"↩️  Nothing to undo for changeset {change_set_id}")
                return False

            for row in rows:
                for snapshot in json.loads(row["snapshots"]):
                    self._apply_snapshot(conn, snapshot)
                conn.execute(
                    "UPDATE undo_logs SET consumed_at = ? WHERE undo_id = ?",
                    (datetime.now().isoformat(), row["undo_id"]),
                )

        logger.info(f"↩️  Undid changeset {change_set_id} ({len(rows)} log(s))")
        return True

    def _apply_snapshot(self, conn: sqlite3.Connection, snapshot: Dict[str, Any]):
        event_id = snapshot["event_id"]
        before = snapshot["before"]
        existing = self._fetch(conn, event_id)

        if before is None:
            # undo create
            if existing is not None:
                conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
        elif existing is None:
            # undo delete
            self._write_event(conn, CalendarEvent.from_dict(before), insert=True)
        else:
            # undo update
            restored = CalendarEvent.from_dict(before)
            restored.id = event_id
            self._write_event(conn, restored, insert=False)

    def close(self):
        with self.lock:
            self.connection.close()
