"""
Persona storage: a single persona record, either in SQLite or a JSON file
"""
import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Optional

from src.persona.models import UserPersona
from utils.errors import StorageError

logger = logging.getLogger(__name__)


class PersonaStore(ABC):
    @abstractmethod
    def get_persona(self) -> Optional[UserPersona]:
        pass

    @abstractmethod
    def set_persona(self, persona: UserPersona):
        pass


class SQLitePersonaStore(PersonaStore):
    """Persona row stored next to the local calendar tables"""

    def __init__(self, connection: sqlite3.Connection, lock=None):
        self.connection = connection
        self.lock = lock or threading.RLock()
        try:
            with self.lock, self.connection:
                self.connection.execute(
                    "CREATE TABLE IF NOT EXISTS persona ("
                    "id INTEGER PRIMARY KEY CHECK (id = 1), data TEXT NOT NULL)"
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to prepare persona table: {e}") from e

    @classmethod
    def open(cls, db_path: str) -> "SQLitePersonaStore":
        try:
            connection = sqlite3.connect(db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open persona database: {e}") from e
        return cls(connection)

    def get_persona(self) -> Optional[UserPersona]:
        try:
            with self.lock:
                row = self.connection.execute("SELECT data FROM persona WHERE id = 1").fetchone()
        except sqlite3.Error as e:
            logger.error(f"❌ Failed to read persona: {e}")
            raise StorageError(f"Failed to read persona: {e}") from e
        return UserPersona.from_dict(json.loads(row[0])) if row else None

    def set_persona(self, persona: UserPersona):
        payload = json.dumps(persona.to_dict(), ensure_ascii=False)
        try:
            with self.lock, self.connection:
                self.connection.execute(
                    "INSERT INTO persona (id, data) VALUES (1, ?) "
                    "ON CONFLICT(id) DO UPDATE SET data = excluded.data",
                    (payload,),
                )
        except sqlite3.Error as e:
            logger.error(f"❌ Failed to write persona: {e}")
            raise StorageError(f"Failed to write persona: {e}") from e


class JsonFilePersonaStore(PersonaStore):
    """Persona kept as a JSON file, used with the Google Calendar backend"""

    def __init__(self, path: str):
        self.path = path
        self.lock = threading.RLock()

    def get_persona(self) -> Optional[UserPersona]:
        with self.lock:
            if not os.path.exists(self.path):
                return None
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    return UserPersona.from_dict(json.load(f))
            except (OSError, ValueError) as e:
                logger.error(f"❌ Failed to read persona file {self.path}: {e}")
                raise StorageError(f"Failed to read persona file: {e}") from e

    def set_persona(self, persona: UserPersona):
        directory = os.path.dirname(os.path.abspath(self.path))
        with self.lock:
            tmp_path = None
            try:
                fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(persona.to_dict(), f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
                tmp_path = None
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"❌ Failed to write persona file {self.path}: {e}")
                raise StorageError(f"Failed to write persona file: {e}") from e
            finally:
                if tmp_path is not None and os.path.exists(tmp_path):
                    os.unlink(tmp_path)
