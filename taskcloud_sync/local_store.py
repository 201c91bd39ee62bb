"""Local storage for the sync client: a key-value store plus a user-scoped cache view."""

import sqlite3
import json
import logging
import os
from typing import Any, Dict, List, Optional, Protocol

from .models import Task

logger = logging.getLogger(__name__)

USER_KEY = 'VUE_TASK_USER'
TOKEN_KEY = 'token'
TASKS_KEY_PREFIX = 'VUE_TASKS_'
RECYCLE_KEY_PREFIX = 'VUE_TASK_RECYCLE_'
GUEST = 'GUEST'


class KeyValueStore(Protocol):
    """Capability interface of a persistent string key-value store."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store for tests and throwaway guest sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._data)


class SqliteKeyValueStore:
    """SQLite-based key-value storage for client data."""

    def __init__(self, db_path: str = None):
        if db_path is None:
            db_path = os.path.join(os.path.dirname(__file__), 'local_data.db')
        self.db_path = db_path
        parent = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(parent, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database tables."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute('SELECT value FROM kv WHERE key = ?', (key,)).fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                'INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)',
                (key, value)
            )
            conn.commit()

    def remove(self, key: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute('DELETE FROM kv WHERE key = ?', (key,))
            conn.commit()

    def keys(self) -> List[str]:
        with sqlite3.connect(self.db_path) as conn:
            return [row[0] for row in conn.execute('SELECT key FROM kv ORDER BY key').fetchall()]

    def clear_all(self) -> None:
        """Clear all local data."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute('DELETE FROM kv')
            conn.commit()


class LocalCache:
    """User-scoped view over a KeyValueStore.

    Task and recycle-bin lists live under keys suffixed with the logged-in
    user's email (``GUEST`` when nobody is logged in), so logging in as
    someone else switches to a different pair of lists. Every read and write
    is a separate store call; there is no transaction spanning them.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _read_json(self, key: str) -> Any:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning('ignoring unreadable cache entry %s', key)
            return None

    def _write_json(self, key: str, value: Any) -> None:
        self.store.set(key, json.dumps(value, ensure_ascii=False))

    # ---- identity ----

    def get_user(self) -> Optional[Dict[str, Any]]:
        user = self._read_json(USER_KEY)
        return user if isinstance(user, dict) else None

    def set_user(self, user: Dict[str, Any]) -> None:
        self._write_json(USER_KEY, user)

    def get_token(self) -> Optional[str]:
        return self.store.get(TOKEN_KEY)

    def set_token(self, token: str) -> None:
        self.store.set(TOKEN_KEY, token)

    def clear_login(self) -> None:
        self.store.remove(USER_KEY)
        self.store.remove(TOKEN_KEY)

    def current_email(self) -> Optional[str]:
        user = self.get_user()
        if user:
            return user.get('email') or None
        return None

    def tasks_key(self) -> str:
        return TASKS_KEY_PREFIX + (self.current_email() or GUEST)

    def recycle_key(self) -> str:
        return RECYCLE_KEY_PREFIX + (self.current_email() or GUEST)

    # ---- task lists ----

    def _load_list(self, key: str) -> List[Task]:
        data = self._read_json(key)
        if not isinstance(data, list):
            return []
        return [Task.from_dict(item) for item in data if isinstance(item, dict)]

    def has_tasks(self) -> bool:
        """True when a task list has ever been written for the current user."""
        return isinstance(self._read_json(self.tasks_key()), list)

    def load_tasks(self) -> List[Task]:
        return self._load_list(self.tasks_key())

    def save_tasks(self, tasks: List[Task]) -> None:
        self._write_json(self.tasks_key(), [t.to_dict() for t in tasks])

    def load_recycle_bin(self) -> List[Task]:
        return self._load_list(self.recycle_key())

    def save_recycle_bin(self, tasks: List[Task]) -> None:
        self._write_json(self.recycle_key(), [t.to_dict() for t in tasks])

    def clear_recycle_bin(self) -> None:
        self.store.remove(self.recycle_key())
