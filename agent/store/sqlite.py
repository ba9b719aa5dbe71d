"""
SQLite-backed task store.

Key properties:
- Implements exactly the same interface as InMemoryTaskStore
- Can be swapped without changing any orchestrator code
- Never raises: failures are logged and reported as False / empty list
- Additive schema: new columns only, no migrations

One connection is held for the store's lifetime so that ':memory:'
databases survive between operations; access is serialized by a lock.
"""

import logging
import sqlite3
import threading
from datetime import datetime
from typing import List, Optional

from agent.nlu.types import TaskType
from agent.store.base import TaskStore
from agent.store.types import TaskEntity

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, title, description, type, coin_reward, exp_reward, "
    "is_completed, created_at, completed_at"
)


class SQLiteTaskStore(TaskStore):
    """
    SQLite persistence for TaskEntity records.

    Design:
    - One table: tasks, primary key id (uuid string)
    - Timestamps stored as ISO-8601 text
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: Path to SQLite database file.
                    If None or empty, uses ':memory:' (useful for testing).
        """
        self.db_path = db_path or ":memory:"
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._initialize_db()

    def _initialize_db(self) -> None:
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            cursor = conn.cursor()

            if self.db_path != ":memory:":
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=FULL")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    type TEXT NOT NULL,
                    coin_reward INTEGER NOT NULL,
                    exp_reward INTEGER NOT NULL,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    completed_at TEXT
                )
            """)
            conn.commit()
            self._conn = conn
            logger.debug(f"SQLite task store initialized: {self.db_path}")
        except sqlite3.Error as e:
            # Store stays unavailable; every operation reports failure
            logger.error(f"Failed to initialize SQLite task store: {e}")

    @staticmethod
    def _to_row(task: TaskEntity) -> tuple:
        return (
            task.id,
            task.title,
            task.description,
            TaskType(task.type).value,
            task.coin_reward,
            task.exp_reward,
            int(task.is_completed),
            task.created_at.isoformat(),
            task.completed_at.isoformat() if task.completed_at else None,
        )

    @staticmethod
    def _from_row(row: tuple) -> TaskEntity:
        return TaskEntity(
            id=row[0],
            title=row[1],
            description=row[2],
            type=TaskType(row[3]),
            coin_reward=row[4],
            exp_reward=row[5],
            is_completed=bool(row[6]),
            created_at=datetime.fromisoformat(row[7]),
            completed_at=datetime.fromisoformat(row[8]) if row[8] else None,
        )

    def _execute(self, sql: str, params: tuple = ()) -> Optional[int]:
        """Run one write statement; returns rowcount, or None when unavailable/failed."""
        if self._conn is None:
            logger.error("SQLite task store unavailable")
            return None
        try:
            with self._lock:
                cursor = self._conn.execute(sql, params)
                self._conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"SQLite error: {e}")
            return None

    def insert(self, task: TaskEntity) -> bool:
        rowcount = self._execute(
            f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._to_row(task),
        )
        if rowcount:
            logger.info(f"Task inserted: id={task.id}, title={task.title!r}")
        return bool(rowcount)

    def update(self, task: TaskEntity) -> bool:
        row = self._to_row(task)
        rowcount = self._execute(
            """
            UPDATE tasks SET title = ?, description = ?, type = ?, coin_reward = ?,
                exp_reward = ?, is_completed = ?, created_at = ?, completed_at = ?
            WHERE id = ?
            """,
            row[1:] + (row[0],),
        )
        return bool(rowcount)

    def delete(self, task: TaskEntity) -> bool:
        rowcount = self._execute("DELETE FROM tasks WHERE id = ?", (task.id,))
        return bool(rowcount)

    def query_all(self) -> List[TaskEntity]:
        if self._conn is None:
            return []
        try:
            with self._lock:
                rows = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM tasks ORDER BY created_at"
                ).fetchall()
            return [self._from_row(row) for row in rows]
        except (sqlite3.Error, ValueError) as e:
            logger.error(f"SQLite error during query: {e}")
            return []

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
