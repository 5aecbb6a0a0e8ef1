"""Row-store collaborator: a generic execute/query interface over the schema."""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional, Sequence, Union

from momory.errors import PersistenceError
from momory.telemetry.logger import get_logger

logger = get_logger(__name__)

Params = Sequence[Any]

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS memories (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        content TEXT NOT NULL,
        embedding TEXT NOT NULL,
        created_at TEXT NOT NULL,
        last_accessed TEXT NOT NULL,
        access_count INTEGER NOT NULL DEFAULT 0,
        relevance_score REAL NOT NULL,
        tags TEXT NOT NULL,
        source TEXT NOT NULL,
        decayed_at TEXT NOT NULL,
        summary_id TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS summaries (
        id TEXT PRIMARY KEY,
        time_window TEXT NOT NULL,
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        memory_count INTEGER NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS summary_chunks (
        id TEXT PRIMARY KEY,
        summary_id TEXT NOT NULL,
        content TEXT NOT NULL,
        embedding TEXT NOT NULL,
        start_offset INTEGER NOT NULL,
        end_offset INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (summary_id) REFERENCES summaries(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_memories_created ON memories(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_memories_summary ON memories(summary_id)",
    "CREATE INDEX IF NOT EXISTS idx_chunks_summary ON summary_chunks(summary_id, start_offset)",
)


class RowStore(ABC):
    """Generic statement interface consumed by the memory store.

    Implementations raise ``PersistenceError`` on any failure.
    """

    @abstractmethod
    def execute(self, statement: str, params: Params = ()) -> int:
        """Run a write statement.

        Returns:
            Number of rows affected
        """

    @abstractmethod
    def query(self, statement: str, params: Params = ()) -> list[dict[str, Any]]:
        """Run a read statement.

        Returns:
            Rows in statement order
        """

    @abstractmethod
    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Group writes so they commit together or not at all."""
        yield

    def query_one(self, statement: str, params: Params = ()) -> Optional[dict[str, Any]]:
        rows = self.query(statement, params)
        return rows[0] if rows else None

    def close(self) -> None:
        """Release resources."""


class SQLiteRowStore(RowStore):
    """SQLite-backed row store.

    One connection is shared and guarded by a lock; statements outside a
    transaction are committed individually.

    Example:
        rows = SQLiteRowStore("~/.momory/memory.db")
        rows.execute("DELETE FROM memories WHERE id = ?", ("abc",))
    """

    def __init__(self, db_path: Union[str, Path] = "~/.momory/memory.db") -> None:
        """Open (and if needed create) the database.

        Args:
            db_path: Path to database file, or ":memory:"
        """
        if str(db_path) == ":memory:":
            target = ":memory:"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)

        self.db_path = target
        self._lock = threading.RLock()
        self._in_transaction = False

        try:
            self._conn = sqlite3.connect(
                target,
                check_same_thread=False,
                isolation_level=None,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            for statement in SCHEMA:
                self._conn.execute(statement)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to open row store: {e}") from e

        logger.info("SQLiteRowStore initialized", db_path=target)

    def execute(self, statement: str, params: Params = ()) -> int:
        with self._lock:
            try:
                cursor = self._conn.execute(statement, tuple(params))
            except sqlite3.Error as e:
                raise PersistenceError(str(e)) from e
            return cursor.rowcount

    def query(self, statement: str, params: Params = ()) -> list[dict[str, Any]]:
        with self._lock:
            try:
                cursor = self._conn.execute(statement, tuple(params))
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise PersistenceError(str(e)) from e

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        with self._lock:
            if self._in_transaction:
                # Nested use joins the outer transaction
                yield
                return

            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise PersistenceError(str(e)) from e

            self._in_transaction = True
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                try:
                    self._conn.execute("COMMIT")
                except sqlite3.Error as e:
                    self._conn.execute("ROLLBACK")
                    raise PersistenceError(str(e)) from e
            finally:
                self._in_transaction = False

    def close(self) -> None:
        with self._lock:
            self._conn.close()
