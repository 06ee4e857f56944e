"""
Note record store using SQLite.

The record store is the source of truth for whether a note exists.
Vectors live separately in the vector index, keyed by the same id;
a note may exist here without a vector (an orphan) but never the reverse
once reconciled.

Identifiers are assigned by SQLite on insert and exposed as strings.
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import StoreReadFailure, StoreWriteFailure


@dataclass
class NoteRecord:
    """A stored note: one chunk of text with its store-assigned id."""
    id: str
    text: str
    created_at: str = ""


class NoteStore:
    """
    SQLite-backed store for note records.

    Every call is a single statement, atomic on its own. No transaction
    spans this store and the vector index.
    """

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS notes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                text TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> NoteRecord:
        return NoteRecord(id=str(row["id"]), text=row["text"], created_at=row["created_at"])

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def insert(self, text: str) -> NoteRecord:
        """
        Insert a note and return it with its new id.

        Raises:
            StoreWriteFailure: If the insert fails or returns no row
        """
        try:
            cursor = self._conn.execute(
                "INSERT INTO notes (text, created_at) VALUES (?, ?) "
                "RETURNING id, text, created_at",
                (text, self._now()),
            )
            row = cursor.fetchone()
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreWriteFailure(f"Failed to create note: {e}") from e

        if row is None:
            raise StoreWriteFailure("Failed to create note")
        return self._row_to_record(row)

    def delete(self, id: str) -> bool:
        """
        Delete a note by id.

        Returns:
            True if the note existed and was deleted
        """
        try:
            cursor = self._conn.execute("DELETE FROM notes WHERE id = ?", (id,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreWriteFailure(f"Failed to delete note {id}: {e}") from e
        return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get(self, id: str) -> Optional[NoteRecord]:
        """Get a note by id, or None if absent."""
        try:
            row = self._conn.execute(
                "SELECT id, text, created_at FROM notes WHERE id = ?", (id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreReadFailure(f"Failed to read note {id}: {e}") from e
        return self._row_to_record(row) if row is not None else None

    def get_many(self, ids: list[str]) -> dict[str, NoteRecord]:
        """
        Get multiple notes by id in one query.

        Rows come back in storage order, so the result is keyed by id
        for callers that need a specific order. Missing ids are omitted.
        """
        if not ids:
            return {}

        placeholders = ",".join("?" * len(ids))
        try:
            cursor = self._conn.execute(
                f"SELECT id, text, created_at FROM notes WHERE id IN ({placeholders})",
                tuple(ids),
            )
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreReadFailure(f"Failed to read notes: {e}") from e

        return {str(row["id"]): self._row_to_record(row) for row in rows}

    def list_all(self) -> list[NoteRecord]:
        """All notes, oldest first."""
        try:
            rows = self._conn.execute(
                "SELECT id, text, created_at FROM notes ORDER BY id"
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreReadFailure(f"Failed to list notes: {e}") from e
        return [self._row_to_record(row) for row in rows]

    def list_ids(self) -> list[str]:
        """All note ids, oldest first."""
        try:
            rows = self._conn.execute("SELECT id FROM notes ORDER BY id").fetchall()
        except sqlite3.Error as e:
            raise StoreReadFailure(f"Failed to list note ids: {e}") from e
        return [str(row["id"]) for row in rows]

    def count(self) -> int:
        """Count notes."""
        try:
            return self._conn.execute("SELECT COUNT(*) FROM notes").fetchone()[0]
        except sqlite3.Error as e:
            raise StoreReadFailure(f"Failed to count notes: {e}") from e

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
