"""
Pending re-index queue using SQLite.

When a note record is created but its vector is not (embedding or index
failure), the note is an orphan: listed, but not searchable. The orphan
is queued here so it can be re-embedded and re-indexed later by
``NotesRag.process_pending()``.

Dequeue is atomic: items transition from 'pending' to 'processing' with
a PID claim inside a single IMMEDIATE transaction. Stale claims (crashed
processors) are recovered automatically.

Failed items use exponential backoff before retry (30s, 60s, 120s, ...
up to 1h). Items that exhaust their attempts are moved to 'failed'
status rather than deleted, preserving the error for diagnosis.
"""

import logging
import os
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Claims older than this are considered stale (processor crashed)
STALE_CLAIM_SECONDS = 600

# Retry backoff: min(BASE * 2^(attempts-1), MAX) seconds
RETRY_BACKOFF_BASE = 30
RETRY_BACKOFF_MAX = 3600


@dataclass
class PendingIndex:
    """An orphaned note awaiting re-indexing."""
    id: str
    text: str
    queued_at: str
    attempts: int = 0
    last_error: Optional[str] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PendingIndexQueue:
    """
    SQLite-backed queue of orphaned notes.

    One row per note id; re-enqueueing an id resets it to pending.
    """

    def __init__(self, queue_path: Path):
        """
        Args:
            queue_path: Path to SQLite database file
        """
        self._queue_path = queue_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._queue_path.parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None gives manual transaction control for BEGIN IMMEDIATE
        self._conn = sqlite3.connect(
            str(self._queue_path), check_same_thread=False,
            isolation_level=None,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS pending_index (
                id TEXT PRIMARY KEY,
                text TEXT NOT NULL,
                queued_at TEXT NOT NULL,
                attempts INTEGER DEFAULT 0,
                status TEXT DEFAULT 'pending',
                claimed_by TEXT,
                claimed_at TEXT,
                last_error TEXT,
                retry_after TEXT
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_pending_status
            ON pending_index(status)
        """)

    def _recover_stale_claims(self) -> int:
        """Reset items claimed by crashed processors back to pending."""
        cutoff = (_utc_now() - timedelta(seconds=STALE_CLAIM_SECONDS)).isoformat()
        cursor = self._conn.execute("""
            UPDATE pending_index
            SET status = 'pending', claimed_by = NULL, claimed_at = NULL
            WHERE status = 'processing'
              AND claimed_at IS NOT NULL
              AND claimed_at < ?
        """, (cutoff,))
        recovered = cursor.rowcount
        if recovered:
            logger.info("Recovered %d stale claims from crashed processors", recovered)
        return recovered

    def enqueue(self, id: str, text: str, error: Optional[str] = None) -> None:
        """
        Add an orphaned note to the queue.

        If the id is already queued, it is reset to pending with zero attempts.
        """
        now = _utc_now().isoformat()
        with self._lock:
            self._conn.execute("""
                INSERT OR REPLACE INTO pending_index
                (id, text, queued_at, attempts, status, claimed_by, claimed_at,
                 last_error, retry_after)
                VALUES (?, ?, ?, 0, 'pending', NULL, NULL, ?, NULL)
            """, (id, text, now, error))

    def dequeue(self, limit: int = 10) -> list[PendingIndex]:
        """
        Atomically claim the oldest ready items for processing.

        Items transition from 'pending' to 'processing' and their attempt
        counter is incremented. Call complete(), fail() or abandon() after.
        """
        pid = str(os.getpid())
        now = _utc_now().isoformat()

        with self._lock:
            self._recover_stale_claims()

            self._conn.execute("BEGIN IMMEDIATE")
            try:
                rows = self._conn.execute("""
                    SELECT id, text, queued_at, attempts, last_error
                    FROM pending_index
                    WHERE status = 'pending'
                      AND (retry_after IS NULL OR retry_after <= ?)
                    ORDER BY queued_at ASC, rowid ASC
                    LIMIT ?
                """, (now, limit)).fetchall()

                items = [
                    PendingIndex(
                        id=row[0], text=row[1], queued_at=row[2],
                        attempts=row[3] + 1, last_error=row[4],
                    )
                    for row in rows
                ]
                if items:
                    self._conn.executemany("""
                        UPDATE pending_index
                        SET status = 'processing', claimed_by = ?, claimed_at = ?,
                            attempts = attempts + 1
                        WHERE id = ?
                    """, [(pid, now, item.id) for item in items])

                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise

        return items

    def complete(self, id: str) -> None:
        """Remove an item after successful re-indexing."""
        with self._lock:
            self._conn.execute("DELETE FROM pending_index WHERE id = ?", (id,))

    def discard(self, id: str) -> bool:
        """Drop an item regardless of status (its note was deleted)."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM pending_index WHERE id = ?", (id,))
        return cursor.rowcount > 0

    def fail(self, id: str, error: Optional[str] = None) -> None:
        """Release a claimed item back to pending with exponential backoff."""
        with self._lock:
            row = self._conn.execute(
                "SELECT attempts FROM pending_index WHERE id = ?", (id,)
            ).fetchone()
            attempts = row[0] if row else 1

            delay = min(RETRY_BACKOFF_BASE * (2 ** (attempts - 1)), RETRY_BACKOFF_MAX)
            retry_at = (_utc_now() + timedelta(seconds=delay)).isoformat()

            self._conn.execute("""
                UPDATE pending_index
                SET status = 'pending', claimed_by = NULL, claimed_at = NULL,
                    last_error = ?, retry_after = ?
                WHERE id = ?
            """, (error, retry_at, id))

        logger.info(
            "Re-index of %s failed (attempt %d), retry after %ds: %s",
            id, attempts, delay, error or "unknown",
        )

    def abandon(self, id: str, error: Optional[str] = None) -> None:
        """Move an item to 'failed' status after its last attempt."""
        with self._lock:
            self._conn.execute("""
                UPDATE pending_index
                SET status = 'failed', claimed_by = NULL, claimed_at = NULL,
                    last_error = ?
                WHERE id = ?
            """, (error, id))
        logger.warning("Abandoned re-index of %s: %s", id, error or "max attempts")

    def retry_failed(self) -> int:
        """Reset all failed items back to pending. Returns the count reset."""
        with self._lock:
            cursor = self._conn.execute("""
                UPDATE pending_index
                SET status = 'pending', attempts = 0, claimed_by = NULL,
                    claimed_at = NULL, retry_after = NULL
                WHERE status = 'failed'
            """)
        count = cursor.rowcount
        if count:
            logger.info("Reset %d failed items back to pending", count)
        return count

    def count(self) -> int:
        """Count items waiting (excludes processing and failed)."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM pending_index WHERE status = 'pending'"
        ).fetchone()[0]

    def stats(self) -> dict:
        """Queue statistics with a status breakdown."""
        by_status = {
            row[0]: row[1]
            for row in self._conn.execute(
                "SELECT status, COUNT(*) FROM pending_index GROUP BY status"
            )
        }
        oldest = self._conn.execute("SELECT MIN(queued_at) FROM pending_index").fetchone()[0]
        return {
            "pending": by_status.get("pending", 0),
            "processing": by_status.get("processing", 0),
            "failed": by_status.get("failed", 0),
            "oldest": oldest,
        }

    def list_failed(self) -> list[dict]:
        """Items in failed status, with their last error."""
        cursor = self._conn.execute("""
            SELECT id, attempts, last_error, queued_at
            FROM pending_index
            WHERE status = 'failed'
            ORDER BY queued_at ASC
        """)
        return [
            {"id": row[0], "attempts": row[1], "last_error": row[2], "queued_at": row[3]}
            for row in cursor.fetchall()
        ]

    def get_status(self, id: str) -> Optional[str]:
        """Queue status of a note ('pending', 'processing', 'failed'), or None."""
        row = self._conn.execute(
            "SELECT status FROM pending_index WHERE id = ?", (id,)
        ).fetchone()
        return row[0] if row else None

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
