"""
Error types for notes-rag, and error logging for the CLI.

Every failure that can cross an operation boundary is a NotesRagError.
The tool layer converts them into error results; the CLI logs full
tracebacks to a file while showing clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class NotesRagError(Exception):
    """Base class for all notes-rag errors."""


class ValidationError(NotesRagError):
    """A required tool argument is missing or has the wrong type, or the tool is unknown."""


class EmbeddingUnavailable(NotesRagError):
    """The embedding service call failed."""


class EmbeddingDimensionError(NotesRagError):
    """
    Embedding dimension does not match the vector index.

    This is a configuration error: the store was indexed with a different
    embedding model. It is never retried.
    """

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: index expects {expected}, "
            f"embedding provider returned {actual}. "
            "Check the [embedding] section of the store configuration."
        )


class StoreWriteFailure(NotesRagError):
    """A record store insert or delete failed."""


class StoreReadFailure(NotesRagError):
    """A record store lookup failed."""


class IndexWriteFailure(NotesRagError):
    """A vector index upsert or delete failed."""


class IndexQueryFailure(NotesRagError):
    """A vector index query failed."""


class GenerationFailure(NotesRagError):
    """The chat backend call failed."""


class IngestionError(NotesRagError):
    """
    Ingestion stopped part way through.

    Records in ``created_ids`` exist in the record store. Those also in
    ``orphaned_ids`` have no vector yet and are queued for re-indexing.
    The underlying failure is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        created_ids: list[str],
        orphaned_ids: Optional[list[str]] = None,
        chunk_index: int = 0,
        chunk_count: int = 1,
    ):
        self.created_ids = list(created_ids)
        self.orphaned_ids = list(orphaned_ids or [])
        self.chunk_index = chunk_index
        self.chunk_count = chunk_count
        super().__init__(message)


def _error_log_path() -> Path:
    """Resolve error log path, respecting NOTES_RAG_STORE_PATH."""
    store = os.environ.get("NOTES_RAG_STORE_PATH")
    if store:
        return Path(store) / "notes-rag-errors.log"
    return Path.home() / ".notes-rag" / "notes-rag-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # Can't write error log; don't crash over it
    return log_path
