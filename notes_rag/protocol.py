"""
Protocol definitions for the storage backends used by NotesRag.

- RecordStoreProtocol: note records (SQLite locally)
- VectorIndexProtocol: one vector per note id (ChromaDB locally)
- PendingQueueProtocol: orphaned notes awaiting re-indexing
"""

from typing import Optional, Protocol, runtime_checkable

from .note_store import NoteRecord
from .pending_index import PendingIndex
from .vector_index import IndexMatch


@runtime_checkable
class RecordStoreProtocol(Protocol):
    """
    Note record storage. Source of truth for note existence.

    Implemented by:
    - NoteStore (local SQLite)
    """

    def insert(self, text: str) -> NoteRecord: ...

    def delete(self, id: str) -> bool: ...

    def get(self, id: str) -> Optional[NoteRecord]: ...

    def get_many(self, ids: list[str]) -> dict[str, NoteRecord]: ...

    def list_all(self) -> list[NoteRecord]: ...

    def list_ids(self) -> list[str]: ...

    def count(self) -> int: ...

    def close(self) -> None: ...


@runtime_checkable
class VectorIndexProtocol(Protocol):
    """
    Vector similarity index keyed by note id.

    Implemented by:
    - ChromaIndex (local ChromaDB)
    """

    @property
    def dimension(self) -> Optional[int]: ...

    def upsert(self, id: str, vector: list[float]) -> None: ...

    def delete(self, ids: list[str]) -> None: ...

    def query(self, vector: list[float], top_k: int) -> list[IndexMatch]: ...

    def list_ids(self) -> list[str]: ...

    def count(self) -> int: ...

    def close(self) -> None: ...


@runtime_checkable
class PendingQueueProtocol(Protocol):
    """
    Queue of orphaned notes awaiting re-indexing.

    Implemented by:
    - PendingIndexQueue (local SQLite)
    """

    def enqueue(self, id: str, text: str, error: Optional[str] = None) -> None: ...

    def dequeue(self, limit: int = 10) -> list[PendingIndex]: ...

    def complete(self, id: str) -> None: ...

    def discard(self, id: str) -> bool: ...

    def fail(self, id: str, error: Optional[str] = None) -> None: ...

    def abandon(self, id: str, error: Optional[str] = None) -> None: ...

    def retry_failed(self) -> int: ...

    def count(self) -> int: ...

    def stats(self) -> dict: ...

    def close(self) -> None: ...
