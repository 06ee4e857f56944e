"""
Vector index using ChromaDB.

Holds exactly one vector per note, keyed by the note's record store id.
Only vectors are stored here; note text stays in the record store.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import EmbeddingDimensionError, IndexQueryFailure, IndexWriteFailure

logger = logging.getLogger(__name__)

COLLECTION_NAME = "notes"


@dataclass
class IndexMatch:
    """One nearest-neighbour hit: note id and cosine similarity."""
    id: str
    score: float


class ChromaIndex:
    """
    Persistent ChromaDB collection in cosine space.

    Args:
        index_path: Directory for ChromaDB files
        dimension: Expected vector length, if already known. When None the
            first upsert fixes it.
    """

    def __init__(self, index_path: Path, dimension: Optional[int] = None):
        import chromadb
        from chromadb.config import Settings

        index_path.mkdir(parents=True, exist_ok=True)
        self._index_path = index_path
        self._dimension = dimension
        self._client = chromadb.PersistentClient(
            path=str(index_path),
            settings=Settings(anonymized_telemetry=False, allow_reset=False),
        )
        self._collection = self._client.get_or_create_collection(
            name=COLLECTION_NAME,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def _check_dimension(self, vector: list[float]) -> None:
        if self._dimension is None:
            self._dimension = len(vector)
        elif len(vector) != self._dimension:
            raise EmbeddingDimensionError(self._dimension, len(vector))

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def upsert(self, id: str, vector: list[float]) -> None:
        """Insert or replace the vector for a note."""
        self._check_dimension(vector)
        try:
            self._collection.upsert(ids=[id], embeddings=[vector])
        except Exception as e:
            raise IndexWriteFailure(f"Failed to index note {id}: {e}") from e

    def delete(self, ids: list[str]) -> None:
        """
        Delete vectors by id.

        Ids with no vector are ignored, so deleting twice is harmless.
        """
        if not ids:
            return
        try:
            self._collection.delete(ids=list(ids))
        except Exception as e:
            raise IndexWriteFailure(f"Failed to delete vectors {ids}: {e}") from e

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def query(self, vector: list[float], top_k: int) -> list[IndexMatch]:
        """
        Find the top_k nearest vectors, most similar first.

        Returns fewer than top_k matches when the index is smaller.
        """
        self._check_dimension(vector)
        try:
            available = self._collection.count()
            if available == 0:
                return []
            result = self._collection.query(
                query_embeddings=[vector],
                n_results=min(top_k, available),
                include=["distances"],
            )
        except Exception as e:
            raise IndexQueryFailure(f"Vector query failed: {e}") from e

        ids = result["ids"][0]
        distances = result["distances"][0]
        # Cosine distance is 1 - similarity
        return [IndexMatch(id=id, score=1.0 - float(d)) for id, d in zip(ids, distances)]

    def list_ids(self) -> list[str]:
        """All ids that have a vector."""
        try:
            return list(self._collection.get(include=[])["ids"])
        except Exception as e:
            raise IndexQueryFailure(f"Failed to list vector ids: {e}") from e

    def count(self) -> int:
        try:
            return self._collection.count()
        except Exception as e:
            raise IndexQueryFailure(f"Failed to count vectors: {e}") from e

    def close(self) -> None:
        """Release the client. ChromaDB persists on every write."""
        self._collection = None
        self._client = None
