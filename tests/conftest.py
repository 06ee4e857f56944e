"""
Shared pytest fixtures for notes-rag tests.

Provides mock providers and an in-memory vector index so tests never
load an embedding model, start ChromaDB, or reach the network.
"""

import hashlib
import math
import re
from pathlib import Path

import pytest

from notes_rag.api import NotesRag
from notes_rag.backend import StoreBundle
from notes_rag.config import SplittingConfig, StoreConfig
from notes_rag.errors import EmbeddingDimensionError, GenerationFailure, IndexQueryFailure, IndexWriteFailure
from notes_rag.note_store import NoteStore
from notes_rag.pending_index import PendingIndexQueue
from notes_rag.vector_index import IndexMatch


class MockEmbeddingProvider:
    """
    Deterministic bag-of-words embedding - no ML model loading.

    Each word is hashed into a bucket, so texts sharing words are similar.
    """

    model_name = "mock-model"

    def __init__(self, dimension: int = 64):
        self.dimension = dimension
        self.embed_calls = 0
        self.fail = False

    def embed(self, text: str) -> list[float]:
        self.embed_calls += 1
        if self.fail:
            raise ConnectionError("embedding service unreachable")
        vector = [0.0] * self.dimension
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        if not any(vector):
            vector[0] = 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector]


class MemoryVectorIndex:
    """In-memory vector index with switchable failures."""

    def __init__(self, dimension: int = None):
        self._dimension = dimension
        self.vectors: dict[str, list[float]] = {}
        self.fail_upsert = False
        self.fail_delete = False
        self.fail_query = False
        self.upsert_calls = 0
        self.delete_calls = 0

    @property
    def dimension(self):
        return self._dimension

    def _check_dimension(self, vector):
        if self._dimension is None:
            self._dimension = len(vector)
        elif len(vector) != self._dimension:
            raise EmbeddingDimensionError(self._dimension, len(vector))

    def upsert(self, id: str, vector: list[float]) -> None:
        self.upsert_calls += 1
        if self.fail_upsert:
            raise IndexWriteFailure(f"Failed to index note {id}: simulated outage")
        self._check_dimension(vector)
        self.vectors[id] = list(vector)

    def delete(self, ids: list[str]) -> None:
        self.delete_calls += 1
        if self.fail_delete:
            raise IndexWriteFailure("Failed to delete vectors: simulated outage")
        for id in ids:
            self.vectors.pop(id, None)

    def query(self, vector: list[float], top_k: int) -> list[IndexMatch]:
        if self.fail_query:
            raise IndexQueryFailure("Vector query failed: simulated outage")
        self._check_dimension(vector)
        scored = [
            IndexMatch(id=id, score=sum(a * b for a, b in zip(vector, v)))
            for id, v in self.vectors.items()
        ]
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    def list_ids(self) -> list[str]:
        return list(self.vectors)

    def count(self) -> int:
        return len(self.vectors)

    def close(self) -> None:
        pass


class ScriptedGeneration:
    """Generation provider that records calls and echoes its inputs."""

    def __init__(self, name: str = "ollama", model: str = "llama3.1:8b"):
        self.name = name
        self.model = model
        self.calls: list[tuple[str, list[str]]] = []
        self.fail = False

    def generate(self, question, context) -> str:
        self.calls.append((question, list(context)))
        if self.fail:
            raise GenerationFailure(f"{self.name} request failed: simulated outage")
        return f"Answer to '{question}' from {len(context)} notes"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests independent of the developer's environment."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("NOTES_RAG_ENABLE_TEXT_SPLITTING", raising=False)
    monkeypatch.setenv("NOTES_RAG_STORE_PATH", str(tmp_path / "default-store"))


@pytest.fixture
def mock_embedding_provider():
    return MockEmbeddingProvider()


@pytest.fixture
def vector_index():
    return MemoryVectorIndex()


@pytest.fixture
def generation():
    return ScriptedGeneration()


@pytest.fixture
def make_rag(tmp_path, mock_embedding_provider, vector_index, generation):
    """Factory for NotesRag over a real SQLite store and the in-memory index."""
    created = []

    def factory(
        *,
        splitting: SplittingConfig = None,
        top_k: int = 3,
        record_store=None,
        index=None,
        embedding=None,
        generator=None,
        store_path: Path = None,
    ) -> NotesRag:
        path = store_path or tmp_path / "store"
        config = StoreConfig(path=path, top_k=top_k)
        if splitting is not None:
            config.splitting = splitting
        stores = StoreBundle(
            record_store=record_store or NoteStore(path / "notes.db"),
            vector_index=index or vector_index,
            pending_queue=PendingIndexQueue(path / "pending_index.db"),
        )
        rag = NotesRag(
            config=config,
            stores=stores,
            embedding_provider=embedding or mock_embedding_provider,
            generation_provider=generator or generation,
            ops_log=False,
        )
        created.append(rag)
        return rag

    yield factory

    for rag in created:
        if rag._records is not None:
            rag.close()


@pytest.fixture
def rag(make_rag):
    """NotesRag with segmentation disabled."""
    return make_rag()
