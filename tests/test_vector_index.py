"""Tests for the ChromaDB vector index adapter."""

import pytest

pytest.importorskip("chromadb")

from notes_rag.errors import EmbeddingDimensionError
from notes_rag.vector_index import ChromaIndex


@pytest.fixture
def index(tmp_path):
    idx = ChromaIndex(tmp_path / "chroma")
    yield idx
    idx.close()


def _unit(i: int, dim: int = 8) -> list[float]:
    v = [0.0] * dim
    v[i] = 1.0
    return v


class TestChromaIndex:

    def test_query_empty_index(self, index):
        assert index.query(_unit(0), top_k=3) == []

    def test_upsert_and_query_ranked(self, index):
        index.upsert("1", _unit(0))
        index.upsert("2", _unit(1))
        index.upsert("3", [0.9, 0.1, 0, 0, 0, 0, 0, 0])

        matches = index.query(_unit(0), top_k=2)
        assert [m.id for m in matches] == ["1", "3"]
        assert matches[0].score == pytest.approx(1.0, abs=1e-4)
        assert matches[0].score >= matches[1].score

    def test_top_k_larger_than_index(self, index):
        index.upsert("1", _unit(0))
        assert len(index.query(_unit(0), top_k=3)) == 1

    def test_upsert_replaces(self, index):
        index.upsert("1", _unit(0))
        index.upsert("1", _unit(1))
        assert index.count() == 1
        assert index.query(_unit(1), top_k=1)[0].id == "1"

    def test_delete_is_idempotent(self, index):
        index.upsert("1", _unit(0))
        index.delete(["1"])
        index.delete(["1"])
        index.delete(["never-existed"])
        assert index.count() == 0
        assert "1" not in index.list_ids()

    def test_list_ids(self, index):
        index.upsert("1", _unit(0))
        index.upsert("2", _unit(1))
        assert sorted(index.list_ids()) == ["1", "2"]

    def test_dimension_fixed_by_first_upsert(self, index):
        assert index.dimension is None
        index.upsert("1", _unit(0))
        assert index.dimension == 8
        with pytest.raises(EmbeddingDimensionError):
            index.upsert("2", [1.0, 0.0])
        with pytest.raises(EmbeddingDimensionError):
            index.query([1.0, 0.0], top_k=1)

    def test_configured_dimension(self, tmp_path):
        idx = ChromaIndex(tmp_path / "chroma2", dimension=4)
        with pytest.raises(EmbeddingDimensionError) as exc_info:
            idx.upsert("1", _unit(0))
        assert exc_info.value.expected == 4
        assert exc_info.value.actual == 8
        idx.close()
