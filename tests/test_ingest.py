"""Tests for ingestion: segmentation, insert-then-index, and partial failures."""

import pytest

from notes_rag.config import SplittingConfig
from notes_rag.errors import EmbeddingDimensionError, IngestionError, StoreWriteFailure
from notes_rag.note_store import NoteStore

from conftest import MockEmbeddingProvider


LONG_TEXT = "\n\n".join(
    f"Paragraph {i} talks about topic number {i} in a handful of words." for i in range(8)
)


class FailingNoteStore(NoteStore):
    """NoteStore whose Nth insert fails."""

    def __init__(self, db_path, fail_on: int):
        super().__init__(db_path)
        self.fail_on = fail_on
        self.inserts = 0

    def insert(self, text):
        self.inserts += 1
        if self.inserts == self.fail_on:
            raise StoreWriteFailure("Failed to create note: disk full")
        return super().insert(text)


class TestIngest:

    def test_single_note_creates_record_and_vector(self, rag, vector_index):
        ids = rag.ingest("The sky is blue.")
        assert len(ids) == 1
        assert rag.get(ids[0]).text == "The sky is blue."
        assert list(vector_index.vectors) == ids

    def test_bijection_over_many_notes(self, rag, vector_index):
        ids = []
        for i in range(5):
            ids.extend(rag.ingest(f"note number {i}"))
        assert sorted(vector_index.vectors) == sorted(ids)
        assert rag.count() == 5

    def test_splitting_disabled_keeps_long_text_whole(self, rag):
        ids = rag.ingest(LONG_TEXT)
        assert len(ids) == 1
        assert rag.get(ids[0]).text == LONG_TEXT

    def test_splitting_enabled_creates_one_note_per_chunk(self, make_rag, vector_index):
        rag = make_rag(splitting=SplittingConfig(enabled=True, chunk_size=150, chunk_overlap=0))
        ids = rag.ingest(LONG_TEXT)

        assert len(ids) > 1
        texts = [rag.get(id).text for id in ids]
        assert "".join(texts) == LONG_TEXT
        assert sorted(vector_index.vectors) == sorted(ids)

    def test_env_flag_overrides_config(self, make_rag, monkeypatch):
        monkeypatch.setenv("NOTES_RAG_ENABLE_TEXT_SPLITTING", "true")
        rag = make_rag(splitting=SplittingConfig(enabled=False, chunk_size=150, chunk_overlap=0))
        assert len(rag.ingest(LONG_TEXT)) > 1

    def test_empty_text_creates_empty_note(self, rag):
        ids = rag.ingest("")
        assert len(ids) == 1
        assert rag.get(ids[0]).text == ""


class TestIngestFailures:

    def test_upsert_failure_leaves_queued_orphan(self, rag, vector_index):
        vector_index.fail_upsert = True

        with pytest.raises(IngestionError) as exc_info:
            rag.ingest("The sky is blue.")

        err = exc_info.value
        assert len(err.created_ids) == 1
        assert err.orphaned_ids == err.created_ids
        assert "queued for re-indexing" in str(err)

        orphan = err.created_ids[0]
        assert [n.id for n in rag.list_notes()] == [orphan]
        assert vector_index.vectors == {}
        assert rag.pending_stats()["pending"] == 1

    def test_embedding_failure_leaves_queued_orphan(self, rag, mock_embedding_provider, vector_index):
        mock_embedding_provider.fail = True

        with pytest.raises(IngestionError) as exc_info:
            rag.ingest("The sky is blue.")

        assert "embedding service unreachable" in str(exc_info.value)
        assert rag.count() == 1
        assert vector_index.upsert_calls == 0
        assert rag.pending_stats()["pending"] == 1

    def test_stops_at_first_failed_chunk(self, make_rag, vector_index):
        rag = make_rag(splitting=SplittingConfig(enabled=True, chunk_size=150, chunk_overlap=0))
        chunk_count = len(rag.segment(LONG_TEXT))
        assert chunk_count > 2

        calls = {"n": 0}
        original = vector_index.upsert

        def flaky_upsert(id, vector):
            calls["n"] += 1
            if calls["n"] == 2:
                vector_index.fail_upsert = True
            try:
                original(id, vector)
            finally:
                vector_index.fail_upsert = False

        vector_index.upsert = flaky_upsert

        with pytest.raises(IngestionError) as exc_info:
            rag.ingest(LONG_TEXT)

        err = exc_info.value
        assert err.chunk_index == 1
        assert err.chunk_count == chunk_count
        assert len(err.created_ids) == 2
        assert err.orphaned_ids == [err.created_ids[1]]
        # Later chunks were never inserted
        assert rag.count() == 2
        assert list(vector_index.vectors) == [err.created_ids[0]]

    def test_insert_failure_reports_created_ids(self, make_rag, tmp_path, vector_index):
        store = FailingNoteStore(tmp_path / "failing.db", fail_on=3)
        rag = make_rag(
            splitting=SplittingConfig(enabled=True, chunk_size=150, chunk_overlap=0),
            record_store=store,
        )

        with pytest.raises(IngestionError) as exc_info:
            rag.ingest(LONG_TEXT)

        err = exc_info.value
        assert len(err.created_ids) == 2
        assert err.orphaned_ids == []
        assert isinstance(err.__cause__, StoreWriteFailure)
        assert "Notes already created" in str(err)
        # Both created notes were fully indexed
        assert sorted(vector_index.vectors) == sorted(err.created_ids)
        assert rag.pending_stats()["pending"] == 0

    def test_insert_failure_on_first_chunk_creates_nothing(self, make_rag, tmp_path, vector_index):
        rag = make_rag(record_store=FailingNoteStore(tmp_path / "failing.db", fail_on=1))
        with pytest.raises(IngestionError) as exc_info:
            rag.ingest("The sky is blue.")
        assert exc_info.value.created_ids == []
        assert rag.count() == 0
        assert vector_index.vectors == {}


class TestEmbeddingDimension:

    def test_first_embed_records_dimension(self, rag):
        assert rag.config.index_dimension is None
        rag.ingest("first note")
        assert rag.config.index_dimension == 64
        assert rag.config.config_path.exists()

    def test_dimension_change_is_rejected(self, make_rag, tmp_path, vector_index):
        rag = make_rag()
        rag.ingest("first note")

        other = make_rag(
            embedding=MockEmbeddingProvider(dimension=32),
            store_path=tmp_path / "store",
        )
        other.config.index_dimension = 64

        with pytest.raises(IngestionError) as exc_info:
            other.ingest("second note")
        assert isinstance(exc_info.value.__cause__, EmbeddingDimensionError)

        with pytest.raises(EmbeddingDimensionError):
            other.retrieve("anything")
