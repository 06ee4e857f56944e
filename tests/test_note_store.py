"""Tests for the SQLite note record store."""

import pytest

from notes_rag.errors import StoreReadFailure, StoreWriteFailure
from notes_rag.note_store import NoteStore


@pytest.fixture
def store(tmp_path):
    s = NoteStore(tmp_path / "notes.db")
    yield s
    s.close()


class TestNoteStore:

    def test_insert_assigns_string_ids(self, store):
        first = store.insert("one")
        second = store.insert("two")
        assert isinstance(first.id, str)
        assert first.id != second.id
        assert first.text == "one"
        assert first.created_at

    def test_insert_empty_text(self, store):
        record = store.insert("")
        assert store.get(record.id).text == ""

    def test_get_missing_returns_none(self, store):
        assert store.get("999") is None

    def test_list_all_in_insertion_order(self, store):
        ids = [store.insert(t).id for t in ("a", "b", "c")]
        assert [r.id for r in store.list_all()] == ids
        assert store.list_ids() == ids
        assert store.count() == 3

    def test_get_many_keys_by_id_and_omits_missing(self, store):
        a = store.insert("a")
        b = store.insert("b")
        found = store.get_many([b.id, "12345", a.id])
        assert set(found) == {a.id, b.id}
        assert found[b.id].text == "b"

    def test_get_many_empty(self, store):
        assert store.get_many([]) == {}

    def test_delete(self, store):
        record = store.insert("gone soon")
        assert store.delete(record.id) is True
        assert store.get(record.id) is None
        assert store.delete(record.id) is False

    def test_ids_not_reused_after_delete(self, store):
        first = store.insert("first")
        store.delete(first.id)
        second = store.insert("second")
        assert second.id != first.id

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "notes.db"
        with NoteStore(path) as s:
            record = s.insert("durable")
        with NoteStore(path) as s:
            assert s.get(record.id).text == "durable"

    def test_insert_failure_is_store_write_failure(self, store):
        store._conn.execute("DROP TABLE notes")
        with pytest.raises(StoreWriteFailure):
            store.insert("nowhere to go")

    def test_read_failure_is_store_read_failure(self, store):
        store._conn.execute("DROP TABLE notes")
        with pytest.raises(StoreReadFailure):
            store.list_all()
        with pytest.raises(StoreReadFailure):
            store.get_many(["1"])
