"""
Storage backend factory.

Creates the record store, vector index and pending queue for a store
directory. The local layout is:

    {store}/notes.db            note records (SQLite)
    {store}/chroma/             vectors (ChromaDB)
    {store}/pending_index.db    orphans awaiting re-indexing (SQLite)
"""

from typing import NamedTuple

from .config import StoreConfig
from .protocol import PendingQueueProtocol, RecordStoreProtocol, VectorIndexProtocol

NOTES_DB_FILENAME = "notes.db"
INDEX_DIRNAME = "chroma"
PENDING_DB_FILENAME = "pending_index.db"


class StoreBundle(NamedTuple):
    """Collection of storage backends returned by the factory."""
    record_store: RecordStoreProtocol
    vector_index: VectorIndexProtocol
    pending_queue: PendingQueueProtocol


def create_stores(config: StoreConfig) -> StoreBundle:
    """Create the local SQLite and ChromaDB backends for a store directory."""
    from .note_store import NoteStore
    from .pending_index import PendingIndexQueue
    from .vector_index import ChromaIndex

    store_path = config.path
    return StoreBundle(
        record_store=NoteStore(store_path / NOTES_DB_FILENAME),
        vector_index=ChromaIndex(store_path / INDEX_DIRNAME, dimension=config.index_dimension),
        pending_queue=PendingIndexQueue(store_path / PENDING_DB_FILENAME),
    )
