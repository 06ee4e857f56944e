"""
Core API for notes-rag.

- ingest(): segment → per chunk: insert record → embed → upsert vector
- retrieve(): embed question → nearest vectors → resolve records in rank order
- query(): retrieve → generate a grounded answer
- delete(): remove record, then vector

The record store and vector index fail independently and share no
transaction. A chunk whose record was inserted but whose vector was not
is an orphan: it is listed but not searchable. Orphans are queued for
re-indexing (process_pending) and can also be found by reconcile().
"""

import logging
from pathlib import Path
from typing import Optional

from .backend import StoreBundle, create_stores
from .config import (
    ProviderConfig,
    StoreConfig,
    get_default_store_path,
    load_or_create_config,
    save_config,
    validate_config,
)
from .errors import (
    EmbeddingDimensionError,
    EmbeddingUnavailable,
    GenerationFailure,
    IndexWriteFailure,
    IngestionError,
    NotesRagError,
    StoreWriteFailure,
)
from .logging_config import configure_ops_log, remove_ops_log
from .note_store import NoteRecord
from .providers import EmbeddingProvider, GenerationProvider, get_registry
from .splitter import split_text
from .types import Answer, DeleteOutcome, RetrievedNote

logger = logging.getLogger(__name__)

# Re-index attempts before an orphan is moved to 'failed'
MAX_INDEX_ATTEMPTS = 5


def _chunk_label(index: int, total: int) -> str:
    return f" (chunk {index + 1} of {total})" if total > 1 else ""


class NotesRag:
    """
    Notes store with retrieval-augmented question answering.

    Args:
        store_path: Store directory (default: NOTES_RAG_STORE_PATH or ~/.notes-rag)
        config: Use this configuration instead of loading notes-rag.toml
        stores: Pre-built storage backends (default: local SQLite + ChromaDB)
        embedding_provider: Embedding provider to use instead of the configured one
        generation_provider: Generation provider to use instead of the configured one
        ops_log: Attach the rotating operations log in the store directory
    """

    def __init__(
        self,
        store_path: Optional[Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        stores: Optional[StoreBundle] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        generation_provider: Optional[GenerationProvider] = None,
        ops_log: bool = True,
    ):
        if config is None:
            path = Path(store_path) if store_path is not None else get_default_store_path()
            config = load_or_create_config(path.expanduser())
        else:
            validate_config(config)
        self._config = config

        self._ops_log_handler = configure_ops_log(config.path) if ops_log else None

        bundle = stores if stores is not None else create_stores(config)
        self._records = bundle.record_store
        self._index = bundle.vector_index
        self._pending = bundle.pending_queue

        self._embedding_provider = embedding_provider
        self._generation_provider = generation_provider
        # Backend choice is fixed for the lifetime of this instance
        self._generation_choice: ProviderConfig = config.select_generation()

    # -------------------------------------------------------------------------
    # Providers
    # -------------------------------------------------------------------------

    def _get_embedding_provider(self) -> EmbeddingProvider:
        if self._embedding_provider is None:
            cfg = self._config.embedding
            try:
                self._embedding_provider = get_registry().create_embedding(cfg.name, cfg.params)
            except (ValueError, RuntimeError) as e:
                raise EmbeddingUnavailable(str(e)) from e
        return self._embedding_provider

    def _get_generation_provider(self) -> GenerationProvider:
        if self._generation_provider is None:
            choice = self._generation_choice
            try:
                self._generation_provider = get_registry().create_generation(
                    choice.name, choice.params
                )
            except (ValueError, RuntimeError) as e:
                raise GenerationFailure(str(e)) from e
        return self._generation_provider

    @property
    def generation_backend(self) -> str:
        """Name of the generation backend this instance uses."""
        if self._generation_provider is not None:
            return self._generation_provider.name
        return self._generation_choice.name

    def _embed(self, text: str) -> list[float]:
        """
        Embed text, enforcing the index dimension.

        Raises:
            EmbeddingUnavailable: If the embedding service fails
            EmbeddingDimensionError: If the vector does not fit the index
        """
        provider = self._get_embedding_provider()
        try:
            vector = list(provider.embed(text))
        except NotesRagError:
            raise
        except Exception as e:
            raise EmbeddingUnavailable(f"Embedding failed: {e}") from e
        if not vector:
            raise EmbeddingUnavailable("Embedding service returned an empty vector")

        self._validate_dimension(len(vector))
        return vector

    def _validate_dimension(self, dimension: int) -> None:
        """Record the dimension on first use; reject any later change."""
        expected = self._config.index_dimension
        if expected is None:
            expected = self._index.dimension
        if expected is None:
            self._config.index_dimension = dimension
            logger.info("Recording embedding dimension %d", dimension)
            try:
                save_config(self._config)
            except OSError as e:
                logger.warning("Could not save embedding dimension to config: %s", e)
            return
        if dimension != expected:
            raise EmbeddingDimensionError(expected, dimension)

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def segment(self, text: str) -> list[str]:
        """Split text into chunks according to the configured policy."""
        splitting = self._config.splitting
        return split_text(
            text,
            enabled=self._config.splitting_enabled(),
            chunk_size=splitting.chunk_size,
            chunk_overlap=splitting.chunk_overlap,
        )

    def ingest(self, text: str) -> list[str]:
        """
        Store text as one or more notes and index them for search.

        Chunks are processed one at a time. For each: the record is
        inserted (after which the note exists), then embedded, then its
        vector is upserted under the record's id.

        Returns:
            Ids of the created notes, in chunk order

        Raises:
            IngestionError: On the first failure. Records already created
                are not rolled back; their ids are on the exception. A chunk
                whose record exists but whose vector does not is queued for
                re-indexing.
        """
        chunks = self.segment(text)
        total = len(chunks)
        created: list[str] = []

        for index, chunk in enumerate(chunks):
            try:
                record = self._records.insert(chunk)
            except StoreWriteFailure as e:
                raise IngestionError(
                    f"Failed to create note{_chunk_label(index, total)}: {e}"
                    + self._created_suffix(created),
                    created_ids=created,
                    chunk_index=index,
                    chunk_count=total,
                ) from e
            created.append(record.id)

            try:
                vector = self._embed(chunk)
                self._index.upsert(record.id, vector)
            except Exception as e:
                self._track_orphan(record.id, chunk, e)
                raise IngestionError(
                    f"Note {record.id} was created but could not be indexed"
                    f"{_chunk_label(index, total)}: {e}"
                    + self._created_suffix(created)
                    + f" Note {record.id} is queued for re-indexing.",
                    created_ids=created,
                    orphaned_ids=[record.id],
                    chunk_index=index,
                    chunk_count=total,
                ) from e

            logger.info("Added note %s%s", record.id, _chunk_label(index, total))

        return created

    @staticmethod
    def _created_suffix(created: list[str]) -> str:
        if not created:
            return ""
        return f". Notes already created: {', '.join(created)}."

    def _track_orphan(self, id: str, text: str, error: Exception) -> None:
        """Queue an orphaned record for re-indexing."""
        logger.warning("Note %s stored without a vector: %s", id, error)
        try:
            self._pending.enqueue(id, text, error=str(error))
        except Exception as e:
            # The orphan is still discoverable by reconcile()
            logger.warning("Could not queue note %s for re-indexing: %s", id, e)

    # -------------------------------------------------------------------------
    # Retrieval and generation
    # -------------------------------------------------------------------------

    def retrieve(self, question: str, k: Optional[int] = None) -> list[RetrievedNote]:
        """
        Find the notes most similar to a question, most similar first.

        Index entries whose note no longer exists are skipped.

        Args:
            question: Natural-language question
            k: Maximum notes to return (default: configured top_k)
        """
        if k is None:
            k = self._config.top_k
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")

        vector = self._embed(question)
        matches = self._index.query(vector, k)[:k]
        if not matches:
            return []

        # Bulk lookup returns storage order; rank order comes from matches
        records = self._records.get_many([m.id for m in matches])
        notes = []
        for match in matches:
            record = records.get(match.id)
            if record is None:
                logger.debug("Skipping stale index entry %s", match.id)
                continue
            notes.append(RetrievedNote(id=record.id, text=record.text, score=match.score))
        return notes

    def generate(self, question: str, notes: list[RetrievedNote]) -> Answer:
        """
        Answer a question with the configured backend, grounded in notes.

        Raises:
            GenerationFailure: If the backend fails. There is no fallback
                to the other backend.
        """
        provider = self._get_generation_provider()
        try:
            text = provider.generate(question, [note.text for note in notes])
        except GenerationFailure:
            raise
        except Exception as e:
            raise GenerationFailure(f"{provider.name} generation failed: {e}") from e
        return Answer(text=text, backend=provider.name, model=provider.model, notes=list(notes))

    def query(self, question: str) -> Answer:
        """Retrieve up to top_k notes and answer the question with them as context."""
        notes = self.retrieve(question)
        answer = self.generate(question, notes)
        logger.info(
            "Answered with %s (%s) using %d notes",
            answer.backend, answer.model, answer.context_count,
        )
        return answer

    # -------------------------------------------------------------------------
    # Direct access
    # -------------------------------------------------------------------------

    def list_notes(self) -> list[NoteRecord]:
        """All notes, including ones not yet indexed."""
        return self._records.list_all()

    def get(self, id: str) -> Optional[NoteRecord]:
        return self._records.get(id)

    def count(self) -> int:
        return self._records.count()

    def delete(self, id: str) -> DeleteOutcome:
        """
        Delete a note and its vector.

        The record decides whether the note exists. Vector deletion is
        best-effort: a missing vector is fine, and a failed vector delete
        leaves a stale index entry that retrieval skips and reconcile removes.
        """
        if self._records.get(id) is None:
            return DeleteOutcome.NOT_FOUND
        if not self._records.delete(id):
            # Deleted concurrently
            return DeleteOutcome.NOT_FOUND

        try:
            self._index.delete([id])
        except IndexWriteFailure as e:
            logger.warning("Deleted note %s but not its vector: %s", id, e)

        try:
            self._pending.discard(id)
        except Exception as e:
            logger.warning("Could not clear pending re-index for %s: %s", id, e)

        logger.info("Deleted note %s", id)
        return DeleteOutcome.DELETED

    # -------------------------------------------------------------------------
    # Consistency
    # -------------------------------------------------------------------------

    def process_pending(self, limit: int = 10) -> dict:
        """
        Re-index queued orphans.

        Each claimed note is re-embedded and upserted. Failures are retried
        later with backoff; after MAX_INDEX_ATTEMPTS the item is moved to
        'failed'. Notes deleted since queueing are dropped.

        Returns:
            Dict with 'indexed', 'failed', 'abandoned', 'dropped' counts
        """
        counts = {"indexed": 0, "failed": 0, "abandoned": 0, "dropped": 0}
        for item in self._pending.dequeue(limit=limit):
            record = self._records.get(item.id)
            if record is None:
                self._pending.complete(item.id)
                counts["dropped"] += 1
                continue
            try:
                self._index.upsert(record.id, self._embed(record.text))
            except EmbeddingDimensionError as e:
                self._pending.abandon(item.id, error=str(e))
                counts["abandoned"] += 1
            except NotesRagError as e:
                if item.attempts >= MAX_INDEX_ATTEMPTS:
                    self._pending.abandon(item.id, error=str(e))
                    counts["abandoned"] += 1
                else:
                    self._pending.fail(item.id, error=str(e))
                    counts["failed"] += 1
            else:
                self._pending.complete(item.id)
                counts["indexed"] += 1
                logger.info("Re-indexed note %s (attempt %d)", item.id, item.attempts)
        return counts

    def pending_stats(self) -> dict:
        return self._pending.stats()

    def retry_failed(self) -> int:
        """Move abandoned re-index items back to pending."""
        return self._pending.retry_failed()

    def reconcile(self, fix: bool = False) -> dict:
        """
        Check and optionally fix consistency between record store and index.

        Detects:
        - Notes with no vector (not searchable)
        - Vectors with no note (stale index entries)

        Args:
            fix: If True, index the former and delete the latter

        Returns:
            Dict with 'missing_from_index', 'orphaned_in_index', 'fixed',
            'removed' counts and the id lists
        """
        record_ids = self._records.list_ids()
        index_ids = set(self._index.list_ids())
        record_id_set = set(record_ids)

        missing = [id for id in record_ids if id not in index_ids]
        stale = sorted(index_ids - record_id_set)

        fixed = 0
        removed = 0
        if fix:
            records = self._records.get_many(missing)
            for id in missing:
                record = records.get(id)
                if record is None:
                    continue
                try:
                    self._index.upsert(id, self._embed(record.text))
                except NotesRagError as e:
                    logger.warning("Failed to reconcile %s: %s", id, e)
                    continue
                self._pending.discard(id)
                fixed += 1
                logger.info("Reconciled: %s", id)

            if stale:
                try:
                    self._index.delete(stale)
                    removed = len(stale)
                    logger.info("Removed %d stale index entries", removed)
                except IndexWriteFailure as e:
                    logger.warning("Failed to remove stale index entries: %s", e)

        return {
            "missing_from_index": len(missing),
            "orphaned_in_index": len(stale),
            "fixed": fixed,
            "removed": removed,
            "missing_ids": missing,
            "orphaned_ids": stale,
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def config(self) -> StoreConfig:
        """Public access to store configuration."""
        return self._config

    def close(self) -> None:
        """Close stores and detach the operations log."""
        for store in (self._index, self._records, self._pending):
            if store is not None:
                store.close()
        self._index = self._records = self._pending = None

        if self._ops_log_handler is not None:
            remove_ops_log(self._ops_log_handler)
            self._ops_log_handler = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close resources."""
        self.close()
        return False
