"""Embeddable search index with an explicit open/close lifecycle.

``SearchIndex`` owns one Document Store, one set of term postings, the query
engine and, when given a data directory, the mutation log and snapshot that
make the index survive restarts::

    with SearchIndex.open("/var/lib/content-index/articles") as index:
        index.add(1, {"title": "batman", "nemesis": {"value": "joker"}})
        index.search("joker").ids()   # -> [1]
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from pathlib import Path
import threading
from typing import TYPE_CHECKING, Any

from opentelemetry.trace import SpanKind

from content_index.observability import INDEX_DOC_COUNT
from content_index.observability.tracing import create_span
from content_index.search.analyzers import DEFAULT_ANALYZER, get_analyzer
from content_index.search.document_store import DocumentStore
from content_index.search.errors import (
    BatchFailure,
    CorruptLogError,
    IndexClosedError,
    IndexingError,
    StorageIOError,
)
from content_index.search.fields import DocumentId, Fields, validate_document_id
from content_index.search.indexer import Indexer
from content_index.search.locks import ReadWriteLock
from content_index.search.models import MutationRecord
from content_index.search.mutation_log import LOG_FILENAME, MutationLog
from content_index.search.postings import TermPostings
from content_index.search.query import QueryEngine, SearchResults
from content_index.search.snapshot import IndexSnapshot, SnapshotStore


if TYPE_CHECKING:
    from content_index.config import Settings


logger = logging.getLogger(__name__)


class SearchIndex:
    def __init__(
        self,
        data_dir: str | Path | None = None,
        *,
        name: str = "default",
        analyzer: str = DEFAULT_ANALYZER,
        fsync: bool = True,
        checkpoint_interval: int = 1000,
        lock_timeout: float | None = None,
    ) -> None:
        if checkpoint_interval < 0:
            raise ValueError("checkpoint_interval must be >= 0")
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self.name = name
        self.analyzer_name = analyzer.lower()
        self.checkpoint_interval = checkpoint_interval

        self._analyzer = get_analyzer(self.analyzer_name)
        self._lock = ReadWriteLock(timeout=lock_timeout)
        self._store = DocumentStore()
        self._postings = TermPostings()
        self._log = MutationLog(self.data_dir / LOG_FILENAME, fsync=fsync) if self.data_dir else None
        self._snapshots = SnapshotStore(self.data_dir, fsync=fsync) if self.data_dir else None
        self._indexer = Indexer(
            self._store,
            self._postings,
            self._analyzer,
            self._lock,
            log=self._log,
            index_name=name,
            on_commit=self._after_commit,
        )
        self._engine = QueryEngine(self._postings, self._store, self._analyzer, self._lock, index_name=name)
        self._checkpoint_lock = threading.Lock()
        self._since_checkpoint = 0
        self._opened = False
        self._closed = False

    @classmethod
    def open(cls, data_dir: str | Path | None = None, **kwargs: Any) -> SearchIndex:
        """Construct an index and load any persisted state."""

        index = cls(data_dir, **kwargs)
        index.load()
        return index

    @classmethod
    def from_settings(
        cls, settings: Settings, *, data_dir: str | Path | None = None, name: str | None = None
    ) -> SearchIndex:
        return cls.open(
            data_dir if data_dir is not None else settings.index_data_dir,
            name=name or settings.index_name,
            analyzer=settings.index_analyzer,
            fsync=settings.index_fsync,
            checkpoint_interval=settings.index_checkpoint_interval,
            lock_timeout=settings.index_lock_timeout_seconds,
        )

    def __enter__(self) -> SearchIndex:
        if not self._opened:
            self.load()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, doc_id: object) -> bool:
        with self._lock.read():
            return doc_id in self._store

    @property
    def is_persistent(self) -> bool:
        return self.data_dir is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def load(self) -> None:
        """Rebuild memory from the snapshot plus the log tail, then open the log."""

        if self._closed:
            raise IndexClosedError(f"Index '{self.name}' is closed")
        if self._opened:
            return
        if self._log is not None and self._snapshots is not None:
            try:
                self._recover()
            except Exception:
                self._reset_memory()
                raise
        self._opened = True
        INDEX_DOC_COUNT.labels(index=self.name).set(len(self._store))
        logger.info(
            "Opened index %s with %d document(s)",
            self.name,
            len(self._store),
            extra={"index": self.name, "persistent": self.is_persistent},
        )

    def close(self) -> None:
        if self._closed:
            return
        with self._lock.write():
            if self._log is not None:
                self._log.close()
            self._closed = True
        logger.info("Closed index %s", self.name, extra={"index": self.name})

    # Indexing API

    def add(self, doc_id: DocumentId, fields: Mapping[str, Any]) -> None:
        self._ensure_open()
        self._indexer.add(doc_id, fields)

    def update(self, doc_id: DocumentId, fields: Mapping[str, Any]) -> None:
        self._ensure_open()
        self._indexer.update(doc_id, fields)

    def delete(self, doc_id: DocumentId) -> None:
        self._ensure_open()
        self._indexer.delete(doc_id)

    def bulk_index(
        self,
        items: Mapping[DocumentId, Mapping[str, Any]],
        *,
        cancel_event: threading.Event | None = None,
        raise_on_failure: bool = False,
    ) -> list[BatchFailure]:
        self._ensure_open()
        return self._indexer.bulk_index(items, cancel_event=cancel_event, raise_on_failure=raise_on_failure)

    def delete_many(
        self,
        doc_ids: Iterable[DocumentId],
        *,
        cancel_event: threading.Event | None = None,
        raise_on_failure: bool = False,
    ) -> list[BatchFailure]:
        self._ensure_open()
        return self._indexer.delete_many(doc_ids, cancel_event=cancel_event, raise_on_failure=raise_on_failure)

    def get(self, doc_id: DocumentId) -> Fields:
        self._ensure_open()
        doc_id = validate_document_id(doc_id)
        with self._lock.read():
            return self._store.get(doc_id)

    def ids(self) -> list[DocumentId]:
        self._ensure_open()
        with self._lock.read():
            return self._store.ids()

    # Query API

    def search(self, query: str, *, limit: int | None = None) -> SearchResults:
        self._ensure_open()
        return self._engine.search(query, limit=limit)

    def count(self, query: str) -> int:
        self._ensure_open()
        return self._engine.count(query)

    def tokenize(self, text: str) -> list[str]:
        return self._engine.tokenize(text)

    def postings(self) -> dict[str, dict[DocumentId, int]]:
        """Copy of the inverted index; intended for inspection and tests."""

        with self._lock.read():
            return self._postings.as_dict()

    # Persistence

    def checkpoint(self) -> Path | None:
        """Snapshot the Document Store and truncate the mutation log."""

        self._ensure_open()
        if self._log is None or self._snapshots is None:
            return None
        with (
            self._checkpoint_lock,
            create_span("index.checkpoint", kind=SpanKind.INTERNAL, attributes={"index.name": self.name}),
            self._lock.read(),
        ):
            snapshot = IndexSnapshot(
                seq=self._log.last_seq,
                analyzer=self.analyzer_name,
                documents=self._store.to_records(),
            )
            path = self._snapshots.save(snapshot)
            self._log.truncate()
            self._since_checkpoint = 0
        logger.info(
            "Checkpoint written at seq %d",
            snapshot.seq,
            extra={"index": self.name, "documents": len(snapshot.documents)},
        )
        return path

    def clear(self) -> None:
        """Remove every document; persisted state is reset as well."""

        self._ensure_open()
        with self._checkpoint_lock, self._lock.write():
            if self._log is not None and self._snapshots is not None:
                self._snapshots.save(IndexSnapshot(seq=self._log.last_seq, analyzer=self.analyzer_name, documents=[]))
                self._log.truncate()
            self._store.clear()
            self._postings.clear()
            self._since_checkpoint = 0
        INDEX_DOC_COUNT.labels(index=self.name).set(0)

    def stats(self) -> dict[str, Any]:
        with self._lock.read():
            return {
                "name": self.name,
                "analyzer": self.analyzer_name,
                "documents": len(self._store),
                "terms": len(self._postings),
                "persistent": self.is_persistent,
                "data_dir": str(self.data_dir) if self.data_dir else None,
                "last_seq": self._log.last_seq if self._log else None,
                "log_bytes": self._log.size() if self._log else 0,
                "pending_checkpoint": self._since_checkpoint,
            }

    def _ensure_open(self) -> None:
        if self._closed:
            raise IndexClosedError(f"Index '{self.name}' is closed")
        if not self._opened:
            self.load()

    def _recover(self) -> None:
        assert self._log is not None and self._snapshots is not None
        with create_span("index.replay", kind=SpanKind.INTERNAL, attributes={"index.name": self.name}) as span:
            snapshot = self._snapshots.load()
            after_seq = 0
            if snapshot is not None:
                if snapshot.analyzer != self.analyzer_name:
                    msg = (
                        f"Index '{self.name}' was built with analyzer '{snapshot.analyzer}', "
                        f"not '{self.analyzer_name}'"
                    )
                    raise ValueError(msg)
                restored = DocumentStore.from_records(snapshot.documents)
                for doc_id, fields in restored.items():
                    self._store.add(doc_id, fields)
                self._indexer.reindex_store()
                after_seq = snapshot.seq

            replayed = 0
            for record in self._log.records(after_seq=after_seq):
                self._replay(record)
                replayed += 1
            self._log.last_seq = max(self._log.last_seq, after_seq)
            self._since_checkpoint = replayed
            self._log.open()
            span.set_attribute("index.replayed", replayed)
            span.set_attribute("index.documents", len(self._store))
        logger.info(
            "Recovered index %s: snapshot seq %d, %d log record(s) replayed",
            self.name,
            after_seq,
            replayed,
            extra={"index": self.name},
        )

    def _reset_memory(self) -> None:
        """Forget a partial recovery so the next load starts from scratch."""

        with self._lock.write():
            self._store.clear()
            self._postings.clear()
        if self._log is not None:
            self._log.close()
            self._log.last_seq = 0
        self._since_checkpoint = 0

    def _replay(self, record: MutationRecord) -> None:
        try:
            self._indexer.apply(record)
        except IndexingError as exc:
            msg = f"Mutation log record seq={record.seq} cannot be applied: {exc}"
            raise CorruptLogError(msg) from exc

    def _after_commit(self, _record: MutationRecord | None) -> None:
        if self._log is None or not self.checkpoint_interval:
            return
        with self._checkpoint_lock:
            self._since_checkpoint += 1
            due = self._since_checkpoint >= self.checkpoint_interval
        if not due:
            return
        try:
            self.checkpoint()
        except StorageIOError:
            # the mutation itself is already durable in the log
            logger.exception("Automatic checkpoint failed", extra={"index": self.name})
