"""Indexer: keeps the Document Store and term postings in lockstep.

Each mutation validates and tokenizes outside the lock, then, under the
exclusive lock, checks the id, appends to the mutation log and finally
applies the change in memory. A failed log append leaves memory untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import logging
import threading
from typing import Any

from opentelemetry.trace import SpanKind

from content_index.observability import BULK_FAILURES, INDEX_DOC_COUNT, MUTATION_COUNT
from content_index.observability.tracing import create_span
from content_index.search.analyzers import Analyzer
from content_index.search.document_store import DocumentStore
from content_index.search.errors import (
    BatchFailure,
    BulkIndexCancelled,
    DuplicateIdError,
    IndexingError,
    NotFoundError,
    PartialBatchFailure,
    StorageIOError,
)
from content_index.search.fields import DocumentId, Fields, normalize_fields, term_frequencies, validate_document_id
from content_index.search.locks import ReadWriteLock
from content_index.search.models import MutationOp, MutationRecord
from content_index.search.mutation_log import MutationLog
from content_index.search.postings import TermPostings


logger = logging.getLogger(__name__)


class Indexer:
    def __init__(
        self,
        store: DocumentStore,
        postings: TermPostings,
        analyzer: Analyzer,
        lock: ReadWriteLock,
        *,
        log: MutationLog | None = None,
        index_name: str = "default",
        on_commit: Callable[[MutationRecord | None], None] | None = None,
    ) -> None:
        self._store = store
        self._postings = postings
        self._analyzer = analyzer
        self._lock = lock
        self._log = log
        self.index_name = index_name
        self._on_commit = on_commit

    def add(self, doc_id: Any, fields: Any) -> None:
        doc_id, normalized, terms = self._prepare(doc_id, fields)
        with self._lock.write():
            if doc_id in self._store:
                self._count(MutationOp.ADD, "error")
                raise DuplicateIdError(doc_id)
            record = self._append(MutationOp.ADD, doc_id, normalized)
            self._store.add(doc_id, normalized)
            self._postings.add_document(doc_id, terms)
        self._committed(MutationOp.ADD, record)

    def update(self, doc_id: Any, fields: Any) -> None:
        doc_id, normalized, terms = self._prepare(doc_id, fields)
        with self._lock.write():
            if doc_id not in self._store:
                self._count(MutationOp.UPDATE, "error")
                raise NotFoundError(doc_id)
            record = self._append(MutationOp.UPDATE, doc_id, normalized)
            self._store.update(doc_id, normalized)
            self._postings.replace_document(doc_id, terms)
        self._committed(MutationOp.UPDATE, record)

    def upsert(self, doc_id: Any, fields: Any) -> MutationOp:
        """Add the document, or replace it when the id already exists."""

        doc_id, normalized, terms = self._prepare(doc_id, fields)
        with self._lock.write():
            op = MutationOp.UPDATE if doc_id in self._store else MutationOp.ADD
            record = self._append(op, doc_id, normalized)
            if op is MutationOp.ADD:
                self._store.add(doc_id, normalized)
                self._postings.add_document(doc_id, terms)
            else:
                self._store.update(doc_id, normalized)
                self._postings.replace_document(doc_id, terms)
        self._committed(op, record)
        return op

    def delete(self, doc_id: Any) -> None:
        doc_id = validate_document_id(doc_id)
        with self._lock.write():
            if doc_id not in self._store:
                self._count(MutationOp.DELETE, "error")
                raise NotFoundError(doc_id)
            record = self._append(MutationOp.DELETE, doc_id, None)
            self._store.delete(doc_id)
            self._postings.remove_document(doc_id)
        self._committed(MutationOp.DELETE, record)

    def bulk_index(
        self,
        items: Mapping[Any, Any],
        *,
        cancel_event: threading.Event | None = None,
        raise_on_failure: bool = False,
    ) -> list[BatchFailure]:
        """Upsert every item in caller order, one critical section per item.

        Item-level indexing errors are collected and returned; a
        ``StorageIOError`` aborts the batch because the log can no longer be
        trusted. Items committed before an abort or cancellation stay.
        """

        with create_span(
            "index.bulk",
            kind=SpanKind.INTERNAL,
            attributes={"index.name": self.index_name, "index.bulk.size": len(items)},
        ) as span:
            failures = self._run_batch(
                items.items(),
                lambda doc_id, fields: self.upsert(doc_id, fields),
                cancel_event=cancel_event,
            )
            span.set_attribute("index.bulk.failures", len(failures))
        return self._finish_batch("bulk_index", len(items), failures, raise_on_failure)

    def delete_many(
        self,
        doc_ids: Iterable[Any],
        *,
        cancel_event: threading.Event | None = None,
        raise_on_failure: bool = False,
    ) -> list[BatchFailure]:
        ids = list(doc_ids)
        failures = self._run_batch(
            ((doc_id, None) for doc_id in ids),
            lambda doc_id, _fields: self.delete(doc_id),
            cancel_event=cancel_event,
        )
        return self._finish_batch("delete_many", len(ids), failures, raise_on_failure)

    def apply(self, record: MutationRecord) -> None:
        """Replay a logged mutation without writing it back to the log."""

        doc_id = validate_document_id(record.doc_id)
        with self._lock.write():
            if record.op is MutationOp.DELETE:
                self._store.delete(doc_id)
                self._postings.remove_document(doc_id)
                return
            fields = normalize_fields(record.fields or {})
            terms = term_frequencies(self._analyzer, fields)
            if record.op is MutationOp.ADD:
                self._store.add(doc_id, fields)
                self._postings.add_document(doc_id, terms)
            else:
                self._store.update(doc_id, fields)
                self._postings.replace_document(doc_id, terms)

    def reindex_store(self) -> None:
        """Rebuild every posting from the Document Store contents."""

        with self._lock.write():
            self._postings.clear()
            for doc_id, fields in self._store.items():
                self._postings.add_document(doc_id, term_frequencies(self._analyzer, fields))

    def _prepare(self, doc_id: Any, fields: Any) -> tuple[DocumentId, Fields, Mapping[str, int]]:
        doc_id = validate_document_id(doc_id)
        normalized = normalize_fields(fields)
        return doc_id, normalized, term_frequencies(self._analyzer, normalized)

    def _append(self, op: MutationOp, doc_id: DocumentId, fields: Fields | None) -> MutationRecord | None:
        if self._log is None:
            return None
        try:
            return self._log.append(op, doc_id, fields)
        except StorageIOError:
            self._count(op, "storage_error")
            logger.error("Mutation log append failed", extra={"index": self.index_name, "op": op.value})
            raise

    def _committed(self, op: MutationOp, record: MutationRecord | None) -> None:
        self._count(op, "ok")
        INDEX_DOC_COUNT.labels(index=self.index_name).set(len(self._store))
        if self._on_commit is not None:
            self._on_commit(record)

    def _count(self, op: MutationOp, status: str) -> None:
        MUTATION_COUNT.labels(index=self.index_name, op=op.value, status=status).inc()

    def _run_batch(
        self,
        entries: Iterable[tuple[Any, Any]],
        apply: Callable[[Any, Any], Any],
        *,
        cancel_event: threading.Event | None,
    ) -> list[BatchFailure]:
        committed: list[DocumentId] = []
        failures: list[BatchFailure] = []
        for doc_id, fields in entries:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "Bulk operation cancelled",
                    extra={"index": self.index_name, "committed": len(committed), "failed": len(failures)},
                )
                raise BulkIndexCancelled(committed, failures)
            try:
                apply(doc_id, fields)
            except StorageIOError:
                raise
            except IndexingError as exc:
                logger.warning("Skipping item %r: %s", doc_id, exc, extra={"index": self.index_name})
                failures.append(BatchFailure(doc_id=doc_id, error=exc))
                continue
            committed.append(doc_id)
        return failures

    def _finish_batch(
        self, operation: str, total: int, failures: list[BatchFailure], raise_on_failure: bool
    ) -> list[BatchFailure]:
        if failures:
            BULK_FAILURES.labels(index=self.index_name, operation=operation).inc(len(failures))
        logger.info(
            "%s processed %d item(s), %d failed",
            operation,
            total,
            len(failures),
            extra={"index": self.index_name},
        )
        if failures and raise_on_failure:
            raise PartialBatchFailure(failures)
        return failures
