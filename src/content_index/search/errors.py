"""Exception taxonomy for the search index."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from content_index.search.fields import DocumentId


class IndexingError(Exception):
    """Base class for every error raised by the index."""


class DuplicateIdError(IndexingError):
    def __init__(self, doc_id: DocumentId) -> None:
        super().__init__(f"Document {doc_id!r} already exists")
        self.doc_id = doc_id


class NotFoundError(IndexingError):
    def __init__(self, doc_id: DocumentId) -> None:
        super().__init__(f"Document {doc_id!r} not found")
        self.doc_id = doc_id


class MalformedFieldError(IndexingError, ValueError):
    """Raised when a field value cannot be tokenized."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"Field '{path}': {message}" if path else message)
        self.path = path


class InvalidDocumentIdError(IndexingError, ValueError):
    """Raised for ids that are not a non-empty string or an integer."""


class StorageIOError(IndexingError):
    """The mutation log or snapshot could not be written or read.

    Fatal for the in-flight operation; it is never retried automatically.
    """


class CorruptLogError(StorageIOError):
    """A mutation log record in the middle of the file could not be decoded."""


class IndexClosedError(IndexingError):
    """Operation attempted on an index that was closed."""


class LockTimeoutError(IndexingError, TimeoutError):
    """The index lock could not be acquired before the timeout expired."""


@dataclass(frozen=True)
class BatchFailure:
    """One item of a bulk operation that was not applied."""

    doc_id: DocumentId
    error: IndexingError

    @property
    def reason(self) -> str:
        return str(self.error)


class PartialBatchFailure(IndexingError):
    """Raised after a bulk operation when the caller asked to fail on errors."""

    def __init__(self, failures: Sequence[BatchFailure]) -> None:
        super().__init__(f"{len(failures)} item(s) failed: {', '.join(repr(f.doc_id) for f in failures)}")
        self.failures = list(failures)


class BulkIndexCancelled(IndexingError):
    """A bulk operation was cancelled between items.

    Items listed in ``committed`` stay committed.
    """

    def __init__(self, committed: Sequence[DocumentId], failures: Sequence[BatchFailure]) -> None:
        super().__init__(f"Bulk operation cancelled after {len(committed)} committed item(s)")
        self.committed = list(committed)
        self.failures = list(failures)
