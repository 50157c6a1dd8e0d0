"""content-index: an embeddable inverted-index search engine."""

from content_index.registry import IndexRegistry
from content_index.search.errors import (
    BatchFailure,
    BulkIndexCancelled,
    CorruptLogError,
    DuplicateIdError,
    IndexClosedError,
    IndexingError,
    InvalidDocumentIdError,
    LockTimeoutError,
    MalformedFieldError,
    NotFoundError,
    PartialBatchFailure,
    StorageIOError,
)
from content_index.search.index import SearchIndex
from content_index.search.models import SearchHit
from content_index.search.query import SearchResults


__all__ = [
    "BatchFailure",
    "BulkIndexCancelled",
    "CorruptLogError",
    "DuplicateIdError",
    "IndexClosedError",
    "IndexRegistry",
    "IndexingError",
    "InvalidDocumentIdError",
    "LockTimeoutError",
    "MalformedFieldError",
    "NotFoundError",
    "PartialBatchFailure",
    "SearchHit",
    "SearchIndex",
    "SearchResults",
    "StorageIOError",
]
