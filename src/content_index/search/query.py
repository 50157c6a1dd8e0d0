"""Free-text query evaluation over the term postings.

Queries use OR semantics: a document matches when it contains at least one
query token. Score is the sum of the document's term frequencies for the
distinct matched tokens; ties are broken by ascending document id.
"""

from __future__ import annotations

from collections.abc import Iterator
import copy
import logging
from typing import TYPE_CHECKING

from opentelemetry.trace import SpanKind

from content_index.observability import SEARCH_LATENCY, track_latency
from content_index.observability.tracing import create_span
from content_index.search.analyzers import Analyzer, analyze_terms
from content_index.search.fields import DocumentId, id_sort_key
from content_index.search.models import SearchHit


if TYPE_CHECKING:
    from content_index.search.document_store import DocumentStore
    from content_index.search.locks import ReadWriteLock
    from content_index.search.postings import TermPostings


logger = logging.getLogger(__name__)


class QueryEngine:
    def __init__(
        self,
        postings: TermPostings,
        store: DocumentStore,
        analyzer: Analyzer,
        lock: ReadWriteLock,
        *,
        index_name: str = "default",
    ) -> None:
        self._postings = postings
        self._store = store
        self._analyzer = analyzer
        self._lock = lock
        self.index_name = index_name

    def tokenize(self, query: str) -> list[str]:
        """Distinct query tokens in first-seen order."""

        if not query or not query.strip():
            return []
        return list(dict.fromkeys(analyze_terms(self._analyzer, query)))

    def search(self, query: str, *, limit: int | None = None) -> SearchResults:
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        return SearchResults(self, query, self.tokenize(query), limit=limit)

    def count(self, query: str) -> int:
        terms = self.tokenize(query)
        if not terms:
            return 0
        with self._lock.read():
            if len(terms) == 1:
                return self._postings.document_frequency(terms[0])
            return len(self._postings.matching_documents(terms))

    def rank(self, terms: list[str]) -> list[tuple[DocumentId, int]]:
        """Score every matching document under one shared-lock snapshot."""

        with (
            create_span(
                "search.rank",
                kind=SpanKind.INTERNAL,
                attributes={"search.index": self.index_name, "search.term_count": len(terms)},
            ) as span,
            track_latency(SEARCH_LATENCY, index=self.index_name),
        ):
            scores: dict[DocumentId, int] = {}
            with self._lock.read():
                for term in terms:
                    for doc_id, frequency in self._postings.frequencies(term).items():
                        scores[doc_id] = scores.get(doc_id, 0) + frequency
            ranked = sorted(scores.items(), key=lambda item: (-item[1], id_sort_key(item[0])))
            span.set_attribute("search.result_count", len(ranked))
            return ranked

    def load_hit(self, doc_id: DocumentId, terms: list[str]) -> SearchHit | None:
        """Current fields and score of a ranked document.

        Returns None once the document was deleted, or updated so that it no
        longer contains any of ``terms``.
        """

        with self._lock.read():
            fields = self._store.peek(doc_id)
            if fields is None:
                return None
            current = self._postings.terms_for(doc_id)
            score = sum(current[term] for term in terms)
            if not score:
                return None
            return SearchHit(doc_id=doc_id, score=score, fields=copy.deepcopy(fields))


class SearchResults:
    """Lazy, restartable sequence of ranked hits.

    Nothing is evaluated until iteration starts. Every new iteration ranks
    against the current index state, so a document deleted in between is
    never returned.
    """

    def __init__(self, engine: QueryEngine, query: str, terms: list[str], *, limit: int | None = None) -> None:
        self._engine = engine
        self.query = query
        self.terms = terms
        self.limit = limit

    def __iter__(self) -> Iterator[SearchHit]:
        if not self.terms or self.limit == 0:
            return
        ranked = self._engine.rank(self.terms)
        if self.limit is not None:
            ranked = ranked[: self.limit]
        for doc_id, _score in ranked:
            hit = self._engine.load_hit(doc_id, self.terms)
            if hit is None:
                # deleted or no longer matching since ranking
                continue
            yield hit

    def __len__(self) -> int:
        total = self._engine.count(self.query)
        if self.limit is not None:
            return min(total, self.limit)
        return total

    def __bool__(self) -> bool:
        return len(self) > 0

    def ids(self) -> list[DocumentId]:
        return [hit.doc_id for hit in self]

    def first(self) -> SearchHit | None:
        return next(iter(self), None)

    def __repr__(self) -> str:
        return f"SearchResults(query={self.query!r}, terms={self.terms!r}, limit={self.limit!r})"
