"""Term postings: normalized token -> {document id -> term frequency}.

A forward map (document id -> its term counts) is kept alongside the
inverted map so that replacing or removing a document only touches the
terms that document actually contained.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping

from content_index.search.fields import DocumentId


class TermPostings:
    def __init__(self) -> None:
        self._inverted: dict[str, dict[DocumentId, int]] = {}
        self._forward: dict[DocumentId, Counter[str]] = {}

    def __len__(self) -> int:
        """Number of distinct terms."""
        return len(self._inverted)

    def __contains__(self, term: object) -> bool:
        return term in self._inverted

    def add_document(self, doc_id: DocumentId, terms: Mapping[str, int]) -> None:
        if doc_id in self._forward:
            self.remove_document(doc_id)
        counts = Counter({term: freq for term, freq in terms.items() if freq > 0})
        self._forward[doc_id] = counts
        for term, freq in counts.items():
            self._inverted.setdefault(term, {})[doc_id] = freq

    def remove_document(self, doc_id: DocumentId) -> None:
        counts = self._forward.pop(doc_id, None)
        if not counts:
            return
        for term in counts:
            docs = self._inverted.get(term)
            if docs is None:
                continue
            docs.pop(doc_id, None)
            if not docs:
                del self._inverted[term]

    def replace_document(self, doc_id: DocumentId, terms: Mapping[str, int]) -> None:
        """Drop every posting of the old version, then index the new one."""

        self.remove_document(doc_id)
        self.add_document(doc_id, terms)

    def frequencies(self, term: str) -> Mapping[DocumentId, int]:
        """Live view of the posting list for ``term`` (empty when unknown)."""

        return self._inverted.get(term, {})

    def document_frequency(self, term: str) -> int:
        return len(self._inverted.get(term, {}))

    def terms_for(self, doc_id: DocumentId) -> Counter[str]:
        return Counter(self._forward.get(doc_id, {}))

    def matching_documents(self, terms: Iterable[str]) -> set[DocumentId]:
        matched: set[DocumentId] = set()
        for term in terms:
            matched.update(self._inverted.get(term, {}))
        return matched

    def clear(self) -> None:
        self._inverted.clear()
        self._forward.clear()

    def as_dict(self) -> dict[str, dict[DocumentId, int]]:
        """Detached copy of the inverted map, used to compare index states."""

        return {term: dict(docs) for term, docs in self._inverted.items()}
