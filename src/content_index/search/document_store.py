"""Document Store: raw field values per document id."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
import copy
from typing import Any

from content_index.search.errors import DuplicateIdError, NotFoundError
from content_index.search.fields import DocumentId, Fields, id_sort_key, normalize_fields, validate_document_id


class DocumentStore:
    """Owns document lifecycle; callers only ever see copies of stored fields.

    Not thread-safe on its own. ``SearchIndex`` serializes access.
    """

    def __init__(self) -> None:
        self._documents: dict[DocumentId, Fields] = {}

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def add(self, doc_id: DocumentId, fields: Fields) -> None:
        if doc_id in self._documents:
            raise DuplicateIdError(doc_id)
        self._documents[doc_id] = fields

    def update(self, doc_id: DocumentId, fields: Fields) -> Fields:
        """Replace the fields of ``doc_id`` and return the previous version."""

        previous = self._documents.get(doc_id)
        if previous is None:
            raise NotFoundError(doc_id)
        self._documents[doc_id] = fields
        return previous

    def delete(self, doc_id: DocumentId) -> Fields:
        try:
            return self._documents.pop(doc_id)
        except KeyError:
            raise NotFoundError(doc_id) from None

    def get(self, doc_id: DocumentId) -> Fields:
        try:
            return copy.deepcopy(self._documents[doc_id])
        except KeyError:
            raise NotFoundError(doc_id) from None

    def peek(self, doc_id: DocumentId) -> Fields | None:
        """Return the stored fields without copying, or None."""

        return self._documents.get(doc_id)

    def ids(self) -> list[DocumentId]:
        return sorted(self._documents, key=id_sort_key)

    def items(self) -> Iterator[tuple[DocumentId, Fields]]:
        for doc_id in self.ids():
            yield doc_id, self._documents[doc_id]

    def clear(self) -> None:
        self._documents.clear()

    def to_records(self) -> list[dict[str, Any]]:
        return [{"id": doc_id, "fields": fields} for doc_id, fields in self.items()]

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> DocumentStore:
        store = cls()
        for record in records:
            doc_id = validate_document_id(record["id"])
            store.add(doc_id, normalize_fields(record.get("fields", {})))
        return store
