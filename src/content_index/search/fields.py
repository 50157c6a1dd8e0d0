"""Document ids and the nested field value variant.

A field value is one of:

* ``str`` - tokenized as text
* ``list[str]`` - every entry tokenized, term counts unioned
* ``Mapping[str, FieldValue]`` - flattened recursively

Values are validated and copied into plain ``dict``/``list``/``str`` trees
before they reach the store, so callers can keep mutating their input.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Mapping
from typing import Any, TypeAlias, Union

from content_index.search.analyzers import Analyzer, analyze_terms
from content_index.search.errors import InvalidDocumentIdError, MalformedFieldError


DocumentId: TypeAlias = Union[str, int]
FieldValue: TypeAlias = Union[str, list[str], dict[str, "FieldValue"]]
Fields: TypeAlias = dict[str, FieldValue]


def validate_document_id(doc_id: Any) -> DocumentId:
    # bool is an int subclass but never a sensible id
    if isinstance(doc_id, bool) or not isinstance(doc_id, (str, int)):
        msg = f"Document id must be a str or int, got {type(doc_id).__name__}"
        raise InvalidDocumentIdError(msg)
    if isinstance(doc_id, str) and not doc_id.strip():
        raise InvalidDocumentIdError("Document id cannot be empty")
    return doc_id


def id_sort_key(doc_id: DocumentId) -> tuple[int, int | str]:
    """Ascending order: integers numerically, then strings lexically."""

    if isinstance(doc_id, int):
        return (0, doc_id)
    return (1, doc_id)


def normalize_fields(fields: Any) -> Fields:
    """Validate a document's fields and return a detached copy."""

    if not isinstance(fields, Mapping):
        raise MalformedFieldError("", f"Document fields must be a mapping, got {type(fields).__name__}")
    return _normalize_mapping(fields, "")


def _normalize_mapping(value: Mapping[Any, Any], path: str) -> dict[str, FieldValue]:
    normalized: dict[str, FieldValue] = {}
    for key, item in value.items():
        if not isinstance(key, str) or not key:
            raise MalformedFieldError(path, f"field names must be non-empty strings, got {key!r}")
        normalized[key] = _normalize_value(item, _join(path, key))
    return normalized


def _normalize_value(value: Any, path: str) -> FieldValue:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return _normalize_mapping(value, path)
    if isinstance(value, (list, tuple)):
        entries: list[str] = []
        for index, entry in enumerate(value):
            if not isinstance(entry, str):
                msg = f"list entries must be strings, got {type(entry).__name__}"
                raise MalformedFieldError(f"{path}[{index}]", msg)
            entries.append(entry)
        return entries
    raise MalformedFieldError(path, f"unsupported value type {type(value).__name__}")


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def iter_field_texts(fields: Mapping[str, FieldValue], path: str = "") -> Iterator[tuple[str, str]]:
    """Yield ``(dotted_path, text)`` for every string in a normalized tree."""

    for key, value in fields.items():
        child = _join(path, key)
        if isinstance(value, str):
            yield child, value
        elif isinstance(value, list):
            for entry in value:
                yield child, entry
        else:
            yield from iter_field_texts(value, child)


def term_frequencies(analyzer: Analyzer, fields: Mapping[str, FieldValue]) -> Counter[str]:
    """Count every token across all flattened fields of a document."""

    counts: Counter[str] = Counter()
    for _path, text in iter_field_texts(fields):
        counts.update(analyze_terms(analyzer, text))
    return counts
