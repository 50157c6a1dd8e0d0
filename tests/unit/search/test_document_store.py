"""Unit tests for the document store."""

import pytest

from content_index.search.document_store import DocumentStore
from content_index.search.errors import DuplicateIdError, NotFoundError


pytestmark = pytest.mark.unit


@pytest.fixture
def store():
    store = DocumentStore()
    store.add(2, {"title": "robin"})
    store.add(1, {"title": "batman"})
    return store


def test_add_and_get(store):
    assert store.get(1) == {"title": "batman"}
    assert len(store) == 2
    assert 1 in store


def test_add_duplicate_rejected(store):
    with pytest.raises(DuplicateIdError) as excinfo:
        store.add(1, {"title": "other"})
    assert excinfo.value.doc_id == 1
    assert store.get(1) == {"title": "batman"}


def test_update_returns_previous_version(store):
    previous = store.update(1, {"title": "dark knight"})

    assert previous == {"title": "batman"}
    assert store.get(1) == {"title": "dark knight"}


def test_update_missing_raises(store):
    with pytest.raises(NotFoundError):
        store.update(99, {"title": "bane"})


def test_delete(store):
    assert store.delete(1) == {"title": "batman"}
    assert 1 not in store
    with pytest.raises(NotFoundError):
        store.delete(1)


def test_get_missing_raises(store):
    with pytest.raises(NotFoundError):
        store.get("missing")


def test_get_returns_a_copy(store):
    store.get(1)["title"] = "mutated"
    assert store.get(1) == {"title": "batman"}


def test_peek_does_not_raise(store):
    assert store.peek(3) is None
    assert store.peek(2) == {"title": "robin"}


def test_ids_are_sorted(store):
    store.add("alfred", {"title": "butler"})
    assert store.ids() == [1, 2, "alfred"]


def test_records_round_trip(store):
    restored = DocumentStore.from_records(store.to_records())

    assert restored.ids() == store.ids()
    assert restored.get(2) == {"title": "robin"}


def test_clear(store):
    store.clear()
    assert len(store) == 0
