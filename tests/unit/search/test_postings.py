"""Unit tests for the term postings table."""

import pytest

from content_index.search.postings import TermPostings


pytestmark = pytest.mark.unit


@pytest.fixture
def postings():
    table = TermPostings()
    table.add_document(1, {"batman": 2, "joker": 1})
    table.add_document(2, {"robin": 1, "batman": 1})
    return table


def test_frequencies_per_document(postings):
    assert postings.frequencies("batman") == {1: 2, 2: 1}
    assert postings.document_frequency("batman") == 2
    assert len(postings) == 3


def test_unknown_term_is_empty(postings):
    assert postings.frequencies("bane") == {}


def test_remove_document_drops_empty_terms(postings):
    postings.remove_document(1)

    assert "joker" not in postings
    assert postings.frequencies("batman") == {2: 1}
    assert postings.terms_for(1) == {}


def test_replace_document_leaves_no_stale_postings(postings):
    postings.replace_document(1, {"penguin": 1})

    assert postings.document_frequency("joker") == 0
    assert 1 not in postings.frequencies("batman")
    assert postings.frequencies("penguin") == {1: 1}


def test_add_existing_document_replaces_it(postings):
    postings.add_document(2, {"nightwing": 1})

    assert postings.terms_for(2) == {"nightwing": 1}
    assert 2 not in postings.frequencies("robin")


def test_zero_frequencies_are_ignored():
    table = TermPostings()
    table.add_document(1, {"batman": 0})
    assert len(table) == 0


def test_matching_documents_union(postings):
    assert postings.matching_documents(["joker", "robin", "bane"]) == {1, 2}


def test_as_dict_is_detached(postings):
    snapshot = postings.as_dict()
    snapshot["batman"][99] = 1
    assert 99 not in postings.frequencies("batman")


def test_remove_unknown_document_is_noop(postings):
    postings.remove_document(42)
    assert len(postings) == 3
