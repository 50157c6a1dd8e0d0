"""Shared test fixtures and configuration."""

import os

import pytest

from content_index.search.index import SearchIndex


TEST_ENV = {
    "INDEX_NAME": "test",
    "INDEX_ANALYZER": "simple",
    "INDEX_FSYNC": "false",
    "INDEX_CHECKPOINT_INTERVAL": "0",
    "LOG_LEVEL": "info",
    "LOG_JSON": "false",
}

for key, value in TEST_ENV.items():
    os.environ[key] = value


BATMAN_ITEMS = {
    1: {"title": "batman", "nemesis": {"value": "joker"}},
    2: {"title": "robin"},
    3: {"title": "catwoman", "cohorts": ["riddler", "penguin"]},
}


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("INDEX_DATA_DIR", raising=False)


@pytest.fixture
def batman_items():
    return {doc_id: dict(fields) for doc_id, fields in BATMAN_ITEMS.items()}


@pytest.fixture
def index():
    """In-memory index, closed after the test."""
    search_index = SearchIndex.open(name="test")
    yield search_index
    search_index.close()


@pytest.fixture
def persistent_index(tmp_path):
    search_index = SearchIndex.open(tmp_path / "idx", name="test", fsync=False, checkpoint_interval=0)
    yield search_index
    search_index.close()
