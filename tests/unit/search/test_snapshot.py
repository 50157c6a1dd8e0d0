"""Unit tests for snapshot persistence."""

import os

import orjson
import pytest

from content_index.search.errors import StorageIOError
from content_index.search.snapshot import SNAPSHOT_FILENAME, IndexSnapshot, SnapshotStore


pytestmark = pytest.mark.unit


def test_missing_snapshot(tmp_path):
    store = SnapshotStore(tmp_path)
    assert not store.exists()
    assert store.load() is None


def test_save_and_load(tmp_path):
    store = SnapshotStore(tmp_path / "nested")
    documents = [{"id": 1, "fields": {"title": "batman"}}, {"id": "x", "fields": {}}]

    path = store.save(IndexSnapshot(seq=7, analyzer="english", documents=documents))
    loaded = store.load()

    assert path == tmp_path / "nested" / SNAPSHOT_FILENAME
    assert (loaded.seq, loaded.analyzer, loaded.documents) == (7, "english", documents)
    assert not list((tmp_path / "nested").glob("*.tmp"))


def test_corrupt_snapshot(tmp_path):
    (tmp_path / SNAPSHOT_FILENAME).write_bytes(b"{broken")

    with pytest.raises(StorageIOError, match="Corrupt snapshot"):
        SnapshotStore(tmp_path).load()


def test_unsupported_version(tmp_path):
    (tmp_path / SNAPSHOT_FILENAME).write_bytes(orjson.dumps({"version": 99, "analyzer": "simple", "seq": 0}))

    with pytest.raises(StorageIOError, match="version"):
        SnapshotStore(tmp_path).load()



@pytest.mark.parametrize(("fsync", "expected_calls"), [(True, 2), (False, 0)])
def test_save_syncs_file_and_directory(tmp_path, monkeypatch, fsync, expected_calls):
    synced = []
    monkeypatch.setattr(os, "fsync", synced.append)

    SnapshotStore(tmp_path, fsync=fsync).save(IndexSnapshot(seq=1, analyzer="simple", documents=[]))

    assert len(synced) == expected_calls
