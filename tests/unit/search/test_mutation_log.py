"""Unit tests for the JSON Lines mutation log."""

import orjson
import pytest

from content_index.search.errors import CorruptLogError, StorageIOError
from content_index.search.models import MutationOp
from content_index.search.mutation_log import LOG_FILENAME, MutationLog


pytestmark = pytest.mark.unit


@pytest.fixture
def log(tmp_path):
    mutation_log = MutationLog(tmp_path / LOG_FILENAME, fsync=False)
    mutation_log.open()
    yield mutation_log
    mutation_log.close()


class PartialWriteHandle:
    """File handle that writes a few bytes and then fails."""

    def __init__(self, handle):
        self._handle = handle

    def write(self, data):
        self._handle.write(data[:5])
        self._handle.flush()
        raise OSError("No space left on device")

    def __getattr__(self, name):
        return getattr(self._handle, name)


def test_append_assigns_increasing_sequence_numbers(log):
    first = log.append(MutationOp.ADD, 1, {"title": "batman"})
    second = log.append(MutationOp.DELETE, 1)

    assert (first.seq, second.seq) == (1, 2)
    assert log.last_seq == 2
    lines = log.path.read_bytes().splitlines()
    assert orjson.loads(lines[0]) == {"seq": 1, "op": "add", "id": 1, "fields": {"title": "batman"}}
    assert orjson.loads(lines[1]) == {"seq": 2, "op": "delete", "id": 1}


def test_records_round_trip(log):
    log.append(MutationOp.ADD, "a", {"title": "batman"})
    log.append(MutationOp.UPDATE, "a", {"title": "bruce"})
    log.close()

    reader = MutationLog(log.path)
    records = list(reader.records())

    assert [(r.seq, r.op, r.doc_id) for r in records] == [(1, MutationOp.ADD, "a"), (2, MutationOp.UPDATE, "a")]
    assert reader.last_seq == 2


def test_records_after_seq(log):
    for doc_id in range(3):
        log.append(MutationOp.ADD, doc_id, {"title": "x"})

    assert [r.seq for r in log.records(after_seq=2)] == [3]


def test_missing_file_has_no_records(tmp_path):
    assert list(MutationLog(tmp_path / "absent.log").records()) == []


def test_torn_tail_is_truncated(log):
    log.append(MutationOp.ADD, 1, {"title": "batman"})
    log.close()
    intact = log.path.read_bytes()
    log.path.write_bytes(intact + b'{"seq": 2, "op": "ad')

    records = list(MutationLog(log.path).records())

    assert [r.seq for r in records] == [1]
    assert log.path.read_bytes() == intact


def test_corrupt_line_in_the_middle(log):
    log.append(MutationOp.ADD, 1, {"title": "batman"})
    log.close()
    log.path.write_bytes(log.path.read_bytes() + b"not json\n" + b'{"seq": 3, "op": "delete", "id": 1}\n')

    with pytest.raises(CorruptLogError, match=":2"):
        list(MutationLog(log.path).records())


def test_unknown_operation_is_corruption(tmp_path):
    path = tmp_path / LOG_FILENAME
    path.write_bytes(b'{"seq": 1, "op": "rename", "id": 1}\n')

    with pytest.raises(CorruptLogError):
        list(MutationLog(path).records())


def test_failed_append_is_rolled_back(log):
    log.append(MutationOp.ADD, 1, {"title": "batman"})
    size = log.size()
    log._handle = PartialWriteHandle(log._handle)

    with pytest.raises(StorageIOError):
        log.append(MutationOp.ADD, 2, {"title": "robin"})

    assert log.size() == size
    assert log.last_seq == 1


def test_append_requires_open_log(tmp_path):
    with pytest.raises(StorageIOError):
        MutationLog(tmp_path / LOG_FILENAME).append(MutationOp.DELETE, 1)


def test_truncate_keeps_sequence(log):
    log.append(MutationOp.ADD, 1, {"title": "batman"})
    log.truncate()

    assert log.size() == 0
    assert log.is_open
    assert log.append(MutationOp.DELETE, 1).seq == 2
