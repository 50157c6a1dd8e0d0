"""Unit tests for the reader/writer lock."""

import threading
import time

import pytest

from content_index.search.errors import LockTimeoutError
from content_index.search.locks import ReadWriteLock


pytestmark = pytest.mark.unit


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        time.sleep(0.005)


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    with lock.read(), lock.read():
        assert lock.readers == 2
    assert lock.readers == 0


def test_writer_times_out_while_readers_hold_lock():
    lock = ReadWriteLock()
    with lock.read():
        with pytest.raises(LockTimeoutError):
            with lock.write(timeout=0.05):
                pass
    # a timed-out writer must not block later readers
    with lock.read(timeout=0.05):
        pass


def test_reader_times_out_while_writer_holds_lock():
    lock = ReadWriteLock(timeout=0.05)
    with lock.write():
        assert lock.write_locked
        with pytest.raises(LockTimeoutError):
            with lock.read():
                pass
    assert not lock.write_locked


def test_waiting_writer_blocks_new_readers():
    lock = ReadWriteLock()
    acquired = threading.Event()

    def writer():
        with lock.write():
            acquired.set()

    with lock.read():
        thread = threading.Thread(target=writer)
        thread.start()
        wait_until(lambda: lock._writers_waiting == 1)
        with pytest.raises(LockTimeoutError):
            with lock.read(timeout=0.05):
                pass
        assert not acquired.is_set()

    thread.join(timeout=2)
    assert acquired.is_set()


def test_lock_timeout_error_is_timeout_error():
    assert issubclass(LockTimeoutError, TimeoutError)
