"""Append-only mutation log stored as JSON Lines.

Every successful mutation is appended (and optionally fsynced) before the
in-memory index changes. On open the log is replayed on top of the latest
snapshot; records at or below the snapshot's sequence number are skipped, so
a crash between writing a snapshot and truncating the log is harmless.
"""

from __future__ import annotations

from collections.abc import Iterator
import logging
import os
from pathlib import Path
from typing import BinaryIO

import orjson

from content_index.search.errors import CorruptLogError, StorageIOError
from content_index.search.fields import DocumentId, Fields
from content_index.search.models import MutationOp, MutationRecord


logger = logging.getLogger(__name__)

LOG_FILENAME = "mutations.log"


class MutationLog:
    def __init__(self, path: str | Path, *, fsync: bool = True) -> None:
        self.path = Path(path)
        self.fsync = fsync
        self.last_seq = 0
        self._handle: BinaryIO | None = None

    def open(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("ab")
        except OSError as exc:
            raise StorageIOError(f"Cannot open mutation log {self.path}: {exc}") from exc

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def append(self, op: MutationOp, doc_id: DocumentId, fields: Fields | None = None) -> MutationRecord:
        """Durably append one record; on failure the file is rolled back."""

        if not self.is_open:
            raise StorageIOError("Mutation log is not open")
        record = MutationRecord(seq=self.last_seq + 1, op=op, doc_id=doc_id, fields=fields)
        payload = orjson.dumps(record.to_dict()) + b"\n"
        offset = self._handle.tell()
        try:
            self._handle.write(payload)
            self._handle.flush()
            if self.fsync:
                os.fsync(self._handle.fileno())
        except OSError as exc:
            self._rollback(offset)
            raise StorageIOError(f"Failed to append to mutation log {self.path}: {exc}") from exc
        self.last_seq = record.seq
        return record

    def records(self, *, after_seq: int = 0) -> Iterator[MutationRecord]:
        """Yield records with ``seq > after_seq`` in file order.

        A final line without a trailing newline is a torn write: it is
        discarded and truncated away. Any other undecodable line raises
        ``CorruptLogError``.
        """

        if not self.path.exists():
            return
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            raise StorageIOError(f"Cannot read mutation log {self.path}: {exc}") from exc

        complete, _sep, tail = data.rpartition(b"\n")
        if tail:
            logger.warning("Discarding torn mutation log tail (%d bytes) in %s", len(tail), self.path)
            self._truncate_to(len(data) - len(tail))

        if not complete and not _sep:
            return
        for line_number, line in enumerate(complete.split(b"\n"), start=1):
            if not line.strip():
                continue
            try:
                record = MutationRecord.from_dict(orjson.loads(line))
            except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                msg = f"Corrupt mutation log record at {self.path}:{line_number}: {exc}"
                raise CorruptLogError(msg) from exc
            self.last_seq = max(self.last_seq, record.seq)
            if record.seq > after_seq:
                yield record

    def truncate(self) -> None:
        """Empty the log after a checkpoint; sequence numbers keep increasing."""

        reopen = self._handle is not None
        self.close()
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_bytes(b"")
            tmp_path.replace(self.path)
        except OSError as exc:
            raise StorageIOError(f"Failed to truncate mutation log {self.path}: {exc}") from exc
        finally:
            if reopen:
                self.open()

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0

    def _rollback(self, offset: int) -> None:
        try:
            self._handle.truncate(offset)  # type: ignore[union-attr]
            self._handle.seek(offset)  # type: ignore[union-attr]
        except OSError:
            logger.exception("Could not roll back partial mutation log write in %s", self.path)

    def _truncate_to(self, size: int) -> None:
        try:
            with self.path.open("r+b") as handle:
                handle.truncate(size)
        except OSError as exc:
            raise StorageIOError(f"Cannot repair mutation log {self.path}: {exc}") from exc
