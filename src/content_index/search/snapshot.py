"""Snapshot file holding the full Document Store for fast restart."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import os
from pathlib import Path
from typing import Any

import orjson

from content_index.search.errors import StorageIOError


logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "snapshot.json"
SNAPSHOT_FORMAT_VERSION = 1


@dataclass(frozen=True)
class IndexSnapshot:
    seq: int
    analyzer: str
    documents: list[dict[str, Any]]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = SNAPSHOT_FORMAT_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "analyzer": self.analyzer,
            "seq": self.seq,
            "created_at": self.created_at.isoformat(),
            "documents": self.documents,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexSnapshot:
        version = int(data.get("version", SNAPSHOT_FORMAT_VERSION))
        if version != SNAPSHOT_FORMAT_VERSION:
            raise StorageIOError(f"Unsupported snapshot version {version}")
        created_raw = data.get("created_at")
        created = datetime.fromisoformat(created_raw) if isinstance(created_raw, str) else datetime.now(timezone.utc)
        return cls(
            seq=int(data.get("seq", 0)),
            analyzer=str(data["analyzer"]),
            documents=list(data.get("documents", [])),
            created_at=created,
            version=version,
        )


class SnapshotStore:
    """Reads and atomically replaces the snapshot file in an index directory.

    With ``fsync`` the tmp file is synced before the rename and the directory
    after it, so a checkpoint never truncates the log ahead of a durable
    snapshot.
    """

    def __init__(self, directory: str | Path, *, fsync: bool = True) -> None:
        self.directory = Path(directory)
        self.path = self.directory / SNAPSHOT_FILENAME
        self.fsync = fsync

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> IndexSnapshot | None:
        if not self.path.exists():
            return None
        try:
            data = orjson.loads(self.path.read_bytes())
            return IndexSnapshot.from_dict(data)
        except OSError as exc:
            raise StorageIOError(f"Cannot read snapshot {self.path}: {exc}") from exc
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StorageIOError(f"Corrupt snapshot {self.path}: {exc}") from exc

    def save(self, snapshot: IndexSnapshot) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with tmp_path.open("wb") as handle:
                handle.write(orjson.dumps(snapshot.to_dict()))
                handle.flush()
                if self.fsync:
                    os.fsync(handle.fileno())
            tmp_path.replace(self.path)
            if self.fsync:
                _fsync_directory(self.directory)
        except OSError as exc:
            raise StorageIOError(f"Failed to write snapshot {self.path}: {exc}") from exc
        logger.debug("Snapshot written to %s at seq %d", self.path, snapshot.seq)
        return self.path


def _fsync_directory(directory: Path) -> None:
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
