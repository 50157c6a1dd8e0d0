"""Registry of named indexes sharing one root directory."""

from __future__ import annotations

from collections.abc import Iterator
import logging
from pathlib import Path
import re
import shutil
import threading
from typing import Any

from content_index.search.index import SearchIndex
from content_index.search.mutation_log import LOG_FILENAME
from content_index.search.snapshot import SNAPSHOT_FILENAME


logger = logging.getLogger(__name__)

_INDEX_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")


def validate_index_name(name: str) -> str:
    if not isinstance(name, str) or not _INDEX_NAME_PATTERN.match(name):
        msg = f"Invalid index name {name!r}: use 1-64 lowercase letters, digits, '-' or '_'"
        raise ValueError(msg)
    return name


class IndexRegistry:
    """Create, look up and drop indexes by name.

    With a ``root`` every index persists under ``root/<name>``; without one
    all indexes are in memory. ``index_options`` are passed to every
    ``SearchIndex`` the registry opens.
    """

    def __init__(self, root: str | Path | None = None, **index_options: Any) -> None:
        self.root = Path(root) if root is not None else None
        self._index_options = index_options
        self._indexes: dict[str, SearchIndex] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: object) -> bool:
        return name in self._indexes

    def __iter__(self) -> Iterator[SearchIndex]:
        return iter(list(self._indexes.values()))

    def __len__(self) -> int:
        return len(self._indexes)

    def names(self) -> list[str]:
        return sorted(self._indexes)

    def discover(self) -> list[str]:
        """Open every index already persisted under the root directory."""

        if self.root is None or not self.root.exists():
            return []
        opened: list[str] = []
        for child in sorted(self.root.iterdir()):
            if not child.is_dir() or child.name in self._indexes:
                continue
            if not ((child / LOG_FILENAME).exists() or (child / SNAPSHOT_FILENAME).exists()):
                continue
            if not _INDEX_NAME_PATTERN.match(child.name):
                logger.warning("Ignoring index directory with invalid name: %s", child)
                continue
            self.add_index(child.name)
            opened.append(child.name)
        return opened

    def add_index(self, name: str) -> SearchIndex:
        validate_index_name(name)
        with self._lock:
            if name in self._indexes:
                raise ValueError(f"Index '{name}' already exists")
            return self._open_locked(name)

    def get_index(self, name: str) -> SearchIndex:
        try:
            return self._indexes[name]
        except KeyError:
            raise KeyError(f"Unknown index '{name}'. Available: {self.names()}") from None

    def get_or_create(self, name: str) -> SearchIndex:
        validate_index_name(name)
        with self._lock:
            existing = self._indexes.get(name)
            if existing is not None:
                return existing
            return self._open_locked(name)

    def remove_index(self, name: str) -> None:
        """Close the index and delete everything it persisted."""

        with self._lock:
            index = self._indexes.pop(name, None)
        if index is None:
            raise KeyError(f"Unknown index '{name}'")
        index.close()
        if index.data_dir is not None and index.data_dir.exists():
            shutil.rmtree(index.data_dir)
        logger.info("Removed index %s", name, extra={"index": name})

    def close(self) -> None:
        with self._lock:
            indexes = list(self._indexes.values())
            self._indexes.clear()
        for index in indexes:
            index.close()

    def _open_locked(self, name: str) -> SearchIndex:
        data_dir = self.root / name if self.root is not None else None
        index = SearchIndex.open(data_dir, name=name, **self._index_options)
        self._indexes[name] = index
        logger.info("Registered index %s", name, extra={"index": name})
        return index

    def __enter__(self) -> IndexRegistry:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
