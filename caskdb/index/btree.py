"""Ordered in-memory index backed by a sorted dictionary."""

from __future__ import annotations

import threading

from sortedcontainers import SortedDict

from ..log_record import LogRecordPos
from .base import Indexer, IndexIterator, SnapshotIterator, as_key


class BTreeIndex(Indexer):
    """In-memory ordered index; thread safe."""

    def __init__(self) -> None:
        self._tree: SortedDict = SortedDict()
        self._lock = threading.RLock()

    def put(self, key: bytes, pos: LogRecordPos) -> LogRecordPos | None:
        key = as_key(key)
        with self._lock:
            old = self._tree.get(key)
            self._tree[key] = pos
        return old

    def get(self, key: bytes) -> LogRecordPos | None:
        with self._lock:
            return self._tree.get(as_key(key))

    def delete(self, key: bytes) -> tuple[LogRecordPos | None, bool]:
        with self._lock:
            old = self._tree.pop(as_key(key), None)
        return old, True

    def iterator(self, reverse: bool = False) -> IndexIterator:
        with self._lock:
            items = list(self._tree.items())
        if reverse:
            items.reverse()
        return SnapshotIterator(items, reverse)

    def size(self) -> int:
        with self._lock:
            return len(self._tree)

    def close(self) -> None:
        pass