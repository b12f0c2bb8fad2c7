"""Persistent B+ tree index stored in an SQLite file inside the data directory."""

from __future__ import annotations

import bisect
import contextlib
import os
import sqlite3
import threading
from collections.abc import Iterator

from ..log_record import LogRecordPos
from .base import Indexer, IndexIterator, as_key

BPTREE_INDEX_FILE_NAME = "bptree-index"
_TABLE = "keydir"


class _BPlusTreeIterator(IndexIterator):
    """Cursor over a read snapshot; seek always lands on the first key >= target."""

    def __init__(self, rows: list[tuple[bytes, bytes]], reverse: bool) -> None:
        self._keys = [k for k, _ in rows]
        self._values = [v for _, v in rows]
        self._reverse = reverse
        self._index = 0
        self.rewind()

    def rewind(self) -> None:
        self._index = len(self._keys) - 1 if self._reverse else 0

    def seek(self, key: bytes) -> None:
        self._index = bisect.bisect_left(self._keys, as_key(key))

    def next(self) -> None:
        self._index += -1 if self._reverse else 1

    def valid(self) -> bool:
        return 0 <= self._index < len(self._keys)

    def key(self) -> bytes:
        if not self.valid():
            raise IndexError("iterator is exhausted")
        return self._keys[self._index]

    def value(self) -> LogRecordPos:
        if not self.valid():
            raise IndexError("iterator is exhausted")
        return LogRecordPos.decode(self._values[self._index])

    def close(self) -> None:
        self._keys = []
        self._values = []
        self._index = 0


class BPlusTreeIndex(Indexer):
    """Index kept on disk in a B-tree table, so it need not be rebuilt at startup."""

    def __init__(self, dir_path: str | os.PathLike, sync_write: bool = False) -> None:
        self.path = os.path.join(os.fspath(dir_path), BPTREE_INDEX_FILE_NAME)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False, isolation_level=None)
        self._conn.execute(f"PRAGMA synchronous = {'FULL' if sync_write else 'NORMAL'}")
        self._conn.execute(
            f"CREATE TABLE IF NOT EXISTS {_TABLE} (key BLOB PRIMARY KEY, pos BLOB NOT NULL) WITHOUT ROWID"
        )

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def _lookup(self, key: bytes) -> bytes | None:
        row = self._conn.execute(f"SELECT pos FROM {_TABLE} WHERE key = ?", (key,)).fetchone()
        return row[0] if row and row[0] else None

    def put(self, key: bytes, pos: LogRecordPos) -> LogRecordPos | None:
        key = as_key(key)
        if not key:
            raise ValueError("key required")
        with self._transaction() as conn:
            old = self._lookup(key)
            conn.execute(f"INSERT OR REPLACE INTO {_TABLE} (key, pos) VALUES (?, ?)", (key, pos.encode()))
        return LogRecordPos.decode(old) if old else None

    def get(self, key: bytes) -> LogRecordPos | None:
        with self._lock:
            old = self._lookup(as_key(key))
        return LogRecordPos.decode(old) if old else None

    def delete(self, key: bytes) -> tuple[LogRecordPos | None, bool]:
        key = as_key(key)
        with self._transaction() as conn:
            old = self._lookup(key)
            if old:
                conn.execute(f"DELETE FROM {_TABLE} WHERE key = ?", (key,))
        if not old:
            return None, False
        return LogRecordPos.decode(old), True

    def iterator(self, reverse: bool = False) -> IndexIterator:
        with self._lock:
            rows = self._conn.execute(f"SELECT key, pos FROM {_TABLE} ORDER BY key").fetchall()
        return _BPlusTreeIterator([(bytes(k), bytes(v)) for k, v in rows], reverse)

    def size(self) -> int:
        with self._lock:
            return self._conn.execute(f"SELECT COUNT(*) FROM {_TABLE}").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self._conn.close()