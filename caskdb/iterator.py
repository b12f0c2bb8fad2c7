"""Iteration over the live keys of a database, with values read on demand."""

from __future__ import annotations

from collections.abc import Iterator

from .db import DB
from .options import IteratorOptions


class DBIterator:
    """A cursor over keys in order, optionally reversed and limited to a prefix."""

    def __init__(self, db: DB, options: IteratorOptions | None = None) -> None:
        self._db = db
        self.options = options or IteratorOptions()
        self._prefix = bytes(self.options.prefix or b"")
        self._index_iter = db.index.iterator(self.options.reverse)
        if self._prefix:
            self._skip_to_next()

    def rewind(self) -> None:
        self._index_iter.rewind()
        self._skip_to_next()

    def seek(self, key: bytes) -> None:
        self._index_iter.seek(key)
        self._skip_to_next()

    def next(self) -> None:
        self._index_iter.next()
        self._skip_to_next()

    def valid(self) -> bool:
        return self._index_iter.valid()

    def key(self) -> bytes:
        return self._index_iter.key()

    def value(self) -> bytes | None:
        """Value of the current key, read from its data file."""
        return self._db.value_at(self._index_iter.value())

    def close(self) -> None:
        self._index_iter.close()

    def _skip_to_next(self) -> None:
        if not self._prefix:
            return
        while self._index_iter.valid() and not self._index_iter.key().startswith(self._prefix):
            self._index_iter.next()

    def __iter__(self) -> Iterator[tuple[bytes, bytes | None]]:
        self.rewind()
        while self.valid():
            yield self.key(), self.value()
            self.next()

    def __enter__(self) -> "DBIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()