"""Index interfaces and an iterator over a snapshot of index entries."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence

from ..log_record import LogRecordPos


def as_key(key: bytes | None) -> bytes:
    """Normalise a key; None counts as the empty key."""
    return bytes(key) if key else b""


class IndexIterator(ABC):
    """A cursor over index entries in key order (or reverse key order)."""

    @abstractmethod
    def rewind(self) -> None:
        """Go back to the first entry."""

    @abstractmethod
    def seek(self, key: bytes) -> None:
        """Move to the first entry at or after (before, when reversed) ``key``."""

    @abstractmethod
    def next(self) -> None:
        """Advance to the following entry."""

    @abstractmethod
    def valid(self) -> bool:
        """True while the cursor points at an entry."""

    @abstractmethod
    def key(self) -> bytes:
        """Key of the current entry."""

    @abstractmethod
    def value(self) -> LogRecordPos:
        """Position of the current entry."""

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the iterator."""

    def __iter__(self) -> Iterator[tuple[bytes, LogRecordPos]]:
        self.rewind()
        while self.valid():
            yield self.key(), self.value()
            self.next()


class Indexer(ABC):
    """Maps keys to the on-disk position of their latest record."""

    @abstractmethod
    def put(self, key: bytes, pos: LogRecordPos) -> LogRecordPos | None:
        """Store ``pos`` for ``key``; return the position it replaced."""

    @abstractmethod
    def get(self, key: bytes) -> LogRecordPos | None:
        """Position stored for ``key``, or None."""

    @abstractmethod
    def delete(self, key: bytes) -> tuple[LogRecordPos | None, bool]:
        """Remove ``key``; return the old position and whether it succeeded."""

    @abstractmethod
    def iterator(self, reverse: bool = False) -> IndexIterator:
        """A cursor over the entries."""

    @abstractmethod
    def size(self) -> int:
        """Number of keys in the index."""

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the index."""


class SnapshotIterator(IndexIterator):
    """Iterates over a fixed list of ``(key, pos)`` pairs given in iteration order."""

    def __init__(self, items: Sequence[tuple[bytes, LogRecordPos]], reverse: bool = False) -> None:
        self._items = list(items)
        self._reverse = reverse
        self._index = 0

    def _first(self, pred: Callable[[bytes], bool]) -> int:
        lo, hi = 0, len(self._items)
        while lo < hi:
            mid = (lo + hi) // 2
            if pred(self._items[mid][0]):
                hi = mid
            else:
                lo = mid + 1
        return lo

    def rewind(self) -> None:
        self._index = 0

    def seek(self, key: bytes) -> None:
        key = as_key(key)
        if self._reverse:
            self._index = self._first(lambda k: k <= key)
        else:
            self._index = self._first(lambda k: k >= key)

    def next(self) -> None:
        self._index += 1

    def valid(self) -> bool:
        return self._index < len(self._items)

    def _current(self) -> tuple[bytes, LogRecordPos]:
        if not self.valid():
            raise IndexError("iterator is exhausted")
        return self._items[self._index]

    def key(self) -> bytes:
        return self._current()[0]

    def value(self) -> LogRecordPos:
        return self._current()[1]

    def close(self) -> None:
        self._items = []
        self._index = 0