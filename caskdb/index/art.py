"""In-memory index backed by a path-compressed radix tree."""

from __future__ import annotations

import threading
from collections.abc import Iterator

from ..log_record import LogRecordPos
from .base import Indexer, IndexIterator, SnapshotIterator, as_key


class _Node:
    __slots__ = ("prefix", "children", "value", "has_value")

    def __init__(self, prefix: bytes = b"", value: LogRecordPos | None = None, has_value: bool = False) -> None:
        self.prefix = prefix
        self.children: dict[int, _Node] = {}
        self.value = value
        self.has_value = has_value

    def absorb_only_child(self) -> None:
        (child,) = self.children.values()
        self.prefix += child.prefix
        self.children = child.children
        self.value = child.value
        self.has_value = child.has_value


def _common_prefix_len(a: bytes, b: bytes) -> int:
    n = min(len(a), len(b))
    for i in range(n):
        if a[i] != b[i]:
            return i
    return n


class RadixTreeIndex(Indexer):
    """Radix tree index; thread safe."""

    def __init__(self) -> None:
        self._root = _Node()
        self._size = 0
        self._lock = threading.RLock()

    def put(self, key: bytes, pos: LogRecordPos) -> LogRecordPos | None:
        rest = as_key(key)
        with self._lock:
            node = self._root
            while True:
                if not rest:
                    old = node.value if node.has_value else None
                    if not node.has_value:
                        self._size += 1
                    node.value, node.has_value = pos, True
                    return old
                child = node.children.get(rest[0])
                if child is None:
                    node.children[rest[0]] = _Node(rest, pos, True)
                    self._size += 1
                    return None
                common = _common_prefix_len(child.prefix, rest)
                if common < len(child.prefix):
                    mid = _Node(child.prefix[:common])
                    child.prefix = child.prefix[common:]
                    mid.children[child.prefix[0]] = child
                    node.children[rest[0]] = mid
                    child = mid
                node = child
                rest = rest[common:]

    def _find(self, key: bytes) -> tuple[list[_Node], _Node] | None:
        path: list[_Node] = []
        node = self._root
        rest = key
        while rest:
            child = node.children.get(rest[0])
            if child is None or not rest.startswith(child.prefix):
                return None
            path.append(node)
            node = child
            rest = rest[len(child.prefix):]
        return path, node

    def get(self, key: bytes) -> LogRecordPos | None:
        with self._lock:
            found = self._find(as_key(key))
            if found is None or not found[1].has_value:
                return None
            return found[1].value

    def delete(self, key: bytes) -> tuple[LogRecordPos | None, bool]:
        with self._lock:
            found = self._find(as_key(key))
            if found is None or not found[1].has_value:
                return None, False
            path, node = found
            old = node.value
            node.value, node.has_value = None, False
            self._size -= 1
            if path:
                parent = path[-1]
                if not node.children:
                    del parent.children[node.prefix[0]]
                    if parent is not self._root and not parent.has_value and len(parent.children) == 1:
                        parent.absorb_only_child()
                elif len(node.children) == 1:
                    node.absorb_only_child()
            return old, True

    def _walk(self) -> Iterator[tuple[bytes, LogRecordPos]]:
        stack: list[tuple[_Node, bytes]] = [(self._root, b"")]
        while stack:
            node, prefix = stack.pop()
            key = prefix + node.prefix
            if node.has_value:
                yield key, node.value
            for first in sorted(node.children, reverse=True):
                stack.append((node.children[first], key))

    def iterator(self, reverse: bool = False) -> IndexIterator:
        with self._lock:
            items = list(self._walk())
        if reverse:
            items.reverse()
        return SnapshotIterator(items, reverse)

    def size(self) -> int:
        with self._lock:
            return self._size

    def close(self) -> None:
        pass