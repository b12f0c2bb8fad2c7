"""Construction of an index by its type."""

from __future__ import annotations

import os

from ..options import IndexType
from .art import RadixTreeIndex
from .base import Indexer
from .bptree import BPlusTreeIndex
from .btree import BTreeIndex


def new_indexer(index_type: IndexType, dir_path: str | os.PathLike, sync_write: bool = False) -> Indexer:
    """Create the index named by ``index_type``; raise ValueError for unknown types."""
    try:
        index_type = IndexType(index_type)
    except ValueError:
        raise ValueError("unsupported indexer type") from None
    if index_type is IndexType.BTREE:
        return BTreeIndex()
    if index_type is IndexType.ART:
        return RadixTreeIndex()
    return BPlusTreeIndex(dir_path, sync_write)