"""Configuration for the database, its iterators and its write batches."""

from __future__ import annotations

import enum
import os
import tempfile
from dataclasses import dataclass, field


class IndexType(enum.IntEnum):
    """The in-memory (or on-disk) index that maps keys to record positions."""

    BTREE = 1
    ART = 2
    BPTREE = 3


@dataclass
class Options:
    """Settings used when opening a database."""

    dir_path: str = field(default_factory=tempfile.gettempdir)
    max_data_file_size: int = 256 * 1024 * 1024
    sync_write: bool = False
    index_type: IndexType = IndexType.BTREE
    bytes_per_sync: int = 0
    mmap_at_startup: bool = True
    data_file_merge_ratio: float = 0.5

    def __post_init__(self) -> None:
        self.dir_path = os.fspath(self.dir_path) if self.dir_path else tempfile.gettempdir()
        self.index_type = IndexType(self.index_type)
        if not 0 <= self.data_file_merge_ratio <= 1:
            raise ValueError("invalid merge ratio")
        if self.bytes_per_sync < 0:
            raise ValueError("bytes_per_sync must not be negative")


@dataclass
class IteratorOptions:
    """Settings for a database iterator."""

    prefix: bytes = b""
    reverse: bool = False


@dataclass
class WriteBatchOptions:
    """Settings for an atomic write batch."""

    max_batch_num: int = 1000
    sync_writes: bool = True