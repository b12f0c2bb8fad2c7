"""File access backends: ordinary file IO and read-only memory mapping."""

from __future__ import annotations

import enum
import mmap
import os
import threading
from abc import ABC, abstractmethod

DATA_FILE_PERM = 0o644


class IOType(enum.IntEnum):
    """Which backend a data file is accessed through."""

    STANDARD = 0
    MMAP = 1


class IOManager(ABC):
    """Random-access reads and appending writes on a single file."""

    @abstractmethod
    def read(self, size: int, offset: int) -> bytes:
        """Read exactly ``size`` bytes at ``offset``; raise EOFError if fewer exist."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Append ``data`` and return the number of bytes written."""

    @abstractmethod
    def sync(self) -> None:
        """Flush written data to stable storage."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying file."""

    @abstractmethod
    def size(self) -> int:
        """Return the current file size in bytes."""


class FileIO(IOManager):
    """Standard file IO; the file is created if missing and opened for appending."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = os.fspath(path)
        flags = os.O_CREAT | os.O_RDWR | os.O_APPEND | getattr(os, "O_BINARY", 0)
        self._fd = os.open(self.path, flags, DATA_FILE_PERM)
        self._lock = threading.Lock()

    def read(self, size: int, offset: int) -> bytes:
        if offset < 0:
            raise ValueError("negative offset")
        if hasattr(os, "pread"):
            data = os.pread(self._fd, size, offset)
        else:
            with self._lock:
                os.lseek(self._fd, offset, os.SEEK_SET)
                data = os.read(self._fd, size)
        if len(data) < size:
            raise EOFError(f"short read at offset {offset}")
        return data

    def write(self, data: bytes) -> int:
        view = memoryview(data)
        written = 0
        while written < len(view):
            written += os.write(self._fd, view[written:])
        return written

    def sync(self) -> None:
        os.fsync(self._fd)

    def close(self) -> None:
        os.close(self._fd)

    def size(self) -> int:
        return os.fstat(self._fd).st_size


class MMapIO(IOManager):
    """Read-only memory-mapped access to an existing file; writes are ignored."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = os.fspath(path)
        with open(self.path, "rb") as fh:
            length = os.fstat(fh.fileno()).st_size
            self._map = mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ) if length else None

    def read(self, size: int, offset: int) -> bytes:
        if offset < 0:
            raise ValueError("negative offset")
        chunk = self._map[offset:offset + size] if self._map is not None else b""
        if len(chunk) < size:
            raise EOFError(f"short read at offset {offset}")
        return chunk

    def write(self, data: bytes) -> int:
        return 0

    def sync(self) -> None:
        pass

    def close(self) -> None:
        if self._map is not None:
            self._map.close()
            self._map = None

    def size(self) -> int:
        return len(self._map) if self._map is not None else 0


def open_io_manager(path: str | os.PathLike, io_type: IOType = IOType.STANDARD) -> IOManager:
    """Open ``path`` with the backend named by ``io_type``."""
    io_type = IOType(io_type)
    if io_type is IOType.STANDARD:
        return FileIO(path)
    return MMapIO(path)