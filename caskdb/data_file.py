"""Data files: append-only sequences of encoded log records."""

from __future__ import annotations

import os
import zlib
from collections.abc import Iterator

from .errors import InvalidCRCError
from .fileio import IOManager, IOType, open_io_manager
from .log_record import (
    CRC_SIZE,
    MAX_HEADER_SIZE,
    LogRecord,
    LogRecordPos,
    decode_log_record_header,
    encode_log_record,
)

DATA_FILE_SUFFIX = ".data"
HINT_FILE_NAME = "hint-index"
MERGE_FINISHED_NAME = "hint-finished"
SEQ_NUM_FILE_NAME = "sequence-num"


def data_file_name(dir_path: str | os.PathLike, file_id: int) -> str:
    """Path of the data file with the given id inside ``dir_path``."""
    return os.path.join(os.fspath(dir_path), f"{file_id:09d}{DATA_FILE_SUFFIX}")


def mark_merge_finished(dir_path: str | os.PathLike) -> None:
    """Rename the hint file to the merge-finished marker."""
    dir_path = os.fspath(dir_path)
    os.rename(os.path.join(dir_path, HINT_FILE_NAME), os.path.join(dir_path, MERGE_FINISHED_NAME))


class DataFile:
    """An append-only file of log records."""

    def __init__(self, path: str | os.PathLike, file_id: int, io_type: IOType = IOType.STANDARD) -> None:
        self.path = os.fspath(path)
        self.file_id = file_id
        self.write_offset = 0
        self.io_manager: IOManager = open_io_manager(self.path, io_type)

    @classmethod
    def open(cls, dir_path: str | os.PathLike, file_id: int, io_type: IOType = IOType.STANDARD) -> "DataFile":
        return cls(data_file_name(dir_path, file_id), file_id, io_type)

    @classmethod
    def open_hint_file(cls, dir_path: str | os.PathLike) -> "DataFile":
        return cls(os.path.join(os.fspath(dir_path), HINT_FILE_NAME), 0)

    @classmethod
    def open_merge_finished_file(cls, dir_path: str | os.PathLike) -> "DataFile":
        return cls(os.path.join(os.fspath(dir_path), MERGE_FINISHED_NAME), 0)

    @classmethod
    def open_seq_num_file(cls, dir_path: str | os.PathLike) -> "DataFile":
        return cls(os.path.join(os.fspath(dir_path), SEQ_NUM_FILE_NAME), 0)

    def write(self, data: bytes) -> None:
        self.write_offset += self.io_manager.write(data)

    def write_hint_record(self, key: bytes, pos: LogRecordPos) -> None:
        """Append a record mapping ``key`` to its position in a data file."""
        self.write(encode_log_record(LogRecord(key=key, value=pos.encode())))

    def read_log_record(self, offset: int) -> tuple[LogRecord, int]:
        """Read the record at ``offset``; return it with its encoded size.

        Raises EOFError at the end of the file and InvalidCRCError on corruption.
        """
        file_size = self.io_manager.size()
        header_len = min(MAX_HEADER_SIZE, file_size - offset)
        if header_len <= CRC_SIZE:
            raise EOFError(f"end of data file at offset {offset}")
        header_buf = self.io_manager.read(header_len, offset)
        try:
            header = decode_log_record_header(header_buf)
        except ValueError as exc:
            raise InvalidCRCError("corrupted record header") from exc
        if header is None or (header.crc == 0 and header.key_size == 0 and header.value_size == 0):
            raise EOFError(f"end of data file at offset {offset}")

        kv_len = header.key_size + header.value_size
        kv = self.io_manager.read(kv_len, offset + header.size) if kv_len else b""
        if zlib.crc32(kv, zlib.crc32(header_buf[CRC_SIZE:header.size])) != header.crc:
            raise InvalidCRCError()
        record = LogRecord(
            key=bytes(kv[:header.key_size]),
            value=bytes(kv[header.key_size:]),
            type=header.record_type,
        )
        return record, header.size + kv_len

    def records(self) -> Iterator[tuple[int, LogRecord, int]]:
        """Yield ``(offset, record, size)`` for every record from the start."""
        offset = 0
        while True:
            try:
                record, size = self.read_log_record(offset)
            except EOFError:
                return
            yield offset, record, size
            offset += size

    def sync(self) -> None:
        self.io_manager.sync()

    def close(self) -> None:
        self.io_manager.close()

    def set_io_type(self, io_type: IOType) -> None:
        """Reopen the file through a different IO backend."""
        self.io_manager.close()
        self.io_manager = open_io_manager(self.path, io_type)

    def __enter__(self) -> "DataFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()