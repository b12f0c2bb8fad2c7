"""The storage engine: an append-only log of records with an index of their positions."""

from __future__ import annotations

import os
import shutil
import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass

from filelock import FileLock, Timeout

from .data_file import (
    DATA_FILE_SUFFIX,
    HINT_FILE_NAME,
    MERGE_FINISHED_NAME,
    SEQ_NUM_FILE_NAME,
    DataFile,
    data_file_name,
)
from .dirutil import copy_dir, dir_size
from .errors import (
    DataDirectoryCorruptedError,
    DataFileNotFoundError,
    DatabaseIsUsingError,
    IndexUpdateFailedError,
    KeyIsEmptyError,
    KeyNotFoundError,
)
from .fileio import IOType
from .index.bptree import BPTREE_INDEX_FILE_NAME
from .index.factory import new_indexer
from .log_record import (
    LogRecord,
    LogRecordPos,
    LogRecordType,
    TransactionRecord,
    encode_log_record,
    key_with_seq,
    parse_log_record_key,
)
from .options import IndexType, Options

FILE_LOCK_NAME = "flock"
MERGE_DIR_SUFFIX = "-merge"
NON_TRANSACTION_SEQ_NUM = 0


@dataclass
class Stat:
    """Statistics about an open database."""

    key_num: int
    data_file_num: int
    reclaimable_size: int
    disk_size: int


class DB:
    """A bitcask store rooted at one directory; only one process may hold it open."""

    def __init__(self, options: Options, file_lock: FileLock, is_initial: bool) -> None:
        self.options = options
        self.lock = threading.RLock()
        self.file_ids: list[int] = []
        self.active_file: DataFile | None = None
        self.older_files: dict[int, DataFile] = {}
        self.index = new_indexer(options.index_type, options.dir_path, options.sync_write)
        self.seq_num = NON_TRANSACTION_SEQ_NUM
        self.is_merging = False
        self.seq_num_file_exists = False
        self.is_initial = is_initial
        self.file_lock = file_lock
        self.bytes_write = 0
        self.reclaim_size = 0
        self._closed = False

    # ------------------------------------------------------------------ opening

    @classmethod
    def open(cls, options: Options | None = None) -> "DB":
        """Open (creating if needed) the database described by ``options``."""
        options = options or Options()
        dir_path = options.dir_path
        is_initial = False
        if not os.path.exists(dir_path):
            is_initial = True
            os.makedirs(dir_path, exist_ok=True)

        file_lock = FileLock(os.path.join(dir_path, FILE_LOCK_NAME))
        try:
            file_lock.acquire(timeout=0)
        except Timeout:
            raise DatabaseIsUsingError() from None

        try:
            if not any(name != FILE_LOCK_NAME for name in os.listdir(dir_path)):
                is_initial = True
            db = cls(options, file_lock, is_initial)
            try:
                db._load()
            except BaseException:
                db._release_files()
                raise
        except BaseException:
            file_lock.release()
            raise
        return db

    def _load(self) -> None:
        non_merge_id = self._load_merge_files()
        self._load_data_files()
        if self.options.index_type != IndexType.BPTREE:
            self._load_index_from_hint_file()
            self._load_index_from_data_files()
        else:
            if non_merge_id is not None:
                self._refresh_index_from_hint(non_merge_id)
            self._load_seq_num()
            if self.active_file is not None:
                self.active_file.write_offset = self.active_file.io_manager.size()
        if self.options.mmap_at_startup:
            self._reset_io_type()

    def _release_files(self) -> None:
        for data_file in [*self.older_files.values(), self.active_file]:
            if data_file is not None:
                try:
                    data_file.close()
                except OSError:
                    pass
        try:
            self.index.close()
        except Exception:
            pass

    def _load_data_files(self) -> None:
        dir_path = self.options.dir_path
        file_ids: list[int] = []
        for entry in os.scandir(dir_path):
            if entry.is_dir() or not entry.name.endswith(DATA_FILE_SUFFIX):
                continue
            parts = entry.name.split(".")
            if len(parts) != 2:
                continue
            try:
                file_id = int(parts[0])
            except ValueError:
                raise DataDirectoryCorruptedError() from None
            if file_id < 0:
                raise DataDirectoryCorruptedError()
            file_ids.append(file_id)

        if not file_ids:
            self.active_file = DataFile.open(dir_path, 0, IOType.STANDARD)
            return

        file_ids.sort()
        self.file_ids = file_ids
        io_type = IOType.MMAP if self.options.mmap_at_startup else IOType.STANDARD
        for file_id in file_ids:
            data_file = DataFile.open(dir_path, file_id, io_type)
            if file_id == file_ids[-1]:
                self.active_file = data_file
            else:
                self.older_files[file_id] = data_file

    def _load_index_from_hint_file(self) -> None:
        hint_path = os.path.join(self.options.dir_path, HINT_FILE_NAME)
        if not os.path.exists(hint_path):
            return
        with DataFile.open_hint_file(self.options.dir_path) as hint_file:
            for _, record, _ in hint_file.records():
                self.index.put(record.key, LogRecordPos.decode(record.value))

    def _refresh_index_from_hint(self, non_merge_id: int) -> None:
        """Point a persistent index at merged files for keys not rewritten since."""
        hint_path = os.path.join(self.options.dir_path, HINT_FILE_NAME)
        if not os.path.exists(hint_path):
            return
        with DataFile.open_hint_file(self.options.dir_path) as hint_file:
            for _, record, _ in hint_file.records():
                current = self.index.get(record.key)
                if current is not None and current.fid < non_merge_id:
                    self.index.put(record.key, LogRecordPos.decode(record.value))

    def _load_index_from_data_files(self) -> None:
        if not self.file_ids:
            return
        dir_path = self.options.dir_path
        non_merge_id = 0
        if os.path.exists(os.path.join(dir_path, MERGE_FINISHED_NAME)):
            non_merge_id = self.non_merge_file_id(dir_path)

        txns: dict[int, list[TransactionRecord]] = defaultdict(list)
        cur_seq = NON_TRANSACTION_SEQ_NUM
        for file_id in self.file_ids:
            if file_id < non_merge_id:
                continue
            if file_id == self.active_file.file_id:
                data_file = self.active_file
            else:
                data_file = self.older_files[file_id]
            end = 0
            for offset, record, size in data_file.records():
                pos = LogRecordPos(fid=file_id, offset=offset, size=size)
                key, seq = parse_log_record_key(record.key)
                if seq == NON_TRANSACTION_SEQ_NUM:
                    self._update_index(key, record.type, pos)
                elif record.type is LogRecordType.TXN_FINISHED:
                    for txn in txns.pop(seq, []):
                        self._update_index(txn.record.key, txn.record.type, txn.pos)
                else:
                    txns[seq].append(TransactionRecord(LogRecord(key=key, type=record.type), pos))
                cur_seq = max(cur_seq, seq)
                end = offset + size
            if file_id == self.file_ids[-1]:
                self.active_file.write_offset = end
        self.seq_num = cur_seq

    def _update_index(self, key: bytes, record_type: LogRecordType, pos: LogRecordPos) -> None:
        if record_type is LogRecordType.NORMAL:
            old = self.index.put(key, pos)
            if old is not None:
                self.reclaim_size += old.size
        elif record_type is LogRecordType.DELETED:
            self.reclaim_size += pos.size
            old, ok = self.index.delete(key)
            if not ok:
                raise IndexUpdateFailedError()
            if old is not None:
                self.reclaim_size += old.size
        else:
            raise DataDirectoryCorruptedError(f"unknown record type {record_type!r}")

    def _load_seq_num(self) -> None:
        path = os.path.join(self.options.dir_path, SEQ_NUM_FILE_NAME)
        if not os.path.exists(path):
            return
        seq_num = 0
        with DataFile.open_seq_num_file(self.options.dir_path) as seq_file:
            for _, record, _ in seq_file.records():
                seq_num = int(record.value.decode())
        self.seq_num = seq_num
        self.seq_num_file_exists = True
        os.remove(path)

    def _reset_io_type(self) -> None:
        if self.active_file is None:
            return
        self.active_file.set_io_type(IOType.STANDARD)
        for data_file in self.older_files.values():
            data_file.set_io_type(IOType.STANDARD)

    # ------------------------------------------------------------------ merge files

    def merge_path(self) -> str:
        """Directory beside the data directory where merge output is written."""
        clean = os.path.normpath(self.options.dir_path)
        return os.path.join(os.path.dirname(clean), os.path.basename(clean) + MERGE_DIR_SUFFIX)

    def non_merge_file_id(self, dir_path: str | os.PathLike) -> int:
        """First data file id not covered by the merge recorded in ``dir_path``."""
        with DataFile.open_merge_finished_file(dir_path) as finished:
            record, _ = finished.read_log_record(0)
        return int(record.value.decode())

    def _load_merge_files(self) -> int | None:
        """Move a completed merge into place; return its first unmerged file id."""
        merge_path = self.merge_path()
        if not os.path.isdir(merge_path):
            return None
        try:
            names = os.listdir(merge_path)
            if MERGE_FINISHED_NAME not in names:
                return None
            non_merge_id = self.non_merge_file_id(merge_path)
            dir_path = self.options.dir_path
            for file_id in range(non_merge_id):
                old_file = data_file_name(dir_path, file_id)
                if os.path.exists(old_file):
                    os.remove(old_file)
            for name in names:
                if name in (MERGE_FINISHED_NAME, SEQ_NUM_FILE_NAME, FILE_LOCK_NAME):
                    continue
                if name.startswith(BPTREE_INDEX_FILE_NAME):
                    continue
                os.replace(os.path.join(merge_path, name), os.path.join(dir_path, name))
            os.replace(
                os.path.join(merge_path, MERGE_FINISHED_NAME),
                os.path.join(dir_path, MERGE_FINISHED_NAME),
            )
            return non_merge_id
        finally:
            shutil.rmtree(merge_path, ignore_errors=True)

    # ------------------------------------------------------------------ writing

    def set_active_data_file(self) -> None:
        """Open a fresh active data file with the next id."""
        file_id = self.active_file.file_id + 1 if self.active_file is not None else 0
        self.active_file = DataFile.open(self.options.dir_path, file_id, IOType.STANDARD)

    def append_log_record(self, record: LogRecord) -> LogRecordPos:
        """Append ``record`` to the active file, rolling over when it is full."""
        with self.lock:
            if self.active_file is None:
                self.set_active_data_file()
            encoded = encode_log_record(record)
            size = len(encoded)
            if self.active_file.write_offset + size > self.options.max_data_file_size:
                self.active_file.sync()
                self.older_files[self.active_file.file_id] = self.active_file
                self.set_active_data_file()

            write_offset = self.active_file.write_offset
            self.active_file.write(encoded)
            self.bytes_write += size
            need_sync = self.options.sync_write or (
                self.options.bytes_per_sync > 0 and self.bytes_write > self.options.bytes_per_sync
            )
            if need_sync:
                self.active_file.sync()
                self.bytes_write = 0
            return LogRecordPos(fid=self.active_file.file_id, offset=write_offset, size=size)

    def put(self, key: bytes, value: bytes | None) -> None:
        """Store ``value`` under ``key``, replacing any earlier value."""
        if not key:
            raise KeyIsEmptyError()
        record = LogRecord(
            key=key_with_seq(key, NON_TRANSACTION_SEQ_NUM),
            value=bytes(value or b""),
            type=LogRecordType.NORMAL,
        )
        pos = self.append_log_record(record)
        old = self.index.put(key, pos)
        if old is not None:
            self.reclaim_size += old.size

    def delete(self, key: bytes) -> None:
        """Remove ``key``; removing a missing key does nothing."""
        if not key:
            raise KeyIsEmptyError()
        if self.index.get(key) is None:
            return
        record = LogRecord(key=key_with_seq(key, NON_TRANSACTION_SEQ_NUM), type=LogRecordType.DELETED)
        pos = self.append_log_record(record)
        self.reclaim_size += pos.size
        old, ok = self.index.delete(key)
        if not ok:
            raise IndexUpdateFailedError()
        if old is not None:
            self.reclaim_size += old.size

    # ------------------------------------------------------------------ reading

    def get(self, key: bytes) -> bytes | None:
        """Value stored under ``key``; raise KeyNotFoundError when absent."""
        with self.lock:
            if not key:
                raise KeyIsEmptyError()
            pos = self.index.get(key)
            if pos is None:
                raise KeyNotFoundError()
            return self.value_at(pos)

    def value_at(self, pos: LogRecordPos) -> bytes | None:
        """Value of the record at ``pos``; None if that record is a deletion."""
        with self.lock:
            if self.active_file is not None and self.active_file.file_id == pos.fid:
                data_file = self.active_file
            else:
                data_file = self.older_files.get(pos.fid)
            if data_file is None:
                raise DataFileNotFoundError()
            record, _ = data_file.read_log_record(pos.offset)
        if record.type is LogRecordType.DELETED:
            return None
        return record.value

    def list_keys(self) -> list[bytes]:
        """All keys in ascending order."""
        with self.lock:
            iterator = self.index.iterator(False)
            try:
                return [key for key, _ in iterator]
            finally:
                iterator.close()

    def fold(self, fn: Callable[[bytes, bytes | None], bool]) -> None:
        """Call ``fn(key, value)`` in key order until it returns a false value."""
        with self.lock:
            iterator = self.index.iterator(False)
            try:
                for key, pos in iterator:
                    if not fn(key, self.value_at(pos)):
                        break
            finally:
                iterator.close()

    def size(self) -> int:
        """Number of live keys."""
        return self.index.size()

    def stat(self) -> Stat:
        with self.lock:
            data_files = len(self.older_files) + (1 if self.active_file is not None else 0)
            return Stat(
                key_num=self.index.size(),
                data_file_num=data_files,
                reclaimable_size=self.reclaim_size,
                disk_size=dir_size(self.options.dir_path),
            )

    # ------------------------------------------------------------------ lifecycle

    def sync(self) -> None:
        """Flush the active data file to disk."""
        self.active_file.sync()

    def backup(self, dest_dir: str | os.PathLike) -> None:
        """Copy the data directory to ``dest_dir``, leaving out the lock file."""
        with self.lock:
            copy_dir(self.options.dir_path, dest_dir, [FILE_LOCK_NAME])

    def close(self) -> None:
        """Persist the sequence number, close all files and release the directory."""
        if self._closed:
            return
        self._closed = True
        try:
            if self.active_file is None:
                return
            with self.lock:
                self.index.close()
                with DataFile.open_seq_num_file(self.options.dir_path) as seq_file:
                    record = LogRecord(key=b"", value=str(self.seq_num).encode())
                    seq_file.write(encode_log_record(record))
                    seq_file.sync()
                for data_file in self.older_files.values():
                    data_file.close()
                self.active_file.sync()
                self.active_file.close()
        finally:
            self.file_lock.release()

    def __enter__(self) -> "DB":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()