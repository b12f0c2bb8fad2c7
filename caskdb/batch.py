"""Atomic write batches: puts and deletes that become visible together."""

from __future__ import annotations

import threading

from .db import DB, NON_TRANSACTION_SEQ_NUM
from .errors import BatchNumExceededError, BitcaskError, KeyIsEmptyError
from .log_record import LogRecord, LogRecordPos, LogRecordType, key_with_seq
from .options import IndexType, WriteBatchOptions

TXN_FIN_KEY = b"fin"


class WriteBatch:
    """Collects writes in memory and commits them as one transaction."""

    def __init__(self, db: DB, options: WriteBatchOptions | None = None) -> None:
        if (
            db.options.index_type == IndexType.BPTREE
            and not db.seq_num_file_exists
            and not db.is_initial
        ):
            raise BitcaskError("cannot use write batch, seq no file not exists")
        self.db = db
        self.options = options or WriteBatchOptions()
        self._lock = threading.Lock()
        self._pending: dict[bytes, LogRecord] = {}

    def put(self, key: bytes, value: bytes | None) -> None:
        """Stage ``value`` under ``key``."""
        if not key:
            raise KeyIsEmptyError()
        key = bytes(key)
        with self._lock:
            self._pending[key] = LogRecord(key=key, value=bytes(value or b""))

    def delete(self, key: bytes) -> None:
        """Stage the removal of ``key``; a key absent from the database is just unstaged."""
        if not key:
            raise KeyIsEmptyError()
        key = bytes(key)
        with self._lock:
            if self.db.index.get(key) is None:
                self._pending.pop(key, None)
                return
            self._pending[key] = LogRecord(key=key, type=LogRecordType.DELETED)

    def commit(self) -> None:
        """Write all staged records followed by a transaction-finished marker."""
        with self._lock:
            if not self._pending:
                return
            if len(self._pending) > self.options.max_batch_num:
                raise BatchNumExceededError()
            db = self.db
            with db.lock:
                db.seq_num += 1
                seq_num = db.seq_num
                positions: dict[bytes, LogRecordPos] = {}
                for key, record in self._pending.items():
                    positions[key] = db.append_log_record(
                        LogRecord(key=key_with_seq(key, seq_num), value=record.value, type=record.type)
                    )
                db.append_log_record(
                    LogRecord(key=key_with_seq(TXN_FIN_KEY, seq_num), type=LogRecordType.TXN_FINISHED)
                )
                if self.options.sync_writes and db.active_file is not None:
                    db.sync()

                for key, record in self._pending.items():
                    if record.type is LogRecordType.NORMAL:
                        old = db.index.put(key, positions[key])
                    else:
                        old, _ = db.index.delete(key)
                    if old is not None:
                        db.reclaim_size += old.size
            self._pending = {}


__all__ = ["WriteBatch", "TXN_FIN_KEY", "NON_TRANSACTION_SEQ_NUM"]