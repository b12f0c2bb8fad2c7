"""Compaction: rewrite the live records of older data files into a fresh set."""

from __future__ import annotations

import os
import shutil

from .data_file import DataFile
from .db import DB, NON_TRANSACTION_SEQ_NUM
from .dirutil import available_space, dir_size
from .errors import DiskSpaceNotEnoughError, MergeIsProcessingError, MergeRatioUnreachedError
from .log_record import LogRecord, encode_log_record, key_with_seq, parse_log_record_key
from .options import Options

MERGE_FINISHED_KEY = b"MergeFinished"


def merge(db: DB) -> None:
    """Compact ``db`` into its merge directory; the result is applied on next open."""
    if db.active_file is None:
        return
    with db.lock:
        if db.is_merging:
            raise MergeIsProcessingError()
        total_size = dir_size(db.options.dir_path)
        ratio = db.reclaim_size / total_size if total_size else 0.0
        if db.options.data_file_merge_ratio > ratio:
            raise MergeRatioUnreachedError()
        if available_space(db.options.dir_path) <= total_size - db.reclaim_size:
            raise DiskSpaceNotEnoughError()

        db.is_merging = True
        try:
            _do_merge(db)
        finally:
            db.is_merging = False


def _do_merge(db: DB) -> None:
    db.sync()
    db.older_files[db.active_file.file_id] = db.active_file
    db.set_active_data_file()
    non_merge_file_id = db.active_file.file_id

    merge_files = sorted(db.older_files.values(), key=lambda f: f.file_id)

    merge_path = db.merge_path()
    if os.path.exists(merge_path):
        shutil.rmtree(merge_path)
    os.makedirs(merge_path)

    merge_db = DB.open(
        Options(
            dir_path=merge_path,
            index_type=db.options.index_type,
            max_data_file_size=db.options.max_data_file_size,
            sync_write=False,
        )
    )
    try:
        with DataFile.open_hint_file(merge_path) as hint_file:
            for data_file in merge_files:
                for offset, record, _ in data_file.records():
                    key, _ = parse_log_record_key(record.key)
                    current = db.index.get(key)
                    if current is None or current.fid != data_file.file_id or current.offset != offset:
                        continue
                    record.key = key_with_seq(key, NON_TRANSACTION_SEQ_NUM)
                    pos = merge_db.append_log_record(record)
                    hint_file.write_hint_record(key, pos)
            hint_file.sync()
        merge_db.sync()

        with DataFile.open_merge_finished_file(merge_path) as finished:
            marker = LogRecord(key=MERGE_FINISHED_KEY, value=str(non_merge_file_id).encode())
            finished.write(encode_log_record(marker))
            finished.sync()
    finally:
        merge_db.close()