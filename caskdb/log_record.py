"""Log record encoding: the on-disk format of every entry in a data file."""

from __future__ import annotations

import enum
import zlib
from dataclasses import dataclass

from .varint import decode_uvarint, decode_varint, encode_uvarint, encode_varint

CRC_SIZE = 4
# crc (4) + type (1) + key size (max 5) + value size (max 5)
MAX_HEADER_SIZE = 15
_UINT32_MAX = (1 << 32) - 1


class LogRecordType(enum.IntEnum):
    """What a record means when the log is replayed."""

    NORMAL = 0
    DELETED = 1
    TXN_FINISHED = 2


@dataclass
class LogRecord:
    """One entry appended to a data file."""

    key: bytes
    value: bytes = b""
    type: LogRecordType = LogRecordType.NORMAL


@dataclass
class LogRecordPos:
    """Where a record lives on disk."""

    fid: int
    offset: int
    size: int = 0

    def encode(self) -> bytes:
        return encode_uvarint(self.fid) + encode_uvarint(self.offset) + encode_uvarint(self.size)

    @classmethod
    def decode(cls, buf: bytes) -> "LogRecordPos":
        fid, idx = decode_uvarint(buf, 0)
        offset, idx = decode_uvarint(buf, idx)
        size, _ = decode_uvarint(buf, idx)
        return cls(fid=fid, offset=offset, size=size)


@dataclass
class LogRecordHeader:
    """The decoded fixed part of a record; ``size`` is the header's own length."""

    crc: int
    record_type: LogRecordType
    key_size: int
    value_size: int
    size: int


@dataclass
class TransactionRecord:
    """A record read during replay that belongs to a not yet finished batch."""

    record: LogRecord
    pos: LogRecordPos


def encode_log_record(record: LogRecord) -> bytes:
    """Encode ``record`` as crc | type | key size | value size | key | value."""
    value = record.value or b""
    body = (
        bytes([int(record.type)])
        + encode_varint(len(record.key))
        + encode_varint(len(value))
        + bytes(record.key)
        + bytes(value)
    )
    return zlib.crc32(body).to_bytes(CRC_SIZE, "little") + body


def decode_log_record_header(buf: bytes) -> LogRecordHeader | None:
    """Decode a header from ``buf``; return None when there is too little data.

    Raises ValueError when the header is malformed.
    """
    if len(buf) <= CRC_SIZE:
        return None
    crc = int.from_bytes(buf[:CRC_SIZE], "little")
    record_type = LogRecordType(buf[CRC_SIZE])
    key_size, idx = decode_varint(buf, CRC_SIZE + 1)
    value_size, idx = decode_varint(buf, idx)
    for size in (key_size, value_size):
        if not 0 <= size <= _UINT32_MAX:
            raise ValueError(f"invalid size in record header: {size}")
    return LogRecordHeader(crc, record_type, key_size, value_size, idx)


def log_record_crc(record: LogRecord | None, header: bytes) -> int:
    """CRC-32 over the header bytes after the crc field, then key and value."""
    if record is None:
        return 0
    crc = zlib.crc32(header)
    crc = zlib.crc32(record.key, crc)
    return zlib.crc32(record.value or b"", crc)


def key_with_seq(key: bytes, seq_num: int) -> bytes:
    """Prefix ``key`` with its transaction sequence number."""
    return encode_uvarint(seq_num) + bytes(key)


def parse_log_record_key(enc_key: bytes) -> tuple[bytes, int]:
    """Split a stored key into the user key and its sequence number."""
    seq_num, idx = decode_uvarint(enc_key, 0)
    return bytes(enc_key[idx:]), seq_num