"""Metadata records describing the Redis-style structures kept in the store."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from ..varint import decode_uvarint, decode_varint, encode_uvarint, encode_varint

INITIAL_LIST_MARK = ((1 << 64) - 1) // 2
_SIZE_LEN = 4


class DataType(enum.IntEnum):
    """Kind of value stored under a user key."""

    STRING = 1
    HASH = 2
    SET = 3
    ZSET = 4
    LIST = 5


@dataclass
class Metadata:
    """Header stored under a structure's key: type, expiry, version and element count.

    Lists also record the index of their head and one past their tail.
    """

    data_type: DataType
    expire: int = 0
    version: int = 0
    size: int = 0
    head: int = INITIAL_LIST_MARK
    tail: int = INITIAL_LIST_MARK

    def encode(self) -> bytes:
        parts = [
            bytes([int(self.data_type)]),
            encode_varint(self.expire),
            encode_varint(self.version),
            self.size.to_bytes(_SIZE_LEN, "little"),
        ]
        if self.data_type == DataType.LIST:
            parts.append(encode_uvarint(self.head))
            parts.append(encode_uvarint(self.tail))
        return b"".join(parts)

    @classmethod
    def decode(cls, buf: bytes) -> "Metadata":
        """Decode metadata; raise ValueError when ``buf`` is malformed."""
        if not buf:
            raise ValueError("empty metadata")
        data_type = DataType(buf[0])
        expire, idx = decode_varint(buf, 1)
        version, idx = decode_varint(buf, idx)
        if len(buf) < idx + _SIZE_LEN:
            raise ValueError("truncated metadata")
        size = int.from_bytes(buf[idx:idx + _SIZE_LEN], "little")
        idx += _SIZE_LEN
        meta = cls(data_type=data_type, expire=expire, version=version, size=size)
        if data_type == DataType.LIST:
            meta.head, idx = decode_uvarint(buf, idx)
            meta.tail, _ = decode_uvarint(buf, idx)
        return meta