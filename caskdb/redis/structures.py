"""Redis-style strings, hashes, sets, lists and sorted sets on top of the store."""

from __future__ import annotations

import datetime
import struct
import threading
import time

from ..batch import WriteBatch
from ..db import DB
from ..errors import BitcaskError, KeyNotFoundError, WrongTypeOperationError
from ..options import Options
from ..varint import decode_varint, encode_varint
from .meta import INITIAL_LIST_MARK, DataType, Metadata

_UINT64_MASK = (1 << 64) - 1


def _hash_key(key: bytes, version: int, field: bytes) -> bytes:
    return bytes(key) + struct.pack("<q", version) + bytes(field)


def _set_key(key: bytes, version: int, member: bytes) -> bytes:
    member = bytes(member)
    return bytes(key) + struct.pack("<q", version) + member + struct.pack("<I", len(member))


def _list_key(key: bytes, version: int, index: int) -> bytes:
    return bytes(key) + struct.pack("<qQ", version, index & _UINT64_MASK)


def _zset_member_key(key: bytes, version: int, member: bytes) -> bytes:
    return bytes(key) + struct.pack(">q", version) + bytes(member)


def _zset_score_key(key: bytes, version: int, score: float, member: bytes) -> bytes:
    member = bytes(member)
    return bytes(key) + struct.pack(">qd", version, score) + member + struct.pack(">I", len(member))


def _encode_float(value: float) -> bytes:
    return struct.pack(">d", value)


def _decode_float(buf: bytes) -> float:
    return struct.unpack(">d", buf[:8])[0]


class RedisDataStructure:
    """Redis data types stored as records of one database."""

    def __init__(self, options: Options | None = None) -> None:
        self.db = DB.open(options)
        self.lock = threading.RLock()

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "RedisDataStructure":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ helpers

    def _exists(self, key: bytes) -> bool:
        try:
            self.db.get(key)
        except KeyNotFoundError:
            return False
        return True

    def _find_metadata(self, key: bytes, data_type: DataType) -> Metadata:
        try:
            buf = self.db.get(key)
        except KeyNotFoundError:
            buf = None
        meta = None
        if buf is not None:
            if not buf or buf[0] != data_type:
                raise WrongTypeOperationError()
            meta = Metadata.decode(buf)
            if meta.expire != 0 and meta.expire <= time.time_ns():
                meta = None
        if meta is None:
            meta = Metadata(data_type=data_type, expire=0, version=time.time_ns(), size=0)
            if data_type == DataType.LIST:
                meta.head = INITIAL_LIST_MARK
                meta.tail = INITIAL_LIST_MARK
        return meta

    # ------------------------------------------------------------------ strings

    def set(self, key: bytes, ttl: float | datetime.timedelta, value: bytes | None) -> None:
        """Store a string; a non-zero ``ttl`` (seconds) makes it expire."""
        if value is None:
            return
        if isinstance(ttl, datetime.timedelta):
            ttl = ttl.total_seconds()
        expire = time.time_ns() + int(ttl * 1_000_000_000) if ttl else 0
        enc = bytes([DataType.STRING]) + encode_varint(expire) + bytes(value)
        self.db.put(key, enc)

    def get(self, key: bytes) -> bytes:
        """Value of a string key; raise KeyNotFoundError when missing or expired."""
        enc = self.db.get(key)
        if not enc or enc[0] != DataType.STRING:
            raise WrongTypeOperationError()
        expire, idx = decode_varint(enc, 1)
        if expire != 0 and time.time_ns() > expire:
            self.delete(key)
            raise KeyNotFoundError()
        return enc[idx:]

    def delete(self, key: bytes) -> None:
        self.db.delete(key)

    def type(self, key: bytes) -> DataType:
        enc = self.db.get(key)
        if not enc:
            raise BitcaskError("value is empty")
        return DataType(enc[0])

    # ------------------------------------------------------------------ hashes

    def hset(self, key: bytes, field: bytes, value: bytes | None) -> bool:
        """Set a hash field; return True if the field is new."""
        meta = self._find_metadata(key, DataType.HASH)
        enc_key = _hash_key(key, meta.version, field or b"")
        exist = self._exists(enc_key)
        wb = WriteBatch(self.db)
        if not exist:
            meta.size += 1
            wb.put(key, meta.encode())
        wb.put(enc_key, value)
        wb.commit()
        return not exist

    def hget(self, key: bytes, field: bytes) -> bytes | None:
        """Value of a hash field; None for an empty hash, KeyNotFoundError for a missing field."""
        meta = self._find_metadata(key, DataType.HASH)
        if meta.size == 0:
            return None
        return self.db.get(_hash_key(key, meta.version, field or b""))

    def hdel(self, key: bytes, field: bytes) -> bool:
        """Remove a hash field; return True if it existed."""
        meta = self._find_metadata(key, DataType.HASH)
        if meta.size == 0:
            return False
        enc_key = _hash_key(key, meta.version, field or b"")
        if not self._exists(enc_key):
            return False
        wb = WriteBatch(self.db)
        wb.delete(enc_key)
        meta.size -= 1
        wb.put(key, meta.encode())
        wb.commit()
        return True

    # ------------------------------------------------------------------ sets

    def sadd(self, key: bytes, member: bytes) -> bool:
        """Add a member to a set."""
        meta = self._find_metadata(key, DataType.SET)
        enc_key = _set_key(key, meta.version, member or b"")
        if not self._exists(enc_key):
            wb = WriteBatch(self.db)
            meta.size += 1
            wb.put(key, meta.encode())
            wb.put(enc_key, None)
            wb.commit()
        return True

    def sismember(self, key: bytes, member: bytes) -> bool:
        meta = self._find_metadata(key, DataType.SET)
        if meta.size == 0:
            return False
        return self._exists(_set_key(key, meta.version, member or b""))

    def srem(self, key: bytes, member: bytes) -> bool:
        """Remove a member from a set; return True if it was present."""
        meta = self._find_metadata(key, DataType.SET)
        if meta.size == 0:
            return False
        enc_key = _set_key(key, meta.version, member or b"")
        if not self._exists(enc_key):
            return False
        wb = WriteBatch(self.db)
        meta.size -= 1
        wb.put(key, meta.encode())
        wb.delete(enc_key)
        wb.commit()
        return True

    # ------------------------------------------------------------------ lists

    def lpush(self, key: bytes, value: bytes) -> int:
        return self._push(key, value, left=True)

    def lpop(self, key: bytes) -> bytes:
        return self._pop(key, left=True)

    def rpush(self, key: bytes, value: bytes) -> int:
        return self._push(key, value, left=False)

    def rpop(self, key: bytes) -> bytes:
        return self._pop(key, left=False)

    def _push(self, key: bytes, element: bytes, left: bool) -> int:
        meta = self._find_metadata(key, DataType.LIST)
        index = meta.head - 1 if left else meta.tail
        meta.size += 1
        if left:
            meta.head = (meta.head - 1) & _UINT64_MASK
        else:
            meta.tail = (meta.tail + 1) & _UINT64_MASK
        wb = WriteBatch(self.db)
        wb.put(key, meta.encode())
        wb.put(_list_key(key, meta.version, index), element)
        wb.commit()
        return meta.size

    def _pop(self, key: bytes, left: bool) -> bytes:
        meta = self._find_metadata(key, DataType.LIST)
        if meta.size == 0:
            raise KeyNotFoundError()
        index = meta.head if left else meta.tail - 1
        enc_key = _list_key(key, meta.version, index)
        element = self.db.get(enc_key)
        meta.size -= 1
        if left:
            meta.head = (meta.head + 1) & _UINT64_MASK
        else:
            meta.tail = (meta.tail - 1) & _UINT64_MASK
        wb = WriteBatch(self.db)
        wb.put(key, meta.encode())
        wb.delete(enc_key)
        wb.commit()
        return element

    # ------------------------------------------------------------------ sorted sets

    def zadd(self, key: bytes, score: float, member: bytes) -> bool:
        """Add or rescore a member; return True if the member is new."""
        meta = self._find_metadata(key, DataType.ZSET)
        member = bytes(member or b"")
        member_key = _zset_member_key(key, meta.version, member)
        try:
            old_value = self.db.get(member_key)
            exist = True
        except KeyNotFoundError:
            old_value = None
            exist = False
        if exist and score == _decode_float(old_value):
            return False
        wb = WriteBatch(self.db)
        if not exist:
            meta.size += 1
            wb.put(key, meta.encode())
        else:
            old_score = _decode_float(old_value)
            wb.delete(member_key)
            wb.delete(_zset_score_key(key, meta.version, old_score, member))
        wb.put(_zset_score_key(key, meta.version, score, member), None)
        wb.put(member_key, _encode_float(score))
        wb.commit()
        return not exist

    def zscore(self, key: bytes, member: bytes) -> float:
        """Score of a member; -1 for an empty sorted set, KeyNotFoundError for a missing member."""
        meta = self._find_metadata(key, DataType.ZSET)
        if meta.size == 0:
            return -1.0
        value = self.db.get(_zset_member_key(key, meta.version, member or b""))
        return _decode_float(value)