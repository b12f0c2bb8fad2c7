"""Variable-length integer encoding (LEB128 and zig-zag signed)."""

from __future__ import annotations

_MAX_VARINT_LEN64 = 10
_UINT64_LIMIT = 1 << 64
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def encode_uvarint(value: int) -> bytes:
    """Encode an unsigned 64-bit integer as a varint."""
    if not 0 <= value < _UINT64_LIMIT:
        raise ValueError(f"value out of range for uvarint: {value}")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def decode_uvarint(buf: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode an unsigned varint at ``offset``; return the value and the next offset."""
    value = 0
    shift = 0
    for i, byte in enumerate(buf[offset:offset + _MAX_VARINT_LEN64]):
        if i == _MAX_VARINT_LEN64 - 1 and byte > 1:
            raise ValueError("uvarint overflows a 64-bit integer")
        value |= (byte & 0x7F) << shift
        if byte < 0x80:
            return value, offset + i + 1
        shift += 7
    raise ValueError("truncated uvarint")


def encode_varint(value: int) -> bytes:
    """Encode a signed 64-bit integer as a zig-zag varint."""
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"value out of range for varint: {value}")
    zigzag = value << 1 if value >= 0 else (-value << 1) - 1
    return encode_uvarint(zigzag)


def decode_varint(buf: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a zig-zag varint at ``offset``; return the value and the next offset."""
    zigzag, end = decode_uvarint(buf, offset)
    value = zigzag >> 1
    if zigzag & 1:
        value = -value - 1
    return value, end