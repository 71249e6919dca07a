"""Metadata and internal key encodings for the Redis-like data structures."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from ..utils.floats import float_to_bytes

_UINT32 = 0xFFFF_FFFF
_UINT64 = 0xFFFF_FFFF_FFFF_FFFF
_MAX_VARINT_LEN64 = 10

INITIAL_LIST_MARK = _UINT64 // 2


class RedisDataType(enum.IntEnum):
    """Kind of value stored under a key."""

    STRING = 0
    HASH = 1
    SET = 2
    LIST = 3
    ZSET = 4


def _uvarint(value: int) -> bytes:
    out = bytearray()
    value &= _UINT64
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _varint(value: int) -> bytes:
    return _uvarint(value << 1 if value >= 0 else ((~value) << 1) | 1)


def _read_uvarint(buf: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    for i, byte in enumerate(buf[pos:pos + _MAX_VARINT_LEN64]):
        if byte < 0x80:
            return result | (byte << shift), i + 1
        result |= (byte & 0x7F) << shift
        shift += 7
    raise ValueError("truncated varint")


def _read_varint(buf: bytes, pos: int) -> tuple[int, int]:
    zigzag, n = _read_uvarint(buf, pos)
    value = zigzag >> 1
    return (~value if zigzag & 1 else value), n


@dataclass
class Metadata:
    """Per-key metadata: type, expiry, version, element count and list bounds."""

    data_type: RedisDataType
    expire: int = 0
    version: int = 0
    size: int = 0
    head: int = 0
    tail: int = 0

    def encode(self) -> bytes:
        parts = [
            bytes([int(self.data_type)]),
            _varint(self.expire),
            _varint(self.version),
            _varint(self.size),
        ]
        if self.data_type == RedisDataType.LIST:
            parts.append(_uvarint(self.head))
            parts.append(_uvarint(self.tail))
        return b"".join(parts)


def decode_metadata(buf: bytes) -> Metadata:
    """Decode metadata written by Metadata.encode."""
    if not buf:
        raise ValueError("empty metadata")
    data_type = RedisDataType(buf[0])
    index = 1
    expire, n = _read_varint(buf, index)
    index += n
    version, n = _read_varint(buf, index)
    index += n
    size, n = _read_varint(buf, index)
    index += n
    head = tail = 0
    if data_type == RedisDataType.LIST:
        head, n = _read_uvarint(buf, index)
        index += n
        tail, _ = _read_uvarint(buf, index)
    return Metadata(
        data_type=data_type,
        expire=expire,
        version=version,
        size=size & _UINT32,
        head=head,
        tail=tail,
    )


def _version_bytes(version: int) -> bytes:
    return struct.pack("<Q", version & _UINT64)


@dataclass
class HashInternalKey:
    key: bytes
    version: int
    field: bytes

    def encode(self) -> bytes:
        return bytes(self.key) + _version_bytes(self.version) + bytes(self.field or b"")


@dataclass
class SetInternalKey:
    key: bytes
    version: int
    member: bytes

    def encode(self) -> bytes:
        member = bytes(self.member or b"")
        return (
            bytes(self.key)
            + _version_bytes(self.version)
            + member
            + struct.pack("<I", len(member) & _UINT32)
        )


@dataclass
class ListInternalKey:
    key: bytes
    version: int
    index: int

    def encode(self) -> bytes:
        return bytes(self.key) + _version_bytes(self.version) + struct.pack("<Q", self.index & _UINT64)


@dataclass
class ZSetInternalKey:
    key: bytes
    version: int
    member: bytes
    score: float = 0.0

    def encode_with_member(self) -> bytes:
        return bytes(self.key) + _version_bytes(self.version) + bytes(self.member or b"")

    def encode_with_score(self) -> bytes:
        member = bytes(self.member or b"")
        return (
            bytes(self.key)
            + _version_bytes(self.version)
            + float_to_bytes(self.score)
            + member
            + struct.pack("<I", len(member) & _UINT32)
        )