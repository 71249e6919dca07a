"""Redis-like strings, hashes, sets, lists and sorted sets on top of the engine."""

from __future__ import annotations

import time
from datetime import timedelta

from ..batch import WriteBatch
from ..db import DB
from ..errors import BitcaskError, KeyNotFoundError
from ..options import Options, WriteBatchOptions
from ..utils.floats import float_from_bytes, float_to_bytes
from .meta import (
    INITIAL_LIST_MARK,
    HashInternalKey,
    ListInternalKey,
    Metadata,
    RedisDataType,
    SetInternalKey,
    ZSetInternalKey,
    decode_metadata,
)

_UINT64 = 0xFFFF_FFFF_FFFF_FFFF
_MAX_VARINT_LEN64 = 10


class WrongTypeOperationError(BitcaskError):
    default_message = "WRONGTYPE Operation against a key holding the wrong kind of value"


def _put_varint(value: int) -> bytes:
    zigzag = (value << 1 if value >= 0 else ((~value) << 1) | 1) & _UINT64
    out = bytearray()
    while zigzag >= 0x80:
        out.append((zigzag & 0x7F) | 0x80)
        zigzag >>= 7
    out.append(zigzag)
    return bytes(out)


def _read_varint(buf: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    for i, byte in enumerate(buf[pos:pos + _MAX_VARINT_LEN64]):
        if byte < 0x80:
            zigzag = result | (byte << shift)
            value = zigzag >> 1
            return (~value if zigzag & 1 else value), i + 1
        result |= (byte & 0x7F) << shift
        shift += 7
    raise ValueError("truncated varint")


def _ttl_nanoseconds(ttl: float | timedelta | None) -> int:
    if ttl is None:
        return 0
    if isinstance(ttl, timedelta):
        return (ttl // timedelta(microseconds=1)) * 1000
    return int(ttl * 1_000_000_000)


class RedisDataStructure:
    """Redis data types stored in a database directory."""

    def __init__(self, options: Options) -> None:
        self.db = DB(options)

    def close(self) -> None:
        """Close the underlying database."""
        self.db.close()

    def __enter__(self) -> "RedisDataStructure":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _batch(self) -> WriteBatch:
        return WriteBatch(self.db, WriteBatchOptions())

    # ------------------------------------------------------------ generic

    def delete(self, key: bytes) -> None:
        """Remove a key of any type."""
        self.db.delete(key)

    def key_type(self, key: bytes) -> RedisDataType:
        """Type of the value stored under ``key``."""
        encoded = self.db.get(key)
        if not encoded:
            raise BitcaskError("value is null")
        return RedisDataType(encoded[0])

    # ------------------------------------------------------------ string

    def set(self, key: bytes, ttl: float | timedelta | None, value: bytes | None) -> None:
        """Store a string; ``ttl`` in seconds (or a timedelta), 0 or None for none."""
        if value is None:
            return
        ttl_ns = _ttl_nanoseconds(ttl)
        expire = time.time_ns() + ttl_ns if ttl_ns != 0 else 0
        encoded = bytes([RedisDataType.STRING]) + _put_varint(expire) + bytes(value)
        self.db.put(key, encoded)

    def get(self, key: bytes) -> bytes | None:
        """String under ``key``; None once it has expired."""
        encoded = self.db.get(key)
        if not encoded:
            raise BitcaskError("value is null")
        if encoded[0] != RedisDataType.STRING:
            raise WrongTypeOperationError()
        expire, n = _read_varint(encoded, 1)
        if 0 < expire <= time.time_ns():
            return None
        return encoded[1 + n:]

    # ------------------------------------------------------------ metadata

    def _find_metadata(self, key: bytes, data_type: RedisDataType) -> Metadata:
        try:
            buf = self.db.get(key)
        except KeyNotFoundError:
            buf = None
        meta = None
        if buf is not None:
            if not buf or buf[0] != data_type:
                raise WrongTypeOperationError()
            meta = decode_metadata(buf)
            if meta.expire != 0 and meta.expire <= time.time_ns():
                meta = None
        if meta is None:
            meta = Metadata(data_type=data_type, expire=0, version=time.time_ns(), size=0)
            if data_type == RedisDataType.LIST:
                meta.head = INITIAL_LIST_MARK
                meta.tail = INITIAL_LIST_MARK
        return meta

    def _exists(self, key: bytes) -> bool:
        try:
            self.db.get(key)
        except KeyNotFoundError:
            return False
        return True

    # ------------------------------------------------------------ hash

    def hset(self, key: bytes, field: bytes, value: bytes) -> bool:
        """Set a hash field; True if the field is new."""
        meta = self._find_metadata(key, RedisDataType.HASH)
        enc_key = HashInternalKey(key, meta.version, field).encode()
        exist = self._exists(enc_key)
        batch = self._batch()
        if not exist:
            meta.size += 1
            batch.put(key, meta.encode())
        batch.put(enc_key, value)
        batch.commit()
        return not exist

    def hget(self, key: bytes, field: bytes) -> bytes | None:
        """Value of a hash field; None for an empty hash."""
        meta = self._find_metadata(key, RedisDataType.HASH)
        if meta.size == 0:
            return None
        return self.db.get(HashInternalKey(key, meta.version, field).encode())

    def hdel(self, key: bytes, field: bytes | None) -> bool:
        """Remove a hash field; True if it existed."""
        meta = self._find_metadata(key, RedisDataType.HASH)
        if meta.size == 0:
            return False
        enc_key = HashInternalKey(key, meta.version, field or b"").encode()
        exist = self._exists(enc_key)
        if exist:
            batch = self._batch()
            meta.size -= 1
            batch.put(key, meta.encode())
            batch.delete(enc_key)
            batch.commit()
        return exist

    # ------------------------------------------------------------ set

    def sadd(self, key: bytes, member: bytes) -> bool:
        """Add a set member; True if it was not there before."""
        meta = self._find_metadata(key, RedisDataType.SET)
        enc_key = SetInternalKey(key, meta.version, member).encode()
        if self._exists(enc_key):
            return False
        batch = self._batch()
        meta.size += 1
        batch.put(key, meta.encode())
        batch.put(enc_key, None)
        batch.commit()
        return True

    def sismember(self, key: bytes, member: bytes) -> bool:
        """Whether ``member`` belongs to the set."""
        meta = self._find_metadata(key, RedisDataType.SET)
        if meta.size == 0:
            return False
        return self._exists(SetInternalKey(key, meta.version, member).encode())

    def srem(self, key: bytes, member: bytes) -> bool:
        """Remove a set member; True if it was there."""
        meta = self._find_metadata(key, RedisDataType.SET)
        if meta.size == 0:
            return False
        enc_key = SetInternalKey(key, meta.version, member).encode()
        if not self._exists(enc_key):
            return False
        batch = self._batch()
        meta.size -= 1
        batch.put(key, meta.encode())
        batch.delete(enc_key)
        batch.commit()
        return True

    # ------------------------------------------------------------ list

    def lpush(self, key: bytes, element: bytes) -> int:
        """Push on the left; returns the new length."""
        return self._push(key, element, left=True)

    def rpush(self, key: bytes, element: bytes) -> int:
        """Push on the right; returns the new length."""
        return self._push(key, element, left=False)

    def lpop(self, key: bytes) -> bytes | None:
        """Pop from the left; None for an empty list."""
        return self._pop(key, left=True)

    def rpop(self, key: bytes) -> bytes | None:
        """Pop from the right; None for an empty list."""
        return self._pop(key, left=False)

    def _push(self, key: bytes, element: bytes, left: bool) -> int:
        meta = self._find_metadata(key, RedisDataType.LIST)
        index = (meta.head - 1) & _UINT64 if left else meta.tail
        batch = self._batch()
        meta.size += 1
        if left:
            meta.head = (meta.head - 1) & _UINT64
        else:
            meta.tail = (meta.tail + 1) & _UINT64
        batch.put(key, meta.encode())
        batch.put(ListInternalKey(key, meta.version, index).encode(), element)
        batch.commit()
        return meta.size

    def _pop(self, key: bytes, left: bool) -> bytes | None:
        meta = self._find_metadata(key, RedisDataType.LIST)
        if meta.size == 0:
            return None
        index = meta.head if left else (meta.tail - 1) & _UINT64
        element = self.db.get(ListInternalKey(key, meta.version, index).encode())
        meta.size -= 1
        if left:
            meta.head = (meta.head + 1) & _UINT64
        else:
            meta.tail = (meta.tail - 1) & _UINT64
        self.db.put(key, meta.encode())
        return element

    # ------------------------------------------------------------ sorted set

    def zadd(self, key: bytes, score: float, member: bytes) -> bool:
        """Add or rescore a member; True if the member is new."""
        meta = self._find_metadata(key, RedisDataType.ZSET)
        zk = ZSetInternalKey(key, meta.version, member, score)
        member_key = zk.encode_with_member()
        try:
            old_value = self.db.get(member_key)
        except KeyNotFoundError:
            old_value = None
        exist = old_value is not None
        if exist and score == float_from_bytes(old_value):
            return False

        batch = self._batch()
        if not exist:
            meta.size += 1
            batch.put(key, meta.encode())
        else:
            old_key = ZSetInternalKey(key, meta.version, member, float_from_bytes(old_value))
            batch.delete(old_key.encode_with_score())
        batch.put(member_key, float_to_bytes(score))
        batch.put(zk.encode_with_score(), None)
        batch.commit()
        return not exist

    def zscore(self, key: bytes, member: bytes) -> float:
        """Score of a member; -1.0 for an empty sorted set."""
        meta = self._find_metadata(key, RedisDataType.ZSET)
        if meta.size == 0:
            return -1.0
        value = self.db.get(ZSetInternalKey(key, meta.version, member).encode_with_member())
        return float_from_bytes(value)