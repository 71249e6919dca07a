"""Log record encoding: the on-disk format of every entry in a data file."""

from __future__ import annotations

import enum
import struct
import zlib
from dataclasses import dataclass

MAX_VARINT_LEN32 = 5
MAX_VARINT_LEN64 = 10
MAX_LOG_RECORD_HEADER_SIZE = MAX_VARINT_LEN32 * 2 + 5
CRC_SIZE = 4

_UINT32 = 0xFFFF_FFFF
_UINT64 = 0xFFFF_FFFF_FFFF_FFFF


class LogRecordType(enum.IntEnum):
    """Kind of log record."""

    NORMAL = 0
    DELETED = 1
    TXN_FINISHED = 2


@dataclass
class LogRecord:
    """One appended entry: a key, a value and its kind."""

    key: bytes = b""
    value: bytes = b""
    type: LogRecordType = LogRecordType.NORMAL


@dataclass
class LogRecordHeader:
    """Decoded fixed part of a log record."""

    crc: int
    record_type: int
    key_size: int
    value_size: int


@dataclass
class LogRecordPos:
    """Where a record lives on disk."""

    fid: int
    offset: int
    size: int = 0


@dataclass
class TransactionRecord:
    """A record held back until its transaction is seen to finish."""

    record: LogRecord
    pos: LogRecordPos


def _put_uvarint(value: int) -> bytes:
    out = bytearray()
    value &= _UINT64
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _put_varint(value: int) -> bytes:
    zigzag = value << 1 if value >= 0 else ((~value) << 1) | 1
    return _put_uvarint(zigzag)


def _read_uvarint(buf: bytes, pos: int) -> tuple[int, int]:
    """Decode an unsigned varint; (0, 0) when truncated or overflowing."""
    result = 0
    shift = 0
    for i, byte in enumerate(buf[pos:pos + MAX_VARINT_LEN64]):
        if byte < 0x80:
            if i == MAX_VARINT_LEN64 - 1 and byte > 1:
                return 0, 0
            return result | (byte << shift), i + 1
        result |= (byte & 0x7F) << shift
        shift += 7
    return 0, 0


def _read_varint(buf: bytes, pos: int) -> tuple[int, int]:
    zigzag, n = _read_uvarint(buf, pos)
    value = zigzag >> 1
    if zigzag & 1:
        value = ~value
    return value, n


def encode_log_record(record: LogRecord) -> bytes:
    """Encode a record as crc | type | key size | value size | key | value."""
    key = record.key or b""
    value = record.value or b""
    body = (
        bytes([int(record.type)])
        + _put_varint(len(key))
        + _put_varint(len(value))
        + key
        + value
    )
    return struct.pack("<I", zlib.crc32(body)) + body


def decode_log_record_header(buf: bytes) -> tuple[LogRecordHeader | None, int]:
    """Decode a header; returns (None, 0) when the buffer is too short."""
    if len(buf) <= CRC_SIZE:
        return None, 0
    crc = struct.unpack_from("<I", buf)[0]
    index = CRC_SIZE + 1
    key_size, n = _read_varint(buf, index)
    index += n
    value_size, n = _read_varint(buf, index)
    index += n
    header = LogRecordHeader(
        crc=crc,
        record_type=buf[CRC_SIZE],
        key_size=key_size & _UINT32,
        value_size=value_size & _UINT32,
    )
    return header, index


def log_record_crc(record: LogRecord | None, header: bytes) -> int:
    """CRC over the header (without its crc field), key and value."""
    if record is None:
        return 0
    crc = zlib.crc32(header)
    crc = zlib.crc32(record.key or b"", crc)
    return zlib.crc32(record.value or b"", crc)


def encode_log_record_pos(pos: LogRecordPos) -> bytes:
    """Encode a position as three varints."""
    return _put_varint(pos.fid) + _put_varint(pos.offset) + _put_varint(pos.size)


def decode_log_record_pos(buf: bytes) -> LogRecordPos:
    """Decode a position written by encode_log_record_pos."""
    fid, n = _read_varint(buf, 0)
    index = n
    offset, n = _read_varint(buf, index)
    index += n
    size, _ = _read_varint(buf, index)
    return LogRecordPos(fid=fid & _UINT32, offset=offset, size=size & _UINT32)