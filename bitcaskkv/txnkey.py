"""Record keys prefixed with a transaction sequence number."""

from __future__ import annotations

NON_TRANSACTION_SEQ_NO = 0
TXN_FIN_KEY = b"txn-fin"

_MAX_VARINT_LEN64 = 10
_UINT64_MAX = 0xFFFF_FFFF_FFFF_FFFF


def log_record_key_with_seq(key: bytes, seq_no: int) -> bytes:
    """Prefix ``key`` with ``seq_no`` as an unsigned varint."""
    if not 0 <= seq_no <= _UINT64_MAX:
        raise ValueError(f"sequence number out of range: {seq_no}")
    prefix = bytearray()
    while seq_no >= 0x80:
        prefix.append((seq_no & 0x7F) | 0x80)
        seq_no >>= 7
    prefix.append(seq_no)
    return bytes(prefix) + bytes(key or b"")


def parse_log_record_key(key: bytes) -> tuple[bytes, int]:
    """Split a stored key into (real key, sequence number).

    A key with no complete varint prefix is returned whole with sequence 0.
    """
    key = bytes(key or b"")
    result = 0
    shift = 0
    for i, byte in enumerate(key[:_MAX_VARINT_LEN64]):
        if byte < 0x80:
            if i == _MAX_VARINT_LEN64 - 1 and byte > 1:
                raise ValueError("sequence number overflows 64 bits")
            return key[i + 1:], result | (byte << shift)
        result |= (byte & 0x7F) << shift
        shift += 7
    if len(key) >= _MAX_VARINT_LEN64:
        raise ValueError("sequence number overflows 64 bits")
    return key, 0