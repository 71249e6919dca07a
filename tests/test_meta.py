import struct

import pytest

from bitcaskkv.redisds.meta import (
    INITIAL_LIST_MARK,
    HashInternalKey,
    ListInternalKey,
    Metadata,
    RedisDataType,
    SetInternalKey,
    ZSetInternalKey,
    decode_metadata,
)


@pytest.mark.parametrize(
    "meta",
    [
        Metadata(RedisDataType.STRING, 0, 0, 0),
        Metadata(RedisDataType.HASH, 1234567890123, 987654321, 42),
        Metadata(RedisDataType.SET, -5, -1, 7),
        Metadata(RedisDataType.ZSET, 0, 10, 0),
        Metadata(RedisDataType.LIST, 0, 99, 3, INITIAL_LIST_MARK - 1, INITIAL_LIST_MARK + 2),
    ],
)
def test_metadata_round_trip(meta):
    assert decode_metadata(meta.encode()) == meta


def test_metadata_wire_bytes():
    assert Metadata(RedisDataType.HASH, 0, 1, 0).encode() == bytes([1, 0, 2, 0])


def test_metadata_first_byte_is_type():
    for data_type in RedisDataType:
        assert Metadata(data_type, 0, 5, 1).encode()[0] == int(data_type)


def test_non_list_metadata_has_no_bounds():
    meta = Metadata(RedisDataType.HASH, 0, 5, 1, head=10, tail=20)
    decoded = decode_metadata(meta.encode())
    assert (decoded.head, decoded.tail) == (0, 0)


def test_list_metadata_longer_than_plain():
    plain = Metadata(RedisDataType.SET, 0, 5, 1).encode()
    listed = Metadata(RedisDataType.LIST, 0, 5, 1, INITIAL_LIST_MARK, INITIAL_LIST_MARK).encode()
    assert len(listed) > len(plain)


def test_decode_empty_raises():
    with pytest.raises(ValueError):
        decode_metadata(b"")


def test_hash_internal_key_layout():
    enc = HashInternalKey(b"key", 7, b"field").encode()
    assert enc.startswith(b"key")
    assert enc.endswith(b"field")
    assert len(enc) == len(b"key") + 8 + len(b"field")
    assert struct.unpack_from("<Q", enc, 3)[0] == 7


def test_hash_keys_differ_by_version():
    a = HashInternalKey(b"k", 1, b"f").encode()
    b = HashInternalKey(b"k", 2, b"f").encode()
    assert a != b and len(a) == len(b)


def test_set_internal_key_ends_with_member_length():
    enc = SetInternalKey(b"key", 3, b"member").encode()
    assert len(enc) == 3 + 8 + 6 + 4
    assert struct.unpack("<I", enc[-4:])[0] == len(b"member")
    assert enc[11:17] == b"member"


def test_list_internal_key_index():
    enc = ListInternalKey(b"lst", 9, INITIAL_LIST_MARK).encode()
    assert len(enc) == 3 + 8 + 8
    assert struct.unpack("<Q", enc[-8:])[0] == INITIAL_LIST_MARK


def test_negative_version_wraps():
    enc = ListInternalKey(b"", -1, 0).encode()
    assert enc[:8] == b"\xff" * 8


def test_zset_member_and_score_keys():
    zk = ZSetInternalKey(b"z", 4, b"mem", 1.5)
    by_member = zk.encode_with_member()
    assert by_member == b"z" + struct.pack("<Q", 4) + b"mem"
    by_score = zk.encode_with_score()
    assert by_score[1 + 8:1 + 8 + 3] == b"1.5"
    assert by_score[-7:-4] == b"mem"
    assert struct.unpack("<I", by_score[-4:])[0] == 3


def test_fresh_list_bounds_survive_round_trip():
    meta = Metadata(RedisDataType.LIST, 0, 1, 0, INITIAL_LIST_MARK, INITIAL_LIST_MARK)
    decoded = decode_metadata(meta.encode())
    assert decoded.head == 9223372036854775807
    assert decoded.tail == 9223372036854775807