import pytest

from bitcaskkv.data.log_record import (
    LogRecord,
    LogRecordPos,
    LogRecordType,
    decode_log_record_header,
    decode_log_record_pos,
    encode_log_record,
    encode_log_record_pos,
    log_record_crc,
)

HEADER_NORMAL = bytes([104, 82, 240, 150, 0, 8, 20])
HEADER_EMPTY_VALUE = bytes([9, 252, 88, 14, 0, 8, 0])
HEADER_DELETED = bytes([43, 153, 86, 17, 1, 8, 20])


def test_encode_normal_record():
    rec = LogRecord(key=b"name", value=b"bitcask-go", type=LogRecordType.NORMAL)
    encoded = encode_log_record(rec)
    assert len(encoded) > 5
    assert encoded == HEADER_NORMAL + b"namebitcask-go"


def test_encode_empty_value():
    rec = LogRecord(key=b"name", type=LogRecordType.NORMAL)
    encoded = encode_log_record(rec)
    assert len(encoded) > 5
    assert encoded == HEADER_EMPTY_VALUE + b"name"


def test_encode_deleted_record():
    rec = LogRecord(key=b"name", value=b"bitcask-go", type=LogRecordType.DELETED)
    encoded = encode_log_record(rec)
    assert len(encoded) > 5
    assert encoded == HEADER_DELETED + b"namebitcask-go"


def test_decode_header_normal():
    header, size = decode_log_record_header(HEADER_NORMAL)
    assert size == 7
    assert header.crc == 2532332136
    assert header.record_type == LogRecordType.NORMAL
    assert header.key_size == 4
    assert header.value_size == 10


def test_decode_header_empty_value():
    header, size = decode_log_record_header(HEADER_EMPTY_VALUE)
    assert size == 7
    assert header.crc == 240712713
    assert header.record_type == LogRecordType.NORMAL
    assert header.key_size == 4
    assert header.value_size == 0


def test_decode_header_deleted():
    header, size = decode_log_record_header(HEADER_DELETED)
    assert size == 7
    assert header.crc == 290887979
    assert header.record_type == LogRecordType.DELETED
    assert header.key_size == 4
    assert header.value_size == 10


@pytest.mark.parametrize("buf", [b"", b"\x01\x02\x03\x04"])
def test_decode_header_too_short(buf):
    assert decode_log_record_header(buf) == (None, 0)


def test_crc_normal():
    rec = LogRecord(key=b"name", value=b"bitcask-go", type=LogRecordType.NORMAL)
    assert log_record_crc(rec, HEADER_NORMAL[4:]) == 2532332136


def test_crc_empty_value():
    rec = LogRecord(key=b"name", type=LogRecordType.NORMAL)
    assert log_record_crc(rec, HEADER_EMPTY_VALUE[4:]) == 240712713


def test_crc_deleted():
    rec = LogRecord(key=b"name", value=b"bitcask-go", type=LogRecordType.DELETED)
    assert log_record_crc(rec, HEADER_DELETED[4:]) == 290887979


def test_crc_of_missing_record_is_zero():
    assert log_record_crc(None, HEADER_NORMAL[4:]) == 0


def test_encoded_header_decodes_consistently():
    rec = LogRecord(key=b"k" * 300, value=b"v" * 70000, type=LogRecordType.TXN_FINISHED)
    encoded = encode_log_record(rec)
    header, size = decode_log_record_header(encoded[:15])
    assert header.key_size == 300
    assert header.value_size == 70000
    assert header.record_type == LogRecordType.TXN_FINISHED
    assert size + 300 + 70000 == len(encoded)
    assert log_record_crc(rec, encoded[4:size]) == header.crc


@pytest.mark.parametrize(
    "pos",
    [
        LogRecordPos(fid=0, offset=0, size=0),
        LogRecordPos(fid=1, offset=12, size=33),
        LogRecordPos(fid=4294967295, offset=2**40, size=4294967295),
    ],
)
def test_pos_round_trip(pos):
    assert decode_log_record_pos(encode_log_record_pos(pos)) == pos


def test_pos_size_defaults_to_zero():
    assert LogRecordPos(1, 100) == LogRecordPos(fid=1, offset=100, size=0)