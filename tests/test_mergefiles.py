import os

import pytest

from bitcaskkv.data.data_file import (
    HINT_FILE_NAME,
    MERGE_FINISHED_FILE_NAME,
    SEQ_NO_FILE_NAME,
    data_file_name,
    open_hint_file,
    open_merge_finished_file,
)
from bitcaskkv.data.log_record import LogRecord, LogRecordPos, encode_log_record
from bitcaskkv.index.btree import BTree
from bitcaskkv.mergefiles import (
    FILE_LOCK_NAME,
    MERGE_FINISHED_KEY,
    apply_merge_files,
    load_index_from_hint_file,
    merge_path,
    non_merge_file_id,
)


def _touch(path, content=b"x"):
    with open(path, "wb") as f:
        f.write(content)


def _read(path):
    with open(path, "rb") as f:
        return f.read()


def _write_merge_finished(dir_path, file_id):
    with open_merge_finished_file(dir_path) as f:
        f.write(encode_log_record(LogRecord(key=MERGE_FINISHED_KEY, value=str(file_id).encode())))


def test_merge_path_is_sibling(tmp_path):
    db = os.path.join(str(tmp_path), "db")
    assert merge_path(db) == os.path.join(str(tmp_path), "db-merge")
    assert merge_path(db + os.sep) == os.path.join(str(tmp_path), "db-merge")


def test_non_merge_file_id(tmp_path):
    _write_merge_finished(str(tmp_path), 7)
    assert non_merge_file_id(str(tmp_path)) == 7


def test_non_merge_file_id_empty_file(tmp_path):
    with pytest.raises(EOFError):
        non_merge_file_id(str(tmp_path))


@pytest.fixture
def db_dir(tmp_path):
    db = tmp_path / "db"
    db.mkdir()
    for file_id in range(3):
        _touch(data_file_name(str(db), file_id), b"old")
    return str(db)


def test_apply_finished_merge(db_dir):
    merge = merge_path(db_dir)
    os.makedirs(merge)
    _touch(data_file_name(merge, 0), b"merged")
    _touch(os.path.join(merge, HINT_FILE_NAME))
    _touch(os.path.join(merge, SEQ_NO_FILE_NAME))
    _touch(os.path.join(merge, FILE_LOCK_NAME))
    _write_merge_finished(merge, 2)

    assert apply_merge_files(db_dir) is True
    assert not os.path.exists(merge)
    assert _read(data_file_name(db_dir, 0)) == b"merged"
    assert not os.path.exists(data_file_name(db_dir, 1))
    assert _read(data_file_name(db_dir, 2)) == b"old"
    assert os.path.exists(os.path.join(db_dir, HINT_FILE_NAME))
    assert os.path.exists(os.path.join(db_dir, MERGE_FINISHED_FILE_NAME))
    assert not os.path.exists(os.path.join(db_dir, SEQ_NO_FILE_NAME))
    assert not os.path.exists(os.path.join(db_dir, FILE_LOCK_NAME))


def test_apply_unfinished_merge_discards_it(db_dir):
    merge = merge_path(db_dir)
    os.makedirs(merge)
    _touch(data_file_name(merge, 0), b"merged")

    assert apply_merge_files(db_dir) is False
    assert not os.path.exists(merge)
    assert _read(data_file_name(db_dir, 0)) == b"old"
    assert _read(data_file_name(db_dir, 1)) == b"old"


def test_apply_without_merge_dir(db_dir):
    assert apply_merge_files(db_dir) is False
    assert sorted(os.listdir(db_dir)) == sorted(
        os.path.basename(data_file_name(db_dir, i)) for i in range(3)
    )


def test_load_index_from_hint_file(tmp_path):
    first = LogRecordPos(fid=1, offset=10, size=20)
    second = LogRecordPos(fid=2, offset=30, size=40)
    with open_hint_file(str(tmp_path)) as hint:
        hint.write_hint_record(b"alpha", first)
        hint.write_hint_record(b"beta", second)

    index = BTree()
    assert load_index_from_hint_file(str(tmp_path), index) == 2
    assert index.get(b"alpha") == first
    assert index.get(b"beta") == second


def test_load_index_without_hint_file(tmp_path):
    index = BTree()
    assert load_index_from_hint_file(str(tmp_path), index) == 0
    assert index.size() == 0