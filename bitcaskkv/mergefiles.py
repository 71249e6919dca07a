"""Merge directory handling and loading of the hint index."""

from __future__ import annotations

import os
import shutil

from .data.data_file import (
    HINT_FILE_NAME,
    MERGE_FINISHED_FILE_NAME,
    SEQ_NO_FILE_NAME,
    data_file_name,
    open_hint_file,
    open_merge_finished_file,
)
from .data.log_record import decode_log_record_pos
from .errors import BitcaskError
from .index.base import Indexer

MERGE_DIR_SUFFIX = "-merge"
MERGE_FINISHED_KEY = b"merge.finished"
FILE_LOCK_NAME = "flock"


def merge_path(dir_path: str) -> str:
    """Directory next to ``dir_path`` where a merge writes its output."""
    separators = os.sep + (os.altsep or "")
    trimmed = dir_path.rstrip(separators) or dir_path
    parent, base = os.path.split(trimmed)
    return os.path.join(parent, base + MERGE_DIR_SUFFIX)


def non_merge_file_id(dir_path: str) -> int:
    """Id of the first data file that did not take part in the merge."""
    with open_merge_finished_file(dir_path) as finished:
        record, _ = finished.read_log_record(0)
    return int(record.value.decode("ascii"))


def apply_merge_files(dir_path: str) -> bool:
    """Move the output of a finished merge into ``dir_path``.

    The merge directory is removed afterwards in every case. Returns whether
    merged files were moved in.
    """
    path = merge_path(dir_path)
    if not os.path.exists(path):
        return False
    try:
        names = os.listdir(path)
        if MERGE_FINISHED_FILE_NAME not in names:
            return False
        moved = [name for name in names if name not in (SEQ_NO_FILE_NAME, FILE_LOCK_NAME)]
        try:
            first_unmerged = non_merge_file_id(path)
        except (OSError, EOFError, ValueError, BitcaskError):
            return False

        for file_id in range(first_unmerged):
            old = data_file_name(dir_path, file_id)
            if os.path.exists(old):
                os.remove(old)
        for name in moved:
            os.replace(os.path.join(path, name), os.path.join(dir_path, name))
        return True
    finally:
        shutil.rmtree(path, ignore_errors=True)


def load_index_from_hint_file(dir_path: str, index: Indexer) -> int:
    """Fill ``index`` from the hint file, if any; returns the entries read."""
    if not os.path.exists(os.path.join(dir_path, HINT_FILE_NAME)):
        return 0
    count = 0
    with open_hint_file(dir_path) as hint:
        for record, _offset, _size in hint.records():
            index.put(record.key, decode_log_record_pos(record.value))
            count += 1
    return count