"""The storage engine: append-only data files with a key index."""

from __future__ import annotations

import math
import os
import shutil
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace

from filelock import FileLock, Timeout

from .data.data_file import (
    DATA_FILE_NAME_SUFFIX,
    MERGE_FINISHED_FILE_NAME,
    SEQ_NO_FILE_NAME,
    DataFile,
    open_data_file,
    open_hint_file,
    open_merge_finished_file,
    open_seq_no_file,
)
from .data.log_record import (
    LogRecord,
    LogRecordPos,
    LogRecordType,
    TransactionRecord,
    encode_log_record,
)
from .errors import (
    DatabaseIsUsingError,
    DataDirectoryCorruptedError,
    DataFileNotFoundError,
    IndexUpdateFailedError,
    KeyIsEmptyError,
    KeyNotFoundError,
    MergeInProgressError,
    MergeRatioUnreachedError,
    NoEnoughSpaceForMergeError,
)
from .fio.io_manager import FileIOType
from .index.base import Indexer
from .index.factory import new_indexer
from .mergefiles import (
    FILE_LOCK_NAME,
    MERGE_FINISHED_KEY,
    apply_merge_files,
    load_index_from_hint_file,
    merge_path,
    non_merge_file_id,
)
from .options import IndexType, Options
from .txnkey import NON_TRANSACTION_SEQ_NO, log_record_key_with_seq, parse_log_record_key
from .utils.files import available_disk_size, copy_dir, dir_size

SEQ_NO_KEY = b"seq.no"


@dataclass(frozen=True)
class Stat:
    """Statistics about an open database."""

    key_num: int
    data_file_num: int
    reclaimable_size: int
    disk_size: int


class DB:
    """An open database directory.

    Opening takes an exclusive lock on the directory; ``close`` releases it.
    """

    def __init__(self, options: Options) -> None:
        options.validate()
        self.options = options
        self.lock = threading.RLock()
        self.active_file: DataFile | None = None
        self.older_files: dict[int, DataFile] = {}
        self.index: Indexer | None = None
        self.seq_no = NON_TRANSACTION_SEQ_NO
        self.is_merging = False
        self.seq_no_file_exists = False
        self.bytes_write = 0
        self.reclaim_size = 0
        self._file_ids: list[int] = []
        self._closed = False

        dir_path = options.dir_path
        self.is_initial = not os.path.exists(dir_path)
        os.makedirs(dir_path, exist_ok=True)

        self._file_lock = FileLock(os.path.join(dir_path, FILE_LOCK_NAME))
        try:
            self._file_lock.acquire(timeout=0)
        except Timeout:
            raise DatabaseIsUsingError() from None

        try:
            if not [name for name in os.listdir(dir_path) if name != FILE_LOCK_NAME]:
                self.is_initial = True
            self._load()
        except BaseException:
            self._abort()
            raise

    # ------------------------------------------------------------------ loading

    def _load(self) -> None:
        dir_path = self.options.dir_path
        apply_merge_files(dir_path)
        self.index = new_indexer(self.options.index_type, dir_path, self.options.sync_writes)
        self._load_data_files()
        if self.options.index_type != IndexType.BPLUS_TREE:
            load_index_from_hint_file(dir_path, self.index)
            self._load_index_from_data_files()
        if self.options.mmap_at_startup:
            self._reset_io_type()
        if self.options.index_type == IndexType.BPLUS_TREE:
            self._load_seq_no()
            if self.active_file is not None:
                self.active_file.write_off = self.active_file.io_manager.size()

    def _load_data_files(self) -> None:
        file_ids = []
        for name in os.listdir(self.options.dir_path):
            if name.endswith(DATA_FILE_NAME_SUFFIX):
                try:
                    file_ids.append(int(name.split(".")[0]))
                except ValueError:
                    raise DataDirectoryCorruptedError() from None
        file_ids.sort()
        self._file_ids = file_ids
        io_type = FileIOType.MEMORY_MAP if self.options.mmap_at_startup else FileIOType.STANDARD
        for file_id in file_ids:
            data_file = open_data_file(self.options.dir_path, file_id, io_type)
            if self.active_file is not None:
                self.older_files[self.active_file.file_id] = self.active_file
            self.active_file = data_file

    def _update_index(self, key: bytes, record_type: int, pos: LogRecordPos) -> None:
        if record_type == LogRecordType.DELETED:
            old, _ = self.index.delete(key)
            self.reclaim_size += pos.size
        else:
            old = self.index.put(key, pos)
        if old is not None:
            self.reclaim_size += old.size

    def _load_index_from_data_files(self) -> None:
        if not self._file_ids:
            return
        first_unmerged = None
        if os.path.exists(os.path.join(self.options.dir_path, MERGE_FINISHED_FILE_NAME)):
            first_unmerged = non_merge_file_id(self.options.dir_path)

        pending: dict[int, list[TransactionRecord]] = {}
        current_seq_no = NON_TRANSACTION_SEQ_NO
        for file_id in self._file_ids:
            if first_unmerged is not None and file_id < first_unmerged:
                continue
            data_file = self._file_by_id(file_id)
            end = 0
            for record, offset, size in data_file.records():
                pos = LogRecordPos(fid=file_id, offset=offset, size=size)
                real_key, seq_no = parse_log_record_key(record.key)
                if seq_no == NON_TRANSACTION_SEQ_NO:
                    self._update_index(real_key, record.type, pos)
                elif record.type == LogRecordType.TXN_FINISHED:
                    for txn in pending.pop(seq_no, []):
                        self._update_index(txn.record.key, txn.record.type, txn.pos)
                else:
                    record.key = real_key
                    pending.setdefault(seq_no, []).append(TransactionRecord(record, pos))
                current_seq_no = max(current_seq_no, seq_no)
                end = offset + size
            if data_file is self.active_file:
                data_file.write_off = end
        self.seq_no = current_seq_no

    def _load_seq_no(self) -> None:
        path = os.path.join(self.options.dir_path, SEQ_NO_FILE_NAME)
        if not os.path.exists(path):
            return
        with open_seq_no_file(self.options.dir_path) as seq_file:
            record, _ = seq_file.read_log_record(0)
        self.seq_no = int(record.value.decode("ascii"))
        self.seq_no_file_exists = True
        os.remove(path)

    def _reset_io_type(self) -> None:
        for data_file in self._all_files():
            data_file.set_io_manager(self.options.dir_path, FileIOType.STANDARD)

    def _all_files(self) -> list[DataFile]:
        files = list(self.older_files.values())
        if self.active_file is not None:
            files.append(self.active_file)
        return files

    def _file_by_id(self, file_id: int) -> DataFile | None:
        if self.active_file is not None and self.active_file.file_id == file_id:
            return self.active_file
        return self.older_files.get(file_id)

    def _close_files(self) -> None:
        for data_file in self._all_files():
            data_file.close()

    def _abort(self) -> None:
        try:
            self._close_files()
            if self.index is not None:
                self.index.close()
        finally:
            self._file_lock.release()
            self._closed = True

    # ------------------------------------------------------------------ writing

    def _set_active_data_file(self) -> None:
        file_id = self.active_file.file_id + 1 if self.active_file is not None else 0
        self.active_file = open_data_file(self.options.dir_path, file_id, FileIOType.STANDARD)

    def append_log_record(self, record: LogRecord) -> LogRecordPos:
        """Append an encoded record to the active file and return its position."""
        with self.lock:
            if self.active_file is None:
                self._set_active_data_file()
            encoded = encode_log_record(record)
            size = len(encoded)
            if self.active_file.write_off + size > self.options.data_file_size:
                self.active_file.sync()
                self.older_files[self.active_file.file_id] = self.active_file
                self._set_active_data_file()

            write_off = self.active_file.write_off
            self.active_file.write(encoded)
            self.bytes_write += size
            need_sync = self.options.sync_writes or (
                self.options.bytes_per_sync > 0
                and self.bytes_write >= self.options.bytes_per_sync
            )
            if need_sync:
                self.active_file.sync()
                self.bytes_write = 0
            return LogRecordPos(fid=self.active_file.file_id, offset=write_off, size=size)

    def put(self, key: bytes, value: bytes) -> None:
        """Store ``value`` under a non-empty ``key``."""
        if not key:
            raise KeyIsEmptyError()
        key = bytes(key)
        record = LogRecord(
            key=log_record_key_with_seq(key, NON_TRANSACTION_SEQ_NO),
            value=bytes(value or b""),
            type=LogRecordType.NORMAL,
        )
        with self.lock:
            pos = self.append_log_record(record)
            old = self.index.put(key, pos)
            if old is not None:
                self.reclaim_size += old.size

    def delete(self, key: bytes) -> None:
        """Remove ``key``; removing a missing key does nothing."""
        if not key:
            raise KeyIsEmptyError()
        key = bytes(key)
        if self.index.get(key) is None:
            return
        record = LogRecord(
            key=log_record_key_with_seq(key, NON_TRANSACTION_SEQ_NO),
            type=LogRecordType.DELETED,
        )
        with self.lock:
            pos = self.append_log_record(record)
            self.reclaim_size += pos.size
            old, ok = self.index.delete(key)
            if not ok:
                raise IndexUpdateFailedError()
            if old is not None:
                self.reclaim_size += old.size

    # ------------------------------------------------------------------ reading

    def value_at(self, pos: LogRecordPos) -> bytes:
        """Read the value stored at a record position."""
        with self.lock:
            data_file = self._file_by_id(pos.fid)
            if data_file is None:
                raise DataFileNotFoundError()
            record, _ = data_file.read_log_record(pos.offset)
        if record.type == LogRecordType.DELETED:
            raise DataFileNotFoundError()
        return record.value

    def get(self, key: bytes) -> bytes:
        """Value stored under ``key``; KeyNotFoundError if there is none."""
        with self.lock:
            if not key:
                raise KeyIsEmptyError()
            pos = self.index.get(bytes(key))
            if pos is None:
                raise KeyNotFoundError()
            return self.value_at(pos)

    def list_keys(self) -> list[bytes]:
        """All keys in ascending order."""
        with self.index.iterator(False) as it:
            return [key for key, _pos in it]

    def stat(self) -> Stat:
        """Counts and sizes describing the database."""
        with self.lock:
            return Stat(
                key_num=self.index.size(),
                data_file_num=len(self._all_files()),
                reclaimable_size=self.reclaim_size,
                disk_size=dir_size(self.options.dir_path),
            )

    def fold(self, fn: Callable[[bytes, bytes], bool]) -> None:
        """Call ``fn(key, value)`` in key order until it returns a false value."""
        with self.lock, self.index.iterator(False) as it:
            for key, pos in it:
                if not fn(key, self.value_at(pos)):
                    break

    # ------------------------------------------------------------------ upkeep

    def backup(self, dir_path: str) -> None:
        """Copy the data directory, without its lock file, to ``dir_path``."""
        with self.lock:
            copy_dir(self.options.dir_path, dir_path, [FILE_LOCK_NAME])

    def sync(self) -> None:
        """Flush the active data file to disk."""
        if self.active_file is None:
            return
        with self.lock:
            self.active_file.sync()

    def close(self) -> None:
        """Save the sequence number, close all files and release the lock."""
        if self._closed:
            return
        self._closed = True
        try:
            if self.active_file is None:
                return
            with self.lock:
                with open_seq_no_file(self.options.dir_path) as seq_file:
                    seq_file.write(
                        encode_log_record(
                            LogRecord(key=SEQ_NO_KEY, value=str(self.seq_no).encode("ascii"))
                        )
                    )
                    seq_file.sync()
                self._close_files()
        finally:
            try:
                self.index.close()
            finally:
                self._file_lock.release()

    def merge(self) -> None:
        """Rewrite live records into a merge directory with a hint file.

        The merged files replace the old ones the next time the database opens.
        """
        if self.active_file is None:
            return
        with self.lock:
            if self.is_merging:
                raise MergeInProgressError()
            total = dir_size(self.options.dir_path)
            ratio = self.reclaim_size / total if total else math.inf
            if ratio < self.options.data_file_merge_ratio:
                raise MergeRatioUnreachedError()
            if total - self.reclaim_size >= available_disk_size():
                raise NoEnoughSpaceForMergeError()
            self.is_merging = True
        try:
            with self.lock:
                self.active_file.sync()
                self.older_files[self.active_file.file_id] = self.active_file
                self._set_active_data_file()
                first_unmerged = self.active_file.file_id
                merge_files = sorted(self.older_files.values(), key=lambda f: f.file_id)
            self._write_merge_output(merge_files, first_unmerged)
        finally:
            with self.lock:
                self.is_merging = False

    def _write_merge_output(self, merge_files: list[DataFile], first_unmerged: int) -> None:
        target = merge_path(self.options.dir_path)
        if os.path.exists(target):
            shutil.rmtree(target)
        os.makedirs(target)

        merge_options = replace(
            self.options,
            dir_path=target,
            sync_writes=False,
            index_type=IndexType.BTREE,
            mmap_at_startup=False,
        )
        with DB(merge_options) as merge_db, open_hint_file(target) as hint:
            for data_file in merge_files:
                for record, offset, _size in data_file.records():
                    real_key, _ = parse_log_record_key(record.key)
                    pos = self.index.get(real_key)
                    if pos is None or pos.fid != data_file.file_id or pos.offset != offset:
                        continue
                    merged = LogRecord(
                        key=log_record_key_with_seq(real_key, NON_TRANSACTION_SEQ_NO),
                        value=record.value,
                        type=record.type,
                    )
                    hint.write_hint_record(real_key, merge_db.append_log_record(merged))
            hint.sync()
            merge_db.sync()

        with open_merge_finished_file(target) as finished:
            finished.write(
                encode_log_record(
                    LogRecord(key=MERGE_FINISHED_KEY, value=str(first_unmerged).encode("ascii"))
                )
            )
            finished.sync()

    def __enter__(self) -> "DB":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_db(options: Options) -> DB:
    """Open (creating if needed) the database described by ``options``."""
    return DB(options)