"""Persistent ordered index stored in an on-disk SQLite table."""

from __future__ import annotations

import os
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from ..data.log_record import LogRecordPos, decode_log_record_pos, encode_log_record_pos
from .base import IndexIterator, Indexer

BPTREE_INDEX_FILE_NAME = "bptree-index"
_TABLE = "bitcask_index"


class BPlusTree(Indexer):
    """Index kept on disk, so it need not be rebuilt from data files."""

    def __init__(self, dir_path: str, sync_writes: bool = False) -> None:
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            os.path.join(dir_path, BPTREE_INDEX_FILE_NAME),
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.execute(f"PRAGMA synchronous = {'FULL' if sync_writes else 'OFF'}")
        self._conn.execute(
            f"CREATE TABLE IF NOT EXISTS {_TABLE} "
            "(key BLOB PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"
        )

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def _one(self, sql: str, params: tuple = ()) -> tuple | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def put(self, key: bytes, pos: LogRecordPos) -> LogRecordPos | None:
        key = bytes(key or b"")
        if not key:
            raise ValueError("key required")
        with self._transaction() as conn:
            row = conn.execute(f"SELECT value FROM {_TABLE} WHERE key = ?", (key,)).fetchone()
            conn.execute(
                f"INSERT OR REPLACE INTO {_TABLE} (key, value) VALUES (?, ?)",
                (key, encode_log_record_pos(pos)),
            )
        if row is None or not row[0]:
            return None
        return decode_log_record_pos(row[0])

    def get(self, key: bytes) -> LogRecordPos | None:
        row = self._one(f"SELECT value FROM {_TABLE} WHERE key = ?", (bytes(key or b""),))
        if row is None or not row[0]:
            return None
        return decode_log_record_pos(row[0])

    def delete(self, key: bytes) -> tuple[LogRecordPos | None, bool]:
        key = bytes(key or b"")
        with self._transaction() as conn:
            row = conn.execute(f"SELECT value FROM {_TABLE} WHERE key = ?", (key,)).fetchone()
            if row is not None and row[0]:
                conn.execute(f"DELETE FROM {_TABLE} WHERE key = ?", (key,))
        if row is None or not row[0]:
            return None, False
        return decode_log_record_pos(row[0]), True

    def size(self) -> int:
        return self._one(f"SELECT COUNT(*) FROM {_TABLE}")[0]

    def iterator(self, reverse: bool = False) -> "BPlusTreeIterator":
        return BPlusTreeIterator(self, reverse)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class BPlusTreeIterator(IndexIterator):
    """Cursor over the on-disk index."""

    def __init__(self, tree: BPlusTree, reverse: bool = False) -> None:
        self._tree = tree
        self._reverse = reverse
        self._key = b""
        self._value = b""
        self.rewind()

    def _load(self, row: tuple | None) -> None:
        if row is None:
            self._key, self._value = b"", b""
        else:
            self._key, self._value = bytes(row[0]), bytes(row[1])

    def rewind(self) -> None:
        order = "DESC" if self._reverse else "ASC"
        self._load(self._tree._one(f"SELECT key, value FROM {_TABLE} ORDER BY key {order} LIMIT 1"))

    def seek(self, key: bytes) -> None:
        self._load(
            self._tree._one(
                f"SELECT key, value FROM {_TABLE} WHERE key >= ? ORDER BY key ASC LIMIT 1",
                (bytes(key or b""),),
            )
        )

    def next(self) -> None:
        if not self.valid():
            return
        if self._reverse:
            sql = f"SELECT key, value FROM {_TABLE} WHERE key < ? ORDER BY key DESC LIMIT 1"
        else:
            sql = f"SELECT key, value FROM {_TABLE} WHERE key > ? ORDER BY key ASC LIMIT 1"
        self._load(self._tree._one(sql, (self._key,)))

    def valid(self) -> bool:
        return len(self._key) != 0

    def key(self) -> bytes:
        return self._key

    def value(self) -> LogRecordPos:
        return decode_log_record_pos(self._value)

    def close(self) -> None:
        self._key, self._value = b"", b""