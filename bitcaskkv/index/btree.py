"""Ordered in-memory index backed by a sorted dictionary."""

from __future__ import annotations

import threading

from sortedcontainers import SortedDict

from ..data.log_record import LogRecordPos
from .base import Indexer, Item, SnapshotIterator


class BTree(Indexer):
    """In-memory ordered index of keys to record positions."""

    def __init__(self) -> None:
        self._tree: SortedDict = SortedDict()
        self._lock = threading.RLock()

    def put(self, key: bytes, pos: LogRecordPos) -> LogRecordPos | None:
        key = bytes(key or b"")
        with self._lock:
            old = self._tree.get(key)
            self._tree[key] = pos
        return old

    def get(self, key: bytes) -> LogRecordPos | None:
        with self._lock:
            return self._tree.get(bytes(key or b""))

    def delete(self, key: bytes) -> tuple[LogRecordPos | None, bool]:
        key = bytes(key or b"")
        with self._lock:
            if key not in self._tree:
                return None, False
            return self._tree.pop(key), True

    def size(self) -> int:
        with self._lock:
            return len(self._tree)

    def iterator(self, reverse: bool = False) -> SnapshotIterator:
        with self._lock:
            items = [Item(key, pos) for key, pos in self._tree.items()]
        if reverse:
            items.reverse()
        return SnapshotIterator(items, reverse)

    def close(self) -> None:
        pass