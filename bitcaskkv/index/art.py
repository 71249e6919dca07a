"""Radix-tree index: keys share storage for common prefixes."""

from __future__ import annotations

import threading
from collections.abc import Iterator

from ..data.log_record import LogRecordPos
from .base import Indexer, Item, SnapshotIterator


class _Node:
    __slots__ = ("children", "pos", "has_value")

    def __init__(self) -> None:
        self.children: dict[int, _Node] = {}
        self.pos: LogRecordPos | None = None
        self.has_value = False


class AdaptiveRadixTree(Indexer):
    """In-memory radix tree of keys to record positions."""

    def __init__(self) -> None:
        self._root = _Node()
        self._size = 0
        self._lock = threading.RLock()

    def _find(self, key: bytes) -> _Node | None:
        node = self._root
        for byte in key:
            node = node.children.get(byte)
            if node is None:
                return None
        return node

    def put(self, key: bytes, pos: LogRecordPos) -> LogRecordPos | None:
        key = bytes(key or b"")
        with self._lock:
            node = self._root
            for byte in key:
                node = node.children.setdefault(byte, _Node())
            old = node.pos if node.has_value else None
            if not node.has_value:
                self._size += 1
            node.pos = pos
            node.has_value = True
        return old

    def get(self, key: bytes) -> LogRecordPos | None:
        with self._lock:
            node = self._find(bytes(key or b""))
            if node is None or not node.has_value:
                return None
            return node.pos

    def delete(self, key: bytes) -> tuple[LogRecordPos | None, bool]:
        key = bytes(key or b"")
        with self._lock:
            path: list[tuple[_Node, int]] = []
            node = self._root
            for byte in key:
                child = node.children.get(byte)
                if child is None:
                    return None, False
                path.append((node, byte))
                node = child
            if not node.has_value:
                return None, False
            old = node.pos
            node.pos = None
            node.has_value = False
            self._size -= 1
            for parent, byte in reversed(path):
                child = parent.children[byte]
                if child.has_value or child.children:
                    break
                del parent.children[byte]
            return old, True

    def size(self) -> int:
        with self._lock:
            return self._size

    def _walk(self) -> Iterator[tuple[bytes, LogRecordPos]]:
        """Yield every key and position in ascending key order."""
        stack = [(b"", self._root)]
        while stack:
            prefix, node = stack.pop()
            if node.has_value:
                yield prefix, node.pos
            for byte in sorted(node.children, reverse=True):
                stack.append((prefix + bytes((byte,)), node.children[byte]))

    def iterator(self, reverse: bool = False) -> SnapshotIterator:
        with self._lock:
            items = [Item(key, pos) for key, pos in self._walk()]
        if reverse:
            items.reverse()
        return SnapshotIterator(items, reverse)

    def close(self) -> None:
        pass