"""Common index interfaces and the snapshot iterator shared by in-memory indexes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from ..data.log_record import LogRecordPos


@dataclass
class Item:
    """A key together with the position of its latest record."""

    key: bytes
    pos: LogRecordPos | None = None

    def __lt__(self, other: "Item") -> bool:
        return self.key < other.key


class IndexIterator(ABC):
    """Cursor over the keys of an index."""

    @abstractmethod
    def rewind(self) -> None:
        """Go back to the first key."""

    @abstractmethod
    def seek(self, key: bytes) -> None:
        """Move to the first key at or after ``key`` in iteration order."""

    @abstractmethod
    def next(self) -> None:
        """Advance to the next key."""

    @abstractmethod
    def valid(self) -> bool:
        """Whether the cursor points at a key."""

    @abstractmethod
    def key(self) -> bytes:
        """Key at the cursor."""

    @abstractmethod
    def value(self) -> LogRecordPos:
        """Position at the cursor."""

    @abstractmethod
    def close(self) -> None:
        """Release the iterator's resources."""

    def __iter__(self) -> Iterator[tuple[bytes, LogRecordPos]]:
        self.rewind()
        while self.valid():
            yield self.key(), self.value()
            self.next()

    def __enter__(self) -> "IndexIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Indexer(ABC):
    """Mapping from keys to record positions."""

    @abstractmethod
    def put(self, key: bytes, pos: LogRecordPos) -> LogRecordPos | None:
        """Store a position; returns the position it replaced, if any."""

    @abstractmethod
    def get(self, key: bytes) -> LogRecordPos | None:
        """Position stored for a key, or None."""

    @abstractmethod
    def delete(self, key: bytes) -> tuple[LogRecordPos | None, bool]:
        """Remove a key; returns (old position, whether it existed)."""

    @abstractmethod
    def size(self) -> int:
        """Number of keys held."""

    @abstractmethod
    def iterator(self, reverse: bool = False) -> IndexIterator:
        """A cursor over the keys, ascending unless ``reverse``."""

    @abstractmethod
    def close(self) -> None:
        """Release the index."""

    def __len__(self) -> int:
        return self.size()

    def __enter__(self) -> "Indexer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _search(n: int, pred: Callable[[int], bool]) -> int:
    """Smallest index in [0, n) for which ``pred`` holds, or n."""
    lo, hi = 0, n
    while lo < hi:
        mid = (lo + hi) // 2
        if pred(mid):
            hi = mid
        else:
            lo = mid + 1
    return lo


class SnapshotIterator(IndexIterator):
    """Iterator over a copy of the items taken when it was created.

    The items must already be in iteration order: ascending, or descending
    when ``reverse`` is set.
    """

    def __init__(self, items: Iterable[Item], reverse: bool = False) -> None:
        self._items = list(items)
        self._reverse = reverse
        self._index = 0

    def rewind(self) -> None:
        self._index = 0

    def seek(self, key: bytes) -> None:
        key = bytes(key or b"")
        items = self._items
        if self._reverse:
            self._index = _search(len(items), lambda i: items[i].key <= key)
        else:
            self._index = _search(len(items), lambda i: items[i].key >= key)

    def next(self) -> None:
        self._index += 1

    def valid(self) -> bool:
        return self._index < len(self._items)

    def key(self) -> bytes:
        return self._items[self._index].key

    def value(self) -> LogRecordPos:
        return self._items[self._index].pos

    def close(self) -> None:
        self._items = []