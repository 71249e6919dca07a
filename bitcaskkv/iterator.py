"""User-facing iterator over keys and values."""

from __future__ import annotations

from collections.abc import Iterator

from .db import DB
from .options import IteratorOptions


class DBIterator:
    """Cursor over the database's keys, optionally reversed or limited to a prefix."""

    def __init__(self, db: DB, options: IteratorOptions | None = None) -> None:
        self.options = options if options is not None else IteratorOptions()
        self._db = db
        self._index_iter = db.index.iterator(self.options.reverse)
        self._skip_to_next()

    def _skip_to_next(self) -> None:
        prefix = bytes(self.options.prefix or b"")
        if not prefix:
            return
        while self._index_iter.valid() and not self._index_iter.key().startswith(prefix):
            self._index_iter.next()

    def rewind(self) -> None:
        self._index_iter.rewind()
        self._skip_to_next()

    def seek(self, key: bytes) -> None:
        self._index_iter.seek(key)
        self._skip_to_next()

    def next(self) -> None:
        self._index_iter.next()
        self._skip_to_next()

    def valid(self) -> bool:
        return self._index_iter.valid()

    def key(self) -> bytes:
        return self._index_iter.key()

    def value(self) -> bytes:
        return self._db.value_at(self._index_iter.value())

    def close(self) -> None:
        self._index_iter.close()

    def __iter__(self) -> Iterator[tuple[bytes, bytes]]:
        """Yield (key, value) pairs from the start."""
        self.rewind()
        while self.valid():
            yield self.key(), self.value()
            self.next()

    def __enter__(self) -> "DBIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()