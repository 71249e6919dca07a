"""Configuration for the database, write batches and iterators."""

from __future__ import annotations

import enum
import tempfile
from dataclasses import dataclass, field


class IndexType(enum.IntEnum):
    """Kind of in-memory (or on-disk) index used for keys."""

    BTREE = 1
    ART = 2
    BPLUS_TREE = 3


@dataclass
class Options:
    """Settings for opening a database."""

    dir_path: str = field(default_factory=tempfile.gettempdir)
    data_file_size: int = 256 * 1024 * 1024
    sync_writes: bool = False
    bytes_per_sync: int = 0
    index_type: IndexType = IndexType.BTREE
    mmap_at_startup: bool = True
    data_file_merge_ratio: float = 0.5

    def validate(self) -> "Options":
        """Check the settings, raising ValueError; returns the options."""
        if not self.dir_path:
            raise ValueError("database dir_path is empty")
        if self.data_file_size <= 0:
            raise ValueError("database data_file_size must be greater than 0")
        if not 0 <= self.data_file_merge_ratio <= 1:
            raise ValueError("database data_file_merge_ratio must be between 0 and 1")
        return self


@dataclass
class WriteBatchOptions:
    """Settings for an atomic write batch."""

    max_batch_num: int = 10000
    sync_writes: bool = True


@dataclass
class IteratorOptions:
    """Settings for a key iterator."""

    prefix: bytes = b""
    reverse: bool = False