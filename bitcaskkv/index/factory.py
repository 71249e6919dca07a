"""Construction of an index by kind."""

from __future__ import annotations

from ..options import IndexType
from .art import AdaptiveRadixTree
from .base import Indexer
from .bptree import BPlusTree
from .btree import BTree


def new_indexer(index_type: IndexType, dir_path: str, sync_writes: bool) -> Indexer:
    """Create the index of the given kind."""
    if index_type == IndexType.BTREE:
        return BTree()
    if index_type == IndexType.ART:
        return AdaptiveRadixTree()
    if index_type == IndexType.BPLUS_TREE:
        return BPlusTree(dir_path, sync_writes)
    raise ValueError(f"unsupported index type: {index_type!r}")