import os

import pytest

from bitcaskkv.data.log_record import LogRecordPos
from bitcaskkv.index.art import AdaptiveRadixTree
from bitcaskkv.index.bptree import BPTREE_INDEX_FILE_NAME, BPlusTree
from bitcaskkv.index.btree import BTree
from bitcaskkv.index.factory import new_indexer
from bitcaskkv.options import IndexType


@pytest.mark.parametrize(
    "index_type, cls",
    [(IndexType.BTREE, BTree), (IndexType.ART, AdaptiveRadixTree)],
)
def test_in_memory_indexers(tmp_path, index_type, cls):
    index = new_indexer(index_type, str(tmp_path), False)
    pos = LogRecordPos(1, 2, 3)
    index.put(b"k", pos)
    assert isinstance(index, cls)
    assert index.get(b"k") == pos


def test_bplus_tree_indexer_creates_file(tmp_path):
    index = new_indexer(IndexType.BPLUS_TREE, str(tmp_path), False)
    try:
        index.put(b"k", LogRecordPos(1, 2, 3))
        assert isinstance(index, BPlusTree)
        assert index.get(b"k") == LogRecordPos(1, 2, 3)
        assert os.path.exists(tmp_path / BPTREE_INDEX_FILE_NAME)
    finally:
        index.close()


def test_unknown_index_type(tmp_path):
    with pytest.raises(ValueError):
        new_indexer(99, str(tmp_path), False)