from bitcaskkv.data.log_record import LogRecordPos
from bitcaskkv.index.art import AdaptiveRadixTree


def test_put():
    art = AdaptiveRadixTree()
    assert art.put(b"key-1", LogRecordPos(fid=1, offset=12)) is None
    assert art.put(b"key-2", LogRecordPos(fid=1, offset=12)) is None
    assert art.put(b"key-3", LogRecordPos(fid=1, offset=12)) is None

    old = art.put(b"key-3", LogRecordPos(fid=99, offset=88))
    assert old.fid == 1
    assert old.offset == 12


def test_get():
    art = AdaptiveRadixTree()
    art.put(b"key-1", LogRecordPos(fid=1, offset=12))
    assert art.get(b"key-1") == LogRecordPos(fid=1, offset=12)
    assert art.get(b"not exist") is None

    art.put(b"key-1", LogRecordPos(fid=1123, offset=990))
    assert art.get(b"key-1") == LogRecordPos(fid=1123, offset=990)


def test_get_prefix_without_value():
    art = AdaptiveRadixTree()
    art.put(b"key-1", LogRecordPos(fid=1, offset=12))
    assert art.get(b"key") is None


def test_delete():
    art = AdaptiveRadixTree()
    assert art.delete(b"not exist") == (None, False)

    art.put(b"key-1", LogRecordPos(fid=1, offset=12))
    old, ok = art.delete(b"key-1")
    assert ok is True
    assert old.fid == 1
    assert old.offset == 12
    assert art.get(b"key-1") is None
    assert art.size() == 0


def test_delete_keeps_longer_keys():
    art = AdaptiveRadixTree()
    art.put(b"ab", LogRecordPos(1, 1))
    art.put(b"abc", LogRecordPos(1, 2))
    assert art.delete(b"ab")[1] is True
    assert art.get(b"abc") == LogRecordPos(1, 2)
    assert art.delete(b"ab") == (None, False)


def test_size():
    art = AdaptiveRadixTree()
    assert art.size() == 0
    art.put(b"key-1", LogRecordPos(fid=1, offset=12))
    art.put(b"key-2", LogRecordPos(fid=1, offset=12))
    art.put(b"key-1", LogRecordPos(fid=1, offset=12))
    assert art.size() == 2


def test_iterator():
    art = AdaptiveRadixTree()
    for key in (b"ccde", b"adse", b"bbde", b"bade"):
        art.put(key, LogRecordPos(fid=1, offset=12))

    backward = list(art.iterator(True))
    assert [key for key, _ in backward] == [b"ccde", b"bbde", b"bade", b"adse"]
    assert all(pos == LogRecordPos(fid=1, offset=12) for _, pos in backward)

    forward = [key for key, _ in art.iterator(False)]
    assert forward == [b"adse", b"bade", b"bbde", b"ccde"]


def test_iterator_prefix_order_and_seek():
    art = AdaptiveRadixTree()
    for key in (b"abc", b"ab", b"b"):
        art.put(key, LogRecordPos(1, 0))
    assert [key for key, _ in art.iterator(False)] == [b"ab", b"abc", b"b"]

    it = art.iterator(False)
    it.seek(b"abd")
    assert it.key() == b"b"