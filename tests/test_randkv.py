from bitcaskkv.utils.randkv import LETTERS, get_test_key, random_value

PREFIX = b"bitcask-go-value-"


def test_get_test_key_format():
    assert get_test_key(1) == b"bitcask-go-key-000000001"


def test_get_test_keys_are_distinct_and_sorted():
    keys = [get_test_key(i) for i in range(10)]
    assert len(set(keys)) == 10
    assert keys == sorted(keys)


def test_random_value_shape():
    for _ in range(10):
        value = random_value(10)
        assert value.startswith(PREFIX)
        tail = value[len(PREFIX):]
        assert len(tail) == 10
        assert all(ch in LETTERS for ch in tail)


def test_random_value_zero_length():
    assert random_value(0) == PREFIX