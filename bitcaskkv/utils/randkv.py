"""Key and value generators for tests and benchmarks."""

from __future__ import annotations

import random

LETTERS = b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

_rng = random.Random()


def get_test_key(i: int) -> bytes:
    """A deterministic key for index ``i``."""
    return f"bitcask-go-key-{i:09d}".encode("ascii")


def random_value(n: int) -> bytes:
    """A value with a fixed prefix followed by ``n`` random letters."""
    tail = bytes(_rng.choice(LETTERS) for _ in range(n))
    return b"bitcask-go-value-" + tail