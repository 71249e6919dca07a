"""Textual encoding of float scores."""

from __future__ import annotations

import math
from decimal import Decimal


def float_from_bytes(val: bytes) -> float:
    """Parse a float written as text; unparsable input yields 0.0."""
    try:
        return float(val.decode("ascii"))
    except (UnicodeDecodeError, ValueError):
        return 0.0


def float_to_bytes(val: float) -> bytes:
    """Shortest fixed-point text for a float, without an exponent."""
    if math.isnan(val):
        return b"NaN"
    if math.isinf(val):
        return b"+Inf" if val > 0 else b"-Inf"
    text = format(Decimal(repr(float(val))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text.encode("ascii")