"""Substring search over byte buffers using the "Not So Naive" algorithm."""

from __future__ import annotations

from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


def memmem(haystack: BytesLike, needle: BytesLike) -> int:
    """Return the offset of the first ``needle`` in ``haystack``, or -1."""
    y = bytes(haystack)
    x = bytes(needle)
    n, m = len(y), len(x)
    if m > n or not m or not n:
        return -1
    if m == 1:
        return y.find(x)

    k, step = (2, 1) if x[0] == x[1] else (1, 2)
    tail = x[2:]
    j = 0
    while j <= n - m:
        if x[1] != y[j + 1]:
            j += k
        else:
            if y[j + 2 : j + m] == tail and x[0] == y[j]:
                return j
            j += step
    return -1