"""
Bit-packed presence index over a fixed width x height grid.

Every grid location owns one bit. Locations are linearised column-major as
``x * height + y``; bit ``id & 63`` of word ``id >> 6`` holds the state.
The read/write kernels are compiled with ``@numba.njit`` and skip bounds
checking, so callers must hand in coordinates inside the grid.
"""

from __future__ import annotations

import numpy as np
from numba import njit

WORD_BITS = 64
WORD_SHIFT = 6
WORD_MASK = WORD_BITS - 1


###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def _get_bit(buckets: np.ndarray, height: int, x: int, y: int) -> bool:
    """Reads the presence bit of (x, y)."""
    target = x * height + y
    word = buckets[target >> WORD_SHIFT]
    return ((word >> (target & WORD_MASK)) & 1) == 1


@njit(cache=True)
def _put_bit(buckets: np.ndarray, height: int, x: int, y: int, state: bool) -> None:
    """
    Sets (state=True) or clears (state=False) the presence bit of (x, y).
    Words are signed 64-bit, so bit 63 is the sign bit; shifts are still exact.
    """
    target = x * height + y
    index = target >> WORD_SHIFT
    mask = np.int64(1) << np.int64(target & WORD_MASK)
    if state:
        buckets[index] |= mask
    else:
        buckets[index] &= ~mask


@njit(cache=True)
def _count_bits(buckets: np.ndarray) -> int:
    """Population count over all words (Kernighan's method per word)."""
    total = 0
    for i in range(buckets.shape[0]):
        word = buckets[i]
        while word != 0:
            word &= word - 1
            total += 1
    return total


###############################################################################
# Wrapper
###############################################################################


class BitRegistry:
    """
    O(1) set/clear/contains for grid coordinates.

    Allocates ``ceil(width * height / 64)`` words once; no allocation happens
    afterwards. One writer and any number of readers is fine as a numpy word
    store is a single write under the GIL; multiple writers need a lock.
    """

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid must be at least 1x1, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        n_words = (self.width * self.height + WORD_MASK) >> WORD_SHIFT
        self.buckets = np.zeros(n_words, dtype=np.int64)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def contains(self, x: int, y: int) -> bool:
        return _get_bit(self.buckets, self.height, x, y)

    def set(self, x: int, y: int) -> None:
        _put_bit(self.buckets, self.height, x, y, True)

    def clear(self, x: int, y: int) -> None:
        _put_bit(self.buckets, self.height, x, y, False)

    def count(self) -> int:
        """Number of set bits. O(words), meant for checks rather than the hot loop."""
        return int(_count_bits(self.buckets))

    def __contains__(self, coord) -> bool:
        x, y = coord
        return self.contains(x, y)

    def __repr__(self) -> str:
        return f"BitRegistry({self.width}x{self.height}, words={self.buckets.size})"
