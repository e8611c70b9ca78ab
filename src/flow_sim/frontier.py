"""
The frontier: grid locations queued for settlement.
"""

from __future__ import annotations

from typing import Iterator, Optional, Tuple

import numpy as np

from .bitregistry import BitRegistry
from .grid import SettledGrid


class Frontier:
    """
    Set of unsettled candidate coordinates with O(1) insert, remove, contains
    and uniform random pick.

    Members are packed densely in ``xs``/``ys`` so a pick is a random offset
    into the live range; removal swaps the last member into the hole.
    ``slots`` maps a linearised coordinate to its position in the packed
    arrays. Membership itself is answered by a :class:`BitRegistry`.
    """

    def __init__(self, settled: SettledGrid, rng: np.random.Generator) -> None:
        self.settled = settled
        self.width = settled.width
        self.height = settled.height
        self.rng = rng
        self.registry = BitRegistry(self.width, self.height)

        capacity = self.width * self.height
        self.xs = np.zeros(capacity, dtype=np.int64)
        self.ys = np.zeros(capacity, dtype=np.int64)
        self.slots = np.full(capacity, -1, dtype=np.int64)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        return self._size == 0

    def contains(self, x: int, y: int) -> bool:
        return self.registry.contains(x, y)

    def insert(self, x: int, y: int) -> bool:
        """
        Adds (x, y) unless it is already queued or already settled.

        Returns True if the coordinate was newly added.
        """
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x}, {y}) outside {self.width}x{self.height} grid")
        if self.registry.contains(x, y) or self.settled.contains(x, y):
            return False
        pos = self._size
        self.xs[pos] = x
        self.ys[pos] = y
        self.slots[x * self.height + y] = pos
        self._size = pos + 1
        self.registry.set(x, y)
        return True

    def pick_random(self) -> Optional[Tuple[int, int]]:
        """Uniformly picks one queued coordinate without removing it. None when empty."""
        if self._size == 0:
            return None
        pos = int(self.rng.integers(self._size))
        return int(self.xs[pos]), int(self.ys[pos])

    def remove(self, x: int, y: int) -> bool:
        """Removes (x, y) if present. Returns True if it was present."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x}, {y}) outside {self.width}x{self.height} grid")
        if not self.registry.contains(x, y):
            return False
        key = x * self.height + y
        pos = self.slots[key]
        last = self._size - 1
        if pos != last:
            lx = self.xs[last]
            ly = self.ys[last]
            self.xs[pos] = lx
            self.ys[pos] = ly
            self.slots[lx * self.height + ly] = pos
        self.slots[key] = -1
        self._size = last
        self.registry.clear(x, y)
        return True

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        for pos in range(self._size):
            yield int(self.xs[pos]), int(self.ys[pos])
