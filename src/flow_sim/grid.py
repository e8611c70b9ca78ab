"""
Settled cells and the authoritative color store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from .bitregistry import BitRegistry

Color = Tuple[int, int, int]

# Left, right, up, down. Neighbor colors are always reported in this order.
NEIGHBOR_OFFSETS = np.array(
    [
        [-1, 0],
        [1, 0],
        [0, -1],
        [0, 1],
    ],
    dtype=np.int64,
)
NEIGHBOR_STEPS: List[Tuple[int, int]] = [(int(dx), int(dy)) for dx, dy in NEIGHBOR_OFFSETS]


@dataclass(frozen=True)
class Cell:
    """A settled grid location. Identity (equality and hash) is the coordinate alone."""

    x: int
    y: int
    color: Color = field(compare=False)

    @property
    def location(self) -> Tuple[int, int]:
        return self.x, self.y


class SettledGrid:
    """
    Write-once map from coordinate to color.

    Colors live in a ``(width, height, 3)`` uint8 array indexed ``[x, y]``;
    presence lives in a :class:`BitRegistry`. Once stored a cell is never
    removed or recolored, which is what lets observers read single entries
    without locking.
    """

    def __init__(self, width: int, height: int) -> None:
        self.width = int(width)
        self.height = int(height)
        self.registry = BitRegistry(self.width, self.height)
        self.colors = np.zeros((self.width, self.height, 3), dtype=np.uint8)
        self._occupied = 0

    @property
    def capacity(self) -> int:
        return self.width * self.height

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def contains(self, x: int, y: int) -> bool:
        return self.registry.contains(x, y)

    def store(self, cell: Cell) -> bool:
        """
        Stores ``cell`` unless its coordinate is already settled (first writer wins).

        Returns True when the cell was stored. Only the generation worker may call this.
        """
        x, y = cell.x, cell.y
        if not self.in_bounds(x, y):
            raise IndexError(f"({x}, {y}) outside {self.width}x{self.height} grid")
        if self.registry.contains(x, y):
            return False
        # Color first, presence bit second: a reader that sees the bit sees the color.
        self.colors[x, y] = cell.color
        self.registry.set(x, y)
        self._occupied += 1
        return True

    def color_at(self, x: int, y: int) -> Optional[Color]:
        """Settled color of (x, y), or None if it has not been settled yet."""
        if not self.registry.contains(x, y):
            return None
        r, g, b = self.colors[x, y]
        return int(r), int(g), int(b)

    def cell_at(self, x: int, y: int) -> Optional[Cell]:
        color = self.color_at(x, y)
        return None if color is None else Cell(x, y, color)

    def neighbor_colors_of(self, x: int, y: int) -> List[Color]:
        """Colors of the settled 4-neighbors of (x, y), in left-right-up-down order."""
        result = []
        for dx, dy in NEIGHBOR_STEPS:
            nx, ny = x + dx, y + dy
            if self.in_bounds(nx, ny) and self.registry.contains(nx, ny):
                r, g, b = self.colors[nx, ny]
                result.append((int(r), int(g), int(b)))
        return result

    def occupied_count(self) -> int:
        return self._occupied

    def is_full(self) -> bool:
        return self._occupied == self.capacity

    def to_image(self) -> np.ndarray:
        """Copy of the colors as a ``(height, width, 3)`` image array."""
        return np.ascontiguousarray(self.colors.transpose(1, 0, 2))

    def __len__(self) -> int:
        return self._occupied
