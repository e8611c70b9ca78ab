"""
Color diffusion rule.

A cell with no settled neighbors gets an independent uniform color. Any other
cell gets the per-channel mean of its settled neighbors plus uniform jitter in
``[-randomness, +randomness]``, clamped to [0, 255] and rounded.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

Color = Tuple[int, int, int]


def round_half_up(values: np.ndarray) -> np.ndarray:
    """
    Rounds half away from zero for non-negative input (np.rint rounds half
    to even).
    """
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def random_color(rng: np.random.Generator) -> Color:
    """Each channel drawn independently and uniformly from [0, 255]."""
    r, g, b = rng.integers(0, 256, size=3)
    return int(r), int(g), int(b)


def mix_colors(
    neighbor_colors: Sequence[Color], randomness: float, rng: np.random.Generator
) -> Color:
    """Mean of ``neighbor_colors`` per channel plus jitter; requires at least one color."""
    channels = np.asarray(neighbor_colors, dtype=np.float64).reshape(-1, 3)
    mean = channels.mean(axis=0)
    if randomness > 0:
        mean = mean + rng.uniform(-randomness, randomness, size=3)
    mixed = round_half_up(np.clip(mean, 0.0, 255.0))
    return int(mixed[0]), int(mixed[1]), int(mixed[2])


def color_for(
    neighbor_colors: Sequence[Color], randomness: float, rng: np.random.Generator
) -> Color:
    """Color of a cell given its settled neighbors' colors (0 to 4 of them)."""
    if len(neighbor_colors) == 0:
        return random_color(rng)
    return mix_colors(neighbor_colors, randomness, rng)
