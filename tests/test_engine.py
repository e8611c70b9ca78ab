"""
Tests for the FLOW generation engine.
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from flow_sim import (
    Cell,
    ConfigurationError,
    EngineState,
    FlowConfig,
    FlowSimulator,
    InvariantViolation,
)


def run(**params):
    sim = FlowSimulator(FlowConfig(**params))
    try:
        sim.generate()
    finally:
        sim.close()
    return sim


@pytest.mark.parametrize(
    "width,height,n_points",
    [(1, 1, 1), (5, 3, 1), (7, 11, 4), (16, 16, 1), (4, 4, 16)],
)
def test_fills_whole_grid(width, height, n_points):
    sim = run(width=width, height=height, n_points=n_points, randomness=8.0, seed=11)
    total = width * height
    assert sim.settled.occupied_count() == total
    assert sim.settled.registry.count() == total
    assert sim.frontier.is_empty()
    assert sim.state is EngineState.DONE
    assert sim.iterations == total, "one settlement per iteration"
    assert sim.progress_string() == "Done."
    assert len(sim.seeds) == n_points


def test_colors_within_byte_range():
    sim = run(width=20, height=15, n_points=3, randomness=30.0, seed=2)
    image = sim.color_image()
    assert image.shape == (15, 20, 3)
    assert image.dtype == np.uint8
    assert 0 <= image.min() and image.max() <= 255


def test_single_pixel_scenario():
    sim = run(width=1, height=1, n_points=1, randomness=0.0, seed=3)
    assert sim.settled.occupied_count() == 1
    assert sim.progress_string() == "Done."
    assert sim.settled.color_at(0, 0) is not None


def test_line_scenario_copies_seed_color():
    """3x1 grid seeded in the middle with no jitter: both ends copy the seed."""
    sim = run(
        width=3, height=1, n_points=1, randomness=0.0, seed=4, seed_points=[(1, 0)]
    )
    seed_color = sim.settled.color_at(1, 0)
    assert sim.settled.occupied_count() == 3
    assert sim.settled.color_at(0, 0) == seed_color
    assert sim.settled.color_at(2, 0) == seed_color


def test_zero_randomness_matches_rounded_neighbor_mean():
    """Every non-seed cell equals the rounded mean of its neighbors at settlement."""
    sim = FlowSimulator(FlowConfig(width=8, height=6, n_points=2, randomness=0.0, seed=21))
    sim.initialize()
    seeds = set(sim.seeds)
    checked = 0
    while True:
        expected = {}
        for x, y in sim.frontier:
            neighbors = sim.settled.neighbor_colors_of(x, y)
            if neighbors and (x, y) not in seeds:
                mean = np.asarray(neighbors, dtype=np.float64).mean(axis=0)
                expected[(x, y)] = tuple(int(v) for v in np.floor(mean + 0.5))
        if not sim.step():
            break
        target = sim.last_coordinate
        if target in expected:
            assert sim.settled.color_at(*target) == expected[target]
            checked += 1
    sim.close()
    assert checked == 48 - 2


def test_occupancy_grows_by_one_per_step():
    sim = FlowSimulator(FlowConfig(width=9, height=7, n_points=3, randomness=4.0, seed=5))
    assert sim.state is EngineState.IDLE
    previous = 0
    steps = 0
    while sim.step():
        steps += 1
        current = sim.settled.occupied_count()
        assert current == previous + 1
        previous = current
    sim.close()
    assert steps == 63
    assert not sim.step(), "a finished run stays finished"


def test_frontier_never_overlaps_settled():
    sim = FlowSimulator(FlowConfig(width=6, height=6, n_points=2, randomness=1.0, seed=8))
    while sim.step():
        for x, y in sim.frontier:
            assert not sim.settled.contains(x, y)
    sim.close()


def test_seed_colors_are_uniform_across_runs():
    """Statistical check over many single-seed runs."""
    colors = []
    for seed in range(300):
        sim = FlowSimulator(FlowConfig(width=2, height=2, n_points=1, randomness=0.0, seed=seed))
        sim.initialize()
        sim.step()
        colors.append(sim.settled.color_at(*sim.seeds[0]))
        sim.close()
    colors = np.array(colors)
    for channel in range(3):
        assert abs(colors[:, channel].mean() - 127.5) < 15.0


def test_same_seed_same_image():
    a = run(width=12, height=10, n_points=3, randomness=9.0, seed=77)
    b = run(width=12, height=10, n_points=3, randomness=9.0, seed=77)
    c = run(width=12, height=10, n_points=3, randomness=9.0, seed=78)
    assert np.array_equal(a.color_image(), b.color_image())
    assert not np.array_equal(a.color_image(), c.color_image())


def test_explicit_rng_is_used():
    rng_a = np.random.default_rng(99)
    rng_b = np.random.default_rng(99)
    a = FlowSimulator(FlowConfig(width=5, height=5, n_points=2), rng=rng_a)
    b = FlowSimulator(FlowConfig(width=5, height=5, n_points=2, seed=1234), rng=rng_b)
    a.generate()
    b.generate()
    assert np.array_equal(a.color_image(), b.color_image())
    a.close()
    b.close()


@pytest.mark.parametrize(
    "params",
    [
        {"width": 0},
        {"height": -3},
        {"width": 2.5},
        {"n_points": 0},
        {"width": 3, "height": 3, "n_points": 10},
        {"randomness": -0.1},
        {"randomness": 30.5},
        {"randomness": math.nan},
        {"randomness": "lots"},
        {"n_points": 2, "seed_points": [(0, 0)]},
        {"n_points": 1, "seed_points": [(9, 0)]},
        {"n_points": 2, "seed_points": [(1, 1), (1, 1)]},
        {"views": ()},
        {"views": ("normal", "heat")},
        {"views": ("normal", "normal")},
    ],
)
def test_rejects_invalid_configuration(params):
    base = {"width": 4, "height": 4, "n_points": 1, "randomness": 1.0}
    base.update(params)
    with pytest.raises(ConfigurationError):
        FlowSimulator(FlowConfig(**base))


def test_n_points_exceeding_capacity_is_not_clamped():
    with pytest.raises(ConfigurationError, match="exceeds grid capacity"):
        FlowSimulator(FlowConfig(width=2, height=2, n_points=5))


def test_boundary_values_accepted():
    FlowSimulator(FlowConfig(width=2, height=2, n_points=4, randomness=0.0)).close()
    FlowSimulator(FlowConfig(width=2, height=2, n_points=1, randomness=30.0)).close()


def test_resettling_raises_invariant_violation():
    sim = FlowSimulator(FlowConfig(width=3, height=3, n_points=1, seed=6))
    sim.initialize()
    x, y = sim.seeds[0]
    # corrupt the state: settle the queued seed behind the engine's back
    sim.settled.store(Cell(x, y, (0, 0, 0)))
    with pytest.raises(InvariantViolation) as info:
        sim.step()
    sim.close()
    assert info.value.coordinate == (x, y)
    assert info.value.occupied == 1
    assert "occupied=1" in str(info.value)


def test_initialize_only_once():
    sim = FlowSimulator(FlowConfig(width=3, height=3, n_points=1, seed=6))
    sim.initialize()
    with pytest.raises(RuntimeError):
        sim.initialize()
    sim.close()


def test_progress_string_while_running():
    sim = FlowSimulator(FlowConfig(width=10, height=10, n_points=1, seed=1))
    assert sim.progress_string() == "Processed 000 / 100 pixels... (000.00%)"
    for _ in range(25):
        sim.step()
    assert sim.progress_string() == "Processed 025 / 100 pixels... (025.00%)"
    sim.generate()
    sim.close()
    assert sim.progress_string() == "Done."


def test_progress_sink_receives_updates():
    updates = []
    sim = FlowSimulator(FlowConfig(width=40, height=40, n_points=2, seed=3))
    sim.generate(progress=lambda *update: updates.append(update), interval=0.001)
    sim.close()
    assert updates, "final update is always emitted"
    assert updates[-1] == (1600, 1600, "100.00")
    settled = [u[0] for u in updates]
    assert settled == sorted(settled)


def test_worker_thread_run():
    sim = FlowSimulator(FlowConfig(width=30, height=20, n_points=3, seed=10))
    thread = sim.start()
    result = sim.join()
    sim.close()
    assert not thread.is_alive()
    assert result.meta["done"]
    assert result.meta["occupied"] == 600
    assert result.colors.shape == (20, 30, 3)
    with pytest.raises(RuntimeError):
        sim.start()


def test_verbose_output(capsys):
    sim = FlowSimulator(FlowConfig(width=4, height=4, n_points=1, seed=0, verbose=True))
    sim.generate()
    sim.close()
    out = capsys.readouterr().out
    assert "Creating FLOW image: 4x4, 1 starting points" in out
    assert "Started at" in out
    assert "Generated successfully!" in out


def test_result_meta():
    sim = run(width=6, height=4, n_points=2, randomness=3.0, seed=12)
    result = sim.result()
    assert result.meta["iterations"] == 24
    assert result.meta["seeds"].shape == (2, 2)
    assert result.meta["elapsed"] >= 0.0
    assert np.array_equal(result.colors, sim.color_image())
