"""
FLOW image generator.

Grows a connected region outward from random seed points. Each iteration picks
a random frontier cell, settles it with a color diffused from its settled
neighbors, and queues its unsettled neighbors. A grid of N cells completes in
exactly N iterations.

States: IDLE -> INITIALIZING -> RUNNING -> DONE.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from . import utils
from .diffusion import color_for
from .errors import ConfigurationError, InvariantViolation
from .frontier import Frontier
from .grid import NEIGHBOR_STEPS, Cell, Color, SettledGrid
from .progress import ProgressPrinter, ProgressReporter, ProgressSink
from .render import BLUE, RED, RenderViewRegistry

MAX_RANDOMNESS = 30.0
DEFAULT_VIEWS = ("normal", "type")


class EngineState(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    DONE = "done"


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


@dataclass
class FlowConfig:
    """Parameters of a single FLOW run."""

    width: int = 256
    height: int = 256
    n_points: int = 3
    randomness: float = 5.0
    seed: Optional[int] = None
    seed_points: Optional[Sequence[Tuple[int, int]]] = None
    views: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_VIEWS)
    verbose: bool = False

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "FlowConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ConfigurationError(f"Unknown FLOW parameter(s): {', '.join(unknown)}")
        values = dict(params)
        if values.get("seed_points") is not None:
            values["seed_points"] = [tuple(p) for p in values["seed_points"]]
        if values.get("views") is not None:
            values["views"] = tuple(values["views"])
        return cls(**values)

    @property
    def capacity(self) -> int:
        return self.width * self.height

    def validate(self) -> None:
        """Raises ConfigurationError on the first invalid parameter."""
        for name in ("width", "height", "n_points"):
            value = getattr(self, name)
            if not _is_int(value):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(
                f"Image dimensions must be positive, got {self.width}x{self.height}"
            )
        if self.n_points < 1:
            raise ConfigurationError(f"n_points must be at least 1, got {self.n_points}")
        if self.n_points > self.capacity:
            raise ConfigurationError(
                f"n_points={self.n_points} exceeds grid capacity {self.capacity}"
            )

        try:
            randomness = float(self.randomness)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"randomness must be a number, got {self.randomness!r}"
            ) from None
        if math.isnan(randomness) or not 0.0 <= randomness <= MAX_RANDOMNESS:
            raise ConfigurationError(
                f"randomness must lie in [0, {MAX_RANDOMNESS:g}], got {self.randomness}"
            )

        if self.seed_points is not None:
            points = [tuple(p) for p in self.seed_points]
            if len(points) != self.n_points:
                raise ConfigurationError(
                    f"Got {len(points)} seed points for n_points={self.n_points}"
                )
            for point in points:
                if len(point) != 2 or not all(_is_int(v) for v in point):
                    raise ConfigurationError(f"Seed point {point!r} is not an (x, y) pair")
                x, y = point
                if not (0 <= x < self.width and 0 <= y < self.height):
                    raise ConfigurationError(
                        f"Seed point {point} outside {self.width}x{self.height} grid"
                    )
            if len(set(points)) != len(points):
                raise ConfigurationError("Seed points must be distinct")

        if not self.views:
            raise ConfigurationError("At least one render view is required")
        unknown = [v for v in self.views if v not in VIEW_KINDS]
        if unknown:
            raise ConfigurationError(
                f"Unknown render view(s) {unknown}, expected some of {sorted(VIEW_KINDS)}"
            )
        if len(set(self.views)) != len(self.views):
            raise ConfigurationError("Render views must not repeat")


class FlowSimulator:
    """
    Owns the frontier, the settled grid, the render views and the random
    source of one run.

    Only the thread running :meth:`generate` (or :meth:`step`) mutates state.
    :meth:`progress_string`, :meth:`snapshot` and :meth:`activate_view` are
    safe to call from other threads while it runs.
    """

    def __init__(
        self,
        config: FlowConfig | None = None,
        *,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.config = config or FlowConfig()
        self.config.validate()

        self.width = self.config.width
        self.height = self.config.height
        self.randomness = float(self.config.randomness)
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)

        self.settled = SettledGrid(self.width, self.height)
        self.frontier = Frontier(self.settled, self.rng)
        self.reporter = ProgressReporter(self.settled, self.is_done)
        self.views = self._build_views()

        self.state = EngineState.IDLE
        self.iterations = 0
        self.last_coordinate: Optional[Tuple[int, int]] = None
        self.seeds: List[Tuple[int, int]] = []
        self._seed_colors: Dict[int, Color] = {}

        self.started_at: Optional[datetime] = None
        self.elapsed: Optional[float] = None
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------ views
    def _normal_color(self, x: int, y: int) -> Optional[Color]:
        return self.settled.color_at(x, y)

    def _type_color(self, x: int, y: int) -> Optional[Color]:
        if self.frontier.contains(x, y):
            return RED
        if self.settled.contains(x, y):
            return BLUE
        return None

    def _build_views(self) -> RenderViewRegistry:
        registry = RenderViewRegistry(self.width, self.height)
        for name in self.config.views:
            registry.add_view(name, getattr(self, VIEW_KINDS[name]))
        return registry

    def activate_view(self, name: str):
        """Switches the live render target; returns the catch-up future (or None)."""
        return self.views.activate(name)

    def snapshot(self, name: Optional[str] = None) -> np.ndarray:
        return self.views.snapshot(name or self.views.active)

    # ------------------------------------------------------------------ state
    def is_done(self) -> bool:
        return self.state is EngineState.DONE

    def progress_string(self) -> str:
        return self.reporter.progress_string()

    def _violation(self, message: str) -> InvariantViolation:
        return InvariantViolation(
            message,
            coordinate=self.last_coordinate,
            occupied=self.settled.occupied_count(),
        )

    def _pick_seed_ids(self) -> np.ndarray:
        if self.config.seed_points is not None:
            return np.array(
                [x * self.height + y for x, y in self.config.seed_points], dtype=np.int64
            )
        return self.rng.choice(self.settled.capacity, size=self.config.n_points, replace=False)

    def initialize(self) -> None:
        """Queues the seed points, each with an independent random color."""
        if self.state is not EngineState.IDLE:
            raise RuntimeError(f"Cannot initialize from state {self.state.value}")
        self.state = EngineState.INITIALIZING
        for key in self._pick_seed_ids():
            key = int(key)
            x, y = divmod(key, self.height)
            self._seed_colors[key] = color_for((), self.randomness, self.rng)
            self.frontier.insert(x, y)
            self.seeds.append((x, y))
            self.views.render(x, y)
        self.state = EngineState.RUNNING

    def _finish(self) -> None:
        if not self.settled.is_full():
            raise self._violation("Frontier drained before the grid was filled")
        self.state = EngineState.DONE

    def step(self) -> bool:
        """Settles one cell. Returns False once the run is done."""
        if self.state is EngineState.IDLE:
            self.initialize()
        if self.state is EngineState.DONE:
            return False

        target = self.frontier.pick_random()
        if target is None:
            if not self.frontier.is_empty():
                raise self._violation("Frontier pick came back empty")
            self._finish()
            return False

        x, y = target
        self.last_coordinate = target
        color = self._seed_colors.pop(x * self.height + y, None)
        if color is None:
            color = color_for(
                self.settled.neighbor_colors_of(x, y), self.randomness, self.rng
            )
        if not self.settled.store(Cell(x, y, color)):
            raise self._violation("Coordinate was already settled")
        self.frontier.remove(x, y)
        self.views.render(x, y)

        for dx, dy in NEIGHBOR_STEPS:
            nx, ny = x + dx, y + dy
            if 0 <= nx < self.width and 0 <= ny < self.height:
                if self.frontier.insert(nx, ny):
                    self.views.render(nx, ny)

        self.iterations += 1
        if self.frontier.is_empty():
            self._finish()
        return True

    # ------------------------------------------------------------------ running
    def generate(
        self,
        progress: Union[bool, ProgressSink] = False,
        interval: float = 0.05,
    ) -> utils.FlowResult:
        """
        Runs to completion on the calling thread and returns the result.

        ``progress=True`` prints the progress line every ``interval`` seconds;
        a callable receives ``(settled, total, percent_string)`` instead.
        """
        if self.config.verbose:
            print(
                f"Creating FLOW image: {self.width}x{self.height}, "
                f"{self.config.n_points} starting points, "
                f"deviation max. {self.randomness:.2f} per pixel step"
            )
        if self.state is EngineState.IDLE:
            self.initialize()

        self.started_at = datetime.now()
        if self.config.verbose:
            print(f"Started at {utils.clock_str(self.started_at)}")

        printer = None
        if progress:
            sink = progress if callable(progress) else None
            printer = ProgressPrinter(self.reporter, interval=interval, sink=sink).start()

        t0 = time.perf_counter()
        try:
            while self.step():
                pass
        finally:
            self.elapsed = time.perf_counter() - t0
            if printer is not None:
                printer.stop()

        if self.config.verbose:
            print(f"Ended at {utils.clock_str(datetime.now())}")
            print(f"Generated successfully!\n  Duration: {utils.duration_str(self.elapsed)}")
        return self.result()

    def start(self, **kwargs) -> threading.Thread:
        """Runs :meth:`generate` on a dedicated worker thread."""
        if self._thread is not None:
            raise RuntimeError("Simulation already started")

        def _worker() -> None:
            try:
                self.generate(**kwargs)
            except BaseException as exc:
                self.error = exc
                raise

        self._thread = threading.Thread(target=_worker, name="flow-generate")
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> utils.FlowResult:
        """Waits for the worker started by :meth:`start`; re-raises its error."""
        if self._thread is None:
            raise RuntimeError("Simulation was not started with start()")
        self._thread.join(timeout)
        if self.error is not None:
            raise self.error
        return self.result()

    def close(self) -> None:
        self.views.close()

    # ------------------------------------------------------------------ results
    def color_image(self) -> np.ndarray:
        """Settled colors as a ``(height, width, 3)`` uint8 array."""
        return self.settled.to_image()

    def result(self) -> utils.FlowResult:
        meta = {
            "model": "flow",
            "width": self.width,
            "height": self.height,
            "n_points": self.config.n_points,
            "randomness": self.randomness,
            "seed": self.config.seed,
            "iterations": self.iterations,
            "occupied": self.settled.occupied_count(),
            "done": self.is_done(),
            "seeds": np.array(self.seeds, dtype=np.int64).reshape(-1, 2),
        }
        if self.elapsed is not None:
            meta["elapsed"] = self.elapsed
        return utils.FlowResult(colors=self.color_image(), meta=meta)


# View name -> FlowSimulator method mapping (x, y) to a color.
VIEW_KINDS: Dict[str, str] = {
    "normal": "_normal_color",
    "type": "_type_color",
}

__all__ = ["EngineState", "FlowConfig", "FlowSimulator", "MAX_RANDOMNESS"]
