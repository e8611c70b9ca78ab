"""
Named render views over a running simulation.

Each view pairs an RGBA buffer with a mapping ``(x, y) -> color | None`` that
reads the live simulation state. Only the active view receives pushes from the
generation loop; switching views replays the mapping over the area drawn so
far on a background thread, so every view can be shown from one run.

Pixel writes are not locked. A reader taking a snapshot while the worker
writes may see one stale pixel, never a partially sized or out-of-bounds
buffer, because each push writes one independently addressed ``[y, x]`` slot.
Catch-up redraws re-read the mapping after each paint, so a cell the worker
settles mid-redraw is not left showing its older state.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

Color = Tuple[int, int, int]
ColorFn = Callable[[int, int], Optional[Color]]

RED: Color = (255, 0, 0)
BLUE: Color = (0, 0, 255)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned pixel rectangle; covers ``[x, x + width) x [y, y + height)``."""

    x: int
    y: int
    width: int = 1
    height: int = 1

    @property
    def x_end(self) -> int:
        return self.x + self.width

    @property
    def y_end(self) -> int:
        return self.y + self.height

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x_end and self.y <= y < self.y_end

    def union(self, other: "Rect") -> "Rect":
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        x1 = max(self.x_end, other.x_end)
        y1 = max(self.y_end, other.y_end)
        return Rect(x0, y0, x1 - x0, y1 - y0)

    def include(self, x: int, y: int) -> "Rect":
        if self.contains(x, y):
            return self
        return self.union(Rect(x, y))

    def coords(self) -> Iterator[Tuple[int, int]]:
        for x in range(self.x, self.x_end):
            for y in range(self.y, self.y_end):
                yield x, y

    @property
    def area(self) -> int:
        return self.width * self.height


def _union(a: Optional[Rect], b: Optional[Rect]) -> Optional[Rect]:
    if a is None:
        return b
    if b is None:
        return a
    return a.union(b)


@dataclass(eq=False)
class RenderView:
    """A named buffer plus the mapping that fills it."""

    name: str
    color_fn: ColorFn
    buffer: np.ndarray
    drawn_area: Optional[Rect] = None
    pushes: int = 0

    def paint(self, x: int, y: int, color: Color) -> None:
        r, g, b = color
        self.buffer[y, x] = (r, g, b, 255)


class RenderViewRegistry:
    """
    Registry of named :class:`RenderView` objects sharing one grid size.

    ``render`` is called by the single generation worker. ``activate`` and
    ``snapshot`` may be called from any thread. Catch-up redraws run on a
    dedicated single-thread executor; ``close`` shuts it down.
    """

    def __init__(self, width: int, height: int) -> None:
        self.width = int(width)
        self.height = int(height)
        self._views: Dict[str, RenderView] = {}
        self._active: Optional[RenderView] = None
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="flow-catchup"
        )

    # ------------------------------------------------------------------ views
    def add_view(self, name: str, color_fn: ColorFn) -> RenderView:
        """Registers a view with a fresh transparent buffer. The first view added is active."""
        if name in self._views:
            raise ValueError(f"Render view '{name}' already registered")
        view = RenderView(
            name=name,
            color_fn=color_fn,
            buffer=np.zeros((self.height, self.width, 4), dtype=np.uint8),
        )
        self._views[name] = view
        if self._active is None:
            self._active = view
        return view

    def names(self) -> List[str]:
        return list(self._views)

    def view(self, name: str) -> RenderView:
        try:
            return self._views[name]
        except KeyError:
            raise KeyError(
                f"Unknown render view '{name}', expected one of {self.names()}"
            ) from None

    @property
    def active(self) -> Optional[str]:
        view = self._active
        return None if view is None else view.name

    def drawn_area(self, name: str) -> Optional[Rect]:
        return self.view(name).drawn_area

    def __contains__(self, name: str) -> bool:
        return name in self._views

    # ------------------------------------------------------------------ writes
    def _record(self, view: RenderView, x: int, y: int) -> None:
        area = view.drawn_area
        if area is not None and area.contains(x, y):
            return
        with self._lock:
            view.drawn_area = (
                Rect(x, y) if view.drawn_area is None else view.drawn_area.include(x, y)
            )

    def _push(self, view: RenderView, x: int, y: int) -> None:
        color = view.color_fn(x, y)
        if color is None:
            return
        view.paint(x, y, color)
        view.pushes += 1
        self._record(view, x, y)

    def render(self, x: int, y: int) -> None:
        """Pushes the current color of (x, y) into the active view."""
        view = self._active
        if view is None:
            return
        self._push(view, x, y)
        # activate() may have swapped views after we read _active; the new view
        # inherited an area that may not include (x, y) yet.
        current = self._active
        if current is not view and current is not None:
            self._push(current, x, y)

    def activate(self, name: str) -> Optional[Future]:
        """
        Makes ``name`` the live target and schedules a catch-up redraw of the
        previously active view's drawn area into it.

        Returns the catch-up future, or None when nothing needs redrawing.
        """
        new = self.view(name)
        with self._lock:
            old = self._active
            if old is new:
                return None
            self._active = new
            area = None if old is None else old.drawn_area
            new.drawn_area = _union(new.drawn_area, area)
        if area is None:
            return None
        return self._executor.submit(self._catch_up, new, area)

    def _catch_up(self, view: RenderView, area: Rect) -> int:
        """Recomputes every pixel inside ``area``. Returns the number of pixels written."""
        written = 0
        color_fn = view.color_fn
        for x, y in area.coords():
            color = color_fn(x, y)
            if color is None:
                continue
            view.paint(x, y, color)
            written += 1
            # The worker may have pushed a newer color between the read and
            # the paint; mappings only move forward, so one re-read settles it.
            latest = color_fn(x, y)
            if latest is not None and latest != color:
                view.paint(x, y, latest)
        return written

    def redraw(self, name: str, full: bool = False) -> Optional[Future]:
        """
        Schedules a redraw of ``name`` over its own drawn area, or over the
        whole grid with ``full=True``.
        """
        view = self.view(name)
        if full:
            area = Rect(0, 0, self.width, self.height)
            with self._lock:
                view.drawn_area = area
        else:
            area = view.drawn_area
        if area is None:
            return None
        return self._executor.submit(self._catch_up, view, area)

    # ------------------------------------------------------------------ reads
    def snapshot(self, name: str) -> np.ndarray:
        """Copy of the view's RGBA buffer, shape ``(height, width, 4)``."""
        return self.view(name).buffer.copy()

    # ------------------------------------------------------------------ lifecycle
    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "RenderViewRegistry":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
