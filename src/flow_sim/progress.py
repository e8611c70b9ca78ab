"""
Progress reporting for a running simulation.

``ProgressReporter`` is a passive view over the settled-cell count;
``ProgressPrinter`` is an observer thread that polls it at a fixed cadence.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional, Tuple

from .grid import SettledGrid

ProgressSink = Callable[[int, int, str], None]


def format_percent(processed: int, total: int) -> str:
    """Zero-padded percentage with two decimals, e.g. ``042.50``."""
    pct = 100.0 * processed / total if total else 100.0
    return f"{pct:06.2f}"


def format_progress(processed: int, total: int, done: bool = False) -> str:
    """
    ``"Done."`` once finished, else a fixed-width line such as
    ``"Processed 0042 / 1000 pixels... (004.20%)"``.
    The counters are padded to the number of digits in ``total``.
    """
    if done:
        return "Done."
    digits = len(str(total))
    return (
        f"Processed {processed:0{digits}d} / {total:0{digits}d} pixels... "
        f"({format_percent(processed, total)}%)"
    )


class ProgressReporter:
    """Derives completion figures from a :class:`SettledGrid`. Holds no state of its own."""

    def __init__(self, grid: SettledGrid, is_done: Callable[[], bool]) -> None:
        self.grid = grid
        self._is_done = is_done

    @property
    def total(self) -> int:
        return self.grid.capacity

    def snapshot(self) -> Tuple[int, int, str]:
        processed = self.grid.occupied_count()
        return processed, self.total, format_percent(processed, self.total)

    def fraction(self) -> float:
        return self.grid.occupied_count() / self.total

    def progress_string(self) -> str:
        return format_progress(
            self.grid.occupied_count(), self.total, done=self._is_done()
        )


def print_progress(reporter: ProgressReporter) -> None:
    print(reporter.progress_string(), end="\r", flush=True)


class ProgressPrinter:
    """
    Polls a reporter every ``interval`` seconds on a daemon thread.

    With no sink the progress line is printed in place (carriage return).
    A sink receives ``(settled, total, percent_string)`` instead.
    """

    def __init__(
        self,
        reporter: ProgressReporter,
        interval: float = 0.05,
        sink: Optional[ProgressSink] = None,
    ) -> None:
        self.reporter = reporter
        self.interval = interval
        self.sink = sink
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _emit(self) -> None:
        if self.sink is None:
            print_progress(self.reporter)
        else:
            self.sink(*self.reporter.snapshot())

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self._emit()

    def start(self) -> "ProgressPrinter":
        if self._thread is not None:
            raise RuntimeError("ProgressPrinter already started")
        self._thread = threading.Thread(
            target=self._loop, name="flow-progress", daemon=True
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        """Stops polling and emits one final update."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
        self._emit()
        if self.sink is None:
            print()

    def __enter__(self) -> "ProgressPrinter":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()
