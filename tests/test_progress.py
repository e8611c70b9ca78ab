"""
Tests for progress formatting and the polling printer.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from flow_sim.grid import Cell, SettledGrid
from flow_sim.progress import (
    ProgressPrinter,
    ProgressReporter,
    format_percent,
    format_progress,
)


def test_format_progress_fixed_width():
    assert format_progress(42, 1000) == "Processed 0042 / 1000 pixels... (004.20%)"
    assert format_progress(0, 9) == "Processed 0 / 9 pixels... (000.00%)"
    assert format_progress(1000, 1000) == "Processed 1000 / 1000 pixels... (100.00%)"
    # width does not change as the count grows
    assert len(format_progress(1, 123456)) == len(format_progress(99999, 123456))


def test_format_progress_done():
    assert format_progress(3, 10, done=True) == "Done."


def test_format_percent():
    assert format_percent(1, 3) == "033.33"
    assert format_percent(2, 3) == "066.67"
    assert format_percent(0, 0) == "100.00"


def test_reporter_tracks_grid():
    grid = SettledGrid(4, 5)
    done = [False]
    reporter = ProgressReporter(grid, lambda: done[0])
    assert reporter.snapshot() == (0, 20, "000.00")
    grid.store(Cell(0, 0, (0, 0, 0)))
    grid.store(Cell(1, 0, (0, 0, 0)))
    assert reporter.snapshot() == (2, 20, "010.00")
    assert reporter.fraction() == 0.1
    assert reporter.progress_string() == "Processed 02 / 20 pixels... (010.00%)"
    done[0] = True
    assert reporter.progress_string() == "Done."


def test_printer_with_sink_emits_final_update():
    grid = SettledGrid(2, 2)
    reporter = ProgressReporter(grid, lambda: False)
    updates = []
    with ProgressPrinter(reporter, interval=0.001, sink=lambda *u: updates.append(u)):
        grid.store(Cell(0, 0, (0, 0, 0)))
    assert updates[-1] == (1, 4, "025.00")


def test_printer_prints_in_place(capsys):
    grid = SettledGrid(2, 2)
    reporter = ProgressReporter(grid, lambda: True)
    printer = ProgressPrinter(reporter, interval=10.0).start()
    printer.stop()
    out = capsys.readouterr().out
    assert out == "Done.\r\n"
