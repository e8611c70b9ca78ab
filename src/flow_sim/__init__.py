"""
FLOW Image Library - Production Core Models

This package grows marbled color fields across a pixel grid:
- FlowSimulator: random frontier growth with neighbor color diffusion
- RenderViewRegistry: live per-view rendering with background catch-up
- BitRegistry / Frontier / SettledGrid: the spatial structures behind it
"""

from .bitregistry import BitRegistry
from .diffusion import color_for
from .engine import MAX_RANDOMNESS, EngineState, FlowConfig, FlowSimulator
from .errors import ConfigurationError, InvariantViolation
from .frontier import Frontier
from .grid import Cell, SettledGrid
from .progress import ProgressPrinter, ProgressReporter, format_progress
from .render import Rect, RenderView, RenderViewRegistry
from . import utils

__all__ = [
    # Simulator
    "FlowSimulator",
    "FlowConfig",
    "EngineState",
    "MAX_RANDOMNESS",
    # Spatial structures
    "BitRegistry",
    "Cell",
    "Frontier",
    "SettledGrid",
    "color_for",
    # Rendering and progress
    "Rect",
    "RenderView",
    "RenderViewRegistry",
    "ProgressReporter",
    "ProgressPrinter",
    "format_progress",
    # Errors
    "ConfigurationError",
    "InvariantViolation",
    # Utilities
    "utils",
]
