"""Error types raised by the FLOW simulator."""

from __future__ import annotations

from typing import Optional, Tuple


class ConfigurationError(ValueError):
    """Invalid construction parameters. Raised before any generation work."""


class InvariantViolation(RuntimeError):
    """
    A broken internal invariant detected mid-run.

    Carries the last coordinate that was being processed and the settled
    count at the time of failure so the run can be diagnosed.
    """

    def __init__(
        self,
        message: str,
        *,
        coordinate: Optional[Tuple[int, int]] = None,
        occupied: int = 0,
    ) -> None:
        self.coordinate = coordinate
        self.occupied = occupied
        super().__init__(
            f"{message} (last coordinate={coordinate}, occupied={occupied})"
        )
