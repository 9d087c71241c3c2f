"""Exceptions raised by the simulation engine.

Running out of money is never an error: ruined trajectories are recorded in
the result.  These exceptions cover the cases where no result can be
produced at all.
"""

from __future__ import annotations

from typing import List, Sequence


class SimulationError(Exception):
    """Base class for engine failures."""


class InvalidParametersError(SimulationError):
    """Parameters violate one or more documented constraints.

    ``errors`` holds every violated constraint, not just the first one.
    """

    def __init__(self, errors: Sequence[str]):
        self.errors: List[str] = list(errors)
        super().__init__("Invalid parameters: " + ", ".join(self.errors))


class EmptyPortfolioError(SimulationError):
    def __init__(self, message: str = "Portfolio cannot be empty"):
        super().__init__(message)


class HistoricalDataError(SimulationError):
    """Historical dataset missing, empty or unparsable."""


__all__ = [
    "SimulationError",
    "InvalidParametersError",
    "EmptyPortfolioError",
    "HistoricalDataError",
]
