"""Exception taxonomy for the scoring core.

Missing or invalid odds are *not* errors: they surface as ``None`` fields
("unknown") on the affected result.  Exceptions are reserved for programmer
errors (bad configuration), corrupt numeric input and cancelled simulations.
"""

from __future__ import annotations


class SmartEdgeError(Exception):
    """Base class for all scoring-core errors."""


class ConfigurationError(SmartEdgeError, ValueError):
    """Policy constants or simulator parameters are invalid.

    Raised at call time and never corrected silently.
    """


class InvalidInputError(SmartEdgeError, ValueError):
    """A NaN or infinite value reached a computation that would be corrupted by it."""


class SimulationCancelled(SmartEdgeError):
    """A Monte Carlo run was abandoned through its cancellation token."""

    def __init__(self, completed_paths: int, total_paths: int):
        self.completed_paths = completed_paths
        self.total_paths = total_paths
        super().__init__(
            f"Simulation cancelled after {completed_paths}/{total_paths} paths; "
            "partial results discarded."
        )
