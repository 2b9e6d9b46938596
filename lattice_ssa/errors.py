from __future__ import annotations
from typing import Optional


class LatticeSSAError(Exception):
    """Base class for every error raised by lattice_ssa."""


class ConfigurationError(LatticeSSAError, ValueError):
    """Malformed rules, parameter vectors, coordinates or initial conditions."""


class TopologyError(LatticeSSAError, ValueError):
    """Neighbourhood shape not defined for the requested dimensionality."""


class SimulationError(LatticeSSAError, RuntimeError):
    """
    Raised mid-run (negative propensity, corrupted transition).

    The trajectory recorded up to the failure is kept on `trajectory`
    so it can be inspected after the run aborts.
    """

    def __init__(self, message: str, trajectory: Optional[object] = None):
        super().__init__(message)
        self.trajectory = trajectory
