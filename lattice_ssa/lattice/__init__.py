from .domain import BOUNDARIES, Coord, LatticeDomain
from .state import LatticeSnapshot, LatticeState
from .initial import add_box_barrier, build_lattice, random_lattice

__all__ = [
    "BOUNDARIES",
    "Coord",
    "LatticeDomain",
    "LatticeSnapshot",
    "LatticeState",
    "add_box_barrier",
    "build_lattice",
    "random_lattice",
]
