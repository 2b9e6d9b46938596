from __future__ import annotations
from dataclasses import dataclass
import numbers
from typing import ClassVar, Tuple, Union

from ..errors import TopologyError

Offset = Tuple[int, ...]

_SUPPORTED_DIMS = (1, 2, 3)


def _check_ndims(ndims) -> int:
    if isinstance(ndims, bool) or not isinstance(ndims, numbers.Integral):
        raise TopologyError(f"dimensionality must be an integer, got {ndims!r}")
    if ndims not in _SUPPORTED_DIMS:
        raise TopologyError(f"dimensionality must be one of {_SUPPORTED_DIMS}, got {ndims}")
    return int(ndims)


@dataclass(frozen=True)
class NearestNeighbor:
    """
    Von Neumann neighbourhood: the 2*d sites at unit distance along each axis.

    Offsets are ordered axis by axis, negative before positive:
      1D: (-1,), (1,)
      2D: (-1, 0), (1, 0), (0, -1), (0, 1)
    """
    name = "nearest-neighbor"

    def offsets(self, ndims: int) -> Tuple[Offset, ...]:
        ndims = _check_ndims(ndims)
        out = []
        for axis in range(ndims):
            for step in (-1, 1):
                off = [0] * ndims
                off[axis] = step
                out.append(tuple(off))
        return tuple(out)

    def cardinality(self, ndims: int) -> int:
        return len(self.offsets(ndims))


VonNeumann = NearestNeighbor


@dataclass(frozen=True)
class Hexagonal:
    """
    Hexagonal neighbourhood in axial coordinates (q, r); 2D only.

    The six neighbours of (q, r) are (q±1, r), (q, r±1), (q+1, r-1), (q-1, r+1).
    """
    name = "hexagonal"

    _AXIAL: ClassVar[Tuple[Offset, ...]] = ((1, 0), (-1, 0), (0, 1), (0, -1), (1, -1), (-1, 1))

    def offsets(self, ndims: int) -> Tuple[Offset, ...]:
        ndims = _check_ndims(ndims)
        if ndims != 2:
            raise TopologyError(f"hexagonal neighbourhood is only defined in 2 dimensions, got {ndims}")
        return self._AXIAL

    def cardinality(self, ndims: int) -> int:
        return len(self.offsets(ndims))


NeighborhoodShape = Union[NearestNeighbor, Hexagonal]

_BY_NAME = {
    "nearest-neighbor": NearestNeighbor,
    "nearest_neighbor": NearestNeighbor,
    "nearestneighbor": NearestNeighbor,
    "von-neumann": NearestNeighbor,
    "vonneumann": NearestNeighbor,
    "hexagonal": Hexagonal,
    "hex": Hexagonal,
}


def get_shape(shape: Union[str, NeighborhoodShape]) -> NeighborhoodShape:
    """Accept a shape instance or its name (as used in YAML configs)."""
    if isinstance(shape, (NearestNeighbor, Hexagonal)):
        return shape
    if isinstance(shape, type) and shape in (NearestNeighbor, Hexagonal):
        return shape()
    if isinstance(shape, str):
        key = shape.strip().lower().replace(" ", "")
        if key in _BY_NAME:
            return _BY_NAME[key]()
    raise TopologyError(f"unknown neighbourhood shape {shape!r}. Known: {sorted(set(_BY_NAME))}")
