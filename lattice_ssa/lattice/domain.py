from __future__ import annotations
from dataclasses import dataclass
import itertools
import numbers
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from ..errors import ConfigurationError

Coord = Tuple[int, ...]

BOUNDARIES = ("unbounded", "zero-flux", "periodic")


@dataclass(frozen=True)
class LatticeDomain:
    """
    Integer lattice on which agents live.

    Attributes
    ----------
    ndims : int
        Spatial dimensionality (1, 2 or 3).
    extent : tuple of int, optional
        Number of sites along each axis; sites are 0 <= x_i < extent[i].
        Required unless the domain is unbounded.
    boundary : str
        'unbounded' (every coordinate exists, implicitly empty),
        'zero-flux' (coordinates outside the extent do not exist) or
        'periodic' (neighbour lookups wrap around the extent).
    """
    ndims: int
    extent: Optional[Tuple[int, ...]] = None
    boundary: str = "unbounded"

    def __post_init__(self):
        if isinstance(self.ndims, bool) or not isinstance(self.ndims, numbers.Integral) or self.ndims not in (1, 2, 3):
            raise ConfigurationError(f"LatticeDomain.ndims must be 1, 2 or 3, got {self.ndims!r}")
        object.__setattr__(self, "ndims", int(self.ndims))
        if self.boundary not in BOUNDARIES:
            raise ConfigurationError(f"LatticeDomain.boundary must be one of {BOUNDARIES}, got '{self.boundary}'")

        if self.extent is not None:
            extent = tuple(int(n) for n in self.extent)
            if len(extent) != self.ndims:
                raise ConfigurationError(f"LatticeDomain.extent must have {self.ndims} entries, got {len(extent)}")
            if any(n <= 0 for n in extent):
                raise ConfigurationError("LatticeDomain.extent entries must be > 0")
            object.__setattr__(self, "extent", extent)

        if self.boundary == "unbounded" and self.extent is not None:
            raise ConfigurationError("an unbounded domain cannot declare an extent; use 'zero-flux' or 'periodic'")
        if self.boundary != "unbounded" and self.extent is None:
            raise ConfigurationError(f"boundary '{self.boundary}' requires an extent")

    @property
    def bounded(self) -> bool:
        return self.extent is not None

    @property
    def n_sites(self) -> Optional[int]:
        """Number of sites, or None for an unbounded domain."""
        if self.extent is None:
            return None
        return int(np.prod(self.extent))

    def contains(self, coord: Sequence[int]) -> bool:
        if len(coord) != self.ndims:
            return False
        if self.extent is None:
            return True
        return all(0 <= c < n for c, n in zip(coord, self.extent))

    def normalise(self, coord: Sequence[int]) -> Coord:
        """Return `coord` as a tuple of ints, rejecting coordinates outside the domain."""
        try:
            out = tuple(int(c) for c in coord)
        except TypeError as e:
            raise ConfigurationError(f"coordinate {coord!r} is not a sequence of integers") from e
        if len(out) != self.ndims:
            raise ConfigurationError(f"coordinate {out} does not have {self.ndims} component(s)")
        if not self.contains(out):
            raise ConfigurationError(f"coordinate {out} lies outside the domain extent {self.extent}")
        return out

    def neighbor(self, coord: Coord, offset: Tuple[int, ...]) -> Optional[Coord]:
        """
        Site at `coord + offset`, or None if that site does not exist
        (outside a zero-flux domain, or wrapped back onto `coord` itself
        along a periodic axis of extent 1).
        """
        target = tuple(c + o for c, o in zip(coord, offset))
        if self.boundary == "unbounded":
            return target
        if self.boundary == "periodic":
            wrapped = tuple(t % n for t, n in zip(target, self.extent))
            if wrapped == tuple(coord):
                return None
            return wrapped
        if all(0 <= t < n for t, n in zip(target, self.extent)):
            return target
        return None

    def all_sites(self) -> Iterator[Coord]:
        """Iterate every site of a bounded domain in lexicographic order."""
        if self.extent is None:
            raise ConfigurationError("cannot enumerate the sites of an unbounded domain")
        return itertools.product(*(range(n) for n in self.extent))

    def boundary_sites(self) -> Iterator[Coord]:
        """Sites on the outer faces of a bounded domain, lexicographic order."""
        for c in self.all_sites():
            if any(x == 0 or x == n - 1 for x, n in zip(c, self.extent)):
                yield c

    def to_dict(self) -> dict:
        return {
            "ndims": self.ndims,
            "extent": list(self.extent) if self.extent is not None else None,
            "boundary": self.boundary,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LatticeDomain":
        extent = d.get("extent")
        return cls(
            ndims=int(d["ndims"]),
            extent=tuple(extent) if extent is not None else None,
            boundary=str(d.get("boundary", "unbounded")),
        )
