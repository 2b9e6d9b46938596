from __future__ import annotations
import logging
from typing import Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import ConfigurationError
from ..topology import NeighborhoodShape, get_shape
from .domain import LatticeDomain
from .state import LatticeState

logger = logging.getLogger(__name__)

TypeList = Union[Mapping[str, int], Sequence[str]]


def _type_table(type_list: TypeList) -> Tuple[Tuple[str, ...], dict]:
    """
    Return (alphabet, code -> symbol).

    A mapping gives explicit codes {"Rabbit": 1, "Wolf": 2}; a sequence
    numbers its names from 1 in order.
    """
    if isinstance(type_list, Mapping):
        items = sorted(((int(code), str(name)) for name, code in type_list.items()))
        codes = [c for c, _ in items]
        if len(set(codes)) != len(codes):
            raise ConfigurationError(f"type codes must be unique, got {dict(type_list)}")
        if any(c <= 0 for c in codes):
            raise ConfigurationError("type codes must be >= 1 (0 is reserved for the empty site)")
        alphabet = tuple(name for _, name in items)
        return alphabet, {c: name for c, name in items}

    alphabet = tuple(str(s) for s in type_list)
    return alphabet, {i + 1: name for i, name in enumerate(alphabet)}


def _as_coord_list(coords, ndims: Optional[int]):
    if isinstance(coords, np.ndarray):
        if coords.ndim != 2:
            raise ConfigurationError("coordinate array must be 2D with shape (n_sites, ndims)")
        return [tuple(int(x) for x in row) for row in coords], int(coords.shape[1])

    out = [tuple(int(x) for x in c) for c in coords]
    if out:
        dims = {len(c) for c in out}
        if len(dims) != 1:
            raise ConfigurationError(f"coordinates have mixed dimensionality: {sorted(dims)}")
        return out, dims.pop()
    if ndims is None:
        raise ConfigurationError("cannot infer dimensionality from an empty coordinate list; pass ndims")
    return out, int(ndims)


def build_lattice(
    coords,
    types: Sequence[Union[int, str]],
    shape: Union[str, NeighborhoodShape],
    type_list: TypeList,
    *,
    extent: Optional[Sequence[int]] = None,
    boundary: Optional[str] = None,
    barrier: Optional[str] = None,
    ndims: Optional[int] = None,
) -> LatticeState:
    """
    Build an initial LatticeState from explicit site assignments.

    Parameters
    ----------
    coords : sequence of tuples or (n, ndims) array
    types : sequence of type codes (ints) or names, one per coordinate
    shape : neighbourhood shape; checked against the coordinate dimensionality
    type_list : mapping name -> code, or names in code order (codes from 1)
    extent, boundary : optional domain limits; an extent defaults to 'zero-flux'
    barrier : optional symbol whose sites are pinned for the whole run

    Example
    -------
    >>> state = build_lattice([(0, 0), (0, 1)], [1, 2], NearestNeighbor(), {"Rabbit": 1, "Wolf": 2})
    """
    coord_list, dims = _as_coord_list(coords, ndims)
    types = list(types)
    if len(coord_list) != len(types):
        raise ConfigurationError(f"{len(coord_list)} coordinate(s) but {len(types)} type(s)")

    shape = get_shape(shape)
    shape.offsets(dims)  # TopologyError for e.g. hexagonal outside 2D

    alphabet, by_code = _type_table(type_list)
    if barrier is not None and barrier not in alphabet:
        raise ConfigurationError(f"barrier symbol '{barrier}' is not in the type list {list(alphabet)}")

    if boundary is None:
        boundary = "unbounded" if extent is None else "zero-flux"
    domain = LatticeDomain(
        ndims=dims,
        extent=tuple(extent) if extent is not None else None,
        boundary=boundary,
    )

    state = LatticeState(domain, alphabet)
    for c, t in zip(coord_list, types):
        if isinstance(t, str):
            if t not in alphabet:
                raise ConfigurationError(f"unknown type '{t}' at {c}. Known: {list(alphabet)}")
            sym = t
        else:
            code = int(t)
            if code not in by_code:
                raise ConfigurationError(f"unknown type code {code} at {c}. Known: {sorted(by_code)}")
            sym = by_code[code]

        if barrier is not None and sym == barrier:
            state.pin(c, sym)
        else:
            state.place(c, sym)
    return state


def add_box_barrier(state: LatticeState, symbol: str) -> int:
    """
    Pin `symbol` on every outer-face site of a bounded domain.

    Returns the number of pinned sites. Outer sites must still be empty.
    """
    if not state.domain.bounded:
        raise ConfigurationError("a box barrier needs a bounded domain")
    n = 0
    for c in state.domain.boundary_sites():
        state.pin(c, symbol)
        n += 1
    return n


def random_lattice(
    extent: Sequence[int],
    densities: Mapping[str, float],
    shape: Union[str, NeighborhoodShape] = "nearest-neighbor",
    *,
    boundary: str = "zero-flux",
    alphabet: Optional[Sequence[str]] = None,
    barrier: Optional[str] = None,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> LatticeState:
    """
    Fill a bounded lattice at random with the given per-type densities.

    Each type receives round(density * n_free) sites, drawn without
    replacement; n_free excludes the box barrier when `barrier` is given.
    When rounding asks for more sites than remain, the last types in
    `densities` order get only what is left.
    """
    ndims = len(extent)
    shape = get_shape(shape)
    shape.offsets(ndims)

    total = float(sum(densities.values()))
    if any(d < 0 for d in densities.values()):
        raise ConfigurationError("densities must be >= 0")
    if total > 1.0 + 1e-12:
        raise ConfigurationError(f"densities sum to {total}, which exceeds 1")

    alphabet = list(densities.keys()) if alphabet is None else list(alphabet)
    if barrier is not None and barrier not in alphabet:
        alphabet.append(barrier)
    alphabet = tuple(alphabet)
    for sp in densities:
        if sp not in alphabet:
            raise ConfigurationError(f"density given for unknown type '{sp}'")

    domain = LatticeDomain(ndims=ndims, extent=tuple(extent), boundary=boundary)
    state = LatticeState(domain, alphabet)
    if barrier is not None:
        add_box_barrier(state, barrier)

    free = [c for c in domain.all_sites() if not state.is_pinned(c)]
    if rng is None:
        rng = np.random.default_rng(seed)
    order = rng.permutation(len(free))

    pos = 0
    for sp, d in densities.items():
        n = int(round(d * len(free)))
        if n > len(free) - pos:
            logger.warning(
                "rounding gives '%s' %d site(s) but only %d remain; placing %d",
                sp, n, len(free) - pos, len(free) - pos,
            )
            n = len(free) - pos
        for k in order[pos:pos + n]:
            state.place(free[int(k)], sp)
        pos += n
    return state
