from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

import numpy as np

from ..errors import ConfigurationError, SimulationError
from ..reactions import EMPTY, Symbol
from .domain import Coord, LatticeDomain


def _codes(alphabet: Tuple[str, ...]) -> Dict[Symbol, int]:
    codes: Dict[Symbol, int] = {EMPTY: 0}
    for i, sp in enumerate(alphabet):
        codes[sp] = i + 1
    return codes


def _sites_to_arrays(sites: Mapping[Coord, str], pinned: Iterable[Coord], ndims: int, alphabet: Tuple[str, ...]):
    codes = _codes(alphabet)
    pinned = set(pinned)
    ordered = sorted(sites.items())
    coords = np.array([c for c, _ in ordered], dtype=np.int64).reshape(len(ordered), ndims)
    types = np.array([codes[s] for _, s in ordered], dtype=np.int64)
    pin_mask = np.array([c in pinned for c, _ in ordered], dtype=bool)
    return coords, types, pin_mask


def _rebuild_snapshot(domain, alphabet, sites, pinned) -> "LatticeSnapshot":
    return LatticeSnapshot(domain, tuple(alphabet), MappingProxyType(dict(sites)), frozenset(pinned))


@dataclass(frozen=True, eq=False)
class LatticeSnapshot:
    """
    Immutable copy of a LatticeState at one sampled time.
    """
    domain: LatticeDomain
    alphabet: Tuple[str, ...]
    sites: Mapping[Coord, str]
    pinned: FrozenSet[Coord] = frozenset()

    def get(self, coord: Iterable[int]) -> Symbol:
        return self.sites.get(tuple(coord), EMPTY)

    def occupancy(self) -> Dict[Coord, str]:
        return dict(self.sites)

    @property
    def n_agents(self) -> int:
        return len(self.sites)

    def counts(self) -> Dict[str, int]:
        out = {sp: 0 for sp in self.alphabet}
        for sym in self.sites.values():
            out[sym] += 1
        return out

    def coordinates_of(self, symbol: str) -> List[Coord]:
        return sorted(c for c, s in self.sites.items() if s == symbol)

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return _sites_to_arrays(self.sites, self.pinned, self.domain.ndims, self.alphabet)

    def to_state(self) -> "LatticeState":
        state = LatticeState(self.domain, self.alphabet)
        for c, s in sorted(self.sites.items()):
            if c in self.pinned:
                state.pin(c, s)
            else:
                state.place(c, s)
        return state

    def __eq__(self, other) -> bool:
        if not isinstance(other, LatticeSnapshot):
            return NotImplemented
        return (
            self.domain == other.domain
            and self.alphabet == other.alphabet
            and dict(self.sites) == dict(other.sites)
            and self.pinned == other.pinned
        )

    def __reduce__(self):
        return (_rebuild_snapshot, (self.domain, self.alphabet, dict(self.sites), self.pinned))

    def __repr__(self) -> str:
        return f"LatticeSnapshot(n_agents={self.n_agents}, counts={self.counts()})"


@dataclass
class LatticeState:
    """
    Occupancy of every site of a lattice.

    Conventions
    ----------
    - only occupied sites are stored; any other coordinate is EMPTY
    - at most one agent per coordinate
    - pinned sites hold a barrier symbol for the whole run
    """
    domain: LatticeDomain
    alphabet: Tuple[str, ...]
    _sites: Dict[Coord, str] = field(default_factory=dict, repr=False)
    _pinned: Set[Coord] = field(default_factory=set, repr=False)

    def __post_init__(self):
        self.alphabet = tuple(self.alphabet)
        if len(set(self.alphabet)) != len(self.alphabet):
            raise ConfigurationError("alphabet symbols must be unique")
        for sp in self.alphabet:
            if not isinstance(sp, str) or sp in ("0", "∅", ""):
                raise ConfigurationError(f"invalid agent symbol {sp!r} in alphabet")
        self._known = frozenset(self.alphabet)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    @property
    def ndims(self) -> int:
        return self.domain.ndims

    @property
    def n_agents(self) -> int:
        return len(self._sites)

    @property
    def pinned(self) -> FrozenSet[Coord]:
        return frozenset(self._pinned)

    def get(self, coord: Iterable[int]) -> Symbol:
        return self._sites.get(tuple(coord), EMPTY)

    def is_pinned(self, coord: Iterable[int]) -> bool:
        return tuple(coord) in self._pinned

    def occupied(self) -> Iterator[Tuple[Coord, str]]:
        """Occupied sites in lexicographic coordinate order."""
        for c in sorted(self._sites):
            yield c, self._sites[c]

    def coordinates_of(self, symbol: str) -> List[Coord]:
        return sorted(c for c, s in self._sites.items() if s == symbol)

    def counts(self) -> Dict[str, int]:
        out = {sp: 0 for sp in self.alphabet}
        for sym in self._sites.values():
            out[sym] += 1
        return out

    # ------------------------------------------------------------------
    # mutation
    # ------------------------------------------------------------------
    def _check_symbol(self, symbol: Symbol) -> None:
        if symbol is not EMPTY and symbol not in self._known:
            raise ConfigurationError(f"unknown symbol {symbol!r}. Known: {list(self.alphabet)}")

    def place(self, coord: Iterable[int], symbol: Symbol) -> Coord:
        """Initial placement: fails on a coordinate that is already occupied."""
        c = self.domain.normalise(tuple(coord))
        self._check_symbol(symbol)
        if symbol is EMPTY:
            return c
        if c in self._sites:
            raise ConfigurationError(f"duplicate coordinate {c} (already holds '{self._sites[c]}')")
        self._sites[c] = symbol
        return c

    def pin(self, coord: Iterable[int], symbol: str) -> Coord:
        """Place a barrier agent that never changes for the rest of the run."""
        if symbol is EMPTY:
            raise ConfigurationError("cannot pin the empty site")
        c = self.place(coord, symbol)
        self._pinned.add(c)
        return c

    def set(self, coord: Coord, symbol: Symbol) -> None:
        """Overwrite one site. Pinned sites cannot change."""
        if coord in self._pinned:
            if self._sites.get(coord) == symbol:
                return
            raise SimulationError(
                f"attempted to change pinned site {coord} from '{self._sites.get(coord)}' to {symbol!r}"
            )
        self._check_symbol(symbol)
        if symbol is EMPTY:
            self._sites.pop(coord, None)
        else:
            if self.domain.bounded and not self.domain.contains(coord):
                raise SimulationError(f"coordinate {coord} lies outside the domain extent {self.domain.extent}")
            self._sites[coord] = symbol

    def clear(self, coord: Coord) -> None:
        self.set(coord, EMPTY)

    # ------------------------------------------------------------------
    # copies
    # ------------------------------------------------------------------
    def copy(self) -> "LatticeState":
        return LatticeState(self.domain, self.alphabet, dict(self._sites), set(self._pinned))

    def snapshot(self) -> LatticeSnapshot:
        return LatticeSnapshot(
            domain=self.domain,
            alphabet=self.alphabet,
            sites=MappingProxyType(dict(self._sites)),
            pinned=frozenset(self._pinned),
        )

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Returns
        -------
        coords : (n, ndims) int array, lexicographically sorted
        types  : (n,) int array of type codes (agent i of the alphabet has code i+1)
        pinned : (n,) bool array
        """
        return _sites_to_arrays(self._sites, self._pinned, self.ndims, self.alphabet)

    @classmethod
    def from_arrays(
        cls,
        domain: LatticeDomain,
        alphabet: Tuple[str, ...],
        coords: np.ndarray,
        types: np.ndarray,
        pinned: Optional[np.ndarray] = None,
    ) -> "LatticeState":
        coords = np.asarray(coords, dtype=np.int64).reshape(-1, domain.ndims)
        types = np.asarray(types, dtype=np.int64).reshape(-1)
        if coords.shape[0] != types.shape[0]:
            raise ConfigurationError(f"{coords.shape[0]} coordinates but {types.shape[0]} types")
        if pinned is None:
            pinned = np.zeros(types.shape[0], dtype=bool)
        state = cls(domain, tuple(alphabet))
        for c, t, p in zip(coords, types, np.asarray(pinned, dtype=bool)):
            if not (1 <= t <= len(state.alphabet)):
                raise ConfigurationError(f"type code {int(t)} at {tuple(c)} is not an agent code")
            sym = state.alphabet[int(t) - 1]
            if p:
                state.pin(tuple(c), sym)
            else:
                state.place(tuple(c), sym)
        return state
