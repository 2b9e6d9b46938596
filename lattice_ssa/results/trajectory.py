from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from ..errors import SimulationError
from ..lattice import LatticeSnapshot


@dataclass
class Trajectory:
    """
    Ordered (time, snapshot) samples of one simulation run.

    Append-only while the run is in progress; `freeze()` makes it
    read-only before it is handed to the caller, `meta` included.

    Attributes
    ----------
    alphabet : agent symbols, in type-code order
    meta : run metadata (algorithm, status, n_events, final time, seed, ...)
    """
    alphabet: Tuple[str, ...]
    meta: Mapping[str, Any] = field(default_factory=dict)
    _times: List[float] = field(default_factory=list, repr=False)
    _snapshots: List[LatticeSnapshot] = field(default_factory=list, repr=False)
    _frozen: bool = field(default=False, repr=False)

    # ------------------------------------------------------------------
    # building
    # ------------------------------------------------------------------
    def append(self, time: float, snapshot: LatticeSnapshot) -> None:
        if self._frozen:
            raise SimulationError("trajectory is frozen; it cannot be appended to")
        time = float(time)
        if self._times and not time > self._times[-1]:
            raise SimulationError(
                f"sample times must be strictly increasing: {time} after {self._times[-1]}"
            )
        self._times.append(time)
        self._snapshots.append(snapshot)

    def freeze(self) -> "Trajectory":
        self._frozen = True
        self.meta = MappingProxyType(dict(self.meta))
        return self

    def __getstate__(self):
        state = dict(self.__dict__)
        state["meta"] = dict(self.meta)
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        if self._frozen:
            self.meta = MappingProxyType(dict(self.meta))

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # access
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._times)

    def __iter__(self) -> Iterator[Tuple[float, LatticeSnapshot]]:
        return iter(list(zip(self._times, self._snapshots)))

    def __getitem__(self, idx: int) -> Tuple[float, LatticeSnapshot]:
        return self._times[idx], self._snapshots[idx]

    @property
    def times(self) -> np.ndarray:
        return np.asarray(self._times, dtype=float)

    @property
    def snapshots(self) -> Tuple[LatticeSnapshot, ...]:
        return tuple(self._snapshots)

    @property
    def n_steps(self) -> int:
        return len(self._times)

    @property
    def status(self) -> Optional[str]:
        return self.meta.get("status")

    def nearest(self, time: float) -> Tuple[float, LatticeSnapshot]:
        """Sample whose time is closest to `time` (earlier sample wins ties)."""
        if not self._times:
            raise IndexError("trajectory is empty")
        t = self.times
        i = int(np.searchsorted(t, time, side="left"))
        if i == 0:
            return self[0]
        if i >= len(t):
            return self[len(t) - 1]
        if abs(t[i] - time) < abs(time - t[i - 1]):
            return self[i]
        return self[i - 1]

    def at(self, time: float) -> Tuple[float, LatticeSnapshot]:
        """Most recent sample at or before `time`."""
        t = self.times
        i = int(np.searchsorted(t, time, side="right")) - 1
        if i < 0:
            raise IndexError(f"no sample at or before t={time}")
        return self[i]

    def counts(self) -> Dict[str, np.ndarray]:
        """
        Agent counts per type over the samples.

        Returns {symbol: (n_steps,) int array}.
        """
        out = {sp: np.zeros(len(self), dtype=int) for sp in self.alphabet}
        for k, snap in enumerate(self._snapshots):
            for sp, n in snap.counts().items():
                out[sp][k] = n
        return out

    def count_matrix(self) -> np.ndarray:
        """Counts as a (n_species, n_steps) array in alphabet order."""
        c = self.counts()
        if not self.alphabet:
            return np.zeros((0, len(self)), dtype=int)
        return np.stack([c[sp] for sp in self.alphabet], axis=0)

    def total_agents(self) -> np.ndarray:
        return np.array([s.n_agents for s in self._snapshots], dtype=int)
