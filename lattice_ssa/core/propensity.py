from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..errors import SimulationError
from ..lattice import Coord, LatticeState
from ..reactions import EMPTY
from ..topology import Channel, EnumeratedModel


class PropensityTable:
    """
    Per-site propensities of every channel, kept in sync with a LatticeState.

    Layout
    ------
    a : (capacity, n_channels) array
        Row `slot` belongs to one occupied, unpinned site whose symbol
        anchors a channel with non-zero rate; column j is channel j.
        a[slot, j] = rate_j if the neighbour at offset_j holds the right
        reactant of channel j (always rate_j for single-site channels),
        else 0.

    The flattened row-major view is what the draw functions see, so flat
    index order is slot-major, channel-minor.
    """

    def __init__(self, model: EnumeratedModel, state: LatticeState, capacity: int = 64):
        self.model = model
        self.state = state
        self.domain = state.domain

        self._channels: Tuple[Channel, ...] = model.channels
        self._n_channels = max(model.n_channels, 1)
        self._active = {
            sym for sym in model.reactant_symbols
            if any(ch.rate != 0.0 for ch in model.channels_for(sym))
        }
        # sites z with z + offset == s are found at s + reverse offset
        self._reverse = tuple(tuple(-o for o in off) for off in model.offsets)

        self.a = np.zeros((0, self._n_channels), dtype=float)
        self._site_of: List[Optional[Coord]] = []
        self._slot_of: Dict[Coord, int] = {}
        self._free: List[int] = []
        self._grow(max(int(capacity), state.n_agents, 1))
        self.rebuild()

    # ------------------------------------------------------------------
    # slots
    # ------------------------------------------------------------------
    def _grow(self, min_capacity: int) -> None:
        old = self.a.shape[0]
        new = max(min_capacity, 2 * old, 1)
        if new <= old:
            return
        a = np.zeros((new, self._n_channels), dtype=float)
        a[:old] = self.a
        self.a = a
        self._site_of.extend([None] * (new - old))
        # free slots are popped from the end: lowest index first
        self._free = list(range(new - 1, old - 1, -1)) + self._free

    def _acquire(self, coord: Coord) -> int:
        slot = self._slot_of.get(coord)
        if slot is not None:
            return slot
        if not self._free:
            self._grow(2 * self.a.shape[0])
        slot = self._free.pop()
        self._slot_of[coord] = slot
        self._site_of[slot] = coord
        return slot

    def _release(self, coord: Coord) -> None:
        slot = self._slot_of.pop(coord, None)
        if slot is None:
            return
        self.a[slot, :] = 0.0
        self._site_of[slot] = None
        self._free.append(slot)

    @property
    def n_active_sites(self) -> int:
        return len(self._slot_of)

    # ------------------------------------------------------------------
    # propensities
    # ------------------------------------------------------------------
    def _row(self, coord: Coord, symbol) -> np.ndarray:
        row = np.zeros(self._n_channels, dtype=float)
        for j in self.model.channel_indices_for(symbol):
            ch = self._channels[j]
            if ch.rate < 0.0:
                raise SimulationError(
                    f"negative rate {ch.rate} on channel {ch.index} ({ch.rule}) at site {coord}"
                )
            if ch.rate == 0.0:
                continue
            if ch.offset is None:
                row[j] = ch.rate
                continue
            nb = self.domain.neighbor(coord, ch.offset)
            if nb is None or self.state.is_pinned(nb):
                continue
            if self.state.get(nb) == ch.right:
                row[j] = ch.rate
        return row

    def refresh_site(self, coord: Coord) -> None:
        symbol = self.state.get(coord)
        if symbol is EMPTY or symbol not in self._active or self.state.is_pinned(coord):
            self._release(coord)
            return
        row = self._row(coord, symbol)
        if not row.any():
            self._release(coord)
            return
        slot = self._acquire(coord)
        self.a[slot, :] = row

    def affected_sites(self, changed: Iterable[Coord]) -> List[Coord]:
        """Changed sites plus every site that sees one of them as a neighbour."""
        out = set()
        for s in changed:
            out.add(s)
            for r in self._reverse:
                z = self.domain.neighbor(s, r)
                if z is not None:
                    out.add(z)
        return sorted(out)

    def refresh(self, changed: Iterable[Coord]) -> None:
        for z in self.affected_sites(changed):
            self.refresh_site(z)

    def rebuild(self) -> None:
        for coord in list(self._slot_of):
            self._release(coord)
        for coord, _ in self.state.occupied():
            self.refresh_site(coord)

    @property
    def flat(self) -> np.ndarray:
        return self.a.reshape(-1)

    def total(self) -> float:
        return float(self.a.sum())

    def locate(self, flat_idx: int) -> Tuple[Coord, Channel]:
        slot, j = divmod(int(flat_idx), self._n_channels)
        if slot >= len(self._site_of) or self._site_of[slot] is None or j >= len(self._channels):
            raise SimulationError(f"flat index {flat_idx} does not map to an active channel")
        return self._site_of[slot], self._channels[j]
