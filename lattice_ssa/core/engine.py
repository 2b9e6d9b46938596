from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import logging
import math
import os
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from joblib import Parallel, delayed
from tqdm.auto import tqdm

from ..errors import ConfigurationError, SimulationError, TopologyError
from ..lattice import Coord, LatticeState
from ..results import Trajectory
from ..topology import Channel, EnumeratedModel
from .gillespie_loop import first_reaction_draw, gillespie_draw
from .propensity import PropensityTable

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Algorithm selection
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class Direct:
    """Gillespie's Direct method."""
    name = "direct"


@dataclass(frozen=True)
class FirstReaction:
    """Gillespie's First-Reaction method."""
    name = "first-reaction"


ALGORITHMS = ("direct", "first-reaction")

AlgorithmLike = Union[str, Direct, FirstReaction]


def get_algorithm(algorithm: AlgorithmLike) -> str:
    if isinstance(algorithm, (Direct, FirstReaction)):
        return algorithm.name
    if isinstance(algorithm, type) and algorithm in (Direct, FirstReaction):
        return algorithm.name
    if isinstance(algorithm, str):
        key = algorithm.strip().lower().replace("_", "-")
        if key in ("first-reaction", "firstreaction", "frm"):
            return "first-reaction"
        if key in ("direct", "ssa", "gillespie"):
            return "direct"
    raise ConfigurationError(f"unknown algorithm {algorithm!r}. Known: {ALGORITHMS}")


class RunStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    SAMPLE_EXHAUSTED = "sample-exhausted"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class Event:
    """One fired channel instance."""
    time: float
    channel: Channel
    site: Coord
    neighbor: Optional[Coord]


CancelLike = Union[Callable[[], bool], Any]


def _cancelled(cancel: Optional[CancelLike]) -> bool:
    if cancel is None:
        return False
    if hasattr(cancel, "is_set"):
        return bool(cancel.is_set())
    return bool(cancel())


def _sample_grid(sample_times: Optional[Sequence[float]], tfinal: float) -> np.ndarray:
    if sample_times is None:
        return np.array([0.0, tfinal], dtype=float)
    times = np.asarray(sample_times, dtype=float).reshape(-1)
    if times.size == 0:
        raise ConfigurationError("sample_times must not be empty")
    if not np.all(np.isfinite(times)):
        raise ConfigurationError("sample_times must be finite")
    if times.min() < 0.0 or times.max() > tfinal:
        raise ConfigurationError(f"sample_times must lie in [0, tfinal={tfinal}]")
    return np.unique(times)


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------
@dataclass
class LatticeSSAEngine:
    """
    Exact stochastic simulation of an EnumeratedModel on a lattice.

    Run state machine: IDLE -> RUNNING -> {COMPLETED, SAMPLE_EXHAUSTED,
    CANCELLED}; FAILED when a SimulationError aborts the run.
    """
    model: EnumeratedModel
    algorithm: AlgorithmLike = "direct"
    check_negative: bool = True

    def __post_init__(self):
        self.algorithm = get_algorithm(self.algorithm)
        self.status = RunStatus.IDLE
        self.time = 0.0
        self.n_events = 0
        self._state: Optional[LatticeState] = None
        self._table: Optional[PropensityTable] = None
        self._cumulative: Optional[np.ndarray] = None

    # ------------------------------------------------------------------
    # attaching a state
    # ------------------------------------------------------------------
    def validate_state(self, state: LatticeState) -> None:
        if state.ndims != self.model.ndims:
            raise TopologyError(
                f"state is {state.ndims}D but the model was enumerated for {self.model.ndims}D"
            )
        missing = [sp for sp in self.model.alphabet if sp not in state.alphabet]
        if missing:
            raise ConfigurationError(f"state alphabet {list(state.alphabet)} lacks model symbols {missing}")

        for coord in sorted(state.pinned):
            sym = state.get(coord)
            live = [ch for ch in self.model.channels_for(sym) if ch.rate != 0.0]
            if live:
                raise ConfigurationError(
                    f"pinned site {coord} holds '{sym}', which anchors non-zero rate channel "
                    f"{live[0].index} ({live[0].rule}); barrier symbols must have rate 0"
                )

    def attach(self, state: LatticeState) -> None:
        """
        Bind a live state to the engine (mutated in place by `step`).
        """
        self.validate_state(state)
        self._state = state
        self._table = PropensityTable(self.model, state)
        self._cumulative = None
        self.status = RunStatus.IDLE
        self.time = 0.0
        self.n_events = 0

    def detach(self) -> None:
        self._state = None
        self._table = None
        self._cumulative = None

    @property
    def state(self) -> LatticeState:
        if self._state is None:
            raise RuntimeError("No state attached. Call attach(state) or run(...) first.")
        return self._state

    @property
    def table(self) -> PropensityTable:
        if self._table is None:
            raise RuntimeError("No state attached. Call attach(state) or run(...) first.")
        return self._table

    def total_propensity(self) -> float:
        return self.table.total()

    # ------------------------------------------------------------------
    # single events
    # ------------------------------------------------------------------
    def draw(self, rng: np.random.Generator) -> Tuple[float, int]:
        """Draw (tau, flat channel index) from the current propensities."""
        a = self.table.flat
        if self.algorithm == "direct":
            if self._cumulative is None or self._cumulative.shape != a.shape:
                self._cumulative = np.empty_like(a)
            return gillespie_draw(a, rng, cumulative=self._cumulative, check_negative=self.check_negative)
        return first_reaction_draw(a, rng, check_negative=self.check_negative)

    def apply_event(self, site: Coord, channel: Channel) -> Optional[Coord]:
        """
        Fire `channel` anchored at `site` on the attached state in place.

        Product slot 1 is written to `site`, product slot 2 to the
        neighbour at the channel's offset. Returns the neighbour coordinate.
        """
        state = self.state
        if state.get(site) != channel.left:
            raise SimulationError(
                f"channel {channel.index} ({channel.rule}) fired at {site} holding {state.get(site)!r}"
            )

        neighbor = None
        if channel.offset is not None:
            neighbor = state.domain.neighbor(site, channel.offset)
            if neighbor is None or state.get(neighbor) != channel.right:
                raise SimulationError(
                    f"channel {channel.index} ({channel.rule}) fired at {site} but neighbour "
                    f"{neighbor} holds {state.get(neighbor) if neighbor is not None else None!r}"
                )

        state.set(site, channel.left_product)
        if neighbor is not None:
            state.set(neighbor, channel.right_product)
            self.table.refresh((site, neighbor))
        else:
            self.table.refresh((site,))
        return neighbor

    def step(self, rng: np.random.Generator) -> Optional[Event]:
        """
        Advance the attached state by exactly one event.

        Returns the fired Event, or None when the total propensity is zero.
        """
        tau, idx = self.draw(rng)
        if idx < 0 or not math.isfinite(tau):
            return None
        site, channel = self.table.locate(idx)
        neighbor = self.apply_event(site, channel)
        self.time += float(tau)
        self.n_events += 1
        return Event(time=self.time, channel=channel, site=site, neighbor=neighbor)

    # ------------------------------------------------------------------
    # runs
    # ------------------------------------------------------------------
    def run(
        self,
        initial: LatticeState,
        tfinal: float,
        sample_times: Optional[Sequence[float]] = None,
        *,
        seed: int = 0,
        rng: Optional[np.random.Generator] = None,
        cancel: Optional[CancelLike] = None,
    ) -> Trajectory:
        """
        Run one simulation from a copy of `initial` and return the sampled Trajectory.

        Each sample time records the most recent state at or before it.
        """
        tfinal = float(tfinal)
        if not math.isfinite(tfinal) or tfinal <= 0:
            raise ConfigurationError("tfinal must be > 0 and finite")
        times = _sample_grid(sample_times, tfinal)

        if rng is None:
            rng = np.random.default_rng(seed)

        state = initial.copy()
        self.attach(state)

        traj = Trajectory(
            alphabet=state.alphabet,
            meta={
                "algorithm": self.algorithm,
                "tfinal": tfinal,
                "seed": None if seed is None else int(seed),
                "n_channels": self.model.n_channels,
                "shape": self.model.shape.name,
                "ndims": self.model.ndims,
                "rates": dict(self.model.rates),
            },
        )

        logger.debug(
            "run start: algorithm=%s tfinal=%s samples=%d agents=%d active=%d",
            self.algorithm, tfinal, times.size, state.n_agents, self.table.n_active_sites,
        )

        self.status = RunStatus.RUNNING
        k = 0
        try:
            while True:
                if _cancelled(cancel):
                    self.status = RunStatus.CANCELLED
                    break

                tau, idx = self.draw(rng)
                t_next = self.time + tau

                # the state is constant on [time, t_next)
                while k < times.size and times[k] < t_next:
                    traj.append(times[k], state.snapshot())
                    k += 1

                if idx < 0 or t_next >= tfinal:
                    while k < times.size:
                        traj.append(times[k], state.snapshot())
                        k += 1
                    self.time = tfinal if idx >= 0 else self.time
                    self.status = RunStatus.COMPLETED
                    break

                if k == times.size:
                    self.status = RunStatus.SAMPLE_EXHAUSTED
                    break

                site, channel = self.table.locate(idx)
                self.apply_event(site, channel)
                self.time = t_next
                self.n_events += 1

        except SimulationError as err:
            self.status = RunStatus.FAILED
            traj.meta.update(self._run_meta(err))
            err.trajectory = traj.freeze()
            logger.error("run failed after %d events at t=%s: %s", self.n_events, self.time, err)
            self.detach()
            raise

        traj.meta.update(self._run_meta())
        logger.info(
            "run %s: %d events, t=%.6g, %d samples",
            self.status.value, self.n_events, self.time, len(traj),
        )
        self.detach()
        return traj.freeze()

    def _run_meta(self, err: Optional[Exception] = None) -> Dict[str, Any]:
        meta = {
            "status": self.status.value,
            "n_events": int(self.n_events),
            "final_time": float(self.time),
        }
        if err is not None:
            meta["error"] = str(err)
        return meta

    def run_repeats(
        self,
        initial: LatticeState,
        tfinal: float,
        sample_times: Optional[Sequence[float]] = None,
        repeats: int = 1,
        seed: int = 0,
        *,
        parallel: bool = False,
        n_jobs: int = -1,
        prefer: str = "processes",
        progress: bool = True,
        cancel: Optional[CancelLike] = None,
    ) -> List[Trajectory]:
        """
        Run independent simulations with seeds seed, seed+1, ..., seed+repeats-1.

        parallel=True uses joblib to spread repeats across CPU cores; each
        worker owns its own engine copy and state copy.

        `cancel` is checked between repeats; once it fires, the runs finished
        so far are returned and no further repeat is started. Serial and
        thread-backed runs also receive it, so the repeat in progress stops
        as CANCELLED. Process workers cannot share it and run to completion.
        """
        if repeats <= 0:
            raise ConfigurationError("repeats must be > 0")

        def one(r: int, run_cancel: Optional[CancelLike] = None) -> Trajectory:
            engine = LatticeSSAEngine(self.model, self.algorithm, self.check_negative)
            return engine.run(initial, tfinal, sample_times, seed=seed + r, cancel=run_cancel)

        trajs: List[Trajectory] = []

        if not parallel:
            iterator = range(repeats)
            if progress:
                iterator = tqdm(iterator, total=repeats, desc="Lattice SSA repeats", unit="run", dynamic_ncols=True)
            for r in iterator:
                trajs.append(one(r, cancel))
                if _cancelled(cancel):
                    break
        else:
            n_workers = (os.cpu_count() or 1) if n_jobs == -1 else n_jobs
            logger.info("Running %d lattice SSA repeats in parallel on %d worker(s)", repeats, n_workers)

            worker_cancel = cancel if prefer == "threads" else None
            par = Parallel(n_jobs=n_jobs, prefer=prefer, return_as="generator")
            outputs = par(delayed(one)(r, worker_cancel) for r in range(repeats))
            results_iter = outputs
            if progress:
                results_iter = tqdm(outputs, total=repeats, desc="Lattice SSA repeats", unit="run", dynamic_ncols=True)
            for traj in results_iter:
                trajs.append(traj)
                if _cancelled(cancel):
                    break
            # abandons pending repeats after an early break
            outputs.close()

        if len(trajs) < repeats:
            logger.warning("ensemble cancelled after %d of %d repeat(s)", len(trajs), repeats)
        return trajs


def simulate(
    initial: LatticeState,
    model: EnumeratedModel,
    algorithm: AlgorithmLike = "direct",
    tfinal: float = 1.0,
    sample_times: Optional[Sequence[float]] = None,
    *,
    seed: int = 0,
    rng: Optional[np.random.Generator] = None,
    cancel: Optional[CancelLike] = None,
) -> Trajectory:
    """
    Simulate `model` from `initial` up to `tfinal`, recording `sample_times`.

    `initial` is copied; the caller's state is never mutated.
    """
    engine = LatticeSSAEngine(model=model, algorithm=algorithm)
    return engine.run(initial, tfinal, sample_times, seed=seed, rng=rng, cancel=cancel)


def mean_counts(trajectories: Sequence[Trajectory]) -> Tuple[np.ndarray, Dict[str, np.ndarray]]:
    """
    Average agent counts over an ensemble sampled on the same times.

    Returns (times, {symbol: mean count array}).
    """
    if len(trajectories) == 0:
        raise ValueError("need at least one trajectory")
    t0 = trajectories[0].times
    sums = {sp: np.zeros(t0.shape[0], dtype=float) for sp in trajectories[0].alphabet}
    for traj in trajectories:
        if traj.times.shape != t0.shape or not np.allclose(traj.times, t0):
            raise ValueError("all trajectories must share the same sample times")
        for sp, c in traj.counts().items():
            sums[sp] += c
    n = float(len(trajectories))
    return t0, {sp: s / n for sp, s in sums.items()}
