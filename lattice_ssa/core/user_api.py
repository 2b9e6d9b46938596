from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..errors import ConfigurationError
from ..lattice import LatticeState, build_lattice, random_lattice
from ..reactions import RuleTable, compile_rules
from ..results import Trajectory
from ..topology import EnumeratedModel, NeighborhoodShape, ParameterVector, enumerate_channels, get_shape
from .engine import AlgorithmLike, CancelLike, LatticeSSAEngine, get_algorithm


@dataclass
class LatticeModel:
    """
    User-friendly wrapper around LatticeSSAEngine.

    Users only specify:
      - interaction rules and the rate-name order
      - neighbourhood shape and dimensionality
      - rate values
      - initial conditions

    Example
    -------
    >>> m = LatticeModel()
    >>> m.rules('''
    ...     Rabbit + 0 --> Rabbit + Rabbit, beta
    ...     Rabbit + Wolf --> Wolf + Wolf, gamma
    ...     Wolf --> 0, delta
    ... ''', rate_names="beta gamma delta")
    >>> m.topology("nearest-neighbor", ndims=2)
    >>> m.build(rates={"beta": 1.0, "gamma": 0.5, "delta": 0.2})
    """

    algorithm: AlgorithmLike = "direct"

    def __post_init__(self):
        self.algorithm = get_algorithm(self.algorithm)
        self._table: Optional[RuleTable] = None
        self._shape: Optional[NeighborhoodShape] = None
        self._ndims: Optional[int] = None
        self._model: Optional[EnumeratedModel] = None
        self._engine: Optional[LatticeSSAEngine] = None

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------
    def rules(self, text: str, *, rate_names: Union[str, Sequence[str]]) -> "LatticeModel":
        self._table = compile_rules(text, rate_names)
        self._model = None
        self._engine = None
        return self

    def topology(self, shape: Union[str, NeighborhoodShape] = "nearest-neighbor", *, ndims: int = 2) -> "LatticeModel":
        shape = get_shape(shape)
        shape.offsets(ndims)  # fail early on e.g. hexagonal in 3D
        self._shape = shape
        self._ndims = int(ndims)
        self._model = None
        self._engine = None
        return self

    # ------------------------------------------------------------------
    # build
    # ------------------------------------------------------------------
    def build(self, *, rates: ParameterVector) -> "LatticeModel":
        if self._table is None:
            raise ConfigurationError("rules() not set")
        if self._shape is None or self._ndims is None:
            raise ConfigurationError("topology() not set")

        self._model = enumerate_channels(self._table, self._shape, self._ndims, rates)
        self._engine = LatticeSSAEngine(model=self._model, algorithm=self.algorithm)
        return self

    # ------------------------------------------------------------------
    # initial conditions
    # ------------------------------------------------------------------
    def lattice(
        self,
        coords,
        types: Sequence[Union[int, str]],
        *,
        type_list=None,
        extent: Optional[Sequence[int]] = None,
        boundary: Optional[str] = None,
        barrier: Optional[str] = None,
    ) -> LatticeState:
        """Explicit initial condition; type codes follow the rule alphabet unless `type_list` is given."""
        if type_list is None:
            type_list = list(self.table.alphabet)
        return build_lattice(
            coords, types, self.shape, type_list,
            extent=extent, boundary=boundary, barrier=barrier, ndims=self._ndims,
        )

    def random_lattice(
        self,
        extent: Sequence[int],
        densities: Mapping[str, float],
        *,
        boundary: str = "zero-flux",
        barrier: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> LatticeState:
        if len(extent) != self._ndims:
            raise ConfigurationError(f"extent must have {self._ndims} entries")
        return random_lattice(
            extent, densities, self.shape,
            boundary=boundary, alphabet=self.table.alphabet, barrier=barrier, seed=seed,
        )

    # ------------------------------------------------------------------
    # running
    # ------------------------------------------------------------------
    def run(
        self,
        initial: LatticeState,
        *,
        tfinal: float,
        sample_times: Optional[Sequence[float]] = None,
        n_samples: Optional[int] = None,
        seed: int = 0,
        cancel: Optional[CancelLike] = None,
    ) -> Trajectory:
        if sample_times is None and n_samples is not None:
            sample_times = np.linspace(0.0, float(tfinal), int(n_samples))
        return self.engine.run(initial, float(tfinal), sample_times, seed=int(seed), cancel=cancel)

    def run_repeats(
        self,
        initial: LatticeState,
        *,
        tfinal: float,
        repeats: int,
        sample_times: Optional[Sequence[float]] = None,
        n_samples: Optional[int] = None,
        seed: int = 0,
        parallel: bool = False,
        n_jobs: int = -1,
        progress: bool = True,
        prefer: str = "processes",
        cancel: Optional[CancelLike] = None,
    ) -> List[Trajectory]:
        if sample_times is None and n_samples is not None:
            sample_times = np.linspace(0.0, float(tfinal), int(n_samples))
        return self.engine.run_repeats(
            initial,
            float(tfinal),
            sample_times,
            repeats=int(repeats),
            seed=int(seed),
            parallel=bool(parallel),
            n_jobs=int(n_jobs),
            prefer=str(prefer),
            progress=bool(progress),
            cancel=cancel,
        )

    def metadata(self) -> Dict[str, Any]:
        if self._model is None:
            raise RuntimeError("Model not built yet")

        return {
            "model": "Lattice SSA model",
            "alphabet": list(self._model.alphabet),
            "rules": [str(r) for r in self._model.rule_table.rules],
            "rate_names": list(self._model.rule_table.rate_names),
            "rates": dict(self._model.rates),
            "shape": self._model.shape.name,
            "ndims": int(self._model.ndims),
            "n_channels": int(self._model.n_channels),
            "algorithm": self.algorithm,
        }

    # ------------------------------------------------------------------
    # inspection
    # ------------------------------------------------------------------
    def describe_reactions(self) -> None:
        """
        Print the compiled rules and, once built, the enumerated channels.
        """
        self.table.describe()
        if self._model is not None:
            self._model.describe()

    @property
    def table(self) -> RuleTable:
        if self._table is None:
            raise RuntimeError("Rules not set yet. Call m.rules(...) first.")
        return self._table

    @property
    def shape(self) -> NeighborhoodShape:
        if self._shape is None:
            raise RuntimeError("Topology not set yet. Call m.topology(...) first.")
        return self._shape

    @property
    def model(self) -> EnumeratedModel:
        if self._model is None:
            raise RuntimeError("Model not built yet. Call m.build(rates=...) first.")
        return self._model

    @property
    def engine(self) -> LatticeSSAEngine:
        if self._engine is None:
            raise RuntimeError("Model not built yet. Call m.build(rates=...) first.")
        return self._engine
