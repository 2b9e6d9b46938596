"""Experiment configuration dataclasses and YAML loader."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError


@dataclass
class ModelConfig:
    rules: str
    rate_names: Union[str, List[str]]
    rates: Union[Dict[str, float], List[float]]


@dataclass
class TopologyConfig:
    shape: str = "nearest-neighbor"
    ndims: int = 2


@dataclass
class DomainConfig:
    extent: Optional[Tuple[int, ...]] = None
    boundary: str = "zero-flux"
    barrier: Optional[str] = None


@dataclass
class InitialConfig:
    """Either random `densities` on a bounded domain, or explicit `coords` + `types`."""
    densities: Dict[str, float] = field(default_factory=dict)
    coords: List[Tuple[int, ...]] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    seed: Optional[int] = None

    @property
    def explicit(self) -> bool:
        return bool(self.coords)


@dataclass
class RunConfig:
    algorithm: str = "direct"
    tfinal: float = 1.0
    n_samples: int = 101
    seed: int = 0
    repeats: int = 1
    parallel: bool = False
    n_jobs: int = -1

    def __post_init__(self):
        if not self.tfinal > 0:
            raise ConfigurationError("run.tfinal must be > 0")
        if self.n_samples < 1:
            raise ConfigurationError("run.n_samples must be >= 1")
        if self.repeats < 1:
            raise ConfigurationError("run.repeats must be >= 1")


@dataclass
class OutputConfig:
    prefix: Path = field(default_factory=lambda: Path("./output/lattice_ssa"))
    plot: bool = False
    plot_path: Optional[Path] = None


@dataclass
class ExperimentConfig:
    model: ModelConfig
    topology: TopologyConfig
    domain: DomainConfig
    initial: InitialConfig
    run: RunConfig = field(default_factory=RunConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    name: str = "lattice_ssa"
    quiet: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rules": self.model.rules,
            "rate_names": self.model.rate_names,
            "rates": self.model.rates,
            "shape": self.topology.shape,
            "ndims": self.topology.ndims,
            "extent": list(self.domain.extent) if self.domain.extent is not None else None,
            "boundary": self.domain.boundary,
            "barrier": self.domain.barrier,
            "algorithm": self.run.algorithm,
            "tfinal": self.run.tfinal,
            "n_samples": self.run.n_samples,
            "seed": self.run.seed,
            "repeats": self.run.repeats,
        }


def _require(raw: Dict[str, Any], key: str, section: str) -> Any:
    if key not in raw:
        raise ConfigurationError(f"missing '{key}' in '{section}' section")
    return raw[key]


def _parse_model(raw: Dict[str, Any]) -> ModelConfig:
    rates = _require(raw, "rates", "model")
    if isinstance(rates, dict):
        rates = {str(k): float(v) for k, v in rates.items()}
    else:
        rates = [float(v) for v in rates]
    return ModelConfig(
        rules=str(_require(raw, "rules", "model")),
        rate_names=_require(raw, "rate_names", "model"),
        rates=rates,
    )


def _parse_domain(raw: Dict[str, Any]) -> DomainConfig:
    extent = raw.get("extent")
    return DomainConfig(
        extent=tuple(int(n) for n in extent) if extent is not None else None,
        boundary=raw.get("boundary", "zero-flux" if extent is not None else "unbounded"),
        barrier=raw.get("barrier"),
    )


def _parse_initial(raw: Dict[str, Any]) -> InitialConfig:
    coords = [tuple(int(x) for x in c) for c in raw.get("coords", [])]
    types = [str(t) for t in raw.get("types", [])]
    if len(coords) != len(types):
        raise ConfigurationError(f"initial: {len(coords)} coords but {len(types)} types")
    densities = {str(k): float(v) for k, v in (raw.get("densities") or {}).items()}
    if not coords and not densities:
        raise ConfigurationError("initial: give either 'densities' or 'coords' + 'types'")
    return InitialConfig(densities=densities, coords=coords, types=types, seed=raw.get("seed"))


def load_config(config_path: Union[str, Path]) -> ExperimentConfig:
    """Load and validate a YAML experiment file."""
    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path}: expected a mapping at the top level")

    model = _parse_model(_require(raw, "model", "root"))

    topo_raw = raw.get("topology", {})
    topology = TopologyConfig(
        shape=topo_raw.get("shape", "nearest-neighbor"),
        ndims=int(topo_raw.get("ndims", 2)),
    )

    domain = _parse_domain(raw.get("domain", {}))
    if domain.extent is not None and len(domain.extent) != topology.ndims:
        raise ConfigurationError(
            f"domain.extent has {len(domain.extent)} entries but topology.ndims is {topology.ndims}"
        )

    initial = _parse_initial(_require(raw, "initial", "root"))
    if initial.densities and domain.extent is None:
        raise ConfigurationError("initial.densities needs a bounded domain (domain.extent)")

    run_raw = raw.get("run", {})
    run = RunConfig(
        algorithm=run_raw.get("algorithm", "direct"),
        tfinal=float(run_raw.get("tfinal", 1.0)),
        n_samples=int(run_raw.get("n_samples", 101)),
        seed=int(run_raw.get("seed", 0)),
        repeats=int(run_raw.get("repeats", 1)),
        parallel=bool(run_raw.get("parallel", False)),
        n_jobs=int(run_raw.get("n_jobs", -1)),
    )

    out_raw = raw.get("output", {})
    output = OutputConfig(
        prefix=Path(out_raw.get("prefix", "./output/lattice_ssa")),
        plot=bool(out_raw.get("plot", False)),
        plot_path=Path(out_raw["plot_path"]) if out_raw.get("plot_path") else None,
    )

    return ExperimentConfig(
        model=model,
        topology=topology,
        domain=domain,
        initial=initial,
        run=run,
        output=output,
        name=str(raw.get("name", "lattice_ssa")),
        quiet=bool(raw.get("quiet", False)),
    )
