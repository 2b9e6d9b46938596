from .errors import ConfigurationError, LatticeSSAError, SimulationError, TopologyError
from .reactions import EMPTY, Rule, RuleTable, compile_rules
from .topology import Hexagonal, NearestNeighbor, VonNeumann, EnumeratedModel, enumerate_channels
from .lattice import LatticeDomain, LatticeSnapshot, LatticeState, build_lattice, random_lattice
from .results import Trajectory, save_results, load_results, load_npz, save_npz
from .core import Direct, FirstReaction, LatticeSSAEngine, LatticeModel, RunStatus, simulate
from .config import ExperimentConfig, load_config


__all__ = [
    "ConfigurationError",
    "LatticeSSAError",
    "SimulationError",
    "TopologyError",
    "EMPTY",
    "Rule",
    "RuleTable",
    "compile_rules",
    "Hexagonal",
    "NearestNeighbor",
    "VonNeumann",
    "EnumeratedModel",
    "enumerate_channels",
    "LatticeDomain",
    "LatticeSnapshot",
    "LatticeState",
    "build_lattice",
    "random_lattice",
    "Trajectory",
    "save_results",
    "load_results",
    "Direct",
    "FirstReaction",
    "LatticeSSAEngine",
    "LatticeModel",
    "RunStatus",
    "simulate",
    "ExperimentConfig",
    "load_config",
]
